import re
import uuid
from dataclasses import dataclass

import structlog

from ...config import Settings
from ...domain.errors import InvalidInput
from ...infrastructure.storage import StorageAdapterProtocol

logger = structlog.get_logger()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class UploadTicket:
    presigned_url: str
    key: str


def object_key(file_name: str) -> str:
    safe = _UNSAFE_CHARS.sub("-", file_name).strip("-") or "file"
    return f"{uuid.uuid4()}-{safe}"


def request_upload(
    storage: StorageAdapterProtocol,
    settings: Settings,
    *,
    file_name: str,
    content_type: str,
    size: int,
    is_image: bool,
) -> UploadTicket:
    limit = settings.MAX_IMAGE_BYTES if is_image else settings.MAX_VIDEO_BYTES
    if size > limit:
        raise InvalidInput("File size exceeds the limit")
    if is_image and not content_type.startswith("image/"):
        raise InvalidInput("Only image files are accepted")
    if not is_image and not content_type.startswith("video/"):
        raise InvalidInput("Only video files are accepted")
    key = object_key(file_name)
    url = storage.presign_upload(key=key, content_type=content_type, expires_in=settings.UPLOAD_URL_TTL)
    logger.info("upload_presigned", key=key, size=size, is_image=is_image)
    return UploadTicket(presigned_url=url, key=key)


def delete_upload(storage: StorageAdapterProtocol, key: str) -> None:
    storage.delete_object(key=key)
    logger.info("upload_deleted", key=key)
