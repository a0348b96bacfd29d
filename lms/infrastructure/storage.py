"""Object storage adapter (S3-compatible) for course images and lesson videos."""
from __future__ import annotations

from typing import Any, Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, settings
from ..domain.errors import ExternalServiceFailure

logger = structlog.get_logger()


class StorageAdapterProtocol(Protocol):
    def presign_upload(self, *, key: str, content_type: str, expires_in: int) -> str: ...

    def delete_object(self, *, key: str) -> None: ...



def construct_url(key: str | None) -> str | None:
    """Публичный URL объекта по ключу (обложки курсов, превью уроков)."""
    if not key:
        return None
    return settings.S3_PUBLIC_URL_TEMPLATE.format(bucket=settings.S3_BUCKET, key=key)


class S3StorageAdapter:
    """Storage adapter using a boto3 S3 client; buckets are addressed by name."""

    def __init__(self, client: Any, bucket: str):
        self._client = client
        self._bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3StorageAdapter":
        client = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        )
        return cls(client, settings.S3_BUCKET)

    def presign_upload(self, *, key: str, content_type: str, expires_in: int) -> str:
        try:
            return self._client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self._bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("storage_presign_failed", key=key, error=str(e))
            raise ExternalServiceFailure("Failed to generate presigned URL") from e

    def delete_object(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("storage_delete_failed", key=key, error=str(e))
            raise ExternalServiceFailure("Failed to delete file") from e
