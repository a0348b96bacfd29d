from fastapi import APIRouter, Depends
from ....application.use_cases.uploads import delete_upload, request_upload
from ....config import settings
from ....infrastructure.storage import StorageAdapterProtocol
from ..authz import require_admin
from ..deps import get_storage
from ..results import success
from ..schemas import ApiResponse, DeleteUploadReq, UploadReq, UploadResp

router = APIRouter(prefix="/api/s3", tags=["uploads"], dependencies=[Depends(require_admin)])

@router.post("/upload", response_model=UploadResp)
def presign_upload(payload: UploadReq, storage: StorageAdapterProtocol = Depends(get_storage)):
    ticket = request_upload(
        storage,
        settings,
        file_name=payload.fileName,
        content_type=payload.contentType,
        size=payload.size,
        is_image=payload.isImage,
    )
    return UploadResp(presignedUrl=ticket.presigned_url, key=ticket.key)

@router.delete("/delete", response_model=ApiResponse)
def remove_upload(payload: DeleteUploadReq, storage: StorageAdapterProtocol = Depends(get_storage)):
    delete_upload(storage, payload.key)
    return success("File deleted successfully")
