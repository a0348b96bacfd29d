from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse
from ...domain.errors import (
    ExternalServiceFailure,
    InvalidInput,
    LMSError,
    NotFound,
    RateLimited,
    RequestDenied,
)
from .schemas import ApiResponse

# порядок важен: подклассы раньше базовых классов
ERROR_STATUS: list[tuple[type[LMSError], int]] = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
    (RequestDenied, status.HTTP_403_FORBIDDEN),
    (ExternalServiceFailure, status.HTTP_502_BAD_GATEWAY),
]


def status_for(exc: LMSError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def success(message: str, data: Any = None) -> ApiResponse:
    return ApiResponse(status="success", message=message, data=data)


def error_response(message: str, status_code: int, **extra: Any) -> JSONResponse:
    body = {"status": "error", "message": message, **extra}
    return JSONResponse(status_code=status_code, content=body)


# сообщения для непредвиденных ошибок по имени обработчика
FAILURE_MESSAGES = {
    "create_course": "Failed to create course",
    "edit_course": "Failed to edit course",
    "delete_course": "Failed to delete course",
    "create_chapter": "Failed to create chapter",
    "reorder_chapters": "Failed to update chapters",
    "delete_chapter": "Failed to delete chapter",
    "create_lesson": "Failed to create lesson",
    "reorder_lessons": "Failed to reorder lessons",
    "delete_lesson": "Failed to delete lesson",
    "enroll": "Failed to enroll in course",
}
UNKNOWN_ERROR_MESSAGE = "Something went wrong"


def failure_message(endpoint: Any) -> str:
    return FAILURE_MESSAGES.get(getattr(endpoint, "__name__", ""), UNKNOWN_ERROR_MESSAGE)
