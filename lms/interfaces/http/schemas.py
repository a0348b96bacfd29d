from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field, computed_field, field_validator

from ...domain.entities import COURSE_CATEGORIES, CourseLevel, CourseStatus
from ...infrastructure.storage import construct_url

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class ApiResponse(BaseModel):
    status: Literal["success", "error"]
    message: str
    data: Any | None = None

# --- Auth

class RegisterReq(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str = ""

class LoginReq(BaseModel):
    email: EmailStr
    password: str

class UserResp(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: str

class TokenResp(BaseModel):
    access_token: str
    token_type: str = "bearer"

# --- Courses

def _check_category(value: str | None) -> str | None:
    if value is not None and value not in COURSE_CATEGORIES:
        raise ValueError("unknown category")
    return value

def _reject_null(value):
    # частичное обновление: поле можно не передать, но нельзя обнулить
    if value is None:
        raise ValueError("field cannot be null")
    return value

class CourseCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    slug: str = Field(min_length=3, max_length=255, pattern=SLUG_PATTERN)
    description: str = Field(min_length=3)
    small_description: str = Field(min_length=3, max_length=200)
    file_key: str | None = None
    price: float = Field(ge=1)
    duration: int = Field(ge=1, le=500)
    level: CourseLevel = CourseLevel.BEGINNER
    category: str
    status: CourseStatus = CourseStatus.DRAFT
    stripe_price_id: str | None = None

    @field_validator("category")
    @classmethod
    def check_category(cls, value):
        return _check_category(value)

class CourseUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=100)
    slug: str | None = Field(default=None, min_length=3, max_length=255, pattern=SLUG_PATTERN)
    description: str | None = Field(default=None, min_length=3)
    small_description: str | None = Field(default=None, min_length=3, max_length=200)
    file_key: str | None = None
    price: float | None = Field(default=None, ge=1)
    duration: int | None = Field(default=None, ge=1, le=500)
    level: CourseLevel | None = None
    category: str | None = None
    status: CourseStatus | None = None
    stripe_price_id: str | None = None

    @field_validator(
        "title", "slug", "description", "small_description", "price",
        "duration", "level", "category", "status",
        mode="before",
    )
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)

    @field_validator("category")
    @classmethod
    def check_category(cls, value):
        return _check_category(value)

class LessonOut(BaseModel):
    id: int
    chapter_id: int
    title: str
    position: int
    description: str | None = None
    thumbnail_key: str | None = None
    video_key: str | None = None
    class Config: from_attributes = True

    @computed_field
    @property
    def thumbnail_url(self) -> str | None:
        return construct_url(self.thumbnail_key)

class ChapterOut(BaseModel):
    id: int
    course_id: int
    title: str
    position: int
    lessons: list[LessonOut] = []
    class Config: from_attributes = True

class CourseSummaryOut(BaseModel):
    id: int
    title: str
    slug: str
    small_description: str
    file_key: str | None = None
    price: float
    duration: int
    level: str
    category: str
    status: str
    created_at: datetime | None = None
    class Config: from_attributes = True

    @computed_field
    @property
    def image_url(self) -> str | None:
        return construct_url(self.file_key)

class CourseOut(CourseSummaryOut):
    description: str
    stripe_price_id: str | None = None
    chapters: list[ChapterOut] = []

# публичная страница курса: только заголовки, без ключей видео
class PublicLessonOut(BaseModel):
    id: int
    title: str
    position: int
    class Config: from_attributes = True

class PublicChapterOut(BaseModel):
    id: int
    title: str
    position: int
    lessons: list[PublicLessonOut] = []
    class Config: from_attributes = True

class PublicCourseOut(CourseSummaryOut):
    description: str
    chapters: list[PublicChapterOut] = []

# --- Structure

class ChapterCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)

class LessonCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)
    description: str | None = None
    thumbnail_key: str | None = None
    video_key: str | None = None

class LessonUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=255)
    description: str | None = None
    thumbnail_key: str | None = None
    video_key: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)

class ReorderReq(BaseModel):
    ids: list[int]

# --- Uploads

class UploadReq(BaseModel):
    fileName: str = Field(min_length=1, max_length=255)
    contentType: str = Field(min_length=1)
    size: int = Field(gt=0)
    isImage: bool = True

class UploadResp(BaseModel):
    presignedUrl: str
    key: str

class DeleteUploadReq(BaseModel):
    key: str = Field(min_length=1)
