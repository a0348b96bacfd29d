# lms/infrastructure/models.py
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, Mapped, mapped_column, relationship

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), default="user")
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    def __repr__(self) -> str:
        return f"UserORM(id={self.id!r}, email={self.email!r})"


class CourseORM(Base):
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    small_description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    file_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    level: Mapped[str] = mapped_column(String(32), nullable=False, default="Beginner")
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Draft", index=True)
    stripe_price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    chapters: Mapped[list["ChapterORM"]] = relationship(
        "ChapterORM",
        back_populates="course",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ChapterORM.position",
    )

    def __repr__(self) -> str:
        return f"CourseORM(id={self.id!r}, slug={self.slug!r})"


class ChapterORM(Base):
    __tablename__ = "chapters"
    __table_args__ = (UniqueConstraint("course_id", "position", name="uq_chapter_position"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    course: Mapped["CourseORM"] = relationship(
        "CourseORM",
        back_populates="chapters",
    )
    lessons: Mapped[list["LessonORM"]] = relationship(
        "LessonORM",
        back_populates="chapter",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="LessonORM.position",
    )

    def __repr__(self) -> str:
        return f"ChapterORM(id={self.id!r}, course_id={self.course_id!r}, position={self.position!r})"


class LessonORM(Base):
    __tablename__ = "lessons"
    __table_args__ = (UniqueConstraint("chapter_id", "position", name="uq_lesson_position"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    chapter_id: Mapped[int] = mapped_column(
        ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    video_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    chapter: Mapped["ChapterORM"] = relationship(
        "ChapterORM",
        back_populates="lessons",
    )

    def __repr__(self) -> str:
        return f"LessonORM(id={self.id!r}, chapter_id={self.chapter_id!r}, position={self.position!r})"


class EnrollmentORM(Base):
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_user_course"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"EnrollmentORM(id={self.id!r}, user_id={self.user_id!r}, course_id={self.course_id!r})"

User = UserORM
Course = CourseORM
Chapter = ChapterORM
Lesson = LessonORM
Enrollment = EnrollmentORM

__all__ = [
    "Base",
    "UserORM",
    "CourseORM",
    "ChapterORM",
    "LessonORM",
    "EnrollmentORM",
    "User",
    "Course",
    "Chapter",
    "Lesson",
    "Enrollment",
]
