import structlog
from sqlalchemy.orm import Session

from ...domain.errors import InvalidInput, NotFound
from ...infrastructure.db import atomic
from ...infrastructure.models import CourseORM, ChapterORM, LessonORM
from ...infrastructure.repositories import CourseRepository

logger = structlog.get_logger()

SLUG_TAKEN = "Slug is already used by another course"


def create_course(db: Session, data: dict, author_id: int | None) -> CourseORM:
    repo = CourseRepository(db)
    with atomic(db):
        if repo.slug_taken(data["slug"]):
            raise InvalidInput(SLUG_TAKEN)
        row = CourseORM(**data, user_id=author_id)
        db.add(row)
    logger.info("course_created", id=row.id, slug=row.slug, author_id=author_id)
    return row


def edit_course(db: Session, course_id: int, changes: dict, author_id: int) -> CourseORM:
    repo = CourseRepository(db)
    with atomic(db):
        row = repo.get(course_id)
        # править курс может только его автор
        if not row or row.user_id != author_id:
            raise NotFound("Course not found")
        if "slug" in changes and repo.slug_taken(changes["slug"], exclude_id=course_id):
            raise InvalidInput(SLUG_TAKEN)
        for field, value in changes.items():
            setattr(row, field, value)
    logger.info("course_edited", id=course_id, fields=sorted(changes))
    return row


def delete_course(db: Session, course_id: int) -> None:
    with atomic(db):
        row = CourseRepository(db).get(course_id)
        if not row:
            raise NotFound("Course not found")
        db.delete(row)
    logger.info("course_deleted", id=course_id)


def get_course_structure(db: Session, course_id: int) -> CourseORM:
    row = CourseRepository(db).get_with_structure(course_id)
    if not row:
        raise NotFound("Course not found")
    return row


def get_published_course(db: Session, slug: str) -> CourseORM:
    row = CourseRepository(db).get_published_by_slug(slug)
    if not row:
        raise NotFound("Course not found")
    return row


def get_chapter(db: Session, course_id: int, chapter_id: int) -> ChapterORM:
    row = CourseRepository(db).get_chapter(course_id, chapter_id)
    if not row:
        raise NotFound("Chapter not found")
    return row


def get_lesson(db: Session, course_id: int, chapter_id: int, lesson_id: int) -> LessonORM:
    get_chapter(db, course_id, chapter_id)
    row = CourseRepository(db).get_lesson(chapter_id, lesson_id)
    if not row:
        raise NotFound("Lesson not found")
    return row


def update_lesson(db: Session, course_id: int, chapter_id: int, lesson_id: int, changes: dict) -> LessonORM:
    with atomic(db):
        row = get_lesson(db, course_id, chapter_id, lesson_id)
        for field, value in changes.items():
            setattr(row, field, value)
    logger.info("lesson_updated", id=lesson_id, fields=sorted(changes))
    return row
