from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from ....application.use_cases import courses as course_cases
from ....application.use_cases.positions import CHAPTERS, LESSONS, PositionReconciler
from ....infrastructure.db import get_db
from ....infrastructure.cache import invalidate_catalog
from ....infrastructure.repositories import CourseRepository, chapter_repository, lesson_repository
from ..authz import require_admin
from ..deps import protected_admin
from ..results import success
from ..schemas import (
    ApiResponse,
    ChapterCreate,
    ChapterOut,
    CourseCreate,
    CourseOut,
    CourseSummaryOut,
    CourseUpdate,
    LessonCreate,
    LessonOut,
    LessonUpdate,
    ReorderReq,
)

router = APIRouter(prefix="/api/admin/courses", tags=["admin"], dependencies=[Depends(require_admin)])


def chapters(db: Session) -> PositionReconciler:
    return PositionReconciler(chapter_repository(db), CHAPTERS)

def lessons(db: Session) -> PositionReconciler:
    return PositionReconciler(lesson_repository(db), LESSONS)

# --- Course CRUD:

@router.get("", response_model=list[CourseSummaryOut])
def list_courses(db: Session = Depends(get_db)):
    return CourseRepository(db).list_all()

@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def create_course(payload: CourseCreate, claims: dict = Depends(protected_admin), db: Session = Depends(get_db)):
    row = course_cases.create_course(db, payload.model_dump(mode="json"), author_id=claims["uid"])
    invalidate_catalog()
    return success("Course created successfully", CourseSummaryOut.model_validate(row).model_dump(mode="json"))

@router.get("/{course_id}", response_model=CourseOut)
def get_course(course_id: int, db: Session = Depends(get_db)):
    return course_cases.get_course_structure(db, course_id)

@router.put("/{course_id}", response_model=ApiResponse)
def edit_course(course_id: int, payload: CourseUpdate, claims: dict = Depends(protected_admin), db: Session = Depends(get_db)):
    changes = payload.model_dump(mode="json", exclude_unset=True)
    row = course_cases.edit_course(db, course_id, changes, author_id=claims["uid"])
    invalidate_catalog()
    return success("Course edited successfully", CourseSummaryOut.model_validate(row).model_dump(mode="json"))

@router.delete("/{course_id}", response_model=ApiResponse, dependencies=[Depends(protected_admin)])
def delete_course(course_id: int, db: Session = Depends(get_db)):
    course_cases.delete_course(db, course_id)
    invalidate_catalog()
    return success("Course deleted successfully")

# --- Chapters:

@router.post("/{course_id}/chapters", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def create_chapter(course_id: int, payload: ChapterCreate, db: Session = Depends(get_db)):
    row = chapters(db).append(course_id, title=payload.title)
    invalidate_catalog()
    return success("Chapter was successfully created", ChapterOut.model_validate(row).model_dump(mode="json"))

# /order объявлен до /{chapter_id}, иначе "order" разбирается как id
@router.put("/{course_id}/chapters/order", response_model=ApiResponse)
def reorder_chapters(course_id: int, payload: ReorderReq, db: Session = Depends(get_db)):
    chapters(db).reorder(course_id, payload.ids)
    invalidate_catalog()
    return success("Chapters reordered successfully")

@router.delete("/{course_id}/chapters/{chapter_id}", response_model=ApiResponse)
def delete_chapter(course_id: int, chapter_id: int, db: Session = Depends(get_db)):
    chapters(db).delete(chapter_id, course_id)
    invalidate_catalog()
    return success("Deleted chapter successfully")

# --- Lessons:

@router.post("/{course_id}/chapters/{chapter_id}/lessons", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def create_lesson(course_id: int, chapter_id: int, payload: LessonCreate, db: Session = Depends(get_db)):
    course_cases.get_chapter(db, course_id, chapter_id)
    row = lessons(db).append(
        chapter_id,
        title=payload.title,
        description=payload.description,
        thumbnail_key=payload.thumbnail_key,
        video_key=payload.video_key,
    )
    invalidate_catalog()
    return success("Lesson was successfully created", LessonOut.model_validate(row).model_dump(mode="json"))

@router.put("/{course_id}/chapters/{chapter_id}/lessons/order", response_model=ApiResponse)
def reorder_lessons(course_id: int, chapter_id: int, payload: ReorderReq, db: Session = Depends(get_db)):
    course_cases.get_chapter(db, course_id, chapter_id)
    lessons(db).reorder(chapter_id, payload.ids)
    invalidate_catalog()
    return success("Lessons reordered successfully")

@router.get("/{course_id}/chapters/{chapter_id}/lessons/{lesson_id}", response_model=LessonOut)
def get_lesson(course_id: int, chapter_id: int, lesson_id: int, db: Session = Depends(get_db)):
    return course_cases.get_lesson(db, course_id, chapter_id, lesson_id)

@router.put("/{course_id}/chapters/{chapter_id}/lessons/{lesson_id}", response_model=ApiResponse)
def update_lesson(course_id: int, chapter_id: int, lesson_id: int, payload: LessonUpdate, db: Session = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True)
    row = course_cases.update_lesson(db, course_id, chapter_id, lesson_id, changes)
    invalidate_catalog()
    return success("Lesson updated successfully", LessonOut.model_validate(row).model_dump(mode="json"))

@router.delete("/{course_id}/chapters/{chapter_id}/lessons/{lesson_id}", response_model=ApiResponse)
def delete_lesson(course_id: int, chapter_id: int, lesson_id: int, db: Session = Depends(get_db)):
    course_cases.get_chapter(db, course_id, chapter_id)
    lessons(db).delete(lesson_id, chapter_id)
    invalidate_catalog()
    return success("Deleted lesson successfully")
