from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload
from .metrics import db_queries_total
from .models import (
    UserORM,
    CourseORM,
    ChapterORM,
    LessonORM,
    EnrollmentORM,
)
from ..domain.entities import User
from ..application.use_cases.register_user import IUserRepository
from ..application.use_cases.positions import ISiblingRepository

def to_domain(u: UserORM) -> User:
    return User(id=u.id, email=u.email, name=u.name, role=u.role)

class UserRepository(IUserRepository):
    def __init__(self, db: Session): self.db = db

    def get_by_email(self, email: str) -> User | None:
        row = self.db.query(UserORM).filter(UserORM.email == email).first()
        return to_domain(row) if row else None

    def create(self, email: str, password_hash: str, name: str = "", role: str = "user") -> User:
        row = UserORM(email=email, password_hash=password_hash, name=name, role=role)
        self.db.add(row); self.db.commit(); self.db.refresh(row)
        return to_domain(row)


class SiblingRepository(ISiblingRepository):
    """Упорядоченные дочерние записи одного родителя (главы курса или уроки главы).

    Методы не коммитят: вызывающий код оборачивает их в одну атомарную единицу.
    """

    def __init__(self, db: Session, model, parent_model, parent_column: str):
        self.db = db
        self.model = model
        self.parent_model = parent_model
        self.parent_column = getattr(model, parent_column)
        self.parent_key = parent_column

    def parent_exists(self, parent_id: int) -> bool:
        db_queries_total.inc()
        return self.db.get(self.parent_model, parent_id) is not None

    def max_position(self, parent_id: int) -> int:
        db_queries_total.inc()
        stmt = select(func.max(self.model.position)).where(self.parent_column == parent_id)
        return self.db.execute(stmt).scalar() or 0

    def list_children(self, parent_id: int) -> list:
        db_queries_total.inc()
        stmt = (select(self.model)
                .where(self.parent_column == parent_id)
                .order_by(self.model.position.asc(), self.model.id.asc()))
        return list(self.db.execute(stmt).scalars())

    def add(self, parent_id: int, position: int, **fields):
        row = self.model(position=position, **{self.parent_key: parent_id}, **fields)
        self.db.add(row)
        self.db.flush()
        return row

    def remove(self, row) -> None:
        self.db.delete(row)
        self.db.flush()

    def assign_positions(self, parent_id: int, ordered_ids: list[int]) -> None:
        if not ordered_ids:
            return
        # Шаг 1: сдвигаем все позиции выше текущего максимума,
        # чтобы уникальный индекс (parent, position) не конфликтовал.
        bump = self.max_position(parent_id)
        self.db.execute(
            update(self.model)
            .where(self.parent_column == parent_id)
            .values(position=self.model.position + bump)
        )
        # Шаг 2: итоговые позиции 1..N в заданном порядке
        for index, entity_id in enumerate(ordered_ids, start=1):
            self.db.execute(
                update(self.model)
                .where(self.model.id == entity_id, self.parent_column == parent_id)
                .values(position=index)
            )
        db_queries_total.inc(len(ordered_ids) + 1)
        self.db.flush()


def chapter_repository(db: Session) -> SiblingRepository:
    return SiblingRepository(db, ChapterORM, CourseORM, "course_id")

def lesson_repository(db: Session) -> SiblingRepository:
    return SiblingRepository(db, LessonORM, ChapterORM, "chapter_id")


class CourseRepository:
    def __init__(self, db: Session): self.db = db

    def get(self, course_id: int) -> CourseORM | None:
        db_queries_total.inc()
        return self.db.get(CourseORM, course_id)

    def get_with_structure(self, course_id: int) -> CourseORM | None:
        db_queries_total.inc()
        stmt = (select(CourseORM)
                .where(CourseORM.id == course_id)
                .options(selectinload(CourseORM.chapters).selectinload(ChapterORM.lessons)))
        return self.db.execute(stmt).scalar_one_or_none()

    def get_published_by_slug(self, slug: str) -> CourseORM | None:
        db_queries_total.inc()
        stmt = (select(CourseORM)
                .where(CourseORM.slug == slug, CourseORM.status == "Published")
                .options(selectinload(CourseORM.chapters).selectinload(ChapterORM.lessons)))
        return self.db.execute(stmt).scalar_one_or_none()

    def slug_taken(self, slug: str, exclude_id: int | None = None) -> bool:
        db_queries_total.inc()
        q = self.db.query(CourseORM.id).filter(CourseORM.slug == slug)
        if exclude_id is not None:
            q = q.filter(CourseORM.id != exclude_id)
        return q.first() is not None

    def list_all(self) -> list[CourseORM]:
        db_queries_total.inc()
        return self.db.query(CourseORM).order_by(CourseORM.created_at.desc(), CourseORM.id.desc()).all()

    def list_published(self, limit: int, offset: int) -> list[CourseORM]:
        db_queries_total.inc()
        return (self.db.query(CourseORM)
                .filter(CourseORM.status == "Published")
                .order_by(CourseORM.created_at.desc(), CourseORM.id.desc())
                .limit(limit).offset(offset).all())

    def get_chapter(self, course_id: int, chapter_id: int) -> ChapterORM | None:
        db_queries_total.inc()
        return (self.db.query(ChapterORM)
                .filter(ChapterORM.id == chapter_id, ChapterORM.course_id == course_id)
                .first())

    def get_lesson(self, chapter_id: int, lesson_id: int) -> LessonORM | None:
        db_queries_total.inc()
        return (self.db.query(LessonORM)
                .filter(LessonORM.id == lesson_id, LessonORM.chapter_id == chapter_id)
                .first())


class EnrollmentRepository:
    def __init__(self, db: Session): self.db = db

    def get_user(self, user_id: int) -> UserORM | None:
        db_queries_total.inc()
        return self.db.get(UserORM, user_id)

    def find(self, user_id: int, course_id: int) -> EnrollmentORM | None:
        db_queries_total.inc()
        return (self.db.query(EnrollmentORM)
                .filter(EnrollmentORM.user_id == user_id, EnrollmentORM.course_id == course_id)
                .first())

    def get(self, enrollment_id: int) -> EnrollmentORM | None:
        db_queries_total.inc()
        return self.db.get(EnrollmentORM, enrollment_id)

    def add(self, user_id: int, course_id: int, amount: float, status: str) -> EnrollmentORM:
        row = EnrollmentORM(user_id=user_id, course_id=course_id, amount=amount, status=status)
        self.db.add(row)
        self.db.flush()
        return row
