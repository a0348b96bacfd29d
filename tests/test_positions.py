import random

import pytest

from lms.application.use_cases.positions import CHAPTERS, LESSONS, PositionReconciler
from lms.domain.errors import InvalidInput, NotFound
from lms.infrastructure.models import Chapter, Course, Lesson
from lms.infrastructure.repositories import SiblingRepository, chapter_repository, lesson_repository


def make_course(db, slug="course") -> Course:
    course = Course(
        title="Course",
        slug=slug,
        description="Description",
        small_description="Short",
        price=10,
        duration=1,
        category="Development",
    )
    db.add(course)
    db.commit()
    return course


def chapters_of(db, course_id):
    db.expire_all()
    rows = db.query(Chapter).filter(Chapter.course_id == course_id).order_by(Chapter.position).all()
    return [(row.title, row.position) for row in rows]


def lessons_of(db, chapter_id):
    db.expire_all()
    rows = db.query(Lesson).filter(Lesson.chapter_id == chapter_id).order_by(Lesson.position).all()
    return [(row.title, row.position) for row in rows]


@pytest.fixture
def chapters(db):
    return PositionReconciler(chapter_repository(db), CHAPTERS)


@pytest.fixture
def lessons(db):
    return PositionReconciler(lesson_repository(db), LESSONS)


@pytest.fixture
def course_abd(db, chapters):
    """Курс C с главами A(1), B(2), D(3)"""
    course = make_course(db)
    ids = {title: chapters.append(course.id, title=title).id for title in ("A", "B", "D")}
    return course, ids


def test_append_first_child_gets_position_one(db, chapters):
    course = make_course(db)
    row = chapters.append(course.id, title="Intro")
    assert row.position == 1


def test_append_uses_max_plus_one(db, chapters):
    course = make_course(db)
    for title in ("One", "Two", "Three"):
        chapters.append(course.id, title=title)
    assert chapters_of(db, course.id) == [("One", 1), ("Two", 2), ("Three", 3)]


def test_append_unknown_parent(db, chapters, lessons):
    with pytest.raises(NotFound) as exc:
        chapters.append(999, title="Orphan")
    assert exc.value.message == "Course not found"

    with pytest.raises(NotFound) as exc:
        lessons.append(999, title="Orphan")
    assert exc.value.message == "Chapter not found"


def test_append_lesson_stores_content_fields(db, chapters, lessons):
    course = make_course(db)
    chapter = chapters.append(course.id, title="Basics")
    row = lessons.append(chapter.id, title="Variables", description="Names", video_key="v.mp4")
    assert row.position == 1
    assert row.description == "Names"
    assert row.video_key == "v.mp4"


def test_delete_middle_chapter_renumbers(db, chapters, course_abd):
    course, ids = course_abd
    chapters.delete(ids["B"], course.id)
    assert chapters_of(db, course.id) == [("A", 1), ("D", 2)]


def test_then_reorder_remaining_chapters(db, chapters, course_abd):
    course, ids = course_abd
    chapters.delete(ids["B"], course.id)
    chapters.reorder(course.id, [ids["D"], ids["A"]])
    assert chapters_of(db, course.id) == [("D", 1), ("A", 2)]


def test_delete_shifts_only_greater_positions(db, chapters, lessons):
    course = make_course(db)
    chapter = chapters.append(course.id, title="Basics")
    ids = [lessons.append(chapter.id, title=f"L{i}").id for i in range(1, 6)]

    lessons.delete(ids[2], chapter.id)

    assert lessons_of(db, chapter.id) == [("L1", 1), ("L2", 2), ("L4", 3), ("L5", 4)]


def test_delete_last_and_first(db, chapters, course_abd):
    course, ids = course_abd
    chapters.delete(ids["D"], course.id)
    chapters.delete(ids["A"], course.id)
    assert chapters_of(db, course.id) == [("B", 1)]


def test_delete_unknown_child_keeps_positions(db, chapters, course_abd):
    course, _ = course_abd
    with pytest.raises(NotFound) as exc:
        chapters.delete(12345, course.id)
    assert exc.value.message == "Chapter not found"
    assert chapters_of(db, course.id) == [("A", 1), ("B", 2), ("D", 3)]


def test_delete_child_of_other_parent_is_not_found(db, chapters, course_abd):
    course, ids = course_abd
    other = make_course(db, slug="other")
    with pytest.raises(NotFound):
        chapters.delete(ids["A"], other.id)
    assert chapters_of(db, course.id) == [("A", 1), ("B", 2), ("D", 3)]


def test_delete_chapter_removes_its_lessons(db, chapters, lessons):
    course = make_course(db)
    chapter = chapters.append(course.id, title="Basics")
    lessons.append(chapter.id, title="One")
    lessons.append(chapter.id, title="Two")

    chapters.delete(chapter.id, course.id)

    db.expire_all()
    assert db.query(Lesson).count() == 0


def test_reorder_assigns_index_plus_one(db, chapters, course_abd):
    course, ids = course_abd
    chapters.reorder(course.id, [ids["D"], ids["A"], ids["B"]])
    assert chapters_of(db, course.id) == [("D", 1), ("A", 2), ("B", 3)]


def test_reorder_is_idempotent(db, chapters, course_abd):
    course, ids = course_abd
    order = [ids["B"], ids["D"], ids["A"]]
    chapters.reorder(course.id, order)
    chapters.reorder(course.id, order)
    assert chapters_of(db, course.id) == [("B", 1), ("D", 2), ("A", 3)]


def test_reorder_empty_list(db, chapters, lessons, course_abd):
    course, _ = course_abd
    with pytest.raises(InvalidInput) as exc:
        chapters.reorder(course.id, [])
    assert exc.value.message == "No chapters provided"
    with pytest.raises(InvalidInput) as exc:
        lessons.reorder(1, [])
    assert exc.value.message == "No lessons provided"


def test_reorder_rejects_partial_and_duplicate_lists(db, chapters, course_abd):
    course, ids = course_abd
    with pytest.raises(InvalidInput):
        chapters.reorder(course.id, [ids["A"], ids["B"]])
    with pytest.raises(InvalidInput):
        chapters.reorder(course.id, [ids["A"], ids["A"], ids["B"], ids["D"]])
    assert chapters_of(db, course.id) == [("A", 1), ("B", 2), ("D", 3)]


def test_reorder_foreign_id_is_not_found(db, chapters, course_abd):
    course, ids = course_abd
    other = make_course(db, slug="other")
    foreign = chapters.append(other.id, title="X").id
    with pytest.raises(NotFound):
        chapters.reorder(course.id, [ids["A"], ids["B"], foreign])
    assert chapters_of(db, course.id) == [("A", 1), ("B", 2), ("D", 3)]
    assert chapters_of(db, other.id) == [("X", 1)]


def test_reorder_unknown_parent(db, chapters):
    with pytest.raises(NotFound) as exc:
        chapters.reorder(404, [1])
    assert exc.value.message == "Course not found"


class FailingRepository(SiblingRepository):
    def assign_positions(self, parent_id, ordered_ids):
        super().assign_positions(parent_id, ordered_ids[:1])
        raise RuntimeError("connection lost")


def test_delete_rolls_back_as_one_unit(db, course_abd):
    course, ids = course_abd
    reconciler = PositionReconciler(FailingRepository(db, Chapter, Course, "course_id"), CHAPTERS)

    with pytest.raises(RuntimeError):
        reconciler.delete(ids["A"], course.id)

    # ни удаление, ни перенумерация не применились
    assert chapters_of(db, course.id) == [("A", 1), ("B", 2), ("D", 3)]


def test_positions_stay_dense_after_random_operations(db, chapters):
    rnd = random.Random(20240611)
    course = make_course(db)
    alive = []
    for step in range(60):
        op = rnd.choice(["append", "append", "delete", "reorder"])
        if op == "append" or not alive:
            alive.append(chapters.append(course.id, title=f"Chapter {step}").id)
        elif op == "delete":
            victim = rnd.choice(alive)
            chapters.delete(victim, course.id)
            alive.remove(victim)
        else:
            rnd.shuffle(alive)
            chapters.reorder(course.id, list(alive))

        positions = [pos for _, pos in chapters_of(db, course.id)]
        assert positions == list(range(1, len(alive) + 1))


def test_repository_lists_children_in_position_order(db, chapters):
    course = make_course(db)
    ids = [chapters.append(course.id, title=f"Chapter {n}").id for n in range(1, 4)]
    chapters.reorder(course.id, [ids[1], ids[2], ids[0]])

    repo = chapter_repository(db)
    db.expire_all()
    assert [row.id for row in repo.list_children(course.id)] == [ids[1], ids[2], ids[0]]
    assert repo.list_children(404) == []
