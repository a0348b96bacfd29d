"""
Client-side model of a course's chapter/lesson structure for drag-and-drop
editing.

A drag end is applied optimistically to the local state, then persisted with a
reorder request. When the server does not confirm, the state is restored to the
snapshot taken right before the optimistic change.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Literal, Protocol

import httpx
import structlog

logger = structlog.get_logger()

ItemType = Literal["chapter", "lesson"]


@dataclass
class LessonItem:
    id: int
    title: str
    order: int


@dataclass
class ChapterItem:
    id: int
    title: str
    order: int
    is_open: bool = True
    lessons: list[LessonItem] = field(default_factory=list)


@dataclass(frozen=True)
class DragTarget:
    """Перетаскиваемый элемент или элемент под курсором."""
    id: int
    type: ItemType
    chapter_id: int | None = None  # только для уроков


@dataclass(frozen=True)
class ApiResult:
    status: str
    message: str

    @property
    def ok(self) -> bool:
        return self.status == "success"


class StructureGateway(Protocol):
    async def reorder_chapters(self, course_id: int, chapter_ids: list[int]) -> ApiResult: ...

    async def reorder_lessons(self, course_id: int, chapter_id: int, lesson_ids: list[int]) -> ApiResult: ...


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class HttpStructureGateway:
    """Gateway over the admin reorder endpoints; transport errors become error results."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def reorder_chapters(self, course_id: int, chapter_ids: list[int]) -> ApiResult:
        return await self._put(f"/api/admin/courses/{course_id}/chapters/order", chapter_ids)

    async def reorder_lessons(self, course_id: int, chapter_id: int, lesson_ids: list[int]) -> ApiResult:
        return await self._put(f"/api/admin/courses/{course_id}/chapters/{chapter_id}/lessons/order", lesson_ids)

    async def _put(self, url: str, ids: list[int]) -> ApiResult:
        try:
            resp = await self._client.put(url, json={"ids": ids})
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("reorder_request_failed", url=url, error=str(e))
            return ApiResult(status="error", message=str(e))
        if not isinstance(body, dict):
            return ApiResult(status="error", message=f"Unexpected response ({resp.status_code})")
        return ApiResult(status=body.get("status", "error"), message=body.get("message", ""))


def array_move(items: list, old_index: int, new_index: int) -> list:
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


def _chapters_from(course: dict, previous: list[ChapterItem] | None = None) -> list[ChapterItem]:
    open_flags = {c.id: c.is_open for c in previous or []}
    return [
        ChapterItem(
            id=ch["id"],
            title=ch["title"],
            order=ch["position"],
            is_open=open_flags.get(ch["id"], True),
            lessons=[LessonItem(id=l["id"], title=l["title"], order=l["position"]) for l in ch.get("lessons", [])],
        )
        for ch in course.get("chapters", [])
    ]


class CourseStructure:
    def __init__(self, course_id: int, chapters: list[ChapterItem], gateway: StructureGateway, notifier: Notifier):
        self.course_id = course_id
        self.chapters = chapters
        self.gateway = gateway
        self.notifier = notifier

    @classmethod
    def from_course(cls, course: dict, gateway: StructureGateway, notifier: Notifier) -> "CourseStructure":
        return cls(course["id"], _chapters_from(course), gateway, notifier)

    def sync(self, course: dict) -> None:
        """Перестраивает состояние по свежим данным сервера, сохраняя раскрытые главы."""
        self.chapters = _chapters_from(course, previous=self.chapters)

    def toggle_chapter(self, chapter_id: int) -> None:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                chapter.is_open = not chapter.is_open

    async def drag_end(self, active: DragTarget, over: DragTarget | None) -> bool:
        """Обрабатывает конец перетаскивания; True, если сервер принял новый порядок."""
        if over is None or (active.type, active.id) == (over.type, over.id):
            return False
        if active.type == "chapter":
            return await self._move_chapter(active, over)
        return await self._move_lesson(active, over)

    async def _move_chapter(self, active: DragTarget, over: DragTarget) -> bool:
        target_id = over.id if over.type == "chapter" else over.chapter_id
        if target_id is None:
            self.notifier.error("Could not determine chapter for reordering")
            return False
        old_index = self._chapter_index(active.id)
        new_index = self._chapter_index(target_id)
        if old_index == -1 or new_index == -1:
            self.notifier.error("Could not find chapter index for reordering")
            return False
        if old_index == new_index:
            return False

        reordered = [
            replace(chapter, order=position)
            for position, chapter in enumerate(array_move(self.chapters, old_index, new_index), start=1)
        ]
        ids = [c.id for c in reordered]
        return await self._commit(
            reordered,
            lambda: self.gateway.reorder_chapters(self.course_id, ids),
            "Failed to reorder chapters",
        )

    async def _move_lesson(self, active: DragTarget, over: DragTarget) -> bool:
        over_chapter_id = over.id if over.type == "chapter" else over.chapter_id
        if active.chapter_id is None or active.chapter_id != over_chapter_id:
            self.notifier.error("Moving a lesson between different chapters is not allowed")
            return False
        if over.type == "chapter":
            return False

        chapter_index = self._chapter_index(active.chapter_id)
        if chapter_index == -1:
            self.notifier.error("Could not find valid chapter")
            return False
        chapter = self.chapters[chapter_index]
        old_index = next((i for i, l in enumerate(chapter.lessons) if l.id == active.id), -1)
        new_index = next((i for i, l in enumerate(chapter.lessons) if l.id == over.id), -1)
        if old_index == -1 or new_index == -1:
            self.notifier.error("Could not drag lesson")
            return False

        lessons = [
            replace(lesson, order=position)
            for position, lesson in enumerate(array_move(chapter.lessons, old_index, new_index), start=1)
        ]
        updated = list(self.chapters)
        updated[chapter_index] = replace(chapter, lessons=lessons)
        ids = [l.id for l in lessons]
        return await self._commit(
            updated,
            lambda: self.gateway.reorder_lessons(self.course_id, chapter.id, ids),
            "Failed to reorder lessons",
        )

    async def _commit(self, optimistic: list[ChapterItem], send, failure_message: str) -> bool:
        # снимок берётся до применения оптимистичного состояния
        snapshot = copy.deepcopy(self.chapters)
        self.chapters = optimistic
        try:
            result = await send()
        except Exception:
            self.chapters = snapshot
            self.notifier.error(failure_message)
            raise
        if not result.ok:
            self.chapters = snapshot
            self.notifier.error(failure_message)
            logger.info("reorder_rolled_back", course_id=self.course_id, reason=result.message)
            return False
        self.notifier.success(result.message)
        return True

    def _chapter_index(self, chapter_id: int) -> int:
        return next((i for i, c in enumerate(self.chapters) if c.id == chapter_id), -1)
