"""
Dense 1-based ordering of chapters within a course and lessons within a chapter.

Every operation runs as one atomic unit: either all position writes (and the
triggering insert/delete) commit together or none of them do. Two concurrent
reorders of the same parent are not serialized; the last commit wins.
"""
from dataclasses import dataclass

import structlog

from ...domain.errors import InvalidInput, NotFound
from ...infrastructure.db import atomic
from ...infrastructure.metrics import position_operations_total

logger = structlog.get_logger()


class ISiblingRepository:
    db: object
    def parent_exists(self, parent_id: int) -> bool: ...
    def max_position(self, parent_id: int) -> int: ...
    def list_children(self, parent_id: int) -> list: ...
    def add(self, parent_id: int, position: int, **fields): ...
    def remove(self, row) -> None: ...
    def assign_positions(self, parent_id: int, ordered_ids: list[int]) -> None: ...


@dataclass(frozen=True)
class SiblingKind:
    name: str
    parent: str

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def parent_label(self) -> str:
        return self.parent.capitalize()


CHAPTERS = SiblingKind(name="chapter", parent="course")
LESSONS = SiblingKind(name="lesson", parent="chapter")


class PositionReconciler:
    def __init__(self, repo: ISiblingRepository, kind: SiblingKind):
        self.repo = repo
        self.kind = kind

    def append(self, parent_id: int, title: str, **fields):
        """Создаёт запись на позиции max + 1 (или 1, если детей нет)."""
        with atomic(self.repo.db):
            self._require_parent(parent_id)
            position = self.repo.max_position(parent_id) + 1
            row = self.repo.add(parent_id, position, title=title, **fields)
        position_operations_total.labels(kind=self.kind.name, operation="append").inc()
        logger.info(f"{self.kind.name}_appended", parent_id=parent_id, id=row.id, position=position)
        return row

    def delete(self, entity_id: int, parent_id: int) -> None:
        """Удаляет запись и сдвигает позиции следующих за ней на единицу вниз."""
        with atomic(self.repo.db):
            self._require_parent(parent_id)
            siblings = self.repo.list_children(parent_id)
            target = next((s for s in siblings if s.id == entity_id), None)
            if target is None:
                raise NotFound(f"{self.kind.label} not found")
            remaining = [s.id for s in siblings if s.id != entity_id]
            self.repo.remove(target)
            self.repo.assign_positions(parent_id, remaining)
        position_operations_total.labels(kind=self.kind.name, operation="delete").inc()
        logger.info(f"{self.kind.name}_deleted", parent_id=parent_id, id=entity_id, remaining=len(remaining))

    def reorder(self, parent_id: int, ordered_ids: list[int]) -> None:
        """Записывает position = index + 1 для каждого id из списка."""
        if not ordered_ids:
            raise InvalidInput(f"No {self.kind.name}s provided")
        if len(set(ordered_ids)) != len(ordered_ids):
            raise InvalidInput(f"Duplicate {self.kind.name} ids in ordering")
        with atomic(self.repo.db):
            self._require_parent(parent_id)
            existing = {s.id for s in self.repo.list_children(parent_id)}
            submitted = set(ordered_ids)
            if submitted - existing:
                raise NotFound(f"{self.kind.label} not found")
            if submitted != existing:
                raise InvalidInput(f"Ordering must list every {self.kind.name} of the {self.kind.parent}")
            self.repo.assign_positions(parent_id, ordered_ids)
        position_operations_total.labels(kind=self.kind.name, operation="reorder").inc()
        logger.info(f"{self.kind.name}s_reordered", parent_id=parent_id, order=ordered_ids)

    def _require_parent(self, parent_id: int) -> None:
        if not self.repo.parent_exists(parent_id):
            raise NotFound(f"{self.kind.parent_label} not found")
