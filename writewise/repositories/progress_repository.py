"""Lesson progress data access layer."""
import threading
from abc import ABC, abstractmethod
from typing import Optional

from writewise.models.progress import LessonProgress


class LessonProgressRepository(ABC):
    """Per-(child, lesson) progress records."""

    @abstractmethod
    def upsert(self, progress: LessonProgress) -> LessonProgress:
        """Insert or replace the record keyed by (child_id, lesson_id)."""

    @abstractmethod
    def get(self, child_id: str, lesson_id: str) -> Optional[LessonProgress]:
        """Retrieve progress for one lesson."""

    @abstractmethod
    def list_for_child(self, child_id: str) -> list[LessonProgress]:
        """All progress records for a learner."""


class InMemoryLessonProgressRepository(LessonProgressRepository):

    def __init__(self):
        self._rows: dict[tuple[str, str], LessonProgress] = {}
        self._lock = threading.Lock()

    def upsert(self, progress: LessonProgress) -> LessonProgress:
        with self._lock:
            existing = self._rows.get((progress.child_id, progress.lesson_id))
            if existing and progress.started_at is None:
                progress = progress.model_copy(update={"started_at": existing.started_at})
            self._rows[(progress.child_id, progress.lesson_id)] = progress.model_copy(deep=True)
            return progress

    def get(self, child_id: str, lesson_id: str) -> Optional[LessonProgress]:
        with self._lock:
            row = self._rows.get((child_id, lesson_id))
            return row.model_copy(deep=True) if row else None

    def list_for_child(self, child_id: str) -> list[LessonProgress]:
        with self._lock:
            return [p.model_copy(deep=True) for (cid, _), p in self._rows.items() if cid == child_id]
