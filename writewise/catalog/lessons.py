"""
Lesson Catalog

Curriculum lessons loaded once from data/lessons.json. Lessons are frozen
models and the indexes are read-only mappings, so they can be shared
across threads without locking.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from writewise.exceptions import LessonNotFoundError
from writewise.models.lesson import Lesson

logger = logging.getLogger("writewise.catalog")

DEFAULT_LESSONS_PATH = Path(__file__).parent / "data" / "lessons.json"


class LessonCatalog:
    """Read-only lesson lookup tables."""

    def __init__(self, lessons: list[Lesson]):
        self._lessons = tuple(lessons)
        self._by_id: Mapping[str, Lesson] = MappingProxyType({lesson.id: lesson for lesson in lessons})
        by_tier: dict[int, tuple[Lesson, ...]] = {}
        for tier in (1, 2, 3):
            by_tier[tier] = tuple(lesson for lesson in lessons if lesson.tier == tier)
        self._by_tier: Mapping[int, tuple[Lesson, ...]] = MappingProxyType(by_tier)

    @classmethod
    def from_file(cls, path: Path = DEFAULT_LESSONS_PATH) -> "LessonCatalog":
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        lessons = [Lesson.model_validate(item) for item in raw["lessons"]]
        logger.info(f"Loaded {len(lessons)} lessons from {path.name}")
        return cls(lessons)

    def get(self, lesson_id: str) -> Optional[Lesson]:
        return self._by_id.get(lesson_id)

    def require(self, lesson_id: str) -> Lesson:
        lesson = self._by_id.get(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(lesson_id)
        return lesson

    def by_tier(self, tier: int) -> list[Lesson]:
        return list(self._by_tier.get(tier, ()))

    def all(self) -> list[Lesson]:
        return list(self._lessons)

    def __len__(self) -> int:
        return len(self._lessons)


_lesson_catalog: Optional[LessonCatalog] = None


def get_lesson_catalog() -> LessonCatalog:
    global _lesson_catalog
    if _lesson_catalog is None:
        _lesson_catalog = LessonCatalog.from_file()
    return _lesson_catalog


def get_lesson_by_id(lesson_id: str) -> Optional[Lesson]:
    return get_lesson_catalog().get(lesson_id)


def get_lessons_by_tier(tier: int) -> list[Lesson]:
    return get_lesson_catalog().by_tier(tier)


def get_all_lessons() -> list[Lesson]:
    return get_lesson_catalog().all()
