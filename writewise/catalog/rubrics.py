"""
Rubric Catalog

Scoring rubrics loaded once from data/rubrics/*.json, plus the text
rendering of a rubric used in scoring and feedback prompts.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from writewise.exceptions import RubricNotFoundError
from writewise.models.lesson import Rubric

logger = logging.getLogger("writewise.catalog")

DEFAULT_RUBRICS_DIR = Path(__file__).parent / "data" / "rubrics"


def _rubric_from_raw(raw: dict) -> Rubric:
    return Rubric(
        id=raw["rubric_id"],
        description=raw["description"],
        word_range=tuple(raw["word_range"]),
        criteria=raw["criteria"],
        lesson_ids=tuple(raw.get("lesson_ids", [])),
    )


class RubricCatalog:
    """Read-only rubric lookup table."""

    def __init__(self, rubrics: list[Rubric]):
        self._by_id: Mapping[str, Rubric] = MappingProxyType({rubric.id: rubric for rubric in rubrics})

    @classmethod
    def from_dir(cls, directory: Path = DEFAULT_RUBRICS_DIR) -> "RubricCatalog":
        rubrics = []
        for path in sorted(directory.glob("*.json")):
            with open(path, "r", encoding="utf-8") as f:
                rubrics.append(_rubric_from_raw(json.load(f)))
        logger.info(f"Loaded {len(rubrics)} rubrics from {directory.name}/")
        return cls(rubrics)

    def get(self, rubric_id: str) -> Optional[Rubric]:
        return self._by_id.get(rubric_id)

    def require(self, rubric_id: str) -> Rubric:
        rubric = self._by_id.get(rubric_id)
        if rubric is None:
            raise RubricNotFoundError(rubric_id)
        return rubric

    def ids(self) -> list[str]:
        return list(self._by_id.keys())


_rubric_catalog: Optional[RubricCatalog] = None


def get_rubric_catalog() -> RubricCatalog:
    global _rubric_catalog
    if _rubric_catalog is None:
        _rubric_catalog = RubricCatalog.from_dir()
    return _rubric_catalog


def get_rubric_by_id(rubric_id: str) -> Optional[Rubric]:
    return get_rubric_catalog().get(rubric_id)


def get_all_rubric_ids() -> list[str]:
    return get_rubric_catalog().ids()


def format_rubric_for_prompt(rubric: Rubric) -> str:
    """Render a rubric as human-readable text for the model."""
    lines = [
        f"Rubric: {rubric.description}",
        f"Expected length: {rubric.word_range[0]}-{rubric.word_range[1]} words",
        "",
    ]
    for criterion in rubric.criteria:
        lines.append(f"CRITERION: {criterion.display_name} (weight: {round(criterion.weight * 100)}%)")
        for level in ("4", "3", "2", "1"):
            lines.append(f"  {level} - {criterion.levels.get(level, '')}")
        lines.append("")
    return "\n".join(lines)
