"""
Lesson and Rubric Models

Immutable reference data: curriculum lessons and the rubrics that score them.
"""

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


Tier = Literal[1, 2, 3]
WritingType = Literal["narrative", "persuasive", "expository", "descriptive"]


class Lesson(BaseModel):
    """A single lesson in the curriculum."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Lesson identifier, e.g. N1.1.5")
    title: str = Field(description="Lesson title shown to the learner")
    unit: str = Field(description="Unit the lesson belongs to")
    type: WritingType = Field(description="Writing type practiced")
    tier: Tier = Field(description="Age/skill tier")
    learning_objectives: tuple[str, ...] = Field(description="Ordered learning objectives")
    rubric_id: Optional[str] = Field(default=None, description="Rubric for capstone lessons")


class RubricCriterion(BaseModel):
    """One scored dimension of a rubric."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Machine name used as the score key")
    display_name: str = Field(description="Human readable criterion name")
    weight: float = Field(ge=0.0, le=1.0, description="Contribution to the overall score")
    levels: dict[str, str] = Field(description="Descriptor per score level '1'..'4'")
    feedback_stems: dict[str, str] = Field(default_factory=dict, description="Feedback openers per level")


class Rubric(BaseModel):
    """Scoring rubric for a capstone lesson."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    word_range: tuple[int, int] = Field(description="Expected (min, max) word count")
    criteria: tuple[RubricCriterion, ...]
    lesson_ids: tuple[str, ...] = Field(default=())

    @property
    def min_words(self) -> int:
        """Minimum words for a submission to be scored: half the expected minimum, floor 10."""
        return max(10, self.word_range[0] // 2)

    @property
    def criterion_names(self) -> list[str]:
        return [c.name for c in self.criteria]
