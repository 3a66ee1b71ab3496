"""
Assessment Models

Submission validation outcomes and scored assessment results.
"""

from datetime import datetime
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field
import uuid


class ValidSubmission(BaseModel):
    """Submission passed the quality gate and may be scored."""

    valid: Literal[True] = True
    word_count: int


class InvalidSubmission(BaseModel):
    """Submission rejected before scoring, with a kid-friendly message."""

    valid: Literal[False] = False
    error: Literal["too_short", "gibberish"]
    message: str
    word_count: int
    min_words: int


ValidationResult = Union[ValidSubmission, InvalidSubmission]


class AssessmentFeedback(BaseModel):
    strength: str = Field(description="What the learner did well, citing their writing")
    growth_area: str = Field(description="One concrete area for improvement")
    encouragement: str = Field(description="Warm closing sentence")


class AssessmentResult(BaseModel):
    """Scored submission."""

    scores: dict[str, int] = Field(description="Score 1-4 per criterion")
    overall_score: float = Field(ge=1.0, le=4.0)
    feedback: AssessmentFeedback


class AssessmentRecord(BaseModel):
    """A stored scoring of one submission (original or revision)."""

    id: str = Field(default_factory=lambda: f"asmt_{uuid.uuid4().hex[:12]}")
    session_id: str
    child_id: str
    lesson_id: str
    submission_text: str
    word_count: int
    result: AssessmentResult
    rubric_id: Optional[str] = None
    revision_number: int = Field(default=0, ge=0, description="0 for the first submission")
    time_spent_seconds: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
