"""Per-lesson progress record, upserted by (child_id, lesson_id)."""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel

from writewise.models.session_state import Phase


ProgressStatus = Literal["not_started", "in_progress", "completed"]


class LessonProgress(BaseModel):
    child_id: str
    lesson_id: str
    status: ProgressStatus = "not_started"
    current_phase: Optional[Phase] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
