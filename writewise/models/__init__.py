"""Coach core models."""
from writewise.models.lesson import Lesson, Rubric, RubricCriterion, Tier, WritingType
from writewise.models.messages import AnswerMeta, Message, create_coach_message, create_student_message
from writewise.models.session_state import Phase, PhaseState, SessionState, PHASE_ORDER
from writewise.models.assessment import (
    AssessmentFeedback,
    AssessmentResult,
    InvalidSubmission,
    ValidSubmission,
    ValidationResult,
)
from writewise.models.placement import PlacementAnalysis, PlacementResult
from writewise.models.progress import LessonProgress
