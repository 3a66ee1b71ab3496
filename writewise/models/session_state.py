"""
Session State Models

Lesson session record: the current phase, the per-phase progress counters,
and the append-only conversation history.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
import uuid

from writewise.models.messages import Message


class Phase(str, Enum):
    """Pedagogical phase of a lesson session, in lesson order."""

    INSTRUCTION = "instruction"
    GUIDED = "guided"
    ASSESSMENT = "assessment"
    FEEDBACK = "feedback"


PHASE_ORDER: tuple[Phase, ...] = (
    Phase.INSTRUCTION,
    Phase.GUIDED,
    Phase.ASSESSMENT,
    Phase.FEEDBACK,
)

PHASE1_MAX_STEP = 5
GUIDED_MAX_STAGE = 3


def next_phase(phase: Phase) -> Optional[Phase]:
    index = PHASE_ORDER.index(phase)
    if index + 1 < len(PHASE_ORDER):
        return PHASE_ORDER[index + 1]
    return None


class PhaseState(BaseModel):
    """Progress counters and flags for the current session attempt.

    Flags mean "signal observed at least once"; counters only grow.
    Serialized with camelCase keys to match the stored JSON blob.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Instruction
    instruction_completed: bool = False
    comprehension_check_passed: bool = False
    phase1_step: Optional[int] = Field(default=None, ge=1, le=PHASE1_MAX_STEP)
    instruction_turns: int = Field(default=0, ge=0)

    # Guided practice
    guided_stage: Optional[int] = Field(default=None, ge=1, le=GUIDED_MAX_STAGE)
    guided_attempts: int = Field(default=0, ge=0)
    hints_given: int = Field(default=0, ge=0)
    guided_complete: bool = False

    # Assessment
    writing_started_at: Optional[datetime] = None
    revisions_used: int = Field(default=0, ge=0)


class SessionState(BaseModel):
    """Complete state for one learner working through one lesson."""

    session_id: str = Field(
        default_factory=lambda: f"sess_{uuid.uuid4().hex[:12]}",
        description="Unique session identifier",
    )
    child_id: str = Field(description="Learner this session belongs to")
    lesson_id: str = Field(description="Lesson being taught")
    phase: Phase = Field(default=Phase.INSTRUCTION)
    phase_state: PhaseState = Field(default_factory=PhaseState)
    conversation_history: list[Message] = Field(default_factory=list)
    final_score: Optional[float] = Field(default=None, description="Overall score once assessed")
    version: int = Field(default=1, ge=1, description="Optimistic concurrency version")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_complete(self) -> bool:
        return self.phase == Phase.FEEDBACK and self.final_score is not None

    @property
    def is_active(self) -> bool:
        return self.phase != Phase.FEEDBACK

    @property
    def turn_count(self) -> int:
        return sum(1 for m in self.conversation_history if m.role == "student")

    def get_current_turn_id(self) -> str:
        return f"turn_{self.turn_count + 1}"

    def add_message(self, message: Message) -> None:
        self.conversation_history.append(message)
        self.updated_at = datetime.utcnow()
