"""
Session Phase State Machine

instruction -> guided -> assessment -> feedback

Conversational phases advance only from parsed coach signals plus the
escape hatches; assessment -> feedback advances only through
complete_assessment() once a validated submission has been scored.

The machine mutates the session it is handed. Callers apply a turn to a
deep copy and persist the copy in one write.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, Field

from writewise.config import Settings, get_settings
from writewise.exceptions import RevisionLimitError, StateTransitionError
from writewise.models.assessment import ValidationResult
from writewise.models.session_state import PHASE1_MAX_STEP, Phase, SessionState, next_phase
from writewise.protocol.markers import CoachSignals

logger = logging.getLogger("writewise.state_machine")


class StateEvent(BaseModel):
    """Lesson event produced while applying a turn."""

    event_type: str
    phase: Phase
    data: Dict[str, Any] = Field(default_factory=dict)


class TransitionOutcome(BaseModel):
    """What a turn did to the session's phase."""

    from_phase: Phase
    to_phase: Phase
    forced: bool = Field(default=False, description="Advanced by an escape hatch")
    events: List[StateEvent] = Field(default_factory=list)

    @property
    def phase_changed(self) -> bool:
        return self.from_phase != self.to_phase


class PhaseStateMachine:
    """Applies coach signals and assessment outcomes to a session."""

    def __init__(
        self,
        max_instruction_turns: int = 12,
        max_guided_attempts: int = 8,
        max_revisions: int = 2,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.max_instruction_turns = max_instruction_turns
        self.max_guided_attempts = max_guided_attempts
        self.max_revisions = max_revisions
        self.clock = clock or datetime.utcnow

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PhaseStateMachine":
        settings = settings or get_settings()
        return cls(
            max_instruction_turns=settings.max_instruction_turns,
            max_guided_attempts=settings.max_guided_attempts,
            max_revisions=settings.max_revisions,
        )

    # ─── Conversational turns ─────────────────────────────────────────

    def apply_signals(self, session: SessionState, signals: CoachSignals) -> TransitionOutcome:
        """Fold one coach reply's signals into the session's phase state."""
        outcome = TransitionOutcome(from_phase=session.phase, to_phase=session.phase)

        if session.phase == Phase.INSTRUCTION:
            self._apply_instruction(session, signals, outcome)
        elif session.phase == Phase.GUIDED:
            self._apply_guided(session, signals, outcome)
        elif signals.phase_transition is not None:
            self._log_ignored(session, "phase_transition", signals.phase_transition.value)

        outcome.to_phase = session.phase
        return outcome

    def _apply_instruction(self, session: SessionState, signals: CoachSignals, outcome: TransitionOutcome) -> None:
        state = session.phase_state
        state.instruction_turns += 1

        if signals.step is not None:
            from_step = state.phase1_step
            if not 1 <= signals.step <= PHASE1_MAX_STEP:
                self._log_ignored(session, "step", f"{signals.step} outside 1..{PHASE1_MAX_STEP}")
            elif from_step is None or signals.step >= from_step:
                state.phase1_step = signals.step
                if from_step != signals.step:
                    outcome.events.append(StateEvent(
                        event_type="step_change",
                        phase=Phase.INSTRUCTION,
                        data={"fromStep": from_step, "toStep": signals.step},
                    ))
            else:
                self._log_ignored(session, "step", f"{signals.step} < current {from_step}")

        if signals.comprehension_check is not None:
            outcome.events.append(StateEvent(
                event_type="comprehension_check",
                phase=Phase.INSTRUCTION,
                data={"result": signals.comprehension_check},
            ))
            if signals.comprehension_passed:
                state.comprehension_check_passed = True

        if signals.instruction_complete or signals.phase_transition == Phase.GUIDED:
            state.instruction_completed = True
        elif signals.phase_transition is not None:
            self._log_ignored(session, "phase_transition", signals.phase_transition.value)

        ready = state.instruction_completed and state.comprehension_check_passed
        if not ready and state.instruction_turns >= self.max_instruction_turns:
            logger.warning(json.dumps({
                "step": "STATE_MACHINE",
                "status": "instruction_escape_hatch",
                "session_id": session.session_id,
                "instruction_turns": state.instruction_turns,
            }))
            state.instruction_completed = True
            state.comprehension_check_passed = True
            outcome.forced = True
            ready = True

        if ready:
            self._enter(session, Phase.GUIDED, outcome, reason="forced" if outcome.forced else "signal")

    def _apply_guided(self, session: SessionState, signals: CoachSignals, outcome: TransitionOutcome) -> None:
        state = session.phase_state
        state.guided_attempts += 1

        if signals.hint_given:
            state.hints_given += 1
            outcome.events.append(StateEvent(
                event_type="hint_given",
                phase=Phase.GUIDED,
                data={"hintNumber": state.hints_given},
            ))

        if signals.guided_stage is not None:
            from_stage = state.guided_stage
            if from_stage is None or signals.guided_stage >= from_stage:
                state.guided_stage = signals.guided_stage
                if from_stage != signals.guided_stage:
                    outcome.events.append(StateEvent(
                        event_type="guided_stage_change",
                        phase=Phase.GUIDED,
                        data={"fromStage": from_stage, "toStage": signals.guided_stage},
                    ))
            else:
                self._log_ignored(session, "guided_stage", f"{signals.guided_stage} < current {from_stage}")

        if signals.guided_complete or signals.phase_transition == Phase.ASSESSMENT:
            state.guided_complete = True
        elif signals.phase_transition is not None:
            self._log_ignored(session, "phase_transition", signals.phase_transition.value)

        if not state.guided_complete and state.guided_attempts >= self.max_guided_attempts:
            logger.warning(json.dumps({
                "step": "STATE_MACHINE",
                "status": "guided_escape_hatch",
                "session_id": session.session_id,
                "guided_attempts": state.guided_attempts,
            }))
            state.guided_complete = True
            outcome.forced = True

        if state.guided_complete:
            self._enter(session, Phase.ASSESSMENT, outcome, reason="forced" if outcome.forced else "signal")

    # ─── Guarded transitions ──────────────────────────────────────────

    def advance(self, session: SessionState, target: Phase) -> None:
        """Move to `target`, which must be the next phase with its guard satisfied.

        Raises:
            StateTransitionError: backwards, skipping, or unguarded move
        """
        expected = next_phase(session.phase)
        if expected is None or target != expected:
            raise StateTransitionError(
                session.phase.value, target.value, "phases advance one step forward only"
            )

        state = session.phase_state
        if target == Phase.GUIDED and not (state.instruction_completed and state.comprehension_check_passed):
            raise StateTransitionError(
                session.phase.value, target.value, "instruction not complete or comprehension check not passed"
            )
        if target == Phase.ASSESSMENT and not state.guided_complete:
            raise StateTransitionError(session.phase.value, target.value, "guided practice not complete")
        if target == Phase.FEEDBACK and session.final_score is None:
            raise StateTransitionError(session.phase.value, target.value, "no scored submission")

        session.phase = target
        if target == Phase.ASSESSMENT and session.phase_state.writing_started_at is None:
            state.writing_started_at = self.clock()
        session.updated_at = datetime.utcnow()

    def _enter(self, session: SessionState, target: Phase, outcome: TransitionOutcome, reason: str) -> None:
        from_phase = session.phase
        self.advance(session, target)
        outcome.events.append(StateEvent(
            event_type="phase_transition",
            phase=from_phase,
            data={"fromPhase": from_phase.value, "toPhase": target.value, "reason": reason},
        ))
        if target == Phase.ASSESSMENT:
            outcome.events.append(StateEvent(event_type="assessment_start", phase=Phase.ASSESSMENT))

        logger.info(json.dumps({
            "step": "STATE_MACHINE",
            "status": "transition",
            "session_id": session.session_id,
            "from": from_phase.value,
            "to": target.value,
            "reason": reason,
        }))

    # ─── Assessment outcomes ──────────────────────────────────────────

    def complete_assessment(
        self,
        session: SessionState,
        overall_score: float,
        validation: ValidationResult,
    ) -> TransitionOutcome:
        """Record a scored first submission and move to feedback."""
        if not validation.valid:
            raise StateTransitionError(
                session.phase.value, Phase.FEEDBACK.value, "cannot score an invalid submission"
            )
        if session.phase != Phase.ASSESSMENT:
            raise StateTransitionError(
                session.phase.value, Phase.FEEDBACK.value, "submissions are scored in the assessment phase"
            )

        outcome = TransitionOutcome(from_phase=session.phase, to_phase=session.phase)
        session.final_score = overall_score
        self._enter(session, Phase.FEEDBACK, outcome, reason="scored")
        outcome.to_phase = session.phase
        return outcome

    def can_revise(self, session: SessionState) -> bool:
        return session.phase == Phase.FEEDBACK and session.phase_state.revisions_used < self.max_revisions

    def record_revision(
        self,
        session: SessionState,
        overall_score: float,
        validation: ValidationResult,
    ) -> int:
        """Record a scored revision; returns its revision number (1-based)."""
        if not validation.valid:
            raise StateTransitionError(
                session.phase.value, session.phase.value, "cannot score an invalid submission"
            )
        if session.phase != Phase.FEEDBACK:
            raise StateTransitionError(
                session.phase.value, session.phase.value, "revisions happen in the feedback phase"
            )
        if session.phase_state.revisions_used >= self.max_revisions:
            raise RevisionLimitError(session.session_id, self.max_revisions)

        session.phase_state.revisions_used += 1
        session.final_score = overall_score
        session.updated_at = datetime.utcnow()
        return session.phase_state.revisions_used

    def _log_ignored(self, session: SessionState, signal: str, value: str) -> None:
        logger.info(json.dumps({
            "step": "STATE_MACHINE",
            "status": "signal_ignored",
            "session_id": session.session_id,
            "phase": session.phase.value,
            "signal": signal,
            "value": value,
        }))
