"""
Coach Orchestrator

One lesson turn: prompt builder -> generator -> marker codec -> state machine.

The orchestrator never touches storage. It returns a new session value
(the input is deep-copied before any change) and the caller persists it
in one write.
"""

import asyncio
import json
import time
import logging
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from writewise.catalog.rubrics import format_rubric_for_prompt, get_rubric_by_id
from writewise.exceptions import GeneratorError, GeneratorTimeoutError
from writewise.models.generation import GeneratorMessage, GeneratorResult
from writewise.models.lesson import Lesson
from writewise.models.messages import AnswerMeta, create_coach_message, create_student_message
from writewise.models.session_state import PHASE1_MAX_STEP, Phase, SessionState
from writewise.orchestration.state_machine import PhaseStateMachine, TransitionOutcome
from writewise.prompts.builder import build_prompt_from_session
from writewise.prompts.coach_prompts import OPENING_MESSAGE_TEMPLATE
from writewise.protocol.markers import ParsedReply, parse_reply
from writewise.services.generator_service import GeneratorService
from writewise.services.telemetry import EventLogger
from writewise.utils.prompt_utils import DEFAULT_OPENING_MESSAGE, convert_history, summarize_text

logger = logging.getLogger("writewise.orchestrator")

# Coach messages carry interactive answer metadata only in these phases.
ANSWER_META_PHASES = (Phase.GUIDED, Phase.ASSESSMENT)


class TurnResult(BaseModel):
    """Result of processing a turn."""

    session: SessionState = Field(description="Updated session to persist")
    response: str = Field(description="Coach text to show the learner")
    answer_meta: Optional[AnswerMeta] = Field(default=None)
    phase_update: Optional[Phase] = Field(default=None, description="New phase, when the turn changed it")
    step_update: Optional[int] = Field(default=None)
    forced_transition: bool = Field(default=False)


def opening_message_for(student_name: Optional[str]) -> str:
    if not student_name:
        return DEFAULT_OPENING_MESSAGE
    return OPENING_MESSAGE_TEMPLATE.render(student_name=student_name)


def _step_update(parsed: ParsedReply, outcome: TransitionOutcome) -> Optional[int]:
    step = parsed.signals.step
    if outcome.from_phase != Phase.INSTRUCTION or step is None:
        return None
    return step if 1 <= step <= PHASE1_MAX_STEP else None


class CoachOrchestrator:
    """
    Runs coach turns for a lesson session.

    Generator calls are bounded by `turn_timeout`; telemetry is best-effort.
    """

    def __init__(
        self,
        generator: GeneratorService,
        state_machine: Optional[PhaseStateMachine] = None,
        event_logger: Optional[EventLogger] = None,
        turn_timeout: float = 90.0,
    ):
        self.generator = generator
        self.state_machine = state_machine or PhaseStateMachine()
        self.event_logger = event_logger or EventLogger()
        self.turn_timeout = turn_timeout

    def _log_event(self, session: SessionState, event_type: str, phase: Phase, data: Optional[Dict[str, Any]] = None):
        self.event_logger.log_lesson_event(
            child_id=session.child_id,
            session_id=session.session_id,
            lesson_id=session.lesson_id,
            event_type=event_type,
            phase=phase.value,
            event_data=data,
        )

    async def _generate(self, system_prompt: str, messages: list[GeneratorMessage]) -> GeneratorResult:
        try:
            return await asyncio.wait_for(
                self.generator.agenerate(system_prompt, messages),
                timeout=self.turn_timeout,
            )
        except asyncio.TimeoutError as e:
            raise GeneratorTimeoutError(self.turn_timeout, model_name=self.generator.model_id) from e

    def _system_prompt(
        self,
        session: SessionState,
        lesson: Lesson,
        student_name: Optional[str],
        student_age: Optional[int],
    ) -> str:
        rubric_summary = None
        if lesson.rubric_id and session.phase in (Phase.ASSESSMENT, Phase.FEEDBACK):
            rubric = get_rubric_by_id(lesson.rubric_id)
            if rubric:
                rubric_summary = format_rubric_for_prompt(rubric)
        return build_prompt_from_session(
            session, lesson, student_name=student_name, student_age=student_age, rubric_summary=rubric_summary
        )

    async def process_turn(
        self,
        session: SessionState,
        lesson: Lesson,
        student_message: str,
        student_name: Optional[str] = None,
        student_age: Optional[int] = None,
    ) -> TurnResult:
        """
        Process a single conversation turn.

        Raises GeneratorError subclasses when the generator fails; the
        caller's session is left untouched in that case.
        """
        start_time = time.time()
        turn_id = session.get_current_turn_id()
        text = student_message.strip()

        logger.info(f"Turn started: {turn_id} for session {session.session_id}")

        system_prompt = self._system_prompt(session, lesson, student_name, student_age)
        messages = convert_history(session.conversation_history, opening_message_for(student_name))
        messages.append(GeneratorMessage(role="user", content=text))

        try:
            result = await self._generate(system_prompt, messages)
        except GeneratorError as e:
            logger.error(json.dumps({
                "step": "TURN",
                "status": "generator_failed",
                "session_id": session.session_id,
                "turn_id": turn_id,
                "error": e.message,
            }))
            self.event_logger.log_llm_interaction(
                request_type="lesson_message",
                system_prompt=system_prompt,
                session_id=session.session_id,
                child_id=session.child_id,
                lesson_id=session.lesson_id,
                turn_number=len(session.conversation_history),
                user_message=text,
                error=e.message,
            )
            raise

        parsed = parse_reply(result.text)
        updated = session.model_copy(deep=True)

        self._log_event(updated, "message_sent", updated.phase, {
            "wordCount": len(text.split()),
            "charCount": len(text),
        })
        self.event_logger.log_llm_interaction(
            request_type="lesson_message",
            system_prompt=system_prompt,
            raw_response=result.text,
            llm_result=result,
            session_id=updated.session_id,
            child_id=updated.child_id,
            lesson_id=updated.lesson_id,
            turn_number=len(updated.conversation_history),
            user_message=text,
            stripped_response=parsed.display_text,
            markers_detected=parsed.signals.detected(),
        )

        outcome = self.state_machine.apply_signals(updated, parsed.signals)

        answer_meta = parsed.signals.answer_meta() if outcome.to_phase in ANSWER_META_PHASES else None
        updated.add_message(create_student_message(text))
        updated.add_message(create_coach_message(parsed.display_text, answer_meta=answer_meta))

        self._log_outcome(updated, parsed, outcome, answer_meta)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(json.dumps({
            "step": "TURN",
            "status": "complete",
            "session_id": updated.session_id,
            "turn_id": turn_id,
            "phase": updated.phase.value,
            "phase_changed": outcome.phase_changed,
            "anomalies": len(parsed.anomalies),
            "duration_ms": duration_ms,
        }))

        return TurnResult(
            session=updated,
            response=parsed.display_text,
            answer_meta=answer_meta,
            phase_update=outcome.to_phase if outcome.phase_changed else None,
            step_update=_step_update(parsed, outcome),
            forced_transition=outcome.forced,
        )

    def _log_outcome(
        self,
        session: SessionState,
        parsed: ParsedReply,
        outcome: TransitionOutcome,
        answer_meta: Optional[AnswerMeta],
    ) -> None:
        self._log_event(session, "message_received", outcome.from_phase, {
            "wordCount": len(parsed.display_text.split()),
        })
        for event in outcome.events:
            self._log_event(session, event.event_type, event.phase, event.data)
        if answer_meta is not None:
            self._log_event(session, "answer_type_used", session.phase, {
                "answerType": answer_meta.answer_type,
                "optionCount": len(answer_meta.options) if answer_meta.options else None,
            })

    async def generate_opening(
        self,
        session: SessionState,
        lesson: Lesson,
        student_name: Optional[str] = None,
        student_age: Optional[int] = None,
    ) -> TurnResult:
        """Generate the coach's first message for a fresh session.

        The opening does not count as a turn: markers are stripped but no
        signal reaches the state machine.
        """
        greeting = opening_message_for(student_name)
        system_prompt = self._system_prompt(session, lesson, student_name, student_age)
        result = await self._generate(system_prompt, [GeneratorMessage(role="user", content=greeting)])
        parsed = parse_reply(result.text)

        self.event_logger.log_llm_interaction(
            request_type="lesson_start",
            system_prompt=system_prompt,
            raw_response=result.text,
            llm_result=result,
            session_id=session.session_id,
            child_id=session.child_id,
            lesson_id=session.lesson_id,
            turn_number=0,
            user_message=greeting,
            stripped_response=parsed.display_text,
        )

        updated = session.model_copy(deep=True)
        updated.add_message(create_coach_message(parsed.display_text))
        logger.info(f"Opening generated for session {session.session_id}: {summarize_text(parsed.display_text)}")

        return TurnResult(session=updated, response=parsed.display_text)
