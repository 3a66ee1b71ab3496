"""Lesson session business logic: start or resume, chat turns, submit, revise."""

import asyncio
import json
import logging
import threading
import weakref
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from writewise.catalog.lessons import LessonCatalog, get_lesson_catalog
from writewise.catalog.rubrics import RubricCatalog, get_rubric_catalog
from writewise.config import Settings, get_settings
from writewise.exceptions import PhaseMismatchError, RevisionLimitError, SessionNotFoundError
from writewise.models.assessment import AssessmentRecord, AssessmentResult
from writewise.models.lesson import Lesson, Rubric
from writewise.models.messages import Message, create_coach_message
from writewise.models.progress import LessonProgress
from writewise.models.session_state import Phase, SessionState
from writewise.orchestration import CoachOrchestrator, PhaseStateMachine, TurnResult
from writewise.repositories import (
    AssessmentRepository,
    InMemoryAssessmentRepository,
    InMemoryLessonProgressRepository,
    InMemorySessionRepository,
    LessonProgressRepository,
    SessionRepository,
)
from writewise.services.generator_service import GeneratorService
from writewise.services.scoring_service import ScoringService
from writewise.services.submission_validator import ensure_valid_submission
from writewise.services.telemetry import EventLogger

logger = logging.getLogger("writewise.session_service")


class StartLessonResult(BaseModel):
    session: SessionState
    resumed: bool = Field(description="True when an in-progress session was picked up")
    initial_message: Optional[Message] = Field(default=None, description="First coach message")


class SubmissionResult(BaseModel):
    session: SessionState
    assessment: AssessmentRecord
    feedback_message: Message
    previous_scores: Optional[dict[str, int]] = None
    revisions_remaining: int


def format_feedback_message(result: AssessmentResult, revision_number: int = 0) -> str:
    feedback = result.feedback
    text = f"{feedback.strength} {feedback.growth_area} {feedback.encouragement}"
    if revision_number:
        return f"Revision {revision_number} feedback: {text}"
    return text


class SessionService:
    """Orchestrates lesson sessions over the repositories and the generator."""

    def __init__(
        self,
        generator: Optional[GeneratorService] = None,
        session_repo: Optional[SessionRepository] = None,
        progress_repo: Optional[LessonProgressRepository] = None,
        assessment_repo: Optional[AssessmentRepository] = None,
        lesson_catalog: Optional[LessonCatalog] = None,
        rubric_catalog: Optional[RubricCatalog] = None,
        event_logger: Optional[EventLogger] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.generator = generator or GeneratorService.from_settings(settings)
        self.session_repo = session_repo or InMemorySessionRepository()
        self.progress_repo = progress_repo or InMemoryLessonProgressRepository()
        self.assessment_repo = assessment_repo or InMemoryAssessmentRepository()
        self.lessons = lesson_catalog or get_lesson_catalog()
        self.rubrics = rubric_catalog or get_rubric_catalog()
        self.event_logger = event_logger or EventLogger()

        self.state_machine = PhaseStateMachine.from_settings(settings)
        self.orchestrator = CoachOrchestrator(
            self.generator,
            state_machine=self.state_machine,
            event_logger=self.event_logger,
            turn_timeout=settings.turn_timeout_seconds,
        )
        self.scoring = ScoringService(self.generator, event_logger=self.event_logger)

        # Entries vanish once no caller holds the lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(session_id, threading.Lock())

    def _load(self, session_id: str) -> SessionState:
        session = self.session_repo.get(session_id)
        if not session:
            raise SessionNotFoundError(session_id)
        return session

    def _rubric_for(self, lesson: Lesson) -> Optional[Rubric]:
        return self.rubrics.get(lesson.rubric_id) if lesson.rubric_id else None

    def get_session(self, session_id: str) -> SessionState:
        return self._load(session_id)

    # ─── Start / resume ───────────────────────────────────────────────

    def start_lesson(
        self,
        child_id: str,
        lesson_id: str,
        student_name: Optional[str] = None,
        student_age: Optional[int] = None,
    ) -> StartLessonResult:
        """Resume the learner's in-progress session for the lesson, or start a new one."""
        lesson = self.lessons.require(lesson_id)

        existing = self.session_repo.find_active(child_id, lesson_id)
        if existing:
            logger.info(f"Resuming session {existing.session_id} for {child_id} on {lesson_id}")
            first = existing.conversation_history[0] if existing.conversation_history else None
            return StartLessonResult(session=existing, resumed=True, initial_message=first)

        session = SessionState(child_id=child_id, lesson_id=lesson_id)
        opening = asyncio.run(
            self.orchestrator.generate_opening(session, lesson, student_name=student_name, student_age=student_age)
        )
        session = self.session_repo.create(opening.session)

        now = datetime.utcnow()
        self.progress_repo.upsert(LessonProgress(
            child_id=child_id,
            lesson_id=lesson_id,
            status="in_progress",
            current_phase=Phase.INSTRUCTION,
            started_at=now,
        ))
        self.event_logger.log_lesson_event(
            child_id=child_id,
            session_id=session.session_id,
            lesson_id=lesson_id,
            event_type="lesson_started",
            phase=Phase.INSTRUCTION.value,
        )

        logger.info(f"Created session {session.session_id} for {child_id} on {lesson_id}")
        return StartLessonResult(
            session=session,
            resumed=False,
            initial_message=session.conversation_history[-1],
        )

    # ─── Conversation ─────────────────────────────────────────────────

    def send_message(
        self,
        session_id: str,
        text: str,
        student_name: Optional[str] = None,
        student_age: Optional[int] = None,
    ) -> TurnResult:
        """Run one coach turn and persist the result."""
        if not text or not text.strip():
            raise ValueError("Message text must be a non-empty string")

        with self._session_lock(session_id):
            session = self._load(session_id)
            expected_version = session.version
            lesson = self.lessons.require(session.lesson_id)

            turn = asyncio.run(self.orchestrator.process_turn(
                session, lesson, text, student_name=student_name, student_age=student_age
            ))
            saved = self.session_repo.save(turn.session, expected_version)

            if turn.phase_update:
                self._update_progress_phase(saved)

        return turn.model_copy(update={"session": saved})

    def _update_progress_phase(self, session: SessionState) -> None:
        progress = self.progress_repo.get(session.child_id, session.lesson_id)
        if progress is None:
            progress = LessonProgress(child_id=session.child_id, lesson_id=session.lesson_id, status="in_progress")
        self.progress_repo.upsert(progress.model_copy(update={"current_phase": session.phase}))

    # ─── Submission / revision ────────────────────────────────────────

    def _score(self, session: SessionState, lesson: Lesson, text: str, tier: Optional[int]) -> AssessmentResult:
        rubric = self._rubric_for(lesson)
        log_context = {
            "session_id": session.session_id,
            "child_id": session.child_id,
            "lesson_id": session.lesson_id,
        }
        if rubric:
            return self.scoring.score(text, rubric, tier or lesson.tier, log_context=log_context)
        return self.scoring.score_general(text, tier or lesson.tier, lesson.title, log_context=log_context)

    def submit(self, session_id: str, text: str, tier: Optional[int] = None) -> SubmissionResult:
        """
        Validate, score and record the learner's assessment piece.

        Raises:
            SubmissionValidationError: too short or not real writing (state untouched)
            PhaseMismatchError: session is not in the assessment phase
            GeneratorError: scoring failed (state untouched, retryable)
        """
        with self._session_lock(session_id):
            session = self._load(session_id)
            if session.phase != Phase.ASSESSMENT:
                raise PhaseMismatchError(session_id, Phase.ASSESSMENT.value, session.phase.value)
            expected_version = session.version
            lesson = self.lessons.require(session.lesson_id)
            rubric = self._rubric_for(lesson)

            validation = ensure_valid_submission(text, rubric)
            result = self._score(session, lesson, text.strip(), tier)

            updated = session.model_copy(deep=True)
            self.state_machine.complete_assessment(updated, result.overall_score, validation)

            time_spent = None
            if updated.phase_state.writing_started_at:
                time_spent = int((datetime.utcnow() - updated.phase_state.writing_started_at).total_seconds())

            feedback_message = create_coach_message(format_feedback_message(result))
            updated.add_message(feedback_message)
            saved = self.session_repo.save(updated, expected_version)

            record = self.assessment_repo.add(AssessmentRecord(
                session_id=session_id,
                child_id=session.child_id,
                lesson_id=session.lesson_id,
                submission_text=text.strip(),
                word_count=validation.word_count,
                result=result,
                rubric_id=rubric.id if rubric else None,
                revision_number=0,
                time_spent_seconds=time_spent,
            ))

            progress = self.progress_repo.get(session.child_id, session.lesson_id)
            self.progress_repo.upsert(LessonProgress(
                child_id=session.child_id,
                lesson_id=session.lesson_id,
                status="completed",
                current_phase=Phase.FEEDBACK,
                started_at=progress.started_at if progress else None,
                completed_at=datetime.utcnow(),
            ))

        self.event_logger.log_lesson_event(
            child_id=session.child_id,
            session_id=session_id,
            lesson_id=session.lesson_id,
            event_type="assessment_submitted",
            phase=Phase.ASSESSMENT.value,
            event_data={
                "wordCount": validation.word_count,
                "overallScore": result.overall_score,
                "timeSpentSeconds": time_spent,
            },
        )
        logger.info(json.dumps({
            "step": "SUBMIT",
            "status": "scored",
            "session_id": session_id,
            "overall_score": result.overall_score,
        }))

        return SubmissionResult(
            session=saved,
            assessment=record,
            feedback_message=feedback_message,
            revisions_remaining=self.state_machine.max_revisions,
        )

    def revise(self, session_id: str, text: str, tier: Optional[int] = None) -> SubmissionResult:
        """
        Score a revised piece during feedback.

        Raises:
            PhaseMismatchError: no first submission yet
            RevisionLimitError: every allowed revision is used
            SubmissionValidationError / GeneratorError: as for submit()
        """
        with self._session_lock(session_id):
            session = self._load(session_id)
            if session.phase != Phase.FEEDBACK:
                raise PhaseMismatchError(session_id, Phase.FEEDBACK.value, session.phase.value)
            if not self.state_machine.can_revise(session):
                raise RevisionLimitError(session_id, self.state_machine.max_revisions)

            expected_version = session.version
            lesson = self.lessons.require(session.lesson_id)
            rubric = self._rubric_for(lesson)

            validation = ensure_valid_submission(text, rubric)
            previous = self.assessment_repo.list_for_session(session_id)
            result = self._score(session, lesson, text.strip(), tier)

            updated = session.model_copy(deep=True)
            revision_number = self.state_machine.record_revision(updated, result.overall_score, validation)

            feedback_message = create_coach_message(format_feedback_message(result, revision_number))
            updated.add_message(feedback_message)
            saved = self.session_repo.save(updated, expected_version)

            record = self.assessment_repo.add(AssessmentRecord(
                session_id=session_id,
                child_id=session.child_id,
                lesson_id=session.lesson_id,
                submission_text=text.strip(),
                word_count=validation.word_count,
                result=result,
                rubric_id=rubric.id if rubric else None,
                revision_number=revision_number,
            ))

        self.event_logger.log_lesson_event(
            child_id=session.child_id,
            session_id=session_id,
            lesson_id=session.lesson_id,
            event_type="revision_submitted",
            phase=Phase.FEEDBACK.value,
            event_data={"revisionNumber": revision_number, "overallScore": result.overall_score},
        )

        return SubmissionResult(
            session=saved,
            assessment=record,
            feedback_message=feedback_message,
            previous_scores=previous[-1].result.scores if previous else None,
            revisions_remaining=self.state_machine.max_revisions - revision_number,
        )
