"""Unit tests for the in-memory repositories."""

from datetime import datetime, timedelta

import pytest

from writewise.exceptions import SessionNotFoundError, StaleStateError
from writewise.models.assessment import AssessmentFeedback, AssessmentRecord, AssessmentResult
from writewise.models.messages import Message
from writewise.models.progress import LessonProgress
from writewise.models.session_state import Phase, SessionState
from writewise.repositories import (
    InMemoryAssessmentRepository,
    InMemoryLessonProgressRepository,
    InMemorySessionRepository,
)


def _make_record(session_id, revision_number, score=3.0):
    return AssessmentRecord(
        session_id=session_id,
        child_id="child-1",
        lesson_id="N1.1.5",
        submission_text="Once upon a time.",
        word_count=4,
        revision_number=revision_number,
        result=AssessmentResult(
            scores={"hook": 3},
            overall_score=score,
            feedback=AssessmentFeedback(strength="s", growth_area="g", encouragement="e"),
        ),
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestInMemorySessionRepository:
    def test_create_and_get(self, sample_session):
        repo = InMemorySessionRepository()
        repo.create(sample_session)

        loaded = repo.get(sample_session.session_id)

        assert loaded == sample_session
        assert loaded is not sample_session

    def test_get_missing(self):
        assert InMemorySessionRepository().get("sess_missing") is None

    def test_duplicate_create_rejected(self, sample_session):
        repo = InMemorySessionRepository()
        repo.create(sample_session)
        with pytest.raises(ValueError):
            repo.create(sample_session)

    def test_save_bumps_version(self, sample_session):
        repo = InMemorySessionRepository()
        repo.create(sample_session)
        sample_session.add_message(Message(role="coach", content="Hi!"))

        saved = repo.save(sample_session, expected_version=1)

        assert saved.version == 2
        assert repo.get(sample_session.session_id).conversation_history[0].content == "Hi!"

    def test_stale_save_rejected(self, sample_session):
        repo = InMemorySessionRepository()
        repo.create(sample_session)
        first = repo.get(sample_session.session_id)
        second = repo.get(sample_session.session_id)

        repo.save(first, expected_version=first.version)
        with pytest.raises(StaleStateError) as exc_info:
            repo.save(second, expected_version=second.version)

        assert exc_info.value.actual_version == 2
        assert repo.get(sample_session.session_id).version == 2

    def test_save_unknown_session(self, sample_session):
        with pytest.raises(SessionNotFoundError):
            InMemorySessionRepository().save(sample_session, expected_version=1)

    def test_find_active_prefers_latest(self):
        repo = InMemorySessionRepository()
        older = SessionState(child_id="c", lesson_id="L", updated_at=datetime(2025, 1, 1))
        newer = SessionState(child_id="c", lesson_id="L", updated_at=datetime(2025, 2, 1))
        repo.create(older)
        repo.create(newer)

        assert repo.find_active("c", "L").session_id == newer.session_id

    def test_find_active_skips_feedback_and_other_lessons(self):
        repo = InMemorySessionRepository()
        repo.create(SessionState(child_id="c", lesson_id="L", phase=Phase.FEEDBACK, final_score=3.0))
        repo.create(SessionState(child_id="c", lesson_id="OTHER"))
        repo.create(SessionState(child_id="someone-else", lesson_id="L"))

        assert repo.find_active("c", "L") is None


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

class TestInMemoryLessonProgressRepository:
    def test_upsert_keeps_started_at(self):
        repo = InMemoryLessonProgressRepository()
        started = datetime(2025, 3, 1, 9, 0)
        repo.upsert(LessonProgress(
            child_id="c", lesson_id="L", status="in_progress",
            current_phase=Phase.INSTRUCTION, started_at=started,
        ))

        repo.upsert(LessonProgress(
            child_id="c", lesson_id="L", status="completed",
            current_phase=Phase.FEEDBACK, completed_at=started + timedelta(minutes=20),
        ))

        progress = repo.get("c", "L")
        assert progress.status == "completed"
        assert progress.started_at == started
        assert progress.current_phase == Phase.FEEDBACK

    def test_list_for_child(self):
        repo = InMemoryLessonProgressRepository()
        repo.upsert(LessonProgress(child_id="c", lesson_id="A"))
        repo.upsert(LessonProgress(child_id="c", lesson_id="B"))
        repo.upsert(LessonProgress(child_id="d", lesson_id="A"))

        assert sorted(p.lesson_id for p in repo.list_for_child("c")) == ["A", "B"]

    def test_get_missing(self):
        assert InMemoryLessonProgressRepository().get("c", "L") is None


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------

class TestInMemoryAssessmentRepository:
    def test_ordered_by_revision(self):
        repo = InMemoryAssessmentRepository()
        repo.add(_make_record("s1", 2, 3.5))
        repo.add(_make_record("s1", 0, 2.5))
        repo.add(_make_record("s1", 1, 3.0))
        repo.add(_make_record("s2", 0))

        records = repo.list_for_session("s1")

        assert [r.revision_number for r in records] == [0, 1, 2]
        assert [r.result.overall_score for r in records] == [2.5, 3.0, 3.5]
