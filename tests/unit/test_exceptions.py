"""Unit tests for the writewise exception hierarchy."""

import pytest

from writewise.exceptions import (
    ConfigurationError,
    GeneratorError,
    GeneratorMalformedReplyError,
    GeneratorRateLimitError,
    GeneratorTimeoutError,
    LessonNotFoundError,
    PhaseMismatchError,
    PlacementGenerationError,
    ProtocolParseError,
    RevisionLimitError,
    SessionError,
    SessionNotFoundError,
    StaleStateError,
    StateError,
    StateTransitionError,
    SubmissionValidationError,
    WriteWiseError,
)


class TestHierarchy:
    @pytest.mark.parametrize("exc", [
        GeneratorTimeoutError(30),
        GeneratorRateLimitError(),
        GeneratorMalformedReplyError("JSON object"),
        PlacementGenerationError("too few"),
    ])
    def test_generator_errors_are_retryable(self, exc):
        assert isinstance(exc, GeneratorError)
        assert exc.retryable is True

    def test_state_errors(self):
        assert issubclass(StateTransitionError, StateError)
        assert issubclass(StaleStateError, StateError)

    def test_session_errors(self):
        for cls in (SessionNotFoundError, PhaseMismatchError, RevisionLimitError):
            assert issubclass(cls, SessionError)

    @pytest.mark.parametrize("cls", [
        SubmissionValidationError, GeneratorError, ProtocolParseError,
        StateError, SessionError, ConfigurationError, LessonNotFoundError,
    ])
    def test_everything_derives_from_base(self, cls):
        assert issubclass(cls, WriteWiseError)


class TestMessages:
    def test_timeout_message(self):
        exc = GeneratorTimeoutError(90, model_name="claude-test")
        assert str(exc) == "Generator call timed out after 90s (model: claude-test)"

    def test_rate_limit_retry_after(self):
        assert "Retry after 12s" in GeneratorRateLimitError(retry_after=12).message

    def test_malformed_reply_truncates_raw(self):
        exc = GeneratorMalformedReplyError("JSON object", raw_reply="x" * 1000)
        assert len(exc.details["raw_reply"]) == 500
        assert len(exc.raw_reply) == 1000

    def test_submission_validation_fields(self):
        exc = SubmissionValidationError("too_short", "Keep going!", word_count=4, min_words=15)
        assert exc.message == "Keep going!"
        assert exc.details == {"error": "too_short", "word_count": 4, "min_words": 15}

    def test_transition_error_fields(self):
        exc = StateTransitionError("instruction", "assessment", "cannot skip guided practice")
        assert exc.from_state == "instruction"
        assert "cannot skip guided practice" in str(exc)

    def test_stale_state_fields(self):
        exc = StaleStateError("sess_1", expected_version=3, actual_version=4)
        assert exc.expected_version == 3
        assert exc.actual_version == 4
        assert "sess_1" in exc.message
