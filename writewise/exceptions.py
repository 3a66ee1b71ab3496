"""
Custom Exception Hierarchy for the WriteWise coach core

Exception Hierarchy:
    WriteWiseError (base)
    ├── SubmissionValidationError
    ├── GeneratorError
    │   ├── GeneratorServiceError
    │   ├── GeneratorTimeoutError
    │   ├── GeneratorRateLimitError
    │   ├── GeneratorContentError
    │   ├── GeneratorMalformedReplyError
    │   ├── PlacementGenerationError
    │   └── PlacementAnalysisError
    ├── ProtocolParseError
    ├── StateError
    │   ├── StateTransitionError
    │   └── StaleStateError
    ├── SessionError
    │   ├── SessionNotFoundError
    │   ├── PhaseMismatchError
    │   └── RevisionLimitError
    ├── CatalogError
    │   ├── LessonNotFoundError
    │   └── RubricNotFoundError
    ├── PromptError
    │   └── PromptTemplateError
    └── ConfigurationError
"""

from typing import Optional


class WriteWiseError(Exception):
    """Base exception for all coach core errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Submission Errors

class SubmissionValidationError(WriteWiseError):
    """Raised when a submission fails the pre-scoring quality gate.

    The kid-friendly message is surfaced to the learner verbatim.
    """

    def __init__(self, error: str, message: str, word_count: int, min_words: int):
        super().__init__(message, {"error": error, "word_count": word_count, "min_words": min_words})
        self.error = error
        self.word_count = word_count
        self.min_words = min_words


# Generator Errors

class GeneratorError(WriteWiseError):
    """Base exception for text generator failures. Callers may retry."""

    retryable = True


class GeneratorServiceError(GeneratorError):
    """Raised when the generator API call fails."""

    def __init__(self, message: str, model_name: Optional[str] = None, attempts: Optional[int] = None):
        super().__init__(message)
        self.model_name = model_name
        self.attempts = attempts


class GeneratorTimeoutError(GeneratorError):
    """Raised when the generator does not answer in time."""

    def __init__(self, timeout_seconds: float, model_name: Optional[str] = None):
        message = f"Generator call timed out after {timeout_seconds}s"
        if model_name:
            message += f" (model: {model_name})"
        super().__init__(message)
        self.timeout_seconds = timeout_seconds
        self.model_name = model_name


class GeneratorRateLimitError(GeneratorError):
    """Raised when the generator rate limit is exceeded."""

    def __init__(self, retry_after: Optional[int] = None):
        message = "Generator rate limit exceeded"
        if retry_after:
            message += f". Retry after {retry_after}s"
        super().__init__(message)
        self.retry_after = retry_after


class GeneratorContentError(GeneratorError):
    """Raised when the generator refuses or returns no text."""

    def __init__(self, reason: str, model_name: Optional[str] = None):
        message = f"Generator returned no usable content: {reason}"
        super().__init__(message)
        self.reason = reason
        self.model_name = model_name


class GeneratorMalformedReplyError(GeneratorError):
    """Raised when a structured reply cannot be decoded."""

    def __init__(self, expected: str, raw_reply: str = ""):
        message = f"Malformed generator reply (expected {expected})"
        super().__init__(message, {"raw_reply": raw_reply[:500]})
        self.expected = expected
        self.raw_reply = raw_reply


class PlacementGenerationError(GeneratorError):
    """Raised when placement prompts are not exactly three strings."""

    def __init__(self, reason: str, raw_reply: str = ""):
        message = f"Failed to generate placement prompts: {reason}"
        super().__init__(message, {"raw_reply": raw_reply[:500]})
        self.reason = reason


class PlacementAnalysisError(GeneratorError):
    """Raised when the placement analysis reply is invalid."""

    def __init__(self, reason: str, raw_reply: str = ""):
        message = f"Failed to analyze placement samples: {reason}"
        super().__init__(message, {"raw_reply": raw_reply[:500]})
        self.reason = reason


# Protocol Errors

class ProtocolParseError(WriteWiseError):
    """A recognizable control marker carried an unusable payload.

    Recorded and logged by the marker codec; the signal is treated as absent.
    """

    def __init__(self, marker: str, reason: str):
        message = f"Malformed [{marker}] marker: {reason}"
        super().__init__(message)
        self.marker = marker
        self.reason = reason


# State Errors

class StateError(WriteWiseError):
    """Base exception for state management errors."""
    pass


class StateTransitionError(StateError):
    """Raised when state transition is invalid."""

    def __init__(self, from_state: str, to_state: str, reason: str):
        message = f"Invalid state transition from '{from_state}' to '{to_state}': {reason}"
        super().__init__(message)
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason


class StaleStateError(StateError):
    """Raised when a concurrent write has already advanced the session."""

    def __init__(self, session_id: str, expected_version: int, actual_version: int):
        message = (
            f"Session {session_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        super().__init__(message)
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version


# Session Errors

class SessionError(WriteWiseError):
    """Base exception for session-related errors."""
    pass


class SessionNotFoundError(SessionError):
    """Raised when session is not found in storage."""

    def __init__(self, session_id: str):
        message = f"Session not found: {session_id}"
        super().__init__(message)
        self.session_id = session_id


class PhaseMismatchError(SessionError):
    """Raised when an operation is attempted in the wrong phase."""

    def __init__(self, session_id: str, expected: str, actual: str):
        message = f"Session {session_id} is in phase '{actual}', expected '{expected}'"
        super().__init__(message)
        self.session_id = session_id
        self.expected = expected
        self.actual = actual


class RevisionLimitError(SessionError):
    """Raised when the learner has used every allowed revision."""

    def __init__(self, session_id: str, max_revisions: int):
        message = f"Maximum revisions ({max_revisions}) reached for session {session_id}"
        super().__init__(message)
        self.session_id = session_id
        self.max_revisions = max_revisions


# Catalog Errors

class CatalogError(WriteWiseError):
    """Base exception for reference data lookups."""
    pass


class LessonNotFoundError(CatalogError):
    """Raised when a lesson ID is not in the catalog."""

    def __init__(self, lesson_id: str):
        message = f"Lesson not found: {lesson_id}"
        super().__init__(message)
        self.lesson_id = lesson_id


class RubricNotFoundError(CatalogError):
    """Raised when a rubric ID is not in the catalog."""

    def __init__(self, rubric_id: str):
        message = f"Rubric not found: {rubric_id}"
        super().__init__(message)
        self.rubric_id = rubric_id


# Prompt Errors

class PromptError(WriteWiseError):
    """Base exception for prompt-related errors."""
    pass


class PromptTemplateError(PromptError):
    """Raised when prompt template rendering fails."""

    def __init__(self, template_name: str, missing_vars: list[str]):
        message = f"Prompt template '{template_name}' missing variables: {', '.join(missing_vars)}"
        super().__init__(message)
        self.template_name = template_name
        self.missing_vars = missing_vars


# Configuration Errors

class ConfigurationError(WriteWiseError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, config_key: str, reason: str):
        message = f"Configuration error for '{config_key}': {reason}"
        super().__init__(message)
        self.config_key = config_key
        self.reason = reason
