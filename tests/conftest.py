"""Pytest configuration and shared fixtures."""
import pytest

from writewise.config import Settings, reset_settings
from writewise.models.generation import GeneratorResult
from writewise.models.lesson import Lesson, Rubric, RubricCriterion
from writewise.models.session_state import SessionState
from writewise.services.telemetry import EventLogger, TelemetryStore


def make_result(text: str) -> GeneratorResult:
    return GeneratorResult(
        text=text,
        provider="anthropic",
        model="claude-test",
        input_tokens=100,
        output_tokens=20,
        latency_ms=5,
    )


def _criterion(name: str, weight: float) -> RubricCriterion:
    return RubricCriterion(
        name=name,
        display_name=name.title(),
        weight=weight,
        levels={
            "4": f"Excellent {name}",
            "3": f"Good {name}",
            "2": f"Developing {name}",
            "1": f"Beginning {name}",
        },
        feedback_stems={"strength": "You did well", "growth": "Next time try"},
    )


@pytest.fixture(autouse=True)
def clean_settings():
    """Never leak a cached Settings instance between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def test_settings():
    return Settings(
        llm_provider="anthropic",
        anthropic_api_key="test-key",
        max_instruction_turns=12,
        max_guided_attempts=8,
        max_revisions=2,
        turn_timeout_seconds=5.0,
        _env_file=None,
    )


@pytest.fixture
def sample_lesson():
    return Lesson(
        id="N1.1.5",
        title="Story Beginning Capstone",
        unit="N1.1",
        type="narrative",
        tier=1,
        learning_objectives=("Write a hook", "Introduce a character", "Describe a setting"),
        rubric_id="N1_story_beginning",
    )


@pytest.fixture
def practice_lesson():
    return Lesson(
        id="N1.1.1",
        title="What Makes a Good Story?",
        unit="N1.1",
        type="narrative",
        tier=1,
        learning_objectives=("Name the parts of a story",),
    )


@pytest.fixture
def sample_rubric():
    return Rubric(
        id="N1_story_beginning",
        description="Story beginning",
        word_range=(30, 75),
        criteria=(
            _criterion("hook", 0.25),
            _criterion("character", 0.25),
            _criterion("setting", 0.25),
            _criterion("creativity", 0.25),
        ),
        lesson_ids=("N1.1.5",),
    )


@pytest.fixture
def sample_session(sample_lesson):
    return SessionState(child_id="child-1", lesson_id=sample_lesson.id)


@pytest.fixture
def telemetry_store():
    return TelemetryStore()


@pytest.fixture
def event_logger(telemetry_store):
    return EventLogger(store=telemetry_store)


@pytest.fixture
def mock_generator(mocker):
    """Generator double: sync generate() and async agenerate() share a default reply."""
    generator = mocker.Mock()
    generator.model_id = "claude-test"
    generator.generate.return_value = make_result("Hello!")
    generator.agenerate = mocker.AsyncMock(return_value=make_result("Hello!"))
    return generator
