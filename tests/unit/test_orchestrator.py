"""
Unit tests for CoachOrchestrator.

Tests one lesson turn end to end with a mocked generator: marker
stripping, state machine folding, answer metadata, telemetry, and
error handling.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from writewise.exceptions import GeneratorServiceError, GeneratorTimeoutError
from writewise.models.generation import GeneratorResult
from writewise.models.messages import create_coach_message
from writewise.models.session_state import Phase, PhaseState, SessionState
from writewise.orchestration import CoachOrchestrator, PhaseStateMachine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_result(text):
    return GeneratorResult(text=text, provider="anthropic", model="claude-test", latency_ms=9)


def _build(mock_generator, event_logger, reply="Okay!", **kwargs):
    mock_generator.agenerate = AsyncMock(return_value=_make_result(reply))
    return CoachOrchestrator(mock_generator, event_logger=event_logger, **kwargs)


def _guided_session():
    return SessionState(
        child_id="child-1",
        lesson_id="N1.1.5",
        phase=Phase.GUIDED,
        phase_state=PhaseState(instruction_completed=True, comprehension_check_passed=True),
    )


def _sent_messages(mock_generator):
    return mock_generator.agenerate.call_args.args[1]


def _sent_system_prompt(mock_generator):
    return mock_generator.agenerate.call_args.args[0]


# ---------------------------------------------------------------------------
# process_turn: instruction phase
# ---------------------------------------------------------------------------

class TestInstructionTurn:
    @pytest.mark.asyncio
    async def test_hint_and_step_reply(self, mock_generator, event_logger, sample_session, sample_lesson):
        orchestrator = _build(mock_generator, event_logger, "[STEP: 2] Great start! [HINT_GIVEN]")

        result = await orchestrator.process_turn(sample_session, sample_lesson, "  I like dragons  ")

        assert result.response == "[STEP: 2] Great start!"
        assert result.step_update == 2
        assert result.phase_update is None
        assert result.answer_meta is None
        history = result.session.conversation_history
        assert [m.role for m in history] == ["student", "coach"]
        assert history[0].content == "I like dragons"
        assert history[1].content == "[STEP: 2] Great start!"
        assert result.session.phase_state.phase1_step == 2
        assert result.session.phase_state.instruction_turns == 1

    @pytest.mark.asyncio
    async def test_out_of_range_step_shown_but_not_applied(
        self, mock_generator, event_logger, sample_session, sample_lesson
    ):
        orchestrator = _build(mock_generator, event_logger, "[STEP: 7] Bonus round!")

        result = await orchestrator.process_turn(sample_session, sample_lesson, "ok")

        assert result.response == "[STEP: 7] Bonus round!"
        assert result.step_update is None
        assert result.session.phase_state.phase1_step is None

    @pytest.mark.asyncio
    async def test_input_session_untouched(self, mock_generator, event_logger, sample_session, sample_lesson):
        orchestrator = _build(mock_generator, event_logger, "[STEP: 2] Nice.")

        result = await orchestrator.process_turn(sample_session, sample_lesson, "hello")

        assert sample_session.conversation_history == []
        assert sample_session.phase_state.instruction_turns == 0
        assert result.session is not sample_session

    @pytest.mark.asyncio
    async def test_instruction_answer_type_not_attached(self, mock_generator, event_logger, sample_session, sample_lesson):
        orchestrator = _build(mock_generator, event_logger, "Which is a hook? [ANSWER_TYPE: choice] [OPTIONS: A | B]")

        result = await orchestrator.process_turn(sample_session, sample_lesson, "ready")

        assert result.answer_meta is None
        assert result.session.conversation_history[-1].answer_meta is None

    @pytest.mark.asyncio
    async def test_transition_into_guided_attaches_answer_meta(
        self, mock_generator, event_logger, sample_session, sample_lesson
    ):
        reply = (
            "You got it! [COMPREHENSION_CHECK: passed] [PHASE_TRANSITION: guided] "
            "Pick the best hook: [ANSWER_TYPE: choice] [OPTIONS: Bang! | It was a day.]"
        )
        orchestrator = _build(mock_generator, event_logger, reply)

        result = await orchestrator.process_turn(sample_session, sample_lesson, "A hook grabs the reader")

        assert result.phase_update == Phase.GUIDED
        assert result.session.phase == Phase.GUIDED
        assert result.answer_meta.answer_type == "choice"
        assert result.answer_meta.options == ("Bang!", "It was a day.")
        assert result.response == "You got it! Pick the best hook:"

    @pytest.mark.asyncio
    async def test_escape_hatch_reported(self, mock_generator, event_logger, sample_session, sample_lesson):
        machine = PhaseStateMachine(max_instruction_turns=1)
        orchestrator = _build(mock_generator, event_logger, "Let's keep going.", state_machine=machine)

        result = await orchestrator.process_turn(sample_session, sample_lesson, "ok")

        assert result.forced_transition is True
        assert result.phase_update == Phase.GUIDED


# ---------------------------------------------------------------------------
# process_turn: later phases
# ---------------------------------------------------------------------------

class TestGuidedTurn:
    @pytest.mark.asyncio
    async def test_answer_meta_and_no_step_update(self, mock_generator, event_logger, sample_lesson):
        orchestrator = _build(
            mock_generator, event_logger, '[STEP: 3] Highlight it. [ANSWER_TYPE: highlight] [PASSAGE: "Boom! The door flew open."]'
        )

        result = await orchestrator.process_turn(_guided_session(), sample_lesson, "ok")

        assert result.step_update is None
        assert result.answer_meta.answer_type == "highlight"
        assert result.answer_meta.passage == "Boom! The door flew open."
        assert result.session.conversation_history[-1].answer_meta == result.answer_meta
        assert result.session.phase_state.guided_attempts == 1

    @pytest.mark.asyncio
    async def test_assessment_prompt_includes_rubric(self, mock_generator, event_logger, sample_lesson):
        session = SessionState(
            child_id="child-1",
            lesson_id="N1.1.5",
            phase=Phase.ASSESSMENT,
            phase_state=PhaseState(guided_complete=True),
        )
        orchestrator = _build(mock_generator, event_logger, "Take your time!")

        await orchestrator.process_turn(session, sample_lesson, "Can I start?")

        assert "CRITERION: Hook" in _sent_system_prompt(mock_generator)

    @pytest.mark.asyncio
    async def test_instruction_prompt_has_no_rubric(self, mock_generator, event_logger, sample_session, sample_lesson):
        orchestrator = _build(mock_generator, event_logger)

        await orchestrator.process_turn(sample_session, sample_lesson, "hi")

        assert "CRITERION:" not in _sent_system_prompt(mock_generator)


# ---------------------------------------------------------------------------
# Conversation sent to the generator
# ---------------------------------------------------------------------------

class TestMessagesSent:
    @pytest.mark.asyncio
    async def test_greeting_prepended_before_coach_opening(self, mock_generator, event_logger, sample_session, sample_lesson):
        sample_session.add_message(create_coach_message("Welcome, writer!"))
        orchestrator = _build(mock_generator, event_logger)

        await orchestrator.process_turn(sample_session, sample_lesson, "Hi!", student_name="Maya")

        messages = _sent_messages(mock_generator)
        assert [m.role for m in messages] == ["user", "assistant", "user"]
        assert messages[0].content == "Hi! I'm Maya and I'm ready for today's lesson."
        assert messages[-1].content == "Hi!"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:
    @pytest.mark.asyncio
    async def test_generator_error_leaves_session_untouched(
        self, mock_generator, event_logger, telemetry_store, sample_session, sample_lesson
    ):
        mock_generator.agenerate = AsyncMock(side_effect=GeneratorServiceError("provider down"))
        orchestrator = CoachOrchestrator(mock_generator, event_logger=event_logger)

        with pytest.raises(GeneratorServiceError):
            await orchestrator.process_turn(sample_session, sample_lesson, "hello")

        assert sample_session.conversation_history == []
        interaction = telemetry_store.get_interactions(sample_session.session_id)[0]
        assert interaction.error == "provider down"

    @pytest.mark.asyncio
    async def test_turn_timeout(self, mock_generator, event_logger, sample_session, sample_lesson):
        async def never_answers(*args, **kwargs):
            await asyncio.sleep(5)

        mock_generator.agenerate = never_answers
        orchestrator = CoachOrchestrator(mock_generator, event_logger=event_logger, turn_timeout=0.01)

        with pytest.raises(GeneratorTimeoutError) as exc_info:
            await orchestrator.process_turn(sample_session, sample_lesson, "hello")
        assert exc_info.value.model_name == "claude-test"


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

class TestTelemetry:
    @pytest.mark.asyncio
    async def test_turn_events(self, mock_generator, event_logger, telemetry_store, sample_session, sample_lesson):
        orchestrator = _build(mock_generator, event_logger, "[STEP: 2] Great start! [HINT_GIVEN]")

        await orchestrator.process_turn(sample_session, sample_lesson, "one two three")

        events = telemetry_store.get_events(sample_session.session_id)
        assert [e.event_type for e in events] == ["message_sent", "message_received", "step_change"]
        assert events[0].event_data == {"wordCount": 3, "charCount": 13}

        interaction = telemetry_store.get_interactions(sample_session.session_id)[0]
        assert interaction.request_type == "lesson_message"
        assert interaction.markers_detected == {"step": 2, "hint_given": True}
        assert interaction.stripped_response == "[STEP: 2] Great start!"

    @pytest.mark.asyncio
    async def test_answer_type_event(self, mock_generator, event_logger, telemetry_store, sample_lesson):
        session = _guided_session()
        orchestrator = _build(mock_generator, event_logger, "Vote! [ANSWER_TYPE: poll] [OPTIONS: A | B | C]")

        await orchestrator.process_turn(session, sample_lesson, "ok")

        used = telemetry_store.get_events(session.session_id, event_type="answer_type_used")
        assert used[0].event_data == {"answerType": "poll", "optionCount": 3}


# ---------------------------------------------------------------------------
# Opening message
# ---------------------------------------------------------------------------

class TestGenerateOpening:
    @pytest.mark.asyncio
    async def test_opening_is_stripped_and_stateless(
        self, mock_generator, event_logger, telemetry_store, sample_session, sample_lesson
    ):
        orchestrator = _build(mock_generator, event_logger, "[STEP: 1] Welcome! [PHASE_TRANSITION: guided]")

        result = await orchestrator.generate_opening(sample_session, sample_lesson, student_name="Maya")

        assert result.response == "[STEP: 1] Welcome!"
        assert result.session.phase == Phase.INSTRUCTION
        assert result.session.phase_state.instruction_turns == 0
        assert result.session.phase_state.instruction_completed is False
        assert [m.role for m in result.session.conversation_history] == ["coach"]
        assert _sent_messages(mock_generator)[0].content == "Hi! I'm Maya and I'm ready for today's lesson."
        assert telemetry_store.get_interactions(sample_session.session_id)[0].request_type == "lesson_start"
