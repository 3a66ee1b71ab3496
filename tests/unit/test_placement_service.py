"""Unit tests for PlacementService."""

import json

import pytest
from pydantic import ValidationError
from unittest.mock import Mock

from writewise.exceptions import GeneratorError, PlacementAnalysisError, PlacementGenerationError
from writewise.models.generation import GeneratorResult
from writewise.services.placement_service import (
    PlacementService,
    decode_analysis_reply,
    decode_prompts_reply,
)


PROMPTS = [
    "Write a story about a dragon who is afraid of the dark.",
    "Describe your favorite place using all five senses.",
    "Convince your teacher that recess should be longer.",
]
RESPONSES = ["Once there was a dragon...", "My treehouse smells like pine...", "Recess helps us learn..."]


def _make_result(text):
    return GeneratorResult(text=text, provider="anthropic", model="claude-test")


def _analysis(**overrides):
    data = {
        "recommendedTier": 2,
        "confidence": 0.8,
        "strengths": ["vivid verbs"],
        "gaps": ["paragraphing"],
        "reasoning": "Solid multi-sentence writing.",
    }
    data.update(overrides)
    return json.dumps(data)


def _make_service(reply, event_logger):
    generator = Mock()
    generator.generate.return_value = _make_result(reply)
    return PlacementService(generator, event_logger=event_logger), generator


# ---------------------------------------------------------------------------
# Prompt generation
# ---------------------------------------------------------------------------

class TestDecodePromptsReply:
    def test_three_prompts(self):
        assert decode_prompts_reply(json.dumps(PROMPTS)) == PROMPTS

    def test_fenced_array(self):
        assert decode_prompts_reply("```json\n" + json.dumps(PROMPTS) + "\n```") == PROMPTS

    def test_two_prompts_rejected(self):
        with pytest.raises(PlacementGenerationError) as exc_info:
            decode_prompts_reply(json.dumps(PROMPTS[:2]))
        assert "got 2" in exc_info.value.message
        assert exc_info.value.retryable is True

    def test_four_prompts_rejected(self):
        with pytest.raises(PlacementGenerationError):
            decode_prompts_reply(json.dumps(PROMPTS + ["extra"]))

    @pytest.mark.parametrize("reply", [
        '{"prompts": ["a", "b", "c"]}',
        '["a", "", "c"]',
        '["a", 2, "c"]',
        "Here are some prompts for you!",
    ])
    def test_wrong_shapes_rejected(self, reply):
        with pytest.raises(PlacementGenerationError):
            decode_prompts_reply(reply)


class TestGeneratePrompts:
    def test_scenario_two_prompts_raises(self, event_logger):
        service, _ = _make_service(json.dumps(PROMPTS[:2]), event_logger)
        with pytest.raises(PlacementGenerationError):
            service.generate_prompts("Maya", 9)

    def test_returns_prompts_and_renders_age(self, event_logger, telemetry_store):
        service, generator = _make_service(json.dumps(PROMPTS), event_logger)

        prompts = service.generate_prompts("Maya", 9)

        assert prompts == PROMPTS
        system_prompt, messages = generator.generate.call_args.args
        assert "9-year-old" in system_prompt
        assert "named Maya" in messages[0].content
        assert telemetry_store.get_interactions()[0].request_type == "placement_prompts"

    def test_generator_errors_propagate(self, event_logger):
        generator = Mock()
        generator.generate.side_effect = GeneratorError("boom")
        service = PlacementService(generator, event_logger=event_logger)

        with pytest.raises(GeneratorError):
            service.generate_prompts("Maya", 9)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

class TestDecodeAnalysisReply:
    def test_valid(self):
        analysis = decode_analysis_reply(_analysis())
        assert analysis.recommended_tier == 2
        assert analysis.confidence == 0.8
        assert analysis.strengths == ["vivid verbs"]
        assert analysis.gaps == ["paragraphing"]

    @pytest.mark.parametrize("overrides", [
        {"recommendedTier": 4},
        {"recommendedTier": 0},
        {"recommendedTier": "2"},
        {"recommendedTier": 1.5},
        {"confidence": 1.2},
        {"confidence": -0.1},
        {"confidence": "high"},
        {"strengths": "good verbs"},
        {"gaps": {"a": 1}},
    ])
    def test_invalid_fields_rejected(self, overrides):
        with pytest.raises(PlacementAnalysisError):
            decode_analysis_reply(_analysis(**overrides))

    def test_missing_tier_rejected(self):
        with pytest.raises(PlacementAnalysisError):
            decode_analysis_reply(json.dumps({"confidence": 0.5}))

    def test_not_json_rejected(self):
        with pytest.raises(PlacementAnalysisError):
            decode_analysis_reply("Tier 2, probably.")


class TestEvaluate:
    def test_returns_result(self, event_logger):
        service, generator = _make_service(_analysis(recommendedTier=3), event_logger)

        result = service.evaluate("child-1", "Maya", 13, PROMPTS, RESPONSES)

        assert result.child_id == "child-1"
        assert result.recommended_tier == 3
        assert result.assigned_tier is None
        assert result.effective_tier == 3
        user_prompt = generator.generate.call_args.args[1][0].content
        assert "Prompt 1: " + PROMPTS[0] in user_prompt
        assert "Response 3: " + RESPONSES[2] in user_prompt

    def test_parent_override_kept_beside_recommendation(self, event_logger):
        service, _ = _make_service(_analysis(recommendedTier=2), event_logger)
        result = service.evaluate("child-1", "Maya", 11, PROMPTS, RESPONSES)

        overridden = result.assign_tier(1)

        assert overridden.recommended_tier == 2
        assert overridden.assigned_tier == 1
        assert overridden.effective_tier == 1
        assert result.assigned_tier is None

    def test_assign_tier_rejects_unknown_tier(self, event_logger):
        service, _ = _make_service(_analysis(), event_logger)
        result = service.evaluate("child-1", "Maya", 11, PROMPTS, RESPONSES)

        with pytest.raises(ValidationError):
            result.assign_tier(7)
        assert result.assigned_tier is None

    def test_requires_three_responses(self, event_logger):
        service, generator = _make_service(_analysis(), event_logger)

        with pytest.raises(ValueError):
            service.evaluate("child-1", "Maya", 9, PROMPTS, RESPONSES[:2])
        generator.generate.assert_not_called()

    def test_invalid_analysis_raises(self, event_logger):
        service, _ = _make_service(_analysis(confidence=3), event_logger)
        with pytest.raises(PlacementAnalysisError):
            service.evaluate("child-1", "Maya", 9, PROMPTS, RESPONSES)
