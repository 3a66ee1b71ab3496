"""
Placement Service

Three-sample placement assessment: the generator writes one narrative, one
descriptive and one persuasive prompt for the child, the child answers
each, and the generator recommends a tier from the answers.

Both steps demand an exact reply shape. Anything else raises a retryable
Placement*Error; the flow never continues with fewer than three prompts.
"""

import json
import logging
from typing import Optional

from writewise.exceptions import (
    GeneratorMalformedReplyError,
    PlacementAnalysisError,
    PlacementGenerationError,
)
from writewise.models.generation import GeneratorMessage
from writewise.models.placement import PlacementAnalysis, PlacementResult
from writewise.prompts.scoring_prompts import (
    PLACEMENT_ANALYSIS_SYSTEM_PROMPT,
    PLACEMENT_ANALYSIS_USER_PROMPT,
    PLACEMENT_PROMPTS_SYSTEM_PROMPT,
    PLACEMENT_PROMPTS_USER_PROMPT,
)
from writewise.services.generator_service import GeneratorService
from writewise.services.telemetry import EventLogger
from writewise.utils.prompt_utils import format_writing_samples
from writewise.utils.schema_utils import parse_json_safely

logger = logging.getLogger("writewise.placement_service")

PLACEMENT_SAMPLE_COUNT = 3


def decode_prompts_reply(text: str) -> list[str]:
    """A reply is usable only as a JSON array of exactly three non-empty strings."""
    try:
        data = parse_json_safely(text, expected="JSON array of 3 prompts")
    except GeneratorMalformedReplyError as e:
        raise PlacementGenerationError("reply is not valid JSON", raw_reply=text) from e

    if not isinstance(data, list):
        raise PlacementGenerationError("reply is not a JSON array", raw_reply=text)
    if len(data) != PLACEMENT_SAMPLE_COUNT:
        raise PlacementGenerationError(
            f"expected {PLACEMENT_SAMPLE_COUNT} prompts, got {len(data)}", raw_reply=text
        )
    if not all(isinstance(p, str) and p.strip() for p in data):
        raise PlacementGenerationError("every prompt must be a non-empty string", raw_reply=text)
    return [p.strip() for p in data]


def _require_number(data: dict, key: str, text: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PlacementAnalysisError(f"'{key}' must be a number", raw_reply=text)
    return value


def _require_string_list(data: dict, key: str, text: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise PlacementAnalysisError(f"'{key}' must be a list", raw_reply=text)
    return [str(item) for item in value]


def decode_analysis_reply(text: str) -> PlacementAnalysis:
    try:
        data = parse_json_safely(text, expected="placement analysis JSON object")
    except GeneratorMalformedReplyError as e:
        raise PlacementAnalysisError("reply is not valid JSON", raw_reply=text) from e
    if not isinstance(data, dict):
        raise PlacementAnalysisError("reply is not a JSON object", raw_reply=text)

    tier = _require_number(data, "recommendedTier", text)
    if tier not in (1, 2, 3):
        raise PlacementAnalysisError(f"recommendedTier must be 1, 2 or 3, got {tier}", raw_reply=text)

    confidence = _require_number(data, "confidence", text)
    if not 0.0 <= confidence <= 1.0:
        raise PlacementAnalysisError(f"confidence must be within 0-1, got {confidence}", raw_reply=text)

    reasoning = data.get("reasoning", "")
    return PlacementAnalysis(
        recommended_tier=int(tier),
        confidence=float(confidence),
        strengths=_require_string_list(data, "strengths", text),
        gaps=_require_string_list(data, "gaps", text),
        reasoning=reasoning if isinstance(reasoning, str) else str(reasoning),
    )


class PlacementService:
    """Runs the placement flow against the generator."""

    def __init__(self, generator: GeneratorService, event_logger: Optional[EventLogger] = None):
        self.generator = generator
        self.event_logger = event_logger or EventLogger()

    def _generate(self, request_type: str, system_prompt: str, user_prompt: str, child_id: Optional[str]) -> str:
        result = self.generator.generate(
            system_prompt, [GeneratorMessage(role="user", content=user_prompt)]
        )
        self.event_logger.log_llm_interaction(
            request_type=request_type,
            system_prompt=system_prompt,
            raw_response=result.text,
            llm_result=result,
            child_id=child_id,
            user_message=user_prompt,
        )
        return result.text

    def generate_prompts(self, child_name: str, child_age: int, child_id: Optional[str] = None) -> list[str]:
        """Ask for the three placement prompts.

        Raises:
            PlacementGenerationError: reply is not exactly three strings
            GeneratorError: the generator call itself failed
        """
        text = self._generate(
            "placement_prompts",
            PLACEMENT_PROMPTS_SYSTEM_PROMPT.render(child_age=child_age),
            PLACEMENT_PROMPTS_USER_PROMPT.render(child_age=child_age, child_name=child_name),
            child_id,
        )
        prompts = decode_prompts_reply(text)
        logger.info(json.dumps({
            "step": "PLACEMENT",
            "status": "prompts_generated",
            "child_id": child_id,
            "count": len(prompts),
        }))
        return prompts

    def evaluate(
        self,
        child_id: str,
        child_name: str,
        child_age: int,
        prompts: list[str],
        responses: list[str],
    ) -> PlacementResult:
        """Recommend a tier from the child's three writing samples."""
        if len(prompts) != PLACEMENT_SAMPLE_COUNT or len(responses) != PLACEMENT_SAMPLE_COUNT:
            raise ValueError(
                f"Placement needs exactly {PLACEMENT_SAMPLE_COUNT} prompts and responses, "
                f"got {len(prompts)} and {len(responses)}"
            )

        text = self._generate(
            "placement_analysis",
            PLACEMENT_ANALYSIS_SYSTEM_PROMPT.render(child_age=child_age),
            PLACEMENT_ANALYSIS_USER_PROMPT.render(
                child_name=child_name,
                child_age=child_age,
                writing_samples=format_writing_samples(prompts, responses),
            ),
            child_id,
        )
        analysis = decode_analysis_reply(text)

        logger.info(json.dumps({
            "step": "PLACEMENT",
            "status": "analyzed",
            "child_id": child_id,
            "recommended_tier": analysis.recommended_tier,
            "confidence": analysis.confidence,
        }))
        return PlacementResult(
            child_id=child_id,
            prompts=list(prompts),
            responses=list(responses),
            analysis=analysis,
        )
