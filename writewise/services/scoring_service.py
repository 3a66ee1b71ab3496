"""
Scoring Service

Scores a validated submission against its rubric (or, for practice lessons
without one, against general creativity/effort/skill criteria).

The generator is asked for JSON. The reply is decoded through an explicit
model whose fields accept the spellings models actually produce
(`growthArea`, `growth`, `growth_area`), then normalized: every criterion
score is clamped to 1-4 (missing ones default to 2) and the overall score
is recomputed from the rubric weights whenever the reply's own value is
missing or out of range.
"""

import json
import math
import logging
from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from writewise.models.assessment import AssessmentFeedback, AssessmentResult
from writewise.models.lesson import Rubric
from writewise.prompts.coach_prompts import TIER_INSERTS
from writewise.prompts.scoring_prompts import (
    EVALUATION_SYSTEM_PROMPT,
    EVALUATION_USER_PROMPT,
    GENERAL_EVALUATION_SYSTEM_PROMPT,
)
from writewise.catalog.rubrics import format_rubric_for_prompt
from writewise.exceptions import GeneratorError
from writewise.models.generation import GeneratorMessage
from writewise.services.telemetry import EventLogger
from writewise.services.generator_service import GeneratorService
from writewise.utils.schema_utils import parse_json_safely, validate_reply

logger = logging.getLogger("writewise.scoring_service")

MIN_SCORE = 1
MAX_SCORE = 4
DEFAULT_SCORE = 2

GENERAL_CRITERIA = ("creativity", "effort", "skill_practice")

DEFAULT_FEEDBACK = AssessmentFeedback(
    strength="Great effort on this writing piece!",
    growth_area="Keep practicing and try adding more details next time.",
    encouragement="You're becoming a stronger writer every day!",
)


# ---------------------------------------------------------------------------
# Reply decoding
# ---------------------------------------------------------------------------

class FeedbackReply(BaseModel):
    model_config = ConfigDict(extra="ignore")

    strength: Optional[str] = None
    growth_area: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("growthArea", "growth", "growth_area"),
    )
    encouragement: Optional[str] = None


class ScoringReply(BaseModel):
    """Raw scoring reply as the model sent it."""

    model_config = ConfigDict(extra="ignore")

    scores: dict[str, Any] = Field(default_factory=dict)
    overall_score: Any = Field(
        default=None,
        validation_alias=AliasChoices("overallScore", "overall_score"),
    )
    feedback: Optional[FeedbackReply] = None


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def clamp_score(value: Any) -> Optional[int]:
    """Round and clamp a criterion score to 1-4; None when it is not a number."""
    if not _is_number(value):
        return None
    return int(min(MAX_SCORE, max(MIN_SCORE, round_half_up(value))))


def normalize_scores(raw_scores: dict[str, Any], criteria: list[str]) -> dict[str, int]:
    scores: dict[str, int] = {}
    for name in criteria:
        score = clamp_score(raw_scores.get(name))
        if score is None:
            logger.warning(json.dumps({
                "step": "SCORING",
                "status": "criterion_defaulted",
                "criterion": name,
                "raw": repr(raw_scores.get(name))[:50],
            }))
            score = DEFAULT_SCORE
        scores[name] = score
    return scores


def weighted_overall(scores: dict[str, int], rubric: Rubric) -> float:
    total = sum(scores[c.name] * c.weight for c in rubric.criteria)
    return min(float(MAX_SCORE), max(float(MIN_SCORE), round_half_up(total, 1)))


def _valid_overall(value: Any) -> bool:
    return _is_number(value) and MIN_SCORE <= value <= MAX_SCORE


def _feedback_from_reply(reply: ScoringReply) -> AssessmentFeedback:
    feedback = reply.feedback or FeedbackReply()
    return AssessmentFeedback(
        strength=feedback.strength or DEFAULT_FEEDBACK.strength,
        growth_area=feedback.growth_area or DEFAULT_FEEDBACK.growth_area,
        encouragement=feedback.encouragement or DEFAULT_FEEDBACK.encouragement,
    )


def decode_rubric_reply(text: str, rubric: Rubric) -> AssessmentResult:
    """Turn a raw rubric-scoring reply into an AssessmentResult."""
    reply = validate_reply(parse_json_safely(text, expected="scoring JSON object"), ScoringReply)
    scores = normalize_scores(reply.scores, rubric.criterion_names)

    if _valid_overall(reply.overall_score):
        overall = round_half_up(float(reply.overall_score), 1)
    else:
        overall = weighted_overall(scores, rubric)

    return AssessmentResult(scores=scores, overall_score=overall, feedback=_feedback_from_reply(reply))


def decode_general_reply(text: str) -> AssessmentResult:
    """Turn a raw rubric-free scoring reply into an AssessmentResult."""
    reply = validate_reply(parse_json_safely(text, expected="scoring JSON object"), ScoringReply)
    scores = normalize_scores(reply.scores, list(GENERAL_CRITERIA))

    if _valid_overall(reply.overall_score):
        overall = float(round_half_up(float(reply.overall_score)))
    else:
        overall = float(round_half_up(sum(scores.values()) / len(scores)))

    return AssessmentResult(scores=scores, overall_score=overall, feedback=_feedback_from_reply(reply))


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def build_scoring_prompt(rubric: Rubric, tier: int) -> str:
    """Deterministic system prompt embedding the rubric criteria verbatim."""
    score_lines = ",\n".join(f'    "{c.name}": <score 1-4>' for c in rubric.criteria)
    return EVALUATION_SYSTEM_PROMPT.render(
        tier_insert=TIER_INSERTS[tier],
        rubric_text=format_rubric_for_prompt(rubric),
        score_lines=score_lines,
    )


def build_general_scoring_prompt(tier: int, lesson_title: str) -> str:
    return GENERAL_EVALUATION_SYSTEM_PROMPT.render(
        tier_insert=TIER_INSERTS[tier],
        lesson_title=lesson_title,
    )


class ScoringService:
    """Scores learner submissions with the generator."""

    def __init__(self, generator: GeneratorService, event_logger: Optional[EventLogger] = None):
        self.generator = generator
        self.event_logger = event_logger or EventLogger()

    def _generate(self, system_prompt: str, submission_text: str, log_context: dict[str, Any]) -> str:
        messages = [GeneratorMessage(
            role="user",
            content=EVALUATION_USER_PROMPT.render(submission_text=submission_text),
        )]
        try:
            result = self.generator.generate(system_prompt, messages)
        except GeneratorError as e:
            self.event_logger.log_llm_interaction(
                request_type="assessment",
                system_prompt=system_prompt,
                user_message=submission_text,
                error=e.message,
                **log_context,
            )
            raise
        self.event_logger.log_llm_interaction(
            request_type="assessment",
            system_prompt=system_prompt,
            raw_response=result.text,
            llm_result=result,
            user_message=submission_text,
            **log_context,
        )
        return result.text

    def score(
        self,
        submission_text: str,
        rubric: Rubric,
        tier: int,
        log_context: Optional[dict[str, Any]] = None,
    ) -> AssessmentResult:
        """Score against a rubric. Raises GeneratorError subclasses on failure.

        `log_context` carries session_id / child_id / lesson_id for telemetry.
        """
        text = self._generate(build_scoring_prompt(rubric, tier), submission_text.strip(), log_context or {})
        result = decode_rubric_reply(text, rubric)
        logger.info(json.dumps({
            "step": "SCORING",
            "status": "complete",
            "rubric_id": rubric.id,
            "scores": result.scores,
            "overall_score": result.overall_score,
        }))
        return result

    def score_general(
        self,
        submission_text: str,
        tier: int,
        lesson_title: str,
        log_context: Optional[dict[str, Any]] = None,
    ) -> AssessmentResult:
        """Score a practice piece that has no rubric."""
        text = self._generate(
            build_general_scoring_prompt(tier, lesson_title), submission_text.strip(), log_context or {}
        )
        result = decode_general_reply(text)
        logger.info(json.dumps({
            "step": "SCORING",
            "status": "complete",
            "rubric_id": None,
            "scores": result.scores,
            "overall_score": result.overall_score,
        }))
        return result
