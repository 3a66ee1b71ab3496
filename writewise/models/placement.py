"""
Placement Models

Outcome of the three-sample placement assessment that sets a learner's tier.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from writewise.models.lesson import Tier


class PlacementAnalysis(BaseModel):
    recommended_tier: Tier
    confidence: float = Field(ge=0.0, le=1.0)
    strengths: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    reasoning: str = ""


class PlacementResult(BaseModel):
    """Placement outcome. A parent override never replaces the recommendation."""

    child_id: str
    prompts: list[str]
    responses: list[str]
    analysis: PlacementAnalysis
    assigned_tier: Optional[Tier] = Field(default=None, description="Parent override, if any")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def recommended_tier(self) -> int:
        return self.analysis.recommended_tier

    @property
    def effective_tier(self) -> int:
        return self.assigned_tier if self.assigned_tier is not None else self.recommended_tier

    def assign_tier(self, tier: Tier) -> "PlacementResult":
        """Copy with a parent override; the tier is validated like any other field."""
        return self.model_validate({**self.model_dump(), "assigned_tier": tier})
