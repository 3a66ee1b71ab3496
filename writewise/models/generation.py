"""Generator request/response models shared by every provider."""

from typing import Literal, Optional
from pydantic import BaseModel, Field


class GeneratorMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class GeneratorResult(BaseModel):
    """Text returned by one generator call plus usage metadata."""

    text: str
    provider: str
    model: str
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    latency_ms: int = Field(default=0, ge=0)
