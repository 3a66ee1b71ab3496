"""
Message Models

Conversation messages exchanged between the coach and the learner.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid


AnswerType = Literal["choice", "multiselect", "poll", "order", "highlight"]


class AnswerMeta(BaseModel):
    """Interactive answer widget requested by the coach."""

    model_config = ConfigDict(frozen=True)

    answer_type: AnswerType = Field(description="Widget type the learner answers with")
    options: Optional[tuple[str, ...]] = Field(default=None, description="Choices for choice/multiselect/poll/order")
    passage: Optional[str] = Field(default=None, description="Text for highlight questions")


class Message(BaseModel):
    """Individual message in a conversation. Never edited once appended."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:12]}")
    role: Literal["coach", "student"] = Field(description="Role of the message sender")
    content: str = Field(description="Message content text")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the message was created")
    answer_meta: Optional[AnswerMeta] = Field(default=None, description="Interactive answer metadata, coach only")


def create_coach_message(content: str, answer_meta: Optional[AnswerMeta] = None) -> Message:
    return Message(role="coach", content=content, answer_meta=answer_meta)


def create_student_message(content: str) -> Message:
    return Message(role="student", content=content)
