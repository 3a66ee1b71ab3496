"""
Prompt construction utilities.

Conversion of the stored conversation into generator messages and small
formatting helpers shared by the scoring and placement services.
"""

from typing import Optional, TYPE_CHECKING

from writewise.models.generation import GeneratorMessage

if TYPE_CHECKING:
    from writewise.models.messages import Message


DEFAULT_OPENING_MESSAGE = "Hi! I'm ready for today's lesson."


def convert_history(
    messages: list["Message"],
    opening_message: Optional[str] = None,
) -> list[GeneratorMessage]:
    """Map coach/student messages onto assistant/user generator roles.

    Sessions open with a coach message, but providers expect the
    conversation to start with the user, so a greeting is prepended.
    """
    converted = [
        GeneratorMessage(
            role="user" if msg.role == "student" else "assistant",
            content=msg.content,
        )
        for msg in messages
    ]
    if converted and converted[0].role == "assistant":
        converted.insert(0, GeneratorMessage(role="user", content=opening_message or DEFAULT_OPENING_MESSAGE))
    return converted


def format_writing_samples(prompts: list[str], responses: list[str]) -> str:
    return "\n\n".join(
        f"Prompt {i}: {prompt}\nResponse {i}: {response}"
        for i, (prompt, response) in enumerate(zip(prompts, responses), start=1)
    )


def summarize_text(text: str, limit: int = 100) -> str:
    """Shorten text for log lines."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
