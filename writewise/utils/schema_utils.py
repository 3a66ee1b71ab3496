"""
JSON helpers for structured generator replies.

Models are asked for bare JSON but sometimes wrap it in a markdown code
fence or surround it with prose; these helpers dig the payload out.
"""

import json
import re
from typing import Any, Type, TypeVar
from pydantic import BaseModel, ValidationError

from writewise.exceptions import GeneratorMalformedReplyError


T = TypeVar("T", bound=BaseModel)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_from_text(text: str) -> str:
    """Extract a JSON object or array from text that may contain other content."""
    stripped = text.strip()
    fence_match = _CODE_FENCE_RE.search(stripped)
    if fence_match:
        return fence_match.group(1).strip()

    if stripped.startswith(("{", "[")):
        return stripped

    object_match = re.search(r"\{.*\}", stripped, re.DOTALL)
    array_match = re.search(r"\[.*\]", stripped, re.DOTALL)
    candidates = [m for m in (object_match, array_match) if m]
    if candidates:
        return min(candidates, key=lambda m: m.start()).group()

    raise ValueError("No JSON found in text")


def parse_json_safely(text: str, expected: str = "valid JSON") -> Any:
    """Parse a possibly fenced JSON reply, raising GeneratorMalformedReplyError on failure."""
    try:
        return json.loads(extract_json_from_text(text))
    except (ValueError, TypeError) as e:
        raise GeneratorMalformedReplyError(expected=expected, raw_reply=text or "") from e


def validate_reply(data: Any, model: Type[T]) -> T:
    """Validate decoded reply data against a Pydantic model."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise GeneratorMalformedReplyError(expected=model.__name__, raw_reply=json.dumps(data, default=str)) from e
