"""
Anthropic (Claude) Adapter

Encapsulates all Claude API interaction for GeneratorService.

Handles:
- System prompt + conversation -> Messages API kwargs
- Response parsing into a GeneratorResult (text, usage, latency)
- Refusals and empty replies -> GeneratorContentError
- SDK timeout / rate-limit / API errors -> the coach error hierarchy
"""

import time
import logging
from typing import Any, Dict, Optional

import anthropic

from writewise.exceptions import (
    GeneratorContentError,
    GeneratorRateLimitError,
    GeneratorServiceError,
    GeneratorTimeoutError,
)
from writewise.models.generation import GeneratorMessage, GeneratorResult

logger = logging.getLogger(__name__)

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 1024


class AnthropicAdapter:
    """Adapter that maps generator calls onto Anthropic's Messages API."""

    def __init__(
        self,
        api_key: str,
        timeout: int = 60,
        model: str = DEFAULT_CLAUDE_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        # GeneratorService owns retries
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.async_client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _build_kwargs(
        self,
        system_prompt: str,
        messages: list[GeneratorMessage],
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Build kwargs for anthropic messages.create()."""
        return {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "system": system_prompt,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }

    def _parse_response(self, response: Any, latency_ms: int) -> GeneratorResult:
        """Parse an Anthropic response into a GeneratorResult."""
        if getattr(response, "stop_reason", None) == "refusal":
            raise GeneratorContentError("model refused to answer", model_name=self.model)

        output_text = ""
        for block in response.content:
            if block.type == "text":
                output_text += block.text

        if not output_text.strip():
            raise GeneratorContentError("no text content in response", model_name=self.model)

        usage = getattr(response, "usage", None)
        return GeneratorResult(
            text=output_text,
            provider="anthropic",
            model=self.model,
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
            latency_ms=latency_ms,
        )

    def _translate_error(self, error: anthropic.APIError) -> Exception:
        if isinstance(error, anthropic.APITimeoutError):
            return GeneratorTimeoutError(self.timeout, model_name=self.model)
        if isinstance(error, anthropic.RateLimitError):
            retry_after = None
            headers = getattr(getattr(error, "response", None), "headers", None) or {}
            if headers.get("retry-after", "").isdigit():
                retry_after = int(headers["retry-after"])
            return GeneratorRateLimitError(retry_after=retry_after)
        return GeneratorServiceError(f"Anthropic API error: {error}", model_name=self.model)

    async def call_async(
        self,
        system_prompt: str,
        messages: list[GeneratorMessage],
        max_tokens: Optional[int] = None,
    ) -> GeneratorResult:
        """Async call to Claude."""
        kwargs = self._build_kwargs(system_prompt, messages, max_tokens)
        start_time = time.time()
        try:
            response = await self.async_client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise self._translate_error(e) from e
        return self._parse_response(response, int((time.time() - start_time) * 1000))

    def call_sync(
        self,
        system_prompt: str,
        messages: list[GeneratorMessage],
        max_tokens: Optional[int] = None,
    ) -> GeneratorResult:
        """Sync call to Claude."""
        kwargs = self._build_kwargs(system_prompt, messages, max_tokens)
        start_time = time.time()
        try:
            response = self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise self._translate_error(e) from e
        return self._parse_response(response, int((time.time() - start_time) * 1000))
