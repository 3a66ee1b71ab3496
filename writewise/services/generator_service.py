"""
Generator Service - Centralized interface for all text generator calls.

Routes calls to the configured provider (Anthropic by default, Google Gemini,
or OpenAI) and returns a GeneratorResult with the reply text, token usage,
and latency. Transient failures (timeouts, rate limits) are retried with
exponential backoff; everything else surfaces as a GeneratorError subclass.
"""

import asyncio
import json
import time
import logging
from typing import Any, Callable, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from openai import OpenAI, OpenAIError, RateLimitError, APITimeoutError

from writewise.config import Settings, get_settings
from writewise.exceptions import (
    ConfigurationError,
    GeneratorContentError,
    GeneratorError,
    GeneratorRateLimitError,
    GeneratorServiceError,
    GeneratorTimeoutError,
)
from writewise.models.generation import GeneratorMessage, GeneratorResult

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("anthropic", "google", "openai")

_RETRYABLE = (GeneratorTimeoutError, GeneratorRateLimitError)


def to_generator_messages(messages: list[Any]) -> list[GeneratorMessage]:
    """Accept GeneratorMessage objects or {"role", "content"} dicts."""
    return [m if isinstance(m, GeneratorMessage) else GeneratorMessage.model_validate(m) for m in messages]


class GeneratorService:
    """
    Service for making generator calls with retry logic and error handling.

    Only the active provider's client is created.
    """

    def __init__(
        self,
        *,
        provider: str,
        model_id: str,
        anthropic_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        max_tokens: int = 1024,
        max_retries: int = 3,
        initial_retry_delay: float = 1.0,
        timeout: int = 60,
    ):
        if provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError("llm_provider", f"unsupported provider '{provider}'")

        self.provider = provider
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.timeout = timeout

        self.anthropic_adapter = None
        self.gemini_client = None
        self.openai_client = None

        if provider == "anthropic":
            if not anthropic_api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY", "required when provider is anthropic")
            from writewise.services.anthropic_adapter import AnthropicAdapter
            self.anthropic_adapter = AnthropicAdapter(
                api_key=anthropic_api_key, timeout=timeout, model=model_id, max_tokens=max_tokens
            )
        elif provider == "google":
            if not google_api_key:
                raise ConfigurationError("GOOGLE_AI_API_KEY", "required when provider is google")
            self.gemini_client = genai.Client(
                api_key=google_api_key,
                http_options=types.HttpOptions(timeout=timeout * 1000),
            )
        else:
            if not openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY", "required when provider is openai")
            self.openai_client = OpenAI(api_key=openai_api_key, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GeneratorService":
        settings = settings or get_settings()
        return cls(
            provider=settings.llm_provider,
            model_id=settings.resolved_model,
            anthropic_api_key=settings.anthropic_api_key,
            google_api_key=settings.google_ai_api_key,
            openai_api_key=settings.openai_api_key,
            max_tokens=settings.llm_max_tokens,
            max_retries=settings.llm_max_retries,
            initial_retry_delay=settings.llm_initial_retry_delay,
            timeout=settings.llm_timeout_seconds,
        )

    # ─── Primary entry points ─────────────────────────────────────────

    def generate(
        self,
        system_prompt: str,
        messages: list[Any],
        max_tokens: Optional[int] = None,
    ) -> GeneratorResult:
        """
        Generate a reply to `messages` under `system_prompt`.

        Raises GeneratorTimeoutError / GeneratorRateLimitError after retries are
        exhausted, GeneratorContentError for refusals or empty replies, and
        GeneratorServiceError for anything else.
        """
        conversation = to_generator_messages(messages)
        if not conversation:
            raise GeneratorServiceError("At least one message is required", model_name=self.model_id)

        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "starting",
            "provider": self.provider,
            "model": self.model_id,
            "params": {
                "message_count": len(conversation),
                "system_prompt_length": len(system_prompt),
            }
        }))

        if self.provider == "anthropic":
            call = lambda: self.anthropic_adapter.call_sync(system_prompt, conversation, max_tokens)
        elif self.provider == "google":
            call = lambda: self._call_gemini(system_prompt, conversation, max_tokens)
        else:
            call = lambda: self._call_chat_completions(system_prompt, conversation, max_tokens)

        return self._execute_with_retry(call, f"{self.provider}-{self.model_id}")

    async def agenerate(
        self,
        system_prompt: str,
        messages: list[Any],
        max_tokens: Optional[int] = None,
    ) -> GeneratorResult:
        """Run `generate` in the default executor so the event loop stays free."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.generate(system_prompt, messages, max_tokens),
        )

    # ─── OpenAI Chat Completions ──────────────────────────────────────

    def _call_chat_completions(
        self,
        system_prompt: str,
        messages: list[GeneratorMessage],
        max_tokens: Optional[int] = None,
    ) -> GeneratorResult:
        """Call OpenAI Chat Completions."""
        kwargs = {
            "model": self.model_id,
            "messages": [{"role": "system", "content": system_prompt}]
            + [{"role": m.role, "content": m.content} for m in messages],
            "max_completion_tokens": max_tokens or self.max_tokens,
            "timeout": self.timeout,
        }
        start_time = time.time()
        try:
            response = self.openai_client.chat.completions.create(**kwargs)
        except RateLimitError as e:
            raise GeneratorRateLimitError() from e
        except APITimeoutError as e:
            raise GeneratorTimeoutError(self.timeout, model_name=self.model_id) from e
        except OpenAIError as e:
            raise GeneratorServiceError(f"OpenAI API error: {e}", model_name=self.model_id) from e
        latency_ms = int((time.time() - start_time) * 1000)

        choice = response.choices[0]
        refusal = getattr(choice.message, "refusal", None)
        if refusal:
            raise GeneratorContentError(f"model refused: {refusal}", model_name=self.model_id)
        text = choice.message.content or ""
        if not text.strip():
            raise GeneratorContentError("no text content in response", model_name=self.model_id)

        usage = getattr(response, "usage", None)
        return GeneratorResult(
            text=text,
            provider="openai",
            model=self.model_id,
            input_tokens=getattr(usage, "prompt_tokens", None),
            output_tokens=getattr(usage, "completion_tokens", None),
            latency_ms=latency_ms,
        )

    # ─── Gemini ───────────────────────────────────────────────────────

    def _call_gemini(
        self,
        system_prompt: str,
        messages: list[GeneratorMessage],
        max_tokens: Optional[int] = None,
    ) -> GeneratorResult:
        """Call Google Gemini. Gemini names the assistant role "model"."""
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
        ]
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=max_tokens or self.max_tokens,
        )
        start_time = time.time()
        try:
            response = self.gemini_client.models.generate_content(
                model=self.model_id, contents=contents, config=config
            )
        except httpx.TimeoutException as e:
            raise GeneratorTimeoutError(self.timeout, model_name=self.model_id) from e
        except genai_errors.APIError as e:
            if getattr(e, "code", None) == 429:
                raise GeneratorRateLimitError() from e
            raise GeneratorServiceError(f"Gemini API error: {e}", model_name=self.model_id) from e
        latency_ms = int((time.time() - start_time) * 1000)

        text = response.text
        if not text or not text.strip():
            raise GeneratorContentError("no text content in response", model_name=self.model_id)

        usage = getattr(response, "usage_metadata", None)
        return GeneratorResult(
            text=text,
            provider="google",
            model=self.model_id,
            input_tokens=getattr(usage, "prompt_token_count", None),
            output_tokens=getattr(usage, "candidates_token_count", None),
            latency_ms=latency_ms,
        )

    # ─── Helpers ──────────────────────────────────────────────────────

    def _execute_with_retry(self, api_call_fn: Callable[[], GeneratorResult], model_name: str) -> GeneratorResult:
        """Execute API call with exponential backoff retry logic."""
        last_error: Optional[GeneratorError] = None
        delay = self.initial_retry_delay
        start_time = time.time()

        for attempt in range(self.max_retries):
            try:
                result = api_call_fn()
                duration_ms = int((time.time() - start_time) * 1000)

                logger.info(json.dumps({
                    "step": "LLM_CALL",
                    "status": "complete",
                    "model": model_name,
                    "output": {
                        "response_length": len(result.text),
                        "input_tokens": result.input_tokens,
                        "output_tokens": result.output_tokens,
                    },
                    "duration_ms": duration_ms,
                    "attempts": attempt + 1
                }))

                if attempt > 0:
                    logger.info(f"{model_name} call succeeded on attempt {attempt + 1}")
                return result

            except _RETRYABLE as e:
                last_error = e
                if attempt + 1 < self.max_retries:
                    logger.warning(
                        f"{model_name} {type(e).__name__} (attempt {attempt + 1}/{self.max_retries}). "
                        f"Retrying in {delay}s..."
                    )
                    time.sleep(delay)
                    delay *= 2

            except GeneratorError as e:
                logger.error(f"{model_name} generator error: {e.message}")
                raise

            except Exception as e:
                logger.error(f"{model_name} unexpected error: {str(e)}")
                raise GeneratorServiceError(
                    f"{model_name} unexpected error: {str(e)}", model_name=model_name
                ) from e

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "failed",
            "model": model_name,
            "error": str(last_error),
            "duration_ms": duration_ms,
            "attempts": self.max_retries
        }))
        if last_error is None:
            raise GeneratorServiceError(f"{model_name} was not attempted (max_retries=0)", model_name=model_name)
        raise last_error
