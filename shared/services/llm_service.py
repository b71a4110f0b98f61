"""
LLM Service: Centralized interface for all language-model calls.

Routes calls to OpenAI Chat Completions (default) or to the Anthropic adapter
based on the configured provider.

Two entry points:
- `complete()` returns the whole reply text.
- `stream()` yields reply fragments as they arrive.

Rate-limit and timeout failures are retried with exponential backoff; every
other failure is classified and raised immediately.
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Literal, Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from shared.services.provider_errors import classify_provider_error
from shared.utils.exceptions import ProviderError

logger = logging.getLogger(__name__)


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class LLMRequest(BaseModel):
    """Provider-neutral request: system instructions, ordered history, optional image."""

    system_prompt: str
    messages: List[ChatTurn] = Field(default_factory=list)
    image_data_url: Optional[str] = Field(default=None, description="data: URL or https URL of an attached image")
    temperature: float = 0.7
    max_tokens: int = 250


class LLMService:
    """
    Service for making LLM API calls with retry logic and error classification.

    Both `provider` and `model_id` are REQUIRED; they come from Settings.
    """

    def __init__(
        self,
        api_key: str,
        *,
        provider: str,
        model_id: str,
        anthropic_api_key: Optional[str] = None,
        max_retries: int = 3,
        initial_retry_delay: float = 1.0,
        timeout: int = 60,
    ):
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.timeout = timeout
        self.provider = provider
        self.model_id = model_id

        self.anthropic_adapter = None
        if anthropic_api_key:
            from shared.services.anthropic_adapter import AnthropicAdapter
            self.anthropic_adapter = AnthropicAdapter(
                api_key=anthropic_api_key, timeout=timeout, model=model_id
            )

    # ─── Primary entry points ─────────────────────────────────────────

    async def complete(self, request: LLMRequest) -> str:
        """Whole reply text. Empty replies raise ProviderError."""
        self._log_start(request, streaming=False)

        if self._uses_anthropic():
            api_call = lambda: self._require_anthropic().complete(request)
        else:
            api_call = lambda: self._openai_complete(request)

        text = await self._execute_with_retry(api_call, self.model_id)
        if not text or not text.strip():
            raise ProviderError(f"{self.model_id} returned an empty response", provider=self.provider)
        return text

    async def stream(self, request: LLMRequest) -> AsyncIterator[str]:
        """
        Yield reply fragments as they arrive.

        Only opening the stream is retried. A failure after fragments were
        emitted is classified and raised as is. Closing this generator early
        closes the underlying provider stream.
        """
        self._log_start(request, streaming=True)
        start_time = time.time()

        if self._uses_anthropic():
            open_call = lambda: self._require_anthropic().open_stream(request)
        else:
            open_call = lambda: self._openai_open_stream(request)

        fragments = await self._execute_with_retry(open_call, self.model_id)
        emitted = 0
        try:
            async for fragment in fragments:
                if fragment:
                    emitted += len(fragment)
                    yield fragment
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"{self.model_id} stream failed after {emitted} chars: {str(e)}")
            raise classify_provider_error(e, self.provider) from e
        finally:
            await fragments.aclose()

        if emitted == 0:
            raise ProviderError(f"{self.model_id} returned an empty stream", provider=self.provider)

        logger.info(json.dumps({
            "step": "LLM_STREAM",
            "status": "complete",
            "model": self.model_id,
            "output": {"response_length": emitted},
            "duration_ms": int((time.time() - start_time) * 1000),
        }))

    # ─── OpenAI Chat Completions ──────────────────────────────────────

    def _build_openai_messages(self, request: LLMRequest) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": request.system_prompt}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in request.messages)

        if request.image_data_url:
            image_part = {"type": "image_url", "image_url": {"url": request.image_data_url}}
            last_user = next((m for m in reversed(messages) if m["role"] == "user"), None)
            if last_user is None:
                messages.append({"role": "user", "content": [image_part]})
            else:
                last_user["content"] = [{"type": "text", "text": last_user["content"]}, image_part]
        return messages

    def _openai_kwargs(self, request: LLMRequest) -> Dict[str, Any]:
        return {
            "model": self.model_id,
            "messages": self._build_openai_messages(request),
            "max_completion_tokens": request.max_tokens,
            "temperature": request.temperature,
        }

    async def _openai_complete(self, request: LLMRequest) -> str:
        response = await self.client.chat.completions.create(**self._openai_kwargs(request))
        return response.choices[0].message.content or ""

    async def _openai_open_stream(self, request: LLMRequest) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(**self._openai_kwargs(request), stream=True)
        return _iter_openai_chunks(stream)

    # ─── Anthropic ────────────────────────────────────────────────────

    def _uses_anthropic(self) -> bool:
        return self.provider == "anthropic"

    def _require_anthropic(self):
        if not self.anthropic_adapter:
            raise ProviderError("Anthropic adapter not configured (missing API key)", provider=self.provider)
        return self.anthropic_adapter

    # ─── Helpers ──────────────────────────────────────────────────────

    def _log_start(self, request: LLMRequest, streaming: bool) -> None:
        logger.info(json.dumps({
            "step": "LLM_STREAM" if streaming else "LLM_CALL",
            "status": "starting",
            "model": self.model_id,
            "params": {
                "provider": self.provider,
                "history_length": len(request.messages),
                "has_image": request.image_data_url is not None,
                "max_tokens": request.max_tokens,
            }
        }))

    async def _execute_with_retry(self, api_call_fn: Callable[[], Awaitable[Any]], model_name: str) -> Any:
        """Execute API call with exponential backoff retry logic."""
        last_error: Optional[ProviderError] = None
        delay = self.initial_retry_delay
        start_time = time.time()

        for attempt in range(self.max_retries):
            try:
                result = await api_call_fn()
                duration_ms = int((time.time() - start_time) * 1000)

                logger.info(json.dumps({
                    "step": "LLM_CALL",
                    "status": "complete",
                    "model": model_name,
                    "output": {"response_length": len(result) if isinstance(result, str) else None},
                    "duration_ms": duration_ms,
                    "attempts": attempt + 1
                }))

                if attempt > 0:
                    logger.info(f"{model_name} call succeeded on attempt {attempt + 1}")
                return result

            except Exception as e:
                error = classify_provider_error(e, self.provider)
                if not error.retryable:
                    logger.error(f"{model_name} API error [{error.code}]: {str(e)}")
                    raise error from e

                last_error = error
                if attempt + 1 < self.max_retries:
                    logger.warning(
                        f"{model_name} {error.code} (attempt {attempt + 1}/{self.max_retries}). "
                        f"Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                    delay *= 2

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "failed",
            "model": model_name,
            "error": last_error.code if last_error else None,
            "duration_ms": duration_ms,
            "attempts": self.max_retries
        }))
        if last_error is None:
            raise ProviderError(f"{model_name} was not called (max_retries={self.max_retries})", provider=self.provider)
        raise last_error from last_error.original_error


async def _iter_openai_chunks(stream) -> AsyncIterator[str]:
    try:
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            await close()
