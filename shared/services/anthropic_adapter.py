"""
Anthropic (Claude) Adapter

Encapsulates all Claude API interaction, mapping the provider-neutral
LLMRequest used by LLMService onto the Anthropic Messages API.

Handles:
- System prompt as the top-level `system` field
- Role mapping and merging of consecutive same-role turns
- Image attachments (data: URLs as base64 blocks, http(s) URLs as url blocks)
- Response parsing into plain text, whole or as streamed text deltas
"""

import logging
import re
from typing import Any, AsyncIterator, Dict, List

import anthropic

from shared.services.llm_service import LLMRequest

logger = logging.getLogger(__name__)

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5"

_DATA_URL = re.compile(r"^data:(?P<media_type>image/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def _image_block(url: str) -> Dict[str, Any]:
    match = _DATA_URL.match(url)
    if match:
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": match.group("media_type"),
                "data": match.group("data"),
            },
        }
    return {"type": "image", "source": {"type": "url", "url": url}}


class AnthropicAdapter:
    """Adapter that translates LLMRequest calls to Anthropic's Messages API."""

    def __init__(self, api_key: str, timeout: int = 60, model: str = DEFAULT_CLAUDE_MODEL):
        self.model = model
        self.async_client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    def _build_messages(self, request: LLMRequest) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        for turn in request.messages:
            if messages and messages[-1]["role"] == turn.role:
                messages[-1]["content"][0]["text"] += "\n\n" + turn.content
            else:
                messages.append({"role": turn.role, "content": [{"type": "text", "text": turn.content}]})

        # The Messages API requires the conversation to open with a user turn.
        if not messages or messages[0]["role"] != "user":
            messages.insert(0, {"role": "user", "content": [{"type": "text", "text": "(conversation start)"}]})

        if request.image_data_url:
            last_user = next(m for m in reversed(messages) if m["role"] == "user")
            last_user["content"].insert(0, _image_block(request.image_data_url))
        return messages

    def _build_kwargs(self, request: LLMRequest) -> Dict[str, Any]:
        """Build kwargs for anthropic messages.create()."""
        return {
            "model": self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "system": request.system_prompt,
            "messages": self._build_messages(request),
        }

    @staticmethod
    def _parse_response(response: Any) -> str:
        """Concatenate the text blocks of a Messages API response."""
        return "".join(block.text for block in response.content if block.type == "text")

    async def complete(self, request: LLMRequest) -> str:
        response = await self.async_client.messages.create(**self._build_kwargs(request))
        return self._parse_response(response)

    async def open_stream(self, request: LLMRequest) -> AsyncIterator[str]:
        """Open a streamed call; the returned iterator yields text deltas."""
        stream = await self.async_client.messages.create(**self._build_kwargs(request), stream=True)
        return _iter_text_deltas(stream)


async def _iter_text_deltas(stream) -> AsyncIterator[str]:
    try:
        async for event in stream:
            if event.type != "content_block_delta":
                continue
            delta = event.delta
            if getattr(delta, "type", None) == "text_delta" and delta.text:
                yield delta.text
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            await close()
