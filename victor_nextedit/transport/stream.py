# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Normalisation of transport responses into a stream of ModelChunk.

Handles single responses, decoded streams and raw server-sent events.
Malformed JSON in an event is skipped; an ``error`` payload raises
TransportError.
"""

import inspect
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Optional, Union

from victor_nextedit.errors import TransportError
from victor_nextedit.protocol import UsageSummary
from victor_nextedit.transport.protocol import (
    ChatRequest,
    ChatResponse,
    ChatResult,
    ModelChunk,
    ModelTransport,
    ServerSentEvents,
)

logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"


def parse_usage(payload: dict[str, Any]) -> Optional[UsageSummary]:
    """Usage summary from a response payload, if it carries one.

    Understands OpenAI-style ``usage`` objects (``prompt_tokens``,
    ``completion_tokens``, ``prompt_tokens_details.cached_tokens``) and
    ``{"type": "usage", ...}`` chunks with camelCase counters.
    """
    if payload.get("type") == "usage":
        return UsageSummary(
            cost=float(payload.get("totalCost") or payload.get("cost") or 0.0),
            input_tokens=int(payload.get("inputTokens") or 0),
            output_tokens=int(payload.get("outputTokens") or 0),
            cache_write_tokens=int(payload.get("cacheWriteTokens") or 0),
            cache_read_tokens=int(payload.get("cacheReadTokens") or 0),
        )

    usage = payload.get("usage")
    if not isinstance(usage, dict):
        return None
    details = usage.get("prompt_tokens_details") or {}
    return UsageSummary(
        cost=float(usage.get("cost") or 0.0),
        input_tokens=int(usage.get("prompt_tokens") or 0),
        output_tokens=int(usage.get("completion_tokens") or 0),
        # FIM endpoints never report cache writes
        cache_write_tokens=int(usage.get("cache_creation_input_tokens") or 0),
        cache_read_tokens=int(details.get("cached_tokens") or 0),
    )


def parse_payload(payload: dict[str, Any]) -> Optional[ModelChunk]:
    """Turn one decoded JSON payload into a chunk (None if it carries nothing)."""
    if "error" in payload and payload["error"]:
        error = payload["error"]
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        raise TransportError(f"Model stream error: {message}")

    text = ""
    if payload.get("type") == "text":
        text = payload.get("text") or ""
    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        choice = choices[0] or {}
        delta = choice.get("delta") or {}
        message = choice.get("message") or {}
        text = delta.get("content") or choice.get("text") or message.get("content") or ""
    elif "content" in payload and isinstance(payload["content"], str):
        text = payload["content"]

    usage = parse_usage(payload)
    if not text and usage is None:
        return None
    return ModelChunk(text=text, usage=usage)


def parse_sse_line(line: str) -> Union[ModelChunk, str, None]:
    """Decode one SSE line.

    Returns:
        A chunk, SSE_DONE at the end marker, or None for lines to skip
    """
    line = line.strip()
    if not line or line.startswith(":") or not line.startswith("data:"):
        return None
    data = line[len("data:") :].strip()
    if data == SSE_DONE:
        return SSE_DONE
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug(f"Skipping malformed SSE payload: {data[:80]}")
        return None
    if not isinstance(payload, dict):
        return None
    return parse_payload(payload)


async def iter_sse(lines: AsyncIterable[str]) -> AsyncIterator[ModelChunk]:
    """Chunks from raw SSE lines, stopping at ``data: [DONE]``."""
    async for line in lines:
        parsed = parse_sse_line(line)
        if parsed is None:
            continue
        if parsed == SSE_DONE:
            return
        yield parsed


def _to_chunk(item: Any) -> Optional[ModelChunk]:
    if isinstance(item, ModelChunk):
        return item
    if isinstance(item, str):
        return ModelChunk(text=item) if item else None
    if isinstance(item, UsageSummary):
        return ModelChunk(usage=item)
    if isinstance(item, dict):
        return parse_payload(item)
    raise TransportError(f"Unsupported stream item: {type(item).__name__}")


async def _aclose(source: Any) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


async def normalize_stream(result: ChatResult) -> AsyncIterator[ModelChunk]:
    """Yield ModelChunk values for any supported response shape.

    The wrapped source is closed when this generator is closed, so that
    closing the normalised stream stops the model call.
    """
    if isinstance(result, ChatResponse):
        if result.content or result.usage is not None:
            yield ModelChunk(text=result.content, usage=result.usage)
        return

    if isinstance(result, ServerSentEvents):
        source: Any = iter_sse(result.lines)
        owned = [source, result.lines]
    else:
        source = result
        owned = [source]

    try:
        async for item in source:
            chunk = _to_chunk(item)
            if chunk is not None:
                yield chunk
    finally:
        for closable in owned:
            await _aclose(closable)


async def open_chat(transport: ModelTransport, request: ChatRequest) -> ChatResult:
    """Call transport.chat, accepting coroutine and async-generator styles."""
    result = transport.chat(request)
    if inspect.isawaitable(result):
        result = await result
    return result
