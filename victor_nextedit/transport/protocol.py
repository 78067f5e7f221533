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

"""Language-model transport interface.

The engine never talks HTTP itself. A transport supplied by the host sends
FIM and chat requests and hands back one of these response shapes:

- An async iterator of text or ModelChunk values (already decoded stream)
- A ChatResponse (single, non-streamed answer)
- ServerSentEvents wrapping raw ``data: ...`` lines (undecoded stream)
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, Optional, Protocol, Union, runtime_checkable

from victor_nextedit.protocol import UsageSummary


@dataclass(frozen=True)
class FimRequest:
    """Fill-in-the-middle request; prefix and suffix are sent unchanged."""

    prefix: str
    suffix: str
    max_tokens: int = 256
    temperature: float = 0.0
    stream: bool = True
    stop: tuple[str, ...] = ()
    model: Optional[str] = None


@dataclass(frozen=True)
class ChatRequest:
    """Chat request with role/content messages."""

    messages: list[dict[str, str]]
    stream: bool = True
    max_tokens: Optional[int] = None
    temperature: float = 0.0
    model: Optional[str] = None


@dataclass(frozen=True)
class ModelChunk:
    """One increment of a streamed response.

    A chunk carries text, a usage summary, or both; the usage summary
    normally arrives with the last chunk.
    """

    text: str = ""
    usage: Optional[UsageSummary] = None


@dataclass(frozen=True)
class ChatResponse:
    """A complete, non-streamed chat answer."""

    content: str
    usage: Optional[UsageSummary] = None


@dataclass
class ServerSentEvents:
    """Raw server-sent-event lines still to be decoded."""

    lines: AsyncIterable[str]
    metadata: dict[str, Any] = field(default_factory=dict)


StreamItem = Union[str, ModelChunk, dict]
ChatResult = Union[ChatResponse, ServerSentEvents, AsyncIterator[StreamItem]]


@runtime_checkable
class ModelTransport(Protocol):
    """Sends requests to a language model.

    Cancelling the task that iterates a returned stream, or closing the
    stream, must stop the underlying model call.
    """

    def stream_fim(self, request: FimRequest) -> AsyncIterator[StreamItem]: ...

    async def chat(self, request: ChatRequest) -> ChatResult: ...
