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

"""Model transport interface and response normalisation."""

from victor_nextedit.transport.protocol import (
    ChatRequest,
    ChatResponse,
    FimRequest,
    ModelChunk,
    ModelTransport,
    ServerSentEvents,
)
from victor_nextedit.transport.stream import (
    iter_sse,
    normalize_stream,
    open_chat,
    parse_sse_line,
    parse_usage,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "FimRequest",
    "ModelChunk",
    "ModelTransport",
    "ServerSentEvents",
    "iter_sse",
    "normalize_stream",
    "open_chat",
    "parse_sse_line",
    "parse_usage",
]
