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

"""Inline completion and next-edit prediction engine.

Turns editor activity into model requests and model output into edits:
- Fill-in-the-middle completions at the cursor
- Next-edit predictions that rewrite a region around the cursor
- Context from visible editors, recent edits and edit history
- Single-flight requests per session with adaptive debouncing

Package Structure:
    protocol.py     - Data model shared by all components
    host.py         - Editor host and collaborator protocols
    config.py       - Settings (env + YAML)
    streaming/      - Multicast cancellable stream
    history/        - Document history and edit history cache
    context/        - Visible code capture, snippet sources, assembler
    strategies/     - Per-model-family prompts and output parsing
    transport/      - Model transport interface and SSE normalisation
    orchestrator/   - Request lifecycle and post-processing

Usage:
    from victor_nextedit import CompletionOrchestrator, ModelDescription

    orchestrator = CompletionOrchestrator(
        host, transport, ModelDescription(model="codestral-latest")
    )
    orchestrator.on_document_changed(uri, content)
    result = await orchestrator.request_completion("editor-1", request)
"""

from victor_nextedit.config import NextEditSettings, get_settings, load_settings, reset_settings
from victor_nextedit.context import ContextAssembler
from victor_nextedit.errors import (
    CompletionParseError,
    ContextUnavailableError,
    InvariantViolation,
    NextEditError,
    TransportError,
)
from victor_nextedit.history import (
    DocumentHistoryTracker,
    PrevEditCache,
    get_document_history_tracker,
    get_prev_edit_cache,
    reset_document_history_tracker,
    reset_prev_edit_cache,
)
from victor_nextedit.host import AccessPolicy, EditorHost, EditorViewport
from victor_nextedit.orchestrator import CompletionOrchestrator
from victor_nextedit.parsing import TreeSitterParser
from victor_nextedit.protocol import (
    CompletionContext,
    CompletionEdit,
    CompletionRequest,
    CompletionResult,
    ModelCapabilities,
    ModelDescription,
    Position,
    PreviousEdit,
    Range,
    RequestState,
)
from victor_nextedit.strategies import (
    ModelStrategy,
    StrategyRegistry,
    get_strategy_registry,
    reset_strategy_registry,
)
from victor_nextedit.streaming import MulticastStream
from victor_nextedit.transport import ChatRequest, FimRequest, ModelChunk, ModelTransport

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "CompletionOrchestrator",
    "ContextAssembler",
    "MulticastStream",
    # Data model
    "CompletionContext",
    "CompletionEdit",
    "CompletionRequest",
    "CompletionResult",
    "ModelCapabilities",
    "ModelDescription",
    "Position",
    "PreviousEdit",
    "Range",
    "RequestState",
    # Host
    "AccessPolicy",
    "EditorHost",
    "EditorViewport",
    # Transport
    "ChatRequest",
    "FimRequest",
    "ModelChunk",
    "ModelTransport",
    # History
    "DocumentHistoryTracker",
    "PrevEditCache",
    "get_document_history_tracker",
    "get_prev_edit_cache",
    "reset_document_history_tracker",
    "reset_prev_edit_cache",
    # Strategies
    "ModelStrategy",
    "StrategyRegistry",
    "get_strategy_registry",
    "reset_strategy_registry",
    # Parsing
    "TreeSitterParser",
    # Config
    "NextEditSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
    # Errors
    "NextEditError",
    "TransportError",
    "CompletionParseError",
    "ContextUnavailableError",
    "InvariantViolation",
]
