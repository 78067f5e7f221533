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

"""Core data types shared by the next-edit engine.

Value types on the request path are plain dataclasses (most of them frozen);
model descriptions are pydantic models since they usually come from user
configuration.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class Position:
    """Zero-based position in a document."""

    line: int
    character: int


@dataclass(frozen=True)
class Range:
    """Half-open range between two positions."""

    start: Position
    end: Position

    @classmethod
    def empty(cls, position: Position) -> "Range":
        return cls(start=position, end=position)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


class RequestState(str, Enum):
    """Lifecycle of a completion request within one session."""

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CompletionStyle(str, Enum):
    """How the model is asked for a completion."""

    FIM = "fim"  # prefix/suffix, streamed token by token
    CHAT = "chat"  # system + user messages


class SnippetSource(str, Enum):
    """Where a context snippet came from."""

    RECENTLY_VIEWED = "recently_viewed"
    STATIC = "static"
    RECENTLY_EDITED = "recently_edited"
    VISIBLE_CODE = "visible_code"


class DiffSide(str, Enum):
    OLD = "old"
    NEW = "new"


@dataclass(frozen=True)
class DocumentSnapshot:
    """One entry in a document's history stack.

    The syntax tree is an opaque handle produced by the syntax parser.
    """

    document_id: str
    content: str
    syntax_tree: Any = None
    captured_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class PreviousEdit:
    """An edit the user made, stored as a unified diff."""

    diff_text: str
    file_uri: str
    workspace_uri: str = ""
    timestamp: float = field(default_factory=lambda: time.time() * 1000)
    key: str = ""


@dataclass(frozen=True)
class VisibleRange:
    """Lines currently visible in an editor viewport."""

    start_line: int
    end_line: int
    content: str


@dataclass(frozen=True)
class DiffInfo:
    """Diff metadata for editors that show a revision comparison."""

    scheme: str
    side: DiffSide
    original_path: str
    git_ref: Optional[str] = None


@dataclass
class VisibleEditorSnapshot:
    """What one visible editor shows right now."""

    file_path: str
    relative_path: str
    language_id: str
    is_active: bool
    visible_ranges: list[VisibleRange] = field(default_factory=list)
    cursor_position: Optional[Position] = None
    selections: list[Range] = field(default_factory=list)
    diff_info: Optional[DiffInfo] = None


@dataclass
class VisibleCodeContext:
    """All visible editors captured at one instant."""

    timestamp: float
    editors: list[VisibleEditorSnapshot] = field(default_factory=list)


@dataclass(frozen=True)
class CodeSnippet:
    """A piece of code offered to the model as context."""

    file_path: str
    content: str
    source: SnippetSource = SnippetSource.RECENTLY_VIEWED


@dataclass(frozen=True)
class RecentlyEditedRange:
    """Lines the user recently changed in a file."""

    file_path: str
    start_line: int
    end_line: int
    timestamp: float
    lines: tuple[str, ...] = ()


@dataclass
class CompletionContext:
    """Everything a model strategy needs to build its prompt.

    Built fresh for every request and never cached.
    """

    current_file_content: str
    editable_region_start_line: int
    editable_region_end_line: int
    cursor_position: Position
    file_path: str
    language_shorthand: str
    language_id: str = "text"
    recently_viewed_snippets: list[CodeSnippet] = field(default_factory=list)
    edit_diff_history: list[str] = field(default_factory=list)

    @property
    def lines(self) -> list[str]:
        return self.current_file_content.split("\n")

    def split_at_cursor(self) -> tuple[str, str]:
        return split_at_position(self.current_file_content, self.cursor_position)


@dataclass(frozen=True)
class CompletionRequest:
    """A qualifying trigger from the editor host."""

    document_id: str
    file_path: str
    content: str
    cursor: Position
    language_id: Optional[str] = None
    workspace_dir: Optional[str] = None


@dataclass(frozen=True)
class CompletionEdit:
    """The edit a strategy extracted from raw model output."""

    text: str
    range: Range
    style: CompletionStyle = CompletionStyle.FIM

    @property
    def is_insertion(self) -> bool:
        return self.range.is_empty


@dataclass(frozen=True)
class UsageSummary:
    """Token and cost counters reported by the transport."""

    cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0

    def __add__(self, other: "UsageSummary") -> "UsageSummary":
        return UsageSummary(
            cost=self.cost + other.cost,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_write_tokens=self.cache_write_tokens + other.cache_write_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
        )


@dataclass
class CompletionResult:
    """A completion handed to the editor host."""

    completion_id: str
    session_id: str
    edit: CompletionEdit
    strategy: str
    usage: UsageSummary = field(default_factory=UsageSummary)
    latency_ms: float = 0.0
    from_cache: bool = False


class ModelCapabilities(BaseModel):
    """Explicit capability flags; None means "not declared"."""

    next_edit: Optional[bool] = Field(default=None, description="Model predicts next edits")
    fim: Optional[bool] = Field(default=None, description="Model supports fill-in-the-middle")


class ModelDescription(BaseModel):
    """The model selected for autocomplete."""

    model: str = Field(description="Model identifier as sent to the transport")
    title: Optional[str] = Field(default=None, description="Display title")
    provider: Optional[str] = Field(default=None, description="Provider name")
    capabilities: ModelCapabilities = Field(default_factory=ModelCapabilities)


def split_at_position(content: str, position: Position) -> tuple[str, str]:
    """Split text into (prefix, suffix) at a line/character position.

    Positions past the end of a line or document are clamped.
    """
    lines = content.split("\n")
    if not lines:
        return "", ""
    line = max(0, min(position.line, len(lines) - 1))
    character = max(0, min(position.character, len(lines[line])))

    offset = sum(len(text) + 1 for text in lines[:line]) + character
    return content[:offset], content[offset:]
