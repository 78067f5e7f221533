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

"""Interfaces the engine expects from its surroundings.

The editor host, the ignore/security policy, syntax parsing and the
cost/telemetry sinks are all supplied by the embedding application. Only
the shapes are defined here.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from victor_nextedit.protocol import CodeSnippet, CompletionEdit, Position, Range, UsageSummary


@dataclass
class EditorViewport:
    """One visible editor as reported by the host.

    Attributes:
        uri: Document URI, e.g. ``file:///repo/a.py`` or ``git:/repo/a.py?...``
        language_id: Host language identifier
        visible_ranges: (start_line, end_line) pairs, inclusive
        cursor: Primary cursor, if the editor has focus
        selections: Current selections
        is_active: Whether this is the focused editor
    """

    uri: str
    language_id: str = "text"
    visible_ranges: list[tuple[int, int]] = field(default_factory=list)
    cursor: Optional[Position] = None
    selections: list[Range] = field(default_factory=list)
    is_active: bool = False


@runtime_checkable
class EditorHost(Protocol):
    """The editor embedding the engine."""

    def visible_editors(self) -> list[EditorViewport]: ...

    async def read_lines(self, uri: str, start_line: int, end_line: int) -> str:
        """Return lines start_line..end_line (inclusive) of a document."""
        ...

    def workspace_root(self) -> Optional[str]: ...

    async def apply_completion(self, session_id: str, edit: CompletionEdit) -> None: ...

    async def dismiss_completion(self, session_id: str) -> None: ...


@runtime_checkable
class AccessPolicy(Protocol):
    """Ignore-file / security policy provider."""

    def validate_access(self, relative_path: str) -> bool: ...


@runtime_checkable
class SyntaxParser(Protocol):
    def parse(self, language_id: str, content: str) -> Any: ...


@runtime_checkable
class SnippetProvider(Protocol):
    """A read-only source of context snippets."""

    async def get_snippets(self) -> list[CodeSnippet]: ...


@runtime_checkable
class CostSink(Protocol):
    def record(self, usage: UsageSummary) -> None: ...


@runtime_checkable
class TelemetrySink(Protocol):
    def capture_event(self, name: str, properties: dict[str, Any]) -> None: ...


class AllowAllPolicy:
    """Policy used when the host supplies none."""

    def validate_access(self, relative_path: str) -> bool:
        return True
