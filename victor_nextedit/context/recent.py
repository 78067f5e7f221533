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

"""Snippet sources fed by recent editor activity.

- RecentlyVisitedRangesService: code around where the cursor has been
- RecentlyEditedTracker: lines the user changed recently
- StaticSnippetSource: snippets configured up front
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Iterable, Optional

from victor_nextedit.config import StaticSnippetConfig
from victor_nextedit.history.diff import changed_line_span
from victor_nextedit.protocol import CodeSnippet, RecentlyEditedRange, SnippetSource

logger = logging.getLogger(__name__)


class RecentlyVisitedRangesService:
    """Remembers the code around recent cursor positions.

    One snippet per file is kept; revisiting a file replaces its snippet and
    moves it to the front. At most `max_files` files are remembered.
    """

    def __init__(self, max_files: int = 10, context_lines: int = 5):
        self._max_files = max_files
        self._context_lines = context_lines
        self._snippets: "OrderedDict[str, CodeSnippet]" = OrderedDict()
        self._lock = threading.Lock()

    def record_cursor(self, file_path: str, content: str, line: int) -> None:
        """Capture the lines surrounding a cursor position."""
        lines = content.split("\n")
        if not lines:
            return
        line = max(0, min(line, len(lines) - 1))
        start = max(0, line - self._context_lines)
        end = min(len(lines) - 1, line + self._context_lines)
        self.record_range(file_path, "\n".join(lines[start : end + 1]))

    def record_range(self, file_path: str, text: str) -> None:
        """Remember an already extracted range of a file."""
        if not text.strip():
            return
        snippet = CodeSnippet(
            file_path=file_path, content=text, source=SnippetSource.RECENTLY_VIEWED
        )
        with self._lock:
            self._snippets.pop(file_path, None)
            self._snippets[file_path] = snippet
            while len(self._snippets) > self._max_files:
                self._snippets.popitem(last=False)

    def forget(self, file_path: str) -> None:
        with self._lock:
            self._snippets.pop(file_path, None)

    async def get_snippets(self) -> list[CodeSnippet]:
        """Snippets, most recently visited first."""
        return list(reversed(self._snippets.values()))


class RecentlyEditedTracker:
    """Tracks which lines the user changed in the last couple of minutes."""

    def __init__(
        self,
        max_ranges: int = 8,
        max_age_seconds: float = 120.0,
        context_lines: int = 2,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the tracker.

        Args:
            max_ranges: Maximum number of ranges kept
            max_age_seconds: Ranges older than this are dropped
            context_lines: Unchanged lines kept around each change
            clock: Time source (seconds)
        """
        self._max_ranges = max_ranges
        self._max_age = max_age_seconds
        self._context_lines = context_lines
        self._clock = clock
        self._ranges: list[RecentlyEditedRange] = []
        self._lock = threading.Lock()

    def record_edit(self, file_path: str, before: str, after: str) -> Optional[RecentlyEditedRange]:
        """Record the region that changed between two versions of a file.

        Returns:
            The recorded range, or None if nothing changed
        """
        span = changed_line_span(before, after)
        if span is None:
            return None
        lines = after.split("\n")
        start = max(0, span[0] - self._context_lines)
        end = min(len(lines) - 1, span[1] + self._context_lines)
        edited = RecentlyEditedRange(
            file_path=file_path,
            start_line=start,
            end_line=end,
            timestamp=self._clock(),
            lines=tuple(lines[start : end + 1]),
        )

        with self._lock:
            # A new edit overlapping an older range of the same file supersedes it
            kept = [
                r
                for r in self._ranges
                if r.file_path != file_path or r.end_line < start or r.start_line > end
            ]
            kept.append(edited)
            self._ranges = kept[-self._max_ranges :]
        return edited

    def get_ranges(self) -> list[RecentlyEditedRange]:
        """Live ranges, most recent first."""
        cutoff = self._clock() - self._max_age
        with self._lock:
            self._ranges = [r for r in self._ranges if r.timestamp >= cutoff]
            ranges = list(self._ranges)
        return list(reversed(ranges))

    async def get_snippets(self) -> list[CodeSnippet]:
        return [
            CodeSnippet(
                file_path=r.file_path,
                content="\n".join(r.lines),
                source=SnippetSource.RECENTLY_EDITED,
            )
            for r in self.get_ranges()
            if any(line.strip() for line in r.lines)
        ]

    def clear(self) -> None:
        with self._lock:
            self._ranges = []


class StaticSnippetSource:
    """Snippets supplied by configuration, returned as-is."""

    def __init__(self, snippets: Iterable[StaticSnippetConfig] = ()):
        self._snippets = [
            CodeSnippet(file_path=s.file_path, content=s.content, source=SnippetSource.STATIC)
            for s in snippets
        ]

    async def get_snippets(self) -> list[CodeSnippet]:
        return list(self._snippets)
