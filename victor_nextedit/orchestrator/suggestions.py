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

"""Recently shown suggestions, reused while the user types through them.

If the user accepts a suggestion character by character, or deletes back
into it, the earlier suggestion still applies and no model call is needed.
"""

import re
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL_TYPING = "partial_typing"
    BACKWARD_DELETION = "backward_deletion"


@dataclass(frozen=True)
class FillInSuggestion:
    """A suggestion together with the text around the cursor it was made for."""

    text: str
    prefix: str
    suffix: str


@dataclass(frozen=True)
class SuggestionMatch:
    text: str
    match_type: MatchType
    suggestion: FillInSuggestion


def find_matching_suggestion(
    prefix: str, suffix: str, history: list[FillInSuggestion]
) -> Optional[SuggestionMatch]:
    """Find a stored suggestion that still applies at the cursor.

    Searched from most recent to oldest. Per entry, tried in order:
    exact prefix/suffix match; the user typed the start of the suggestion;
    the user deleted characters from the end of the prefix.

    Args:
        prefix: Text before the cursor
        suffix: Text after the cursor
        history: Suggestions, oldest first

    Returns:
        The remaining text to show, or None
    """
    for entry in reversed(history):
        if prefix == entry.prefix and suffix == entry.suffix:
            return SuggestionMatch(entry.text, MatchType.EXACT, entry)

        if not entry.text or suffix != entry.suffix:
            continue

        if prefix.startswith(entry.prefix):
            typed = prefix[len(entry.prefix) :]
            if entry.text.startswith(typed):
                return SuggestionMatch(entry.text[len(typed) :], MatchType.PARTIAL_TYPING, entry)

        if entry.prefix.startswith(prefix):
            deleted = entry.prefix[len(prefix) :]
            return SuggestionMatch(deleted + entry.text, MatchType.BACKWARD_DELETION, entry)

    return None


def count_lines(text: str) -> int:
    """Number of lines; a single trailing newline does not add one."""
    if text == "":
        return 0
    breaks = len(re.findall(r"\r?\n", text))
    return breaks + 1 - (1 if text.endswith("\n") else 0)


def get_first_line(text: str) -> str:
    return re.split(r"\r?\n", text, maxsplit=1)[0]


def should_show_only_first_line(prefix: str, suggestion: str) -> bool:
    """Whether to display just the first line of a suggestion.

    Whole blocks are shown when the suggestion starts on a new line. When
    the cursor line already has text only the first line is shown; at the
    start of a line, suggestions of three or more lines are cut to one.
    """
    if suggestion.startswith("\n") or suggestion.startswith("\r\n"):
        return False
    current_line = prefix[prefix.rfind("\n") + 1 :]
    if current_line.strip():
        return True
    return count_lines(suggestion) >= 3


def apply_first_line_only(text: str, prefix: str) -> str:
    if text and should_show_only_first_line(prefix, text):
        return get_first_line(text)
    return text


class SuggestionHistory:
    """Bounded list of recent fill-in suggestions."""

    def __init__(self, max_size: int = 20):
        self._entries: deque[FillInSuggestion] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def add(self, text: str, prefix: str, suffix: str) -> None:
        entry = FillInSuggestion(text=text, prefix=prefix, suffix=suffix)
        with self._lock:
            if self._entries and self._entries[-1] == entry:
                return
            self._entries.append(entry)

    def find(self, prefix: str, suffix: str) -> Optional[SuggestionMatch]:
        return find_matching_suggestion(prefix, suffix, list(self._entries))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
