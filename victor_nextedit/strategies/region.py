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

"""Editable region calculation.

Two modes:
- Fixed margin: a window of lines around the cursor
- Token budget: grow outward from the cursor line until the budget is spent
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from victor_nextedit.tokens import TokenCounter, approximate_token_count

DEFAULT_REGION_TOKEN_BUDGET = 512


@dataclass(frozen=True)
class EditableRegion:
    """Inclusive, zero-based line range the model may rewrite."""

    start_line: int
    end_line: int

    def __contains__(self, line: object) -> bool:
        return isinstance(line, int) and self.start_line <= line <= self.end_line

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


def fixed_margin_region(
    line_count: int, cursor_line: int, top_margin: int, bottom_margin: int
) -> EditableRegion:
    """[cursor - top, cursor + bottom], clamped to [0, last line].

    Example:
        >>> fixed_margin_region(10, 1, 3, 5)
        EditableRegion(start_line=0, end_line=6)
        >>> fixed_margin_region(10, 8, 3, 5)
        EditableRegion(start_line=5, end_line=9)
    """
    last_line = max(0, line_count - 1)
    cursor_line = max(0, min(cursor_line, last_line))
    start = max(0, cursor_line - top_margin)
    end = min(last_line, cursor_line + bottom_margin)
    return EditableRegion(start_line=start, end_line=end)


def token_budget_region(
    lines: Sequence[str],
    cursor_line: int,
    budget: int = DEFAULT_REGION_TOKEN_BUDGET,
    count_tokens: Optional[TokenCounter] = None,
) -> EditableRegion:
    """Grow a region outward from the cursor line under a token budget.

    Lines are added alternately above and below the cursor (above first).
    When one side reaches the edge of the document the other keeps growing.
    Growth stops at the first line that would exceed the budget. The
    cursor line is always included.

    Args:
        lines: Document lines
        cursor_line: Zero-based cursor line
        budget: Token budget for the whole region
        count_tokens: Token counter (approximate counter if omitted)

    Returns:
        The grown region
    """
    count = count_tokens or approximate_token_count
    if not lines:
        return EditableRegion(0, 0)

    last_line = len(lines) - 1
    cursor_line = max(0, min(cursor_line, last_line))
    start = end = cursor_line
    used = count(lines[cursor_line] + "\n")

    grow_up = True
    while start > 0 or end < last_line:
        if grow_up and start == 0:
            grow_up = False
        elif not grow_up and end == last_line:
            grow_up = True

        candidate = start - 1 if grow_up else end + 1
        cost = count(lines[candidate] + "\n")
        if used + cost > budget:
            break
        used += cost
        if grow_up:
            start = candidate
        else:
            end = candidate
        grow_up = not grow_up

    return EditableRegion(start_line=start, end_line=end)
