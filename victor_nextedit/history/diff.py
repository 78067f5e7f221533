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

"""Unified diff helpers for edit history."""

import difflib
import time
from typing import Optional

from victor_nextedit.protocol import PreviousEdit


def unified_diff(before: str, after: str, file_path: str, context_lines: int = 3) -> str:
    """Render a unified diff between two versions of a file.

    Returns an empty string when the contents are identical.
    """
    diff = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{file_path}",
        tofile=f"b/{file_path}",
        n=context_lines,
    )
    lines = []
    for line in diff:
        # difflib leaves the last line without a newline if the file had none
        lines.append(line if line.endswith("\n") else line + "\n")
    return "".join(lines)


def changed_line_span(before: str, after: str) -> Optional[tuple[int, int]]:
    """First and last line (in `after`) touched by the change.

    Returns None when nothing changed. Pure deletions report the line where
    the text used to be.
    """
    matcher = difflib.SequenceMatcher(a=before.split("\n"), b=after.split("\n"), autojunk=False)
    start: Optional[int] = None
    end: Optional[int] = None
    for tag, _, _, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        last = max(j1, j2 - 1)
        start = j1 if start is None else min(start, j1)
        end = last if end is None else max(end, last)
    if start is None or end is None:
        return None
    return start, end


def build_previous_edit(
    before: str,
    after: str,
    file_uri: str,
    workspace_uri: str = "",
    timestamp: Optional[float] = None,
) -> Optional[PreviousEdit]:
    """Turn a before/after pair into a PreviousEdit, or None for a no-op."""
    diff_text = unified_diff(before, after, file_uri)
    if not diff_text:
        return None
    return PreviousEdit(
        diff_text=diff_text,
        file_uri=file_uri,
        workspace_uri=workspace_uri,
        timestamp=timestamp if timestamp is not None else time.time() * 1000,
    )
