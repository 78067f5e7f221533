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

"""Text helpers shared by prompt builders and output parsers."""

import re
from typing import Iterable, Optional

from victor_nextedit.protocol import CompletionContext


def split_editable_region(
    context: CompletionContext, cursor_marker: Optional[str] = None
) -> tuple[str, str, str]:
    """Split the document into (before, region, after) line blocks.

    The cursor marker, if given, is inserted into the region at the cursor.
    Region bounds outside the document are clamped.
    """
    lines = context.lines
    last_line = len(lines) - 1
    start = max(0, min(context.editable_region_start_line, last_line))
    end = max(start, min(context.editable_region_end_line, last_line))

    region_lines = list(lines[start : end + 1])
    cursor = context.cursor_position
    if cursor_marker is not None and start <= cursor.line <= end:
        idx = cursor.line - start
        line = region_lines[idx]
        character = max(0, min(cursor.character, len(line)))
        region_lines[idx] = line[:character] + cursor_marker + line[character:]

    return (
        "\n".join(lines[:start]),
        "\n".join(region_lines),
        "\n".join(lines[end + 1 :]),
    )


def extract_between(text: str, open_marker: str, close_marker: str) -> Optional[str]:
    """Text after the first open marker, up to the close marker.

    A missing close marker means "until the end of the text". Returns None
    when the open marker is absent.
    """
    start = text.find(open_marker)
    if start == -1:
        return None
    start += len(open_marker)
    end = text.find(close_marker, start)
    return text[start:] if end == -1 else text[start:end]


def extract_fenced_block(text: str) -> Optional[str]:
    """Body of the first ``` fenced block, or None if there is no fence.

    The language tag after the opening fence is dropped. An unterminated
    block runs to the end of the text.
    """
    start = text.find("```")
    if start == -1:
        return None
    body_start = text.find("\n", start)
    if body_start == -1:
        return ""
    body_start += 1
    end = text.find("```", body_start)
    body = text[body_start:] if end == -1 else text[body_start:end]
    return body[:-1] if body.endswith("\n") else body


def strip_markers(text: str, markers: Iterable[str]) -> str:
    for marker in markers:
        text = text.replace(marker, "")
    return text


def strip_tags(text: str, tag: str) -> str:
    """Remove every <tag> and </tag>, case-insensitively."""
    return re.sub(rf"</?{re.escape(tag)}>", "", text, flags=re.IGNORECASE)


def trim_one_newline(text: str) -> str:
    """Drop one leading and one trailing newline left by marker lines."""
    if text.startswith("\n"):
        text = text[1:]
    if text.endswith("\n"):
        text = text[:-1]
    return text
