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

"""Mercury Coder next-edit strategy.

Prompt layout:
    <|recently_viewed_code_snippets|> ... <|/recently_viewed_code_snippets|>
    <|current_file_content|>
    ...lines above...
    <|code_to_edit|>
    ...editable region with <|cursor|>...
    <|/code_to_edit|>
    ...lines below...
    <|/current_file_content|>
    <|edit_diff_history|> ... <|/edit_diff_history|>

The model answers with the rewritten region inside a ``` fence.
"""

from victor_nextedit.protocol import CompletionContext, CompletionStyle
from victor_nextedit.strategies.protocol import ModelStrategy, WindowSize
from victor_nextedit.strategies.text import (
    extract_fenced_block,
    split_editable_region,
    strip_markers,
)

RECENTLY_VIEWED_OPEN = "<|recently_viewed_code_snippets|>"
RECENTLY_VIEWED_CLOSE = "<|/recently_viewed_code_snippets|>"
SNIPPET_OPEN = "<|recently_viewed_code_snippet|>"
SNIPPET_CLOSE = "<|/recently_viewed_code_snippet|>"
CURRENT_FILE_OPEN = "<|current_file_content|>"
CURRENT_FILE_CLOSE = "<|/current_file_content|>"
CODE_TO_EDIT_OPEN = "<|code_to_edit|>"
CODE_TO_EDIT_CLOSE = "<|/code_to_edit|>"
EDIT_HISTORY_OPEN = "<|edit_diff_history|>"
EDIT_HISTORY_CLOSE = "<|/edit_diff_history|>"
CURSOR = "<|cursor|>"

MERCURY_MARKERS = (
    RECENTLY_VIEWED_OPEN,
    RECENTLY_VIEWED_CLOSE,
    SNIPPET_OPEN,
    SNIPPET_CLOSE,
    CURRENT_FILE_OPEN,
    CURRENT_FILE_CLOSE,
    CODE_TO_EDIT_OPEN,
    CODE_TO_EDIT_CLOSE,
    EDIT_HISTORY_OPEN,
    EDIT_HISTORY_CLOSE,
    CURSOR,
)

MERCURY_SYSTEM_PROMPT = """You are Mercury, an AI coding assistant that predicts the next edit a developer will make.

You are given recently viewed code, the current file with a marked region to edit, and the developer's recent edits as unified diffs.
Rewrite only the code between <|code_to_edit|> and <|/code_to_edit|>, continuing what the developer is doing.
The <|cursor|> marker shows where the developer's cursor is. Do not include it in your answer.
Reply with the rewritten region in a single fenced code block and nothing else. If no change is needed, return the region unchanged."""


def build_mercury_prompt(context: CompletionContext) -> str:
    snippets = []
    for snippet in context.recently_viewed_snippets:
        snippets.append(
            f"{SNIPPET_OPEN}\n"
            f"code_snippet_file_path: {snippet.file_path}\n"
            f"{snippet.content}\n"
            f"{SNIPPET_CLOSE}"
        )

    before, region, after = split_editable_region(context, CURSOR)
    file_parts = [f"current_file_path: {context.file_path}"]
    if before:
        file_parts.append(before)
    file_parts.extend([CODE_TO_EDIT_OPEN, region, CODE_TO_EDIT_CLOSE])
    if after:
        file_parts.append(after)

    sections = [
        "\n".join([RECENTLY_VIEWED_OPEN, *snippets, RECENTLY_VIEWED_CLOSE]),
        "\n".join([CURRENT_FILE_OPEN, *file_parts, CURRENT_FILE_CLOSE]),
        "\n".join([EDIT_HISTORY_OPEN, *context.edit_diff_history, EDIT_HISTORY_CLOSE]),
    ]
    return "\n\n".join(sections)


def parse_mercury_output(raw_text: str) -> str:
    """Rewritten region from a Mercury response.

    Text outside a fence is used as-is when the model omits the fence.
    """
    body = extract_fenced_block(raw_text)
    if body is None:
        body = raw_text.strip("\n")
    return strip_markers(body, MERCURY_MARKERS)


MERCURY_CODER = ModelStrategy(
    name="mercury-coder",
    style=CompletionStyle.CHAT,
    system_prompt=MERCURY_SYSTEM_PROMPT,
    window_size=WindowSize(top_margin=0, bottom_margin=5),
    build_user_prompt=build_mercury_prompt,
    parse_output=parse_mercury_output,
    unique_token=CODE_TO_EDIT_CLOSE,
    replaces_region=True,
)
