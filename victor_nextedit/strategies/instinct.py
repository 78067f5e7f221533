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

"""Instinct next-edit strategy.

Uses a "### User Edits / ### User Excerpts / ### Response" layout with the
editable region fenced by <|editable_region_start|> and
<|editable_region_end|>. The model echoes the region back, rewritten.
"""

from victor_nextedit.protocol import CompletionContext, CompletionStyle, SnippetSource
from victor_nextedit.strategies.protocol import ModelStrategy, WindowSize
from victor_nextedit.strategies.text import (
    extract_fenced_block,
    split_editable_region,
    strip_markers,
    trim_one_newline,
)

EDITABLE_REGION_START = "<|editable_region_start|>"
EDITABLE_REGION_END = "<|editable_region_end|>"
USER_CURSOR = "<|user_cursor_is_here|>"

INSTINCT_SYSTEM_PROMPT = """You are Instinct, an intelligent next-edit predictor.

Given the developer's recent edits and an excerpt of the file they are working in, predict how the code between <|editable_region_start|> and <|editable_region_end|> will look after their next edit.
<|user_cursor_is_here|> marks the cursor. Reproduce the region exactly except for the lines you change, and keep both region markers in your answer."""


def build_instinct_prompt(context: CompletionContext) -> str:
    edits = "\n".join(context.edit_diff_history)

    excerpts = []
    for snippet in context.recently_viewed_snippets:
        excerpts.append(f"```{snippet.file_path}\n{snippet.content}\n```")

    before, region, after = split_editable_region(context, USER_CURSOR)
    current = [f"```{context.file_path}"]
    if before:
        current.append(before)
    current.extend([EDITABLE_REGION_START, region, EDITABLE_REGION_END])
    if after:
        current.append(after)
    current.append("```")
    excerpts.append("\n".join(current))

    return (
        f"### User Edits:\n\n{edits}\n\n"
        f"### User Excerpts:\n\n" + "\n\n".join(excerpts) + "\n\n"
        "### Response:\n"
    )


def parse_instinct_output(raw_text: str) -> str:
    """Region body from an Instinct response.

    The start marker may be missing (the region then starts at the top of
    the answer) and so may the end marker (the region runs to the end).
    """
    text = raw_text
    fenced = extract_fenced_block(text)
    if fenced is not None and EDITABLE_REGION_START in fenced:
        text = fenced

    start = text.find(EDITABLE_REGION_START)
    body = text[start + len(EDITABLE_REGION_START) :] if start != -1 else text
    end = body.find(EDITABLE_REGION_END)
    if end != -1:
        body = body[:end]
    body = strip_markers(body, (EDITABLE_REGION_START, EDITABLE_REGION_END, USER_CURSOR))
    return trim_one_newline(body)


INSTINCT = ModelStrategy(
    name="instinct",
    style=CompletionStyle.CHAT,
    system_prompt=INSTINCT_SYSTEM_PROMPT,
    window_size=WindowSize(top_margin=1, bottom_margin=5),
    build_user_prompt=build_instinct_prompt,
    parse_output=parse_instinct_output,
    unique_token=EDITABLE_REGION_END,
    replaces_region=True,
    snippet_order=(
        SnippetSource.RECENTLY_EDITED,
        SnippetSource.RECENTLY_VIEWED,
        SnippetSource.STATIC,
    ),
)
