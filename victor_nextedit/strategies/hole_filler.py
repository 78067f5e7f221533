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

"""Chat fallback for models without FIM or next-edit support.

The file is shown with a {{FILL_HERE}} hole at the cursor and the model
answers with the missing text wrapped in <COMPLETION> tags.
"""

import re
from pathlib import PurePosixPath

from victor_nextedit.protocol import CompletionContext, CompletionStyle
from victor_nextedit.strategies.protocol import ModelStrategy, WindowSize
from victor_nextedit.strategies.text import strip_tags

FILL_HERE = "{{FILL_HERE}}"
COMPLETION_TAG = "COMPLETION"

HASH_COMMENT_LANGUAGES = {
    "python",
    "ruby",
    "bash",
    "shellscript",
    "zsh",
    "fish",
    "yaml",
    "toml",
    "r",
    "perl",
    "elixir",
    "dockerfile",
    "makefile",
}
DASH_COMMENT_LANGUAGES = {"sql", "lua", "haskell"}

HOLE_FILLER_SYSTEM_PROMPT = """You are a HOLE FILLER. You are provided with a file containing holes, formatted as '{{FILL_HERE}}'. Your TASK is to complete with a string to replace this hole with, inside a <COMPLETION/> XML tag, including context-aware indentation, if needed. All completions MUST be truthful, accurate, well-written and correct.

## Context Format
<LANGUAGE>: file language
<QUERY>: the file, with related code shown as comments at the top and the hole marked {{FILL_HERE}}

## Auto-Completion Rules
- Only fill the hole; never repeat text that is already before or after it
- Match the surrounding indentation and style
- If nothing should be inserted, answer with empty <COMPLETION></COMPLETION> tags

## EXAMPLE QUERY:

<QUERY>
function sum_evens(lim) {
  var sum = 0;
  for (var i = 0; i < lim; ++i) {
    {{FILL_HERE}}
  }
  return sum;
}
</QUERY>

TASK: Fill the {{FILL_HERE}} hole.

## CORRECT COMPLETION

<COMPLETION>if (i % 2 === 0) {
      sum += i;
    }</COMPLETION>"""

_COMPLETION_RE = re.compile(
    rf"<{COMPLETION_TAG}>(.*?)(?:</{COMPLETION_TAG}>|$)", re.IGNORECASE | re.DOTALL
)


def comment_prefix(language_id: str) -> str:
    if language_id in HASH_COMMENT_LANGUAGES:
        return "#"
    if language_id in DASH_COMMENT_LANGUAGES:
        return "--"
    return "//"


def _commented(text: str, prefix: str) -> str:
    return "\n".join(f"{prefix} {line}" if line else prefix for line in text.split("\n"))


def build_hole_filler_prompt(context: CompletionContext) -> str:
    comment = comment_prefix(context.language_id)
    related = []
    for snippet in context.recently_viewed_snippets:
        related.append(_commented(f"Path: {PurePosixPath(snippet.file_path).name}", comment))
        related.append(_commented(snippet.content, comment))

    prefix, suffix = context.split_at_cursor()
    file_name = PurePosixPath(context.file_path).name
    query = "\n".join(related) + "\n" + f"{comment} {file_name}\n{prefix}{FILL_HERE}{suffix}"

    return (
        f"<LANGUAGE>{context.language_id}</LANGUAGE>\n\n"
        f"<QUERY>\n{query}\n</QUERY>\n\n"
        f"TASK: Fill the {FILL_HERE} hole. Answer only with the CORRECT completion, "
        "and NOTHING ELSE. Do it now.\n"
        "Return the COMPLETION tags"
    )


def parse_hole_filler_output(raw_text: str) -> str:
    """Text inside <COMPLETION> tags; empty if the model gave none.

    A missing closing tag means the completion runs to the end of the text.
    Stray tag remnants inside the completion are removed.
    """
    match = _COMPLETION_RE.search(raw_text)
    if match is None:
        return ""
    return strip_tags(match.group(1), COMPLETION_TAG)


HOLE_FILLER = ModelStrategy(
    name="hole-filler",
    style=CompletionStyle.CHAT,
    system_prompt=HOLE_FILLER_SYSTEM_PROMPT,
    window_size=WindowSize(top_margin=0, bottom_margin=0),
    build_user_prompt=build_hole_filler_prompt,
    parse_output=parse_hole_filler_output,
    unique_token=f"</{COMPLETION_TAG}>",
)
