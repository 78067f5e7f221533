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

"""Pre-request skip rules and post-processing of completions."""

import re
from typing import Optional

from victor_nextedit.languages import statement_terminators
from victor_nextedit.strategies.fim import strip_fim_tokens

MID_WORD_MIN_LENGTH = 3
MAX_REPEATED_LINES = 5

_TRAILING_WORD_RE = re.compile(r"\w+$")
_WORD_START_RE = re.compile(r"^\w")


def should_skip_completion(prefix: str, suffix: str, language_id: Optional[str] = None) -> bool:
    """Whether a new model request is pointless at this cursor position.

    Skips when the user is in the middle of a word, when a word follows the
    cursor on the same line, or right after a statement terminator. Never
    skips on an empty or whitespace-only line.

    Example:
        >>> should_skip_completion("const x = 5;", "\\n", "typescript")
        True
        >>> should_skip_completion("def foo():", "\\n", "python")
        False
    """
    current_line = prefix[prefix.rfind("\n") + 1 :]
    if not current_line.strip():
        return False

    word = _TRAILING_WORD_RE.search(current_line)
    if word is not None and len(word.group(0)) >= MID_WORD_MIN_LENGTH:
        return True

    suffix_line = suffix.split("\n", 1)[0]
    if _WORD_START_RE.match(suffix_line):
        return True

    stripped = current_line.rstrip(" \t")
    for terminator in statement_terminators(language_id):
        if not stripped.endswith(terminator):
            continue
        if terminator[0].isalpha():
            before = stripped[: -len(terminator)]
            if before and (before[-1].isalnum() or before[-1] == "_"):
                continue
        return True
    return False


def clean_completion(completion: str, suffix: str) -> str:
    """Clean up completion text.

    Removes FIM tokens, trailing whitespace, and overlapping suffix.

    Args:
        completion: Raw completion text
        suffix: Text after the cursor

    Returns:
        Cleaned completion
    """
    completion = strip_fim_tokens(completion).rstrip()

    if suffix:
        suffix_start = suffix.lstrip()[:50]
        if suffix_start and suffix_start in completion:
            completion = completion[: completion.find(suffix_start)].rstrip()

    return completion


def has_extreme_repetition(text: str) -> bool:
    """The same non-empty line repeated more than MAX_REPEATED_LINES times in a row."""
    run = 0
    previous: Optional[str] = None
    for line in text.split("\n"):
        stripped = line.strip()
        if stripped and stripped == previous:
            run += 1
            if run > MAX_REPEATED_LINES:
                return True
        else:
            run = 1 if stripped else 0
        previous = stripped
    return False


def is_duplication(suggestion: str, prefix: str, suffix: str) -> bool:
    """Whether a suggestion only repeats text around the cursor.

    Covers empty suggestions, text already at the end of the prefix or the
    start of the suffix, and a rewrite of the previous line.
    """
    text = suggestion.strip()
    if not text:
        return True
    if prefix.rstrip().endswith(text):
        return True
    if suffix.lstrip().startswith(text):
        return True

    lines = prefix.split("\n")
    if len(lines) >= 2 and not lines[-1].strip():
        previous = next((line for line in reversed(lines[:-1]) if line.strip()), "")
        if previous.strip() == text:
            return True
    return False


def postprocess_suggestion(suggestion: str, prefix: str, suffix: str) -> Optional[str]:
    """Full post-processing for insertion-style completions.

    Returns:
        Text to show, or None if the suggestion should be dropped
    """
    cleaned = clean_completion(suggestion, suffix)
    if is_duplication(cleaned, prefix, suffix) or has_extreme_repetition(cleaned):
        return None
    return cleaned
