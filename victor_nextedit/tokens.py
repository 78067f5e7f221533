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

"""Token counting.

Real tokenizers are model specific and are passed in by callers as a
``Callable[[str], int]``. The default here is a character heuristic.
"""

import math
from typing import Callable

TokenCounter = Callable[[str], int]

CHARS_PER_TOKEN = 4


def approximate_token_count(text: str) -> int:
    """Estimate tokens as one per four characters, rounded up."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_to_token_budget(
    text: str, budget: int, count_tokens: TokenCounter = approximate_token_count
) -> str:
    """Keep whole lines from the start of text while they fit the budget."""
    if count_tokens(text) <= budget:
        return text
    kept: list[str] = []
    used = 0
    for line in text.split("\n"):
        cost = count_tokens(line + "\n")
        if used + cost > budget:
            break
        kept.append(line)
        used += cost
    return "\n".join(kept)
