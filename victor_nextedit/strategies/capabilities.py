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

"""Model capability detection.

An explicit capability flag on the model description always wins, even
when it is False. Without one, the model id and display title are matched
case-insensitively against known family names.
"""

from typing import Optional, Sequence

from victor_nextedit.protocol import ModelDescription

NEXT_EDIT_FAMILIES: tuple[str, ...] = ("mercury-coder", "instinct")

FIM_FAMILIES: tuple[str, ...] = (
    "codestral",
    "starcoder",
    "codellama",
    "deepseek",
    "qwen",
    "codegemma",
    "stable-code",
    "granite-code",
)


def match_family(model: ModelDescription, families: Sequence[str]) -> Optional[str]:
    """First family whose name occurs in the model id or title."""
    candidates = [model.model.lower()]
    if model.title:
        candidates.append(model.title.lower())
    for family in families:
        needle = family.lower()
        if any(needle in candidate for candidate in candidates):
            return family
    return None


def supports_next_edit(model: ModelDescription) -> bool:
    """Check whether a model predicts next edits.

    Example:
        >>> supports_next_edit(ModelDescription(model="inception/Mercury-Coder-Small"))
        True
        >>> supports_next_edit(ModelDescription(
        ...     model="mercury-coder", capabilities={"next_edit": False}))
        False
    """
    if model.capabilities.next_edit is not None:
        return model.capabilities.next_edit
    return match_family(model, NEXT_EDIT_FAMILIES) is not None


def supports_fim(model: ModelDescription) -> bool:
    """Check whether a model accepts fill-in-the-middle requests."""
    if model.capabilities.fim is not None:
        return model.capabilities.fim
    return match_family(model, FIM_FAMILIES) is not None
