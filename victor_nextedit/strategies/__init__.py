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

"""Model strategies: prompts, editable regions and output parsing per model family."""

from victor_nextedit.strategies.capabilities import (
    FIM_FAMILIES,
    NEXT_EDIT_FAMILIES,
    supports_fim,
    supports_next_edit,
)
from victor_nextedit.strategies.fim import FIM_DEFAULT, FIM_TEMPLATES, make_fim_strategy
from victor_nextedit.strategies.hole_filler import HOLE_FILLER
from victor_nextedit.strategies.instinct import INSTINCT
from victor_nextedit.strategies.mercury import MERCURY_CODER
from victor_nextedit.strategies.protocol import (
    ModelStrategy,
    PromptMessage,
    PromptMetadata,
    WindowSize,
)
from victor_nextedit.strategies.region import (
    EditableRegion,
    fixed_margin_region,
    token_budget_region,
)
from victor_nextedit.strategies.registry import (
    StrategyRegistry,
    get_strategy_registry,
    reset_strategy_registry,
)

__all__ = [
    "ModelStrategy",
    "PromptMessage",
    "PromptMetadata",
    "WindowSize",
    "EditableRegion",
    "fixed_margin_region",
    "token_budget_region",
    "FIM_FAMILIES",
    "NEXT_EDIT_FAMILIES",
    "supports_fim",
    "supports_next_edit",
    "FIM_DEFAULT",
    "FIM_TEMPLATES",
    "make_fim_strategy",
    "HOLE_FILLER",
    "INSTINCT",
    "MERCURY_CODER",
    "StrategyRegistry",
    "get_strategy_registry",
    "reset_strategy_registry",
]
