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

"""Request orchestration: debouncing, single-flight sessions and post-processing."""

from victor_nextedit.orchestrator.debounce import AbortSignal, AdaptiveDebouncer
from victor_nextedit.orchestrator.filters import (
    clean_completion,
    postprocess_suggestion,
    should_skip_completion,
)
from victor_nextedit.orchestrator.manager import CompletionOrchestrator
from victor_nextedit.orchestrator.session import InFlightRequest, SessionState
from victor_nextedit.orchestrator.suggestions import (
    MatchType,
    SuggestionHistory,
    find_matching_suggestion,
)
from victor_nextedit.orchestrator.telemetry import (
    CompletionMetrics,
    CompletionTelemetry,
    CostListener,
)

__all__ = [
    "AbortSignal",
    "AdaptiveDebouncer",
    "clean_completion",
    "postprocess_suggestion",
    "should_skip_completion",
    "CompletionOrchestrator",
    "InFlightRequest",
    "SessionState",
    "MatchType",
    "SuggestionHistory",
    "find_matching_suggestion",
    "CompletionMetrics",
    "CompletionTelemetry",
    "CostListener",
]
