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

"""Document and edit history."""

from victor_nextedit.history.diff import build_previous_edit, changed_line_span, unified_diff
from victor_nextedit.history.document_history import (
    DocumentHistoryTracker,
    get_document_history_tracker,
    reset_document_history_tracker,
)
from victor_nextedit.history.prev_edits import (
    PrevEditCache,
    get_prev_edit_cache,
    reset_prev_edit_cache,
)

__all__ = [
    "DocumentHistoryTracker",
    "get_document_history_tracker",
    "reset_document_history_tracker",
    "PrevEditCache",
    "get_prev_edit_cache",
    "reset_prev_edit_cache",
    "build_previous_edit",
    "changed_line_span",
    "unified_diff",
]
