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

"""Context gathering: visible code, snippet sources and filters."""

from victor_nextedit.context.assembler import ContextAssembler
from victor_nextedit.context.recent import (
    RecentlyEditedTracker,
    RecentlyVisitedRangesService,
    StaticSnippetSource,
)
from victor_nextedit.context.security import (
    DEFAULT_NON_CODE_SCHEMES,
    DEFAULT_SENSITIVE_PATTERNS,
    is_code_scheme,
    is_security_concern,
)
from victor_nextedit.context.visible_code import (
    capture_visible_code,
    extract_diff_info,
    parse_uri,
)

__all__ = [
    "ContextAssembler",
    "RecentlyEditedTracker",
    "RecentlyVisitedRangesService",
    "StaticSnippetSource",
    "DEFAULT_NON_CODE_SCHEMES",
    "DEFAULT_SENSITIVE_PATTERNS",
    "is_code_scheme",
    "is_security_concern",
    "capture_visible_code",
    "extract_diff_info",
    "parse_uri",
]
