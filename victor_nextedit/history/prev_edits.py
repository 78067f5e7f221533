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

"""Bounded cache of the user's most recent edits.

The cache is global across files and evicts in insertion order: once it
holds `capacity` edits, inserting another one drops the oldest-inserted
edit, whichever file it belongs to. Reads do not refresh an entry.
"""

import itertools
import logging
import threading
from collections import OrderedDict
from dataclasses import replace
from typing import Optional

from victor_nextedit.config import get_settings
from victor_nextedit.errors import check_invariant
from victor_nextedit.protocol import PreviousEdit

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5


class PrevEditCache:
    """Insertion-ordered LRU of PreviousEdit entries."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, strict_invariants: bool = __debug__):
        """Initialize the cache.

        Args:
            capacity: Maximum number of edits kept
            strict_invariants: Raise on bookkeeping errors instead of repairing
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._strict = strict_invariants
        self._entries: "OrderedDict[str, tuple[int, PreviousEdit]]" = OrderedDict()
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def set_prev_edit(self, edit: PreviousEdit) -> PreviousEdit:
        """Insert an edit, evicting the oldest-inserted one when full.

        Args:
            edit: The edit to remember (its key is ignored and regenerated)

        Returns:
            The stored edit, carrying its synthesized key
        """
        with self._lock:
            sequence = next(self._sequence)
            key = f"{edit.file_uri}::{edit.timestamp}::{sequence}"
            stored = replace(edit, key=key)

            while len(self._entries) >= self._capacity:
                evicted_key, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted previous edit: {evicted_key}")

            self._entries[key] = (sequence, stored)

            if not check_invariant(
                len(self._entries) <= self._capacity,
                f"previous edit cache holds {len(self._entries)} > {self._capacity} entries",
                strict=self._strict,
            ):
                while len(self._entries) > self._capacity:
                    self._entries.popitem(last=False)
            return stored

    def get_prev_edits_descending(self) -> list[PreviousEdit]:
        """All edits, most recent timestamp first.

        Equal timestamps are ordered by insertion, later insertions first.
        """
        entries = list(self._entries.values())
        entries.sort(key=lambda item: (item[1].timestamp, item[0]), reverse=True)
        return [edit for _, edit in entries]

    def get(self, key: str) -> Optional[PreviousEdit]:
        entry = self._entries.get(key)
        return entry[1] if entry is not None else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Global cache singleton
_prev_edit_cache: Optional[PrevEditCache] = None


def get_prev_edit_cache() -> PrevEditCache:
    """Get the process-wide edit cache, creating it on first use."""
    global _prev_edit_cache
    if _prev_edit_cache is None:
        settings = get_settings()
        _prev_edit_cache = PrevEditCache(
            capacity=settings.prev_edit_capacity,
            strict_invariants=settings.strict_invariants,
        )
    return _prev_edit_cache


def reset_prev_edit_cache() -> None:
    """Drop the process-wide edit cache. Useful for testing."""
    global _prev_edit_cache
    _prev_edit_cache = None
