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

"""Per-document history of (content, syntax tree) snapshots.

Lets later stages work out what changed since the model last saw a file.
Stacks are append-only: entries are never edited or reordered, only
dropped from the bottom when a history limit is configured.
"""

import logging
import threading
import time
from typing import Any, Optional

from victor_nextedit.config import get_settings
from victor_nextedit.protocol import DocumentSnapshot

logger = logging.getLogger(__name__)


class DocumentHistoryTracker:
    """Tracks snapshot stacks keyed by document identity.

    Writers are serialised with a lock; readers only look at the top of an
    immutable list entry and do not lock.
    """

    def __init__(self, max_history: Optional[int] = None):
        """Initialize the tracker.

        Args:
            max_history: Keep at most this many snapshots per document
                (None keeps everything)
        """
        self._max_history = max_history
        self._stacks: dict[str, list[DocumentSnapshot]] = {}
        self._lock = threading.Lock()

    def add_document(self, document_id: str, content: str, syntax_tree: Any = None) -> None:
        """Start (or restart) a document's history with a single entry."""
        snapshot = DocumentSnapshot(
            document_id=document_id,
            content=content,
            syntax_tree=syntax_tree,
            captured_at=time.time(),
        )
        with self._lock:
            self._stacks[document_id] = [snapshot]

    def push(self, document_id: str, content: str, syntax_tree: Any = None) -> None:
        """Append a snapshot; unknown documents are added."""
        snapshot = DocumentSnapshot(
            document_id=document_id,
            content=content,
            syntax_tree=syntax_tree,
            captured_at=time.time(),
        )
        with self._lock:
            stack = self._stacks.get(document_id)
            if stack is None:
                self._stacks[document_id] = [snapshot]
                return
            # Replace rather than mutate so lock-free readers see a whole list
            stack = stack + [snapshot]
            if self._max_history is not None and len(stack) > self._max_history:
                stack = stack[-self._max_history :]
            self._stacks[document_id] = stack

    def get_most_recent_snapshot(self, document_id: str) -> Optional[DocumentSnapshot]:
        stack = self._stacks.get(document_id)
        if not stack:
            logger.debug(f"No history for document: {document_id}")
            return None
        return stack[-1]

    def get_most_recent_ast(self, document_id: str) -> Optional[Any]:
        """Syntax tree of the latest snapshot, or None if not found."""
        snapshot = self.get_most_recent_snapshot(document_id)
        return snapshot.syntax_tree if snapshot is not None else None

    def get_most_recent_document_history(self, document_id: str) -> Optional[str]:
        """Content of the latest snapshot, or None if not found."""
        snapshot = self.get_most_recent_snapshot(document_id)
        return snapshot.content if snapshot is not None else None

    def get_history(self, document_id: str) -> list[DocumentSnapshot]:
        """All snapshots, oldest first."""
        return list(self._stacks.get(document_id, []))

    def delete_document(self, document_id: str) -> bool:
        """Forget a document.

        Returns:
            True if the document was tracked
        """
        with self._lock:
            return self._stacks.pop(document_id, None) is not None

    def clear_all(self) -> None:
        with self._lock:
            self._stacks = {}

    def reset(self) -> None:
        """Alias of clear_all() for teardown."""
        self.clear_all()

    @property
    def document_ids(self) -> list[str]:
        return list(self._stacks.keys())

    def __contains__(self, document_id: object) -> bool:
        return bool(self._stacks.get(document_id))  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._stacks)


# Global tracker singleton
_document_history_tracker: Optional[DocumentHistoryTracker] = None


def get_document_history_tracker() -> DocumentHistoryTracker:
    """Get the process-wide tracker, creating it on first use."""
    global _document_history_tracker
    if _document_history_tracker is None:
        _document_history_tracker = DocumentHistoryTracker(
            max_history=get_settings().document_history_limit
        )
    return _document_history_tracker


def reset_document_history_tracker() -> None:
    """Tear down the process-wide tracker (workspace close, tests)."""
    global _document_history_tracker
    if _document_history_tracker is not None:
        _document_history_tracker.clear_all()
    _document_history_tracker = None
