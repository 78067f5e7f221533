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

"""Per-session request state."""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from victor_nextedit.orchestrator.debounce import AbortSignal
from victor_nextedit.protocol import CompletionResult, RequestState

MAX_TRANSITIONS = 50

# Terminal states fall back to IDLE once handled
TERMINAL_STATES = (RequestState.COMPLETED, RequestState.CANCELLED, RequestState.FAILED)


@dataclass
class InFlightRequest:
    """The one request a session may have outstanding."""

    session_id: str
    abort_signal: AbortSignal = field(default_factory=AbortSignal)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.monotonic)
    task: Optional["asyncio.Task[Any]"] = None
    stream: Optional[Any] = None

    def abort(self, reason: str) -> None:
        """Abort the request and tear down its stream."""
        self.abort_signal.abort(reason)
        if self.stream is not None:
            self.stream.cancel()


@dataclass
class SessionState:
    """State machine bookkeeping for one editing session."""

    session_id: str
    state: RequestState = RequestState.IDLE
    in_flight: Optional[InFlightRequest] = None
    last_result: Optional[CompletionResult] = None
    transitions: list[RequestState] = field(default_factory=list)

    def transition(self, new_state: RequestState) -> None:
        self.state = new_state
        self.transitions.append(new_state)
        if len(self.transitions) > MAX_TRANSITIONS:
            del self.transitions[: len(self.transitions) - MAX_TRANSITIONS]

    def settle(self, terminal: RequestState, request: InFlightRequest) -> bool:
        """Record a terminal state and return to IDLE.

        Only the session's current request may settle it; a superseded
        request returns False and leaves the state alone.
        """
        if self.in_flight is not request:
            return False
        self.transition(terminal)
        self.in_flight = None
        self.transition(RequestState.IDLE)
        return True
