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

"""Abort signalling and adaptive debouncing."""

import asyncio
import logging
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)

INITIAL_DEBOUNCE_MS = 300.0
MIN_DEBOUNCE_MS = 150.0
MAX_DEBOUNCE_MS = 1000.0
LATENCY_SAMPLE_SIZE = 10


class AbortSignal:
    """Cooperative cancellation flag with callbacks."""

    def __init__(self):
        self._aborted = False
        self._reason: Optional[str] = None
        self._callbacks: list[Callable[[], None]] = []
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on abort (immediately if already aborted)."""
        if self._aborted:
            self._run(callback)
        else:
            self._callbacks.append(callback)

    def abort(self, reason: str = "aborted") -> None:
        """Abort once; later calls are ignored."""
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._run(callback)

    async def wait(self) -> None:
        """Block until aborted."""
        await self._event.wait()

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning(f"Abort callback failed: {e}")


class AdaptiveDebouncer:
    """Debounce delay that follows observed request latency.

    Until `sample_size` latencies have been recorded the initial delay is
    used. After that the delay is the mean of the last `sample_size`
    latencies, clamped to [min_ms, max_ms].
    """

    def __init__(
        self,
        initial_ms: float = INITIAL_DEBOUNCE_MS,
        min_ms: float = MIN_DEBOUNCE_MS,
        max_ms: float = MAX_DEBOUNCE_MS,
        sample_size: int = LATENCY_SAMPLE_SIZE,
    ):
        if min_ms > max_ms:
            raise ValueError("min_ms must not exceed max_ms")
        self._initial_ms = initial_ms
        self._min_ms = min_ms
        self._max_ms = max_ms
        self._sample_size = sample_size
        self._latencies: deque[float] = deque(maxlen=sample_size)

    @property
    def delay_ms(self) -> float:
        if len(self._latencies) < self._sample_size:
            return self._initial_ms
        average = sum(self._latencies) / len(self._latencies)
        return max(self._min_ms, min(self._max_ms, average))

    @property
    def samples(self) -> list[float]:
        return list(self._latencies)

    def record_latency(self, latency_ms: float) -> None:
        self._latencies.append(max(0.0, latency_ms))

    async def wait(self, signal: Optional[AbortSignal] = None) -> bool:
        """Sleep for the current delay.

        Returns:
            False if the signal was aborted before or during the wait
        """
        delay = self.delay_ms / 1000.0
        if signal is None:
            await asyncio.sleep(delay)
            return True
        if signal.aborted:
            return False
        try:
            await asyncio.wait_for(signal.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return not signal.aborted
        return False

    def reset(self) -> None:
        self._latencies.clear()
