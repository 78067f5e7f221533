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

"""Multicast wrapper around a single async producer.

A model call is expensive, so the stream it returns is pulled exactly once
by a background task. Everything it yields is buffered; any number of
consumers can attach at any time and see the full history followed by
live values:

    stream = MulticastStream(transport.stream_fim(request), on_error=log_error)
    stream.listen(cost_listener)          # callback style, gets None at the end
    async for chunk in stream.tee():      # pull style, independent cursor
        ...
    stream.cancel()                       # stops the producer and the source

Values yielded by the source must not be None; None is the terminal sentinel
delivered to listeners.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[Optional[T]], None]
ErrorCallback = Callable[[BaseException], None]


class MulticastStream(Generic[T]):
    """Replay-then-live fan-out over one async iterator.

    Must be constructed inside a running event loop; production starts
    immediately as a background task.
    """

    def __init__(
        self,
        source: AsyncIterator[T],
        on_error: Optional[ErrorCallback] = None,
    ):
        """Start pulling from the source.

        Args:
            source: The async iterator to multicast (pulled exactly once)
            on_error: Called once if the source raises
        """
        self._source = source
        self._on_error = on_error
        self._buffer: list[T] = []
        self._listeners: list[Listener] = []
        self._ended = False
        self._cancelled = False
        self._error: Optional[BaseException] = None
        self._changed = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._produce())

    @property
    def values(self) -> list[T]:
        """Snapshot of everything produced so far."""
        return list(self._buffer)

    @property
    def done(self) -> bool:
        return self._ended

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def listen(self, callback: Listener) -> None:
        """Attach a callback.

        Buffered values are replayed synchronously. If the stream has
        already ended the callback then receives None immediately;
        otherwise it receives future values and None once at the end.
        """
        for value in list(self._buffer):
            self._deliver(callback, value)
        if self._ended:
            self._deliver(callback, None)
        else:
            self._listeners.append(callback)

    async def tee(self) -> AsyncIterator[T]:
        """Iterate over all values, past and future.

        Each call returns an independent iterator; a slow consumer never
        holds back another one.
        """
        index = 0
        while True:
            if index < len(self._buffer):
                value = self._buffer[index]
                index += 1
                yield value
                continue
            if self._ended:
                return
            # Captured with no await since the checks above
            changed = self._changed
            await changed.wait()

    def cancel(self) -> None:
        """Stop producing. Idempotent.

        Pending tee() iterators finish without error and listeners get the
        terminal sentinel.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._finish()
        if not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the producer task has exited and the source is closed.

        The producer's own outcome is never raised here; cancelling the
        caller still cancels the wait.
        """
        await asyncio.wait({self._task})

    async def _produce(self) -> None:
        try:
            async for value in self._source:
                if self._ended:
                    break
                self._push(value)
        except asyncio.CancelledError:
            logger.debug("Multicast producer cancelled")
            raise
        except Exception as e:
            self._error = e
            logger.debug(f"Multicast source failed: {e}")
            if self._on_error is not None:
                try:
                    self._on_error(e)
                except Exception as callback_error:
                    logger.warning(f"Multicast error callback failed: {callback_error}")
        finally:
            await self._close_source()
            self._finish()

    async def _close_source(self) -> None:
        aclose = getattr(self._source, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.debug(f"Closing multicast source failed: {e}")

    def _push(self, value: T) -> None:
        self._buffer.append(value)
        for callback in list(self._listeners):
            self._deliver(callback, value)
        self._notify()

    def _finish(self) -> None:
        if self._ended:
            return
        self._ended = True
        listeners, self._listeners = self._listeners, []
        for callback in listeners:
            self._deliver(callback, None)
        self._notify()

    def _notify(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    @staticmethod
    def _deliver(callback: Listener, value: Optional[T]) -> None:
        try:
            callback(value)
        except Exception as e:
            logger.warning(f"Multicast listener failed: {e}")
