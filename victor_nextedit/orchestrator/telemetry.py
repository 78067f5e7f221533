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

"""Completion metrics, telemetry events and cost tracking."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from victor_nextedit.host import CostSink, TelemetrySink
from victor_nextedit.protocol import UsageSummary
from victor_nextedit.transport.protocol import ModelChunk

logger = logging.getLogger(__name__)

EVENT_PREFIX = "nextedit"


@dataclass
class CompletionMetrics:
    """Counters for completion requests."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cancelled_requests: int = 0
    skipped_requests: int = 0
    cache_hits: int = 0
    empty_results: int = 0
    total_latency_ms: float = 0.0
    total_tokens_used: int = 0
    total_cost: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        """Mean latency of suggestions served by the model."""
        served = self.successful_requests - self.cache_hits
        if served <= 0:
            return 0.0
        return self.total_latency_ms / served

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "cancelled_requests": self.cancelled_requests,
            "skipped_requests": self.skipped_requests,
            "cache_hits": self.cache_hits,
            "empty_results": self.empty_results,
            "avg_latency_ms": self.avg_latency_ms,
            "total_tokens_used": self.total_tokens_used,
            "total_cost": self.total_cost,
        }


class CompletionTelemetry:
    """Sends completion lifecycle events to an optional sink."""

    def __init__(self, sink: Optional[TelemetrySink] = None):
        self._sink = sink

    def capture(self, event: str, **properties: Any) -> None:
        if self._sink is None:
            return
        try:
            self._sink.capture_event(f"{EVENT_PREFIX}.{event}", properties)
        except Exception as e:
            logger.warning(f"Telemetry sink failed for {event}: {e}")

    def suggestion_requested(self, session_id: str, strategy: str) -> None:
        self.capture("suggestion_requested", session_id=session_id, strategy=strategy)

    def suggestion_shown(
        self, session_id: str, strategy: str, latency_ms: float, from_cache: bool
    ) -> None:
        self.capture(
            "suggestion_shown",
            session_id=session_id,
            strategy=strategy,
            latency_ms=latency_ms,
            from_cache=from_cache,
        )

    def suggestion_dismissed(self, session_id: str) -> None:
        self.capture("suggestion_dismissed", session_id=session_id)

    def suggestion_accepted(self, file_uri: str) -> None:
        self.capture("suggestion_accepted", file_uri=file_uri)

    def request_failed(self, session_id: str, strategy: str, error: str) -> None:
        self.capture("request_failed", session_id=session_id, strategy=strategy, error=error)


class CostListener:
    """Multicast listener that totals usage and records it once at stream end."""

    def __init__(
        self,
        sink: Optional[CostSink] = None,
        metrics: Optional[CompletionMetrics] = None,
    ):
        self._sink = sink
        self._metrics = metrics
        self._usage = UsageSummary()
        self._recorded = False

    @property
    def usage(self) -> UsageSummary:
        return self._usage

    @property
    def recorded(self) -> bool:
        return self._recorded

    def __call__(self, chunk: Optional[ModelChunk]) -> None:
        if chunk is not None:
            if chunk.usage is not None:
                self._usage = self._usage + chunk.usage
            return

        if self._recorded:
            return
        self._recorded = True
        if self._metrics is not None:
            self._metrics.total_tokens_used += (
                self._usage.input_tokens + self._usage.output_tokens
            )
            self._metrics.total_cost += self._usage.cost
        if self._sink is not None:
            self._sink.record(self._usage)
