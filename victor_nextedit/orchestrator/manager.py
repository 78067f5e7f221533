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

"""Completion request orchestrator.

Drives one request per editing session through
Idle -> Debouncing -> InFlight -> Completed | Cancelled | Failed -> Idle,
and provides the API the editor integration talks to.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from typing import AsyncIterator, Optional

from victor_nextedit.config import NextEditSettings, get_settings
from victor_nextedit.context.assembler import ContextAssembler
from victor_nextedit.errors import CompletionParseError, InvariantViolation, TransportError
from victor_nextedit.history.document_history import (
    DocumentHistoryTracker,
    get_document_history_tracker,
)
from victor_nextedit.history.prev_edits import PrevEditCache, get_prev_edit_cache
from victor_nextedit.host import AccessPolicy, CostSink, EditorHost, SyntaxParser, TelemetrySink
from victor_nextedit.languages import detect_language
from victor_nextedit.orchestrator.debounce import AdaptiveDebouncer
from victor_nextedit.orchestrator.filters import postprocess_suggestion, should_skip_completion
from victor_nextedit.orchestrator.session import InFlightRequest, SessionState
from victor_nextedit.orchestrator.suggestions import SuggestionHistory, apply_first_line_only
from victor_nextedit.orchestrator.telemetry import (
    CompletionMetrics,
    CompletionTelemetry,
    CostListener,
)
from victor_nextedit.protocol import (
    CompletionContext,
    CompletionRequest,
    CompletionResult,
    ModelDescription,
    PreviousEdit,
    RequestState,
    VisibleRange,
    split_at_position,
)
from victor_nextedit.strategies.protocol import ModelStrategy
from victor_nextedit.strategies.registry import StrategyRegistry, get_strategy_registry
from victor_nextedit.streaming.multicast import MulticastStream
from victor_nextedit.tokens import TokenCounter, approximate_token_count
from victor_nextedit.transport.protocol import ChatRequest, FimRequest, ModelChunk, ModelTransport
from victor_nextedit.transport.stream import normalize_stream, open_chat

logger = logging.getLogger(__name__)


class CompletionOrchestrator:
    """High-level engine for inline completions and next-edit predictions.

    Each session (typically one editor) has at most one outstanding
    request. A new trigger aborts the previous one instead of queueing
    behind it. Results are returned to the caller and also pushed to the
    host through `apply_completion`.

    Example:
        orchestrator = CompletionOrchestrator(host, transport, model)
        result = await orchestrator.request_completion("editor-1", request)
    """

    def __init__(
        self,
        host: EditorHost,
        transport: ModelTransport,
        model: ModelDescription,
        settings: Optional[NextEditSettings] = None,
        registry: Optional[StrategyRegistry] = None,
        assembler: Optional[ContextAssembler] = None,
        document_history: Optional[DocumentHistoryTracker] = None,
        prev_edit_cache: Optional[PrevEditCache] = None,
        policy: Optional[AccessPolicy] = None,
        parser: Optional[SyntaxParser] = None,
        cost_sink: Optional[CostSink] = None,
        telemetry_sink: Optional[TelemetrySink] = None,
        debouncer: Optional[AdaptiveDebouncer] = None,
        count_tokens: TokenCounter = approximate_token_count,
    ):
        """Initialize the orchestrator.

        Args:
            host: Editor host receiving completions
            transport: Model transport
            model: Description of the configured model
            settings: Engine settings (process-wide settings if omitted)
            registry: Strategy registry (uses global if not provided)
            assembler: Context assembler (built from the other arguments if omitted)
            document_history: Document history tracker (uses global if not provided)
            prev_edit_cache: Edit history cache (uses global if not provided)
            policy: Ignore/security policy for visible code
            parser: Syntax parser for document snapshots
            cost_sink: Receives usage once per model call
            telemetry_sink: Receives lifecycle events
            debouncer: Debouncer override
            count_tokens: Token counter for regions and snippet budgets
        """
        self._host = host
        self._transport = transport
        self._model = model
        self._settings = settings or get_settings()
        self._registry = registry or get_strategy_registry()
        self._document_history = (
            document_history if document_history is not None else get_document_history_tracker()
        )
        self._prev_edits = prev_edit_cache if prev_edit_cache is not None else get_prev_edit_cache()
        self._assembler = assembler or ContextAssembler(
            host=host,
            policy=policy,
            settings=self._settings,
            prev_edit_cache=self._prev_edits,
            count_tokens=count_tokens,
        )
        self._parser = parser
        self._cost_sink = cost_sink
        self._telemetry = CompletionTelemetry(telemetry_sink)
        self._debouncer = debouncer or AdaptiveDebouncer(
            initial_ms=self._settings.debounce_initial_ms,
            min_ms=self._settings.debounce_min_ms,
            max_ms=self._settings.debounce_max_ms,
            sample_size=self._settings.latency_sample_size,
        )
        self._count_tokens = count_tokens
        self._suggestions = SuggestionHistory(self._settings.suggestion_history_size)
        self._metrics = CompletionMetrics()
        self._sessions: dict[str, SessionState] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._disposed = False

    @property
    def metrics(self) -> CompletionMetrics:
        """Get completion metrics."""
        return self._metrics

    def reset_metrics(self) -> None:
        """Reset all metrics."""
        self._metrics = CompletionMetrics()

    @property
    def model(self) -> ModelDescription:
        return self._model

    def set_model(self, model: ModelDescription) -> None:
        """Switch models. Suggestions made by the old model are forgotten."""
        self._model = model
        self._suggestions.clear()

    @property
    def assembler(self) -> ContextAssembler:
        return self._assembler

    @property
    def debouncer(self) -> AdaptiveDebouncer:
        return self._debouncer

    def resolve_strategy(self) -> ModelStrategy:
        """Strategy for the configured model."""
        return self._registry.resolve(self._model)

    def state(self, session_id: str) -> RequestState:
        """Current state of a session (IDLE for unknown sessions)."""
        session = self._sessions.get(session_id)
        return session.state if session is not None else RequestState.IDLE

    def session(self, session_id: str) -> Optional[SessionState]:
        return self._sessions.get(session_id)

    # -- requests --------------------------------------------------------

    async def request_completion(
        self, session_id: str, request: CompletionRequest
    ) -> Optional[CompletionResult]:
        """Run one completion request for a session.

        Aborts whatever the session had outstanding, debounces, calls the
        model and hands a non-empty result to the host.

        Args:
            session_id: Editing session identifier
            request: Document, cursor and language of the trigger

        Returns:
            The completion, or None for no suggestion (skipped, superseded,
            cancelled, empty or failed)
        """
        if self._disposed:
            logger.debug("Ignoring completion request after dispose")
            return None

        session = self._get_session(session_id)
        self._supersede(session, "superseded")

        in_flight = InFlightRequest(session_id=session_id)
        in_flight.task = asyncio.current_task()
        session.in_flight = in_flight
        self._metrics.total_requests += 1

        try:
            return await self._run(session, in_flight, request)
        except asyncio.CancelledError:
            in_flight.abort("cancelled")
            self._settle(session, in_flight, RequestState.CANCELLED)
            raise

    def trigger(self, session_id: str, request: CompletionRequest) -> "asyncio.Task":
        """Start a request in the background.

        The result reaches the host through `apply_completion`.

        Returns:
            The task running the request
        """
        task = asyncio.get_running_loop().create_task(
            self.request_completion(session_id, request)
        )
        self._tasks[session_id] = task
        task.add_done_callback(lambda done: self._forget_task(session_id, done))
        return task

    def cancel(self, session_id: str, reason: str = "cancelled") -> bool:
        """Abort the session's outstanding request.

        Returns:
            True if a request was aborted
        """
        session = self._sessions.get(session_id)
        if session is None or session.in_flight is None:
            return False
        in_flight = session.in_flight
        in_flight.abort(reason)
        return self._settle(session, in_flight, RequestState.CANCELLED)

    async def dismiss(self, session_id: str) -> None:
        """User dismissed the suggestion: abort and clear it in the host."""
        self.cancel(session_id, "dismissed")
        self._telemetry.suggestion_dismissed(session_id)
        try:
            await self._host.dismiss_completion(session_id)
        except Exception as e:
            logger.warning(f"Host failed to dismiss completion for {session_id}: {e}")

    async def close_session(self, session_id: str) -> None:
        """Abort outstanding work for a session and forget it."""
        self.cancel(session_id, "session closed")
        task = self._tasks.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._sessions.pop(session_id, None)

    async def dispose(self) -> None:
        """Cancel everything; later requests return None."""
        self._disposed = True
        for session_id in list(self._sessions):
            self.cancel(session_id, "disposed")
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._sessions.clear()
        self._suggestions.clear()

    # -- host events -----------------------------------------------------

    def on_document_changed(
        self,
        document_id: str,
        content: str,
        tree: object = None,
        language_id: Optional[str] = None,
    ) -> None:
        """Record a new version of a document.

        Args:
            document_id: Document URI or path
            content: Full new content
            tree: Syntax tree, parsed here if omitted and a parser is configured
            language_id: Language of the document (detected if omitted)
        """
        previous = self._document_history.get_most_recent_document_history(document_id)
        if tree is None and self._parser is not None:
            language_id = language_id or detect_language(document_id, content)
            try:
                tree = self._parser.parse(language_id, content)
            except Exception as e:
                logger.warning(f"Failed to parse {document_id}: {e}")
        self._document_history.push(document_id, content, tree)

        if previous is not None and previous != content:
            self._assembler.recently_edited.record_edit(document_id, previous, content)

    def on_document_closed(self, document_id: str) -> None:
        self._document_history.delete_document(document_id)
        self._assembler.recently_viewed.forget(document_id)

    def on_cursor_moved(self, file_path: str, content: str, line: int) -> None:
        self._assembler.recently_viewed.record_cursor(file_path, content, line)

    def on_visible_ranges_changed(self, file_path: str, ranges: list[VisibleRange]) -> None:
        for visible in ranges:
            self._assembler.recently_viewed.record_range(file_path, visible.content)

    def on_edit_accepted(
        self,
        diff_text: str,
        file_uri: str,
        workspace_uri: str = "",
        timestamp: Optional[float] = None,
    ) -> PreviousEdit:
        """Store an accepted edit in the edit history.

        Returns:
            The stored edit with its key
        """
        edit = PreviousEdit(diff_text=diff_text, file_uri=file_uri, workspace_uri=workspace_uri)
        if timestamp is not None:
            edit = replace(edit, timestamp=timestamp)
        stored = self._prev_edits.set_prev_edit(edit)
        self._telemetry.suggestion_accepted(file_uri)
        return stored

    # -- internals -------------------------------------------------------

    def _get_session(self, session_id: str) -> SessionState:
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionState(session_id=session_id)
            self._sessions[session_id] = session
        return session

    def _forget_task(self, session_id: str, task: "asyncio.Task") -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Completion task for {session_id} failed: {task.exception()}")

    def _supersede(self, session: SessionState, reason: str) -> None:
        if session.in_flight is None:
            return
        previous = session.in_flight
        logger.debug(f"Aborting request {previous.request_id} ({reason})")
        previous.abort(reason)
        self._settle(session, previous, RequestState.CANCELLED)

    def _settle(
        self, session: SessionState, in_flight: InFlightRequest, terminal: RequestState
    ) -> bool:
        if not session.settle(terminal, in_flight):
            return False
        if terminal == RequestState.CANCELLED:
            self._metrics.cancelled_requests += 1
        elif terminal == RequestState.FAILED:
            self._metrics.failed_requests += 1
        return True

    async def _run(
        self, session: SessionState, in_flight: InFlightRequest, request: CompletionRequest
    ) -> Optional[CompletionResult]:
        signal = in_flight.abort_signal
        try:
            strategy = self.resolve_strategy()
        except LookupError as e:
            logger.error(f"No strategy for model {self._model.model}: {e}")
            self._settle(session, in_flight, RequestState.FAILED)
            return None

        prefix, suffix = split_at_position(request.content, request.cursor)
        language_id = request.language_id or detect_language(request.file_path, request.content)

        if not strategy.replaces_region:
            cached = self._from_suggestion_history(
                session, in_flight, strategy, request, prefix, suffix
            )
            if cached is not None:
                await self._apply(session.session_id, cached)
                return cached

            if self._settings.enable_contextual_skip and should_skip_completion(
                prefix, suffix, language_id
            ):
                logger.debug(f"Skipping completion at {request.file_path}:{request.cursor.line}")
                self._metrics.skipped_requests += 1
                self._settle(session, in_flight, RequestState.COMPLETED)
                return None

        session.transition(RequestState.DEBOUNCING)
        if not await self._debouncer.wait(signal):
            self._settle(session, in_flight, RequestState.CANCELLED)
            return None

        session.transition(RequestState.IN_FLIGHT)
        self._telemetry.suggestion_requested(session.session_id, strategy.name)
        try:
            result = await asyncio.wait_for(
                self._execute(session.session_id, in_flight, strategy, request, prefix, suffix),
                timeout=self._settings.max_in_flight_seconds,
            )
        except asyncio.TimeoutError:
            in_flight.abort("timeout")
            logger.error(
                f"Completion request timed out after {self._settings.max_in_flight_seconds}s"
            )
            self._telemetry.request_failed(session.session_id, strategy.name, "timeout")
            self._settle(session, in_flight, RequestState.FAILED)
            return None
        except InvariantViolation:
            raise
        except Exception as e:
            in_flight.abort("failed")
            logger.error(f"Completion request failed ({strategy.name}): {e}")
            self._telemetry.request_failed(session.session_id, strategy.name, str(e))
            self._settle(session, in_flight, RequestState.FAILED)
            return None

        if signal.aborted:
            self._settle(session, in_flight, RequestState.CANCELLED)
            return None

        if result is None:
            self._metrics.empty_results += 1
            self._settle(session, in_flight, RequestState.COMPLETED)
            return None

        self._debouncer.record_latency(result.latency_ms)
        self._metrics.successful_requests += 1
        self._metrics.total_latency_ms += result.latency_ms
        session.last_result = result
        if self._settle(session, in_flight, RequestState.COMPLETED):
            await self._apply(session.session_id, result)
        return result

    def _from_suggestion_history(
        self,
        session: SessionState,
        in_flight: InFlightRequest,
        strategy: ModelStrategy,
        request: CompletionRequest,
        prefix: str,
        suffix: str,
    ) -> Optional[CompletionResult]:
        match = self._suggestions.find(prefix, suffix)
        if match is None or not match.text:
            return None

        text = apply_first_line_only(match.text, prefix)
        context = CompletionContext(
            current_file_content=request.content,
            editable_region_start_line=request.cursor.line,
            editable_region_end_line=request.cursor.line,
            cursor_position=request.cursor,
            file_path=request.file_path,
            language_shorthand="",
        )
        result = CompletionResult(
            completion_id=uuid.uuid4().hex,
            session_id=session.session_id,
            edit=strategy.to_edit(text, context),
            strategy=strategy.name,
            from_cache=True,
        )
        logger.debug(f"Serving {match.match_type.value} suggestion from history")
        self._metrics.cache_hits += 1
        self._metrics.successful_requests += 1
        session.last_result = result
        self._settle(session, in_flight, RequestState.COMPLETED)
        return result

    async def _apply(self, session_id: str, result: CompletionResult) -> None:
        self._telemetry.suggestion_shown(
            session_id, result.strategy, result.latency_ms, result.from_cache
        )
        try:
            await self._host.apply_completion(session_id, result.edit)
        except Exception as e:
            logger.warning(f"Host failed to apply completion for {session_id}: {e}")

    async def _execute(
        self,
        session_id: str,
        in_flight: InFlightRequest,
        strategy: ModelStrategy,
        request: CompletionRequest,
        prefix: str,
        suffix: str,
    ) -> Optional[CompletionResult]:
        signal = in_flight.abort_signal
        started = time.monotonic()

        region = strategy.calculate_editable_region(
            request.content,
            request.cursor,
            use_full_file_diff=self._settings.use_full_file_diff,
            count_tokens=self._count_tokens,
            token_budget=self._settings.editable_region_token_budget,
        )
        context = await self._assembler.build_context(
            request,
            (region.start_line, region.end_line),
            order=strategy.snippet_order,
            token_budget=strategy.snippet_token_budget,
        )
        if signal.aborted:
            return None

        if strategy.supports_fim:
            chunks = normalize_stream(
                self._transport.stream_fim(
                    FimRequest(
                        prefix=prefix,
                        suffix=suffix,
                        max_tokens=self._settings.fim_max_tokens,
                        temperature=self._settings.temperature,
                        stream=True,
                        stop=strategy.stop_sequences,
                        model=self._model.model,
                    )
                )
            )
        else:
            messages = [
                {"role": message.role, "content": message.content}
                for message in strategy.generate_prompts(context)
            ]
            chunks = self._chat_chunks(
                ChatRequest(
                    messages=messages,
                    stream=self._settings.stream_chat_responses,
                    temperature=self._settings.temperature,
                    model=self._model.model,
                )
            )

        stream: MulticastStream[ModelChunk] = MulticastStream(chunks)
        in_flight.stream = stream
        cost = CostListener(self._cost_sink, self._metrics)
        stream.listen(cost)

        parts: list[str] = []
        try:
            async for chunk in stream.tee():
                if signal.aborted:
                    break
                parts.append(chunk.text)
        finally:
            if not stream.done:
                stream.cancel()
            await stream.wait_closed()

        if signal.aborted:
            return None
        if stream.error is not None:
            if isinstance(stream.error, TransportError):
                raise stream.error
            raise TransportError(f"Model stream failed: {stream.error}") from stream.error

        try:
            text = strategy.extract_completion("".join(parts))
        except CompletionParseError as e:
            logger.warning(str(e))
            return None
        if strategy.replaces_region:
            region_text = "\n".join(context.lines[region.start_line : region.end_line + 1])
            if not text.strip() or text == region_text:
                return None
        else:
            cleaned = postprocess_suggestion(text, prefix, suffix)
            if not cleaned:
                return None
            self._suggestions.add(cleaned, prefix, suffix)
            text = apply_first_line_only(cleaned, prefix)

        return CompletionResult(
            completion_id=uuid.uuid4().hex,
            session_id=session_id,
            edit=strategy.to_edit(text, context),
            strategy=strategy.name,
            usage=cost.usage,
            latency_ms=(time.monotonic() - started) * 1000,
        )

    async def _chat_chunks(self, request: ChatRequest) -> AsyncIterator[ModelChunk]:
        chunks = normalize_stream(await open_chat(self._transport, request))
        try:
            async for chunk in chunks:
                yield chunk
        finally:
            await chunks.aclose()
