# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""End-to-end tests for the completion orchestrator."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from victor_nextedit.config import NextEditSettings
from victor_nextedit.history import DocumentHistoryTracker, PrevEditCache
from victor_nextedit.host import EditorViewport
from victor_nextedit.orchestrator import CompletionOrchestrator
from victor_nextedit.protocol import (
    CompletionRequest,
    CompletionStyle,
    ModelDescription,
    Position,
    Range,
    RequestState,
    UsageSummary,
    VisibleRange,
)
from victor_nextedit.transport import ChatResponse, ModelChunk

JS_CONTENT = "function add(a, b) {\n  return \n}"
JS_CURSOR = Position(1, 9)


def js_request(content: str = JS_CONTENT, cursor: Position = JS_CURSOR) -> CompletionRequest:
    return CompletionRequest(
        document_id="file:///repo/add.js",
        file_path="/repo/add.js",
        content=content,
        cursor=cursor,
    )


def make_orchestrator(
    host, transport, settings, model: str = "codestral-latest", **kwargs
) -> CompletionOrchestrator:
    kwargs.setdefault("document_history", DocumentHistoryTracker())
    kwargs.setdefault("prev_edit_cache", PrevEditCache())
    return CompletionOrchestrator(
        host, transport, ModelDescription(model=model), settings=settings, **kwargs
    )


class TestFimCompletion:
    """Insertion completions through a FIM model."""

    @pytest.mark.asyncio
    async def test_streamed_completion_reaches_host(
        self, host, transport, settings, cost_sink, telemetry_sink
    ):
        usage = UsageSummary(cost=0.01, input_tokens=12, output_tokens=3)
        transport.fim_chunks = ["a", " + ", ModelChunk(text="b;", usage=usage)]
        orchestrator = make_orchestrator(
            host, transport, settings, cost_sink=cost_sink, telemetry_sink=telemetry_sink
        )

        result = await orchestrator.request_completion("editor-1", js_request())

        assert result is not None
        assert result.edit.text == "a + b;"
        assert result.edit.range == Range.empty(JS_CURSOR)
        assert result.edit.style is CompletionStyle.FIM
        assert result.strategy == "codestral"
        assert result.usage == usage
        assert not result.from_cache

        request = transport.fim_requests[0]
        assert request.prefix == "function add(a, b) {\n  return "
        assert request.suffix == "\n}"
        assert request.model == "codestral-latest"

        assert host.applied == [("editor-1", result.edit)]
        assert cost_sink.records == [usage]
        assert transport.closed == 1
        assert orchestrator.state("editor-1") is RequestState.IDLE
        assert telemetry_sink.names == [
            "nextedit.suggestion_requested",
            "nextedit.suggestion_shown",
        ]

    @pytest.mark.asyncio
    async def test_state_machine_path(self, host, transport, settings):
        transport.fim_chunks = ["a + b;"]
        orchestrator = make_orchestrator(host, transport, settings)

        await orchestrator.request_completion("s", js_request())

        assert orchestrator.session("s").transitions == [
            RequestState.DEBOUNCING,
            RequestState.IN_FLIGHT,
            RequestState.COMPLETED,
            RequestState.IDLE,
        ]
        assert orchestrator.metrics.successful_requests == 1
        assert len(orchestrator.debouncer.samples) == 1

    @pytest.mark.asyncio
    async def test_empty_output_is_no_suggestion(self, host, transport, settings):
        transport.fim_chunks = ["   "]
        orchestrator = make_orchestrator(host, transport, settings)

        result = await orchestrator.request_completion("s", js_request())

        assert result is None
        assert host.applied == []
        assert orchestrator.metrics.empty_results == 1
        assert orchestrator.session("s").transitions[-2] is RequestState.COMPLETED

    @pytest.mark.asyncio
    async def test_multi_line_completion_cut_to_first_line(self, host, transport, settings):
        transport.fim_chunks = ["a + b;\n  // done"]
        orchestrator = make_orchestrator(host, transport, settings)

        result = await orchestrator.request_completion("s", js_request())

        assert result.edit.text == "a + b;"


class TestSupersession:
    """One outstanding request per session."""

    @pytest.mark.asyncio
    async def test_new_request_aborts_in_flight_one(self, host, transport, settings):
        transport.fim_chunks = ["a", " + ", "b;"]
        transport.chunk_delay = 0.05
        orchestrator = make_orchestrator(host, transport, settings)

        first = asyncio.ensure_future(orchestrator.request_completion("s", js_request()))
        await asyncio.sleep(0.01)
        second = await orchestrator.request_completion("s", js_request())

        assert await first is None
        assert second is not None
        assert second.edit.text == "a + b;"
        assert len(host.applied) == 1
        assert transport.closed == 2
        assert orchestrator.metrics.cancelled_requests == 1
        assert orchestrator.metrics.total_requests == 2

    @pytest.mark.asyncio
    async def test_superseded_request_still_records_cost(
        self, host, transport, settings, cost_sink
    ):
        usage = UsageSummary(input_tokens=7)
        transport.fim_chunks = [ModelChunk(text="a", usage=usage), " + ", "b;"]
        transport.chunk_delay = 0.05
        orchestrator = make_orchestrator(host, transport, settings, cost_sink=cost_sink)

        first = asyncio.ensure_future(orchestrator.request_completion("s", js_request()))
        # Long enough for the first chunk, and its usage, to arrive
        await asyncio.sleep(0.08)
        second = await orchestrator.request_completion("s", js_request())

        assert await first is None
        assert second is not None
        assert orchestrator.metrics.cancelled_requests == 1
        assert len(cost_sink.records) == 2
        # The superseded request settles first
        assert cost_sink.records[0] == usage
        assert second.usage == usage
        assert orchestrator.metrics.total_tokens_used == 14

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self, host, transport, settings):
        transport.fim_chunks = ["a + b;"]
        transport.chunk_delay = 0.02
        orchestrator = make_orchestrator(host, transport, settings)

        results = await asyncio.gather(
            orchestrator.request_completion("left", js_request()),
            orchestrator.request_completion("right", js_request()),
        )

        assert all(result is not None for result in results)
        assert orchestrator.metrics.cancelled_requests == 0

    @pytest.mark.asyncio
    async def test_cancel_during_debounce_skips_model(self, host, transport):
        settings = NextEditSettings(
            debounce_initial_ms=5000, debounce_min_ms=0, enable_contextual_skip=False
        )
        orchestrator = make_orchestrator(host, transport, settings)

        task = orchestrator.trigger("s", js_request())
        await asyncio.sleep(0.01)
        assert orchestrator.state("s") is RequestState.DEBOUNCING

        assert orchestrator.cancel("s") is True
        assert await asyncio.wait_for(task, timeout=1) is None
        assert transport.fim_requests == []
        assert orchestrator.state("s") is RequestState.IDLE
        assert orchestrator.cancel("s") is False

    @pytest.mark.asyncio
    async def test_dismiss_clears_host(self, host, transport, settings, telemetry_sink):
        orchestrator = make_orchestrator(host, transport, settings, telemetry_sink=telemetry_sink)

        await orchestrator.dismiss("s")

        assert host.dismissed == ["s"]
        assert "nextedit.suggestion_dismissed" in telemetry_sink.names


class TestFailures:
    """Transport errors and timeouts end in FAILED without a suggestion."""

    @pytest.mark.asyncio
    async def test_transport_error(self, host, transport, settings, telemetry_sink):
        transport.fim_chunks = ["a"]
        transport.error = RuntimeError("connection reset")
        orchestrator = make_orchestrator(host, transport, settings, telemetry_sink=telemetry_sink)

        result = await orchestrator.request_completion("s", js_request())

        assert result is None
        assert host.applied == []
        assert orchestrator.metrics.failed_requests == 1
        assert orchestrator.session("s").transitions[-2] is RequestState.FAILED
        assert "nextedit.request_failed" in telemetry_sink.names

    @pytest.mark.asyncio
    async def test_timeout(self, host, transport):
        settings = NextEditSettings(
            debounce_initial_ms=0,
            debounce_min_ms=0,
            max_in_flight_seconds=0.05,
            enable_contextual_skip=False,
        )
        transport.fim_chunks = ["a"]
        transport.chunk_delay = 1.0
        orchestrator = make_orchestrator(host, transport, settings)

        result = await asyncio.wait_for(
            orchestrator.request_completion("s", js_request()), timeout=2
        )

        assert result is None
        assert orchestrator.metrics.failed_requests == 1
        assert orchestrator.state("s") is RequestState.IDLE
        assert transport.closed == 1

    @pytest.mark.asyncio
    async def test_host_enumeration_failure_still_completes(self, host, transport, settings):
        host.visible_editors = Mock(side_effect=RuntimeError("host enumeration failed"))
        transport.fim_chunks = ["a + b;"]
        orchestrator = make_orchestrator(host, transport, settings)

        result = await orchestrator.request_completion("s", js_request())

        assert result is not None
        assert result.edit.text == "a + b;"
        assert orchestrator.metrics.failed_requests == 0
        host.visible_editors.assert_called()

    @pytest.mark.asyncio
    async def test_failing_access_policy_still_completes(self, host, transport, settings):
        policy = Mock()
        policy.validate_access.side_effect = PermissionError("policy backend down")
        host.documents["file:///repo/other.js"] = "const other = 1;"
        host.viewports = [EditorViewport(uri="file:///repo/other.js", visible_ranges=[(0, 0)])]
        transport.fim_chunks = ["a + b;"]
        orchestrator = make_orchestrator(host, transport, settings, policy=policy)

        result = await orchestrator.request_completion("s", js_request())

        assert result is not None
        assert result.edit.text == "a + b;"
        assert orchestrator.metrics.failed_requests == 0
        policy.validate_access.assert_any_call("other.js")

    @pytest.mark.asyncio
    async def test_host_apply_failure_is_logged(self, host, transport, settings):
        host.apply_completion = AsyncMock(side_effect=RuntimeError("editor closed"))
        transport.fim_chunks = ["a + b;"]
        orchestrator = make_orchestrator(host, transport, settings)

        result = await orchestrator.request_completion("s", js_request())

        assert result is not None
        host.apply_completion.assert_awaited_once_with("s", result.edit)
        assert orchestrator.metrics.successful_requests == 1


class TestChatStrategies:
    """Next-edit and hole-filler models over the chat transport."""

    @pytest.mark.asyncio
    async def test_next_edit_replaces_region(self, host, transport, settings):
        transport.chat_reply = ChatResponse(content="```\ny = 3\n```")
        orchestrator = make_orchestrator(host, transport, settings, model="mercury-coder-small")
        request = CompletionRequest(
            document_id="file:///repo/a.py",
            file_path="/repo/a.py",
            content="x = 1\ny = 2",
            cursor=Position(1, 5),
        )

        result = await orchestrator.request_completion("s", request)

        assert result is not None
        assert result.strategy == "mercury-coder"
        assert result.edit.text == "y = 3"
        assert result.edit.range == Range(Position(1, 0), Position(1, 5))
        assert not result.edit.is_insertion

        chat = transport.chat_requests[0]
        assert [m["role"] for m in chat.messages] == ["system", "user"]
        assert "<|code_to_edit|>" in chat.messages[1]["content"]
        assert transport.fim_requests == []

    @pytest.mark.asyncio
    async def test_unchanged_region_is_no_suggestion(self, host, transport, settings):
        transport.chat_reply = ChatResponse(content="```\ny = 2\n```")
        orchestrator = make_orchestrator(host, transport, settings, model="mercury-coder-small")
        request = CompletionRequest(
            document_id="file:///repo/a.py",
            file_path="/repo/a.py",
            content="x = 1\ny = 2",
            cursor=Position(1, 5),
        )

        assert await orchestrator.request_completion("s", request) is None
        assert orchestrator.metrics.empty_results == 1

    @pytest.mark.asyncio
    async def test_hole_filler_streams_chat(self, host, transport, settings):
        transport.chat_reply = ["<COMPLETION>a + ", "b</COMPLETION>"]
        orchestrator = make_orchestrator(host, transport, settings, model="gpt-4o-mini")
        request = CompletionRequest(
            document_id="file:///repo/add.py",
            file_path="/repo/add.py",
            content="def add(a, b):\n    return ",
            cursor=Position(1, 11),
        )

        result = await orchestrator.request_completion("s", request)

        assert result is not None
        assert result.strategy == "hole-filler"
        assert result.edit.text == "a + b"
        assert result.edit.range == Range.empty(Position(1, 11))
        assert "<LANGUAGE>python</LANGUAGE>" in transport.chat_requests[0].messages[-1]["content"]


class TestSuggestionReuse:
    @pytest.mark.asyncio
    async def test_typing_through_suggestion_uses_history(self, host, transport, settings):
        transport.fim_chunks = ["a + b;"]
        orchestrator = make_orchestrator(host, transport, settings)
        await orchestrator.request_completion("s", js_request())

        typed = js_request("function add(a, b) {\n  return a\n}", Position(1, 10))
        result = await orchestrator.request_completion("s", typed)

        assert result.from_cache
        assert result.edit.text == " + b;"
        assert len(transport.fim_requests) == 1
        assert orchestrator.metrics.cache_hits == 1
        assert len(host.applied) == 2

    @pytest.mark.asyncio
    async def test_model_switch_forgets_suggestions(self, host, transport, settings):
        transport.fim_chunks = ["a + b;"]
        orchestrator = make_orchestrator(host, transport, settings)
        await orchestrator.request_completion("s", js_request())

        orchestrator.set_model(ModelDescription(model="starcoder2"))
        result = await orchestrator.request_completion("s", js_request())

        assert not result.from_cache
        assert result.strategy == "starcoder"
        assert len(transport.fim_requests) == 2

    @pytest.mark.asyncio
    async def test_contextual_skip(self, host, transport):
        settings = NextEditSettings(debounce_initial_ms=0, debounce_min_ms=0)
        orchestrator = make_orchestrator(host, transport, settings)
        request = CompletionRequest(
            document_id="file:///repo/a.ts",
            file_path="/repo/a.ts",
            content="const x = 5;",
            cursor=Position(0, 12),
        )

        assert await orchestrator.request_completion("s", request) is None
        assert transport.fim_requests == []
        assert orchestrator.metrics.skipped_requests == 1


class TestHostEvents:
    """Document, cursor and edit notifications."""

    def test_document_changes_feed_history_and_edited_ranges(self, host, transport, settings):
        tracker = DocumentHistoryTracker()

        class Parser:
            def parse(self, language_id, content):
                return f"tree:{language_id}"

        orchestrator = make_orchestrator(
            host, transport, settings, document_history=tracker, parser=Parser()
        )

        orchestrator.on_document_changed("/repo/a.py", "x = 1\n")
        orchestrator.on_document_changed("/repo/a.py", "x = 2\n")

        assert tracker.get_most_recent_document_history("/repo/a.py") == "x = 2\n"
        assert tracker.get_most_recent_ast("/repo/a.py") == "tree:python"
        ranges = orchestrator.assembler.recently_edited.get_ranges()
        assert [r.file_path for r in ranges] == ["/repo/a.py"]

    def test_parser_failure_still_records_snapshot(self, host, transport, settings):
        tracker = DocumentHistoryTracker()
        parser = Mock()
        parser.parse = Mock(side_effect=ValueError("bad grammar"))

        orchestrator = make_orchestrator(
            host, transport, settings, document_history=tracker, parser=parser
        )
        orchestrator.on_document_changed("/repo/a.py", "x = 1\n", language_id="python")

        parser.parse.assert_called_once_with("python", "x = 1\n")
        assert tracker.get_most_recent_document_history("/repo/a.py") == "x = 1\n"
        assert tracker.get_most_recent_ast("/repo/a.py") is None

    def test_document_closed_forgets_history(self, host, transport, settings):
        tracker = DocumentHistoryTracker()
        orchestrator = make_orchestrator(host, transport, settings, document_history=tracker)
        orchestrator.on_document_changed("/repo/a.py", "x")

        orchestrator.on_document_closed("/repo/a.py")

        assert "/repo/a.py" not in tracker

    @pytest.mark.asyncio
    async def test_viewed_ranges_become_snippets(self, host, transport, settings):
        orchestrator = make_orchestrator(host, transport, settings)
        orchestrator.on_cursor_moved("/repo/b.py", "def helper():\n    pass", 0)
        orchestrator.on_visible_ranges_changed(
            "/repo/c.py",
            [VisibleRange(start_line=0, end_line=0, content="CONSTANT = 1")],
        )

        snippets = await orchestrator.assembler.recently_viewed.get_snippets()

        assert {s.file_path for s in snippets} == {"/repo/b.py", "/repo/c.py"}

    def test_accepted_edit_is_stored(self, host, transport, settings, telemetry_sink):
        cache = PrevEditCache()
        orchestrator = make_orchestrator(
            host, transport, settings, prev_edit_cache=cache, telemetry_sink=telemetry_sink
        )

        stored = orchestrator.on_edit_accepted("-a\n+b\n", "file:///repo/a.py", timestamp=10.0)

        assert stored.key
        assert stored.timestamp == 10.0
        assert cache.get_prev_edits_descending() == [stored]
        assert telemetry_sink.names == ["nextedit.suggestion_accepted"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_dispose_cancels_background_requests(self, host, transport):
        settings = NextEditSettings(
            debounce_initial_ms=5000, debounce_min_ms=0, enable_contextual_skip=False
        )
        orchestrator = make_orchestrator(host, transport, settings)
        task = orchestrator.trigger("s", js_request())
        await asyncio.sleep(0.01)

        await orchestrator.dispose()

        assert task.done()
        assert transport.fim_requests == []
        assert await orchestrator.request_completion("s", js_request()) is None
        assert orchestrator.state("s") is RequestState.IDLE

    @pytest.mark.asyncio
    async def test_close_session_forgets_state(self, host, transport):
        settings = NextEditSettings(
            debounce_initial_ms=5000, debounce_min_ms=0, enable_contextual_skip=False
        )
        orchestrator = make_orchestrator(host, transport, settings)
        task = orchestrator.trigger("s", js_request())
        await asyncio.sleep(0.01)

        await orchestrator.close_session("s")

        assert task.done()
        assert orchestrator.session("s") is None

    @pytest.mark.asyncio
    async def test_caller_cancellation_settles_cancelled(self, host, transport):
        settings = NextEditSettings(
            debounce_initial_ms=5000, debounce_min_ms=0, enable_contextual_skip=False
        )
        orchestrator = make_orchestrator(host, transport, settings)
        task = asyncio.ensure_future(orchestrator.request_completion("s", js_request()))
        await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert orchestrator.state("s") is RequestState.IDLE
        assert orchestrator.metrics.cancelled_requests == 1
