# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for the orchestrator's building blocks and settings."""

import asyncio
import time

import pytest
from pydantic import ValidationError

from victor_nextedit.config import NextEditSettings, get_settings, load_settings
from victor_nextedit.orchestrator import (
    AbortSignal,
    AdaptiveDebouncer,
    CompletionMetrics,
    CompletionTelemetry,
    CostListener,
    InFlightRequest,
    MatchType,
    SessionState,
    SuggestionHistory,
    clean_completion,
    find_matching_suggestion,
    postprocess_suggestion,
    should_skip_completion,
)
from victor_nextedit.orchestrator.filters import has_extreme_repetition, is_duplication
from victor_nextedit.orchestrator.session import MAX_TRANSITIONS
from victor_nextedit.orchestrator.suggestions import (
    FillInSuggestion,
    apply_first_line_only,
    count_lines,
    should_show_only_first_line,
)
from victor_nextedit.protocol import RequestState, SnippetSource, UsageSummary
from victor_nextedit.transport import ModelChunk


class TestSuggestionMatching:
    """Reuse of earlier suggestions while the user types."""

    history = [FillInSuggestion(text="foo()", prefix="x = ", suffix="\n")]

    def test_exact_match(self):
        match = find_matching_suggestion("x = ", "\n", self.history)

        assert match.text == "foo()"
        assert match.match_type is MatchType.EXACT

    def test_partial_typing_returns_remainder(self):
        match = find_matching_suggestion("x = fo", "\n", self.history)

        assert match.text == "o()"
        assert match.match_type is MatchType.PARTIAL_TYPING

    def test_backward_deletion_restores_deleted_text(self):
        match = find_matching_suggestion("x =", "\n", self.history)

        assert match.text == " foo()"
        assert match.match_type is MatchType.BACKWARD_DELETION

    def test_diverging_typing_does_not_match(self):
        assert find_matching_suggestion("x = ba", "\n", self.history) is None
        assert find_matching_suggestion("x = ", "other", self.history) is None

    def test_most_recent_entry_wins(self):
        history = [
            FillInSuggestion(text="old", prefix="p", suffix=""),
            FillInSuggestion(text="new", prefix="p", suffix=""),
        ]

        assert find_matching_suggestion("p", "", history).text == "new"

    def test_history_skips_consecutive_duplicates_and_is_bounded(self):
        history = SuggestionHistory(max_size=2)
        history.add("a", "p", "s")
        history.add("a", "p", "s")
        assert len(history) == 1

        history.add("b", "p", "s")
        history.add("c", "p", "s")

        assert len(history) == 2
        assert history.find("p", "s").text == "c"

        history.clear()
        assert history.find("p", "s") is None


class TestFirstLineRule:
    def test_count_lines(self):
        assert count_lines("") == 0
        assert count_lines("a\n") == 1
        assert count_lines("a\r\nb") == 2

    def test_text_on_cursor_line_shows_first_line(self):
        assert should_show_only_first_line("x = ", "a\nb")
        assert apply_first_line_only("a\nb", "x = ") == "a"

    def test_suggestion_starting_with_newline_shows_block(self):
        assert not should_show_only_first_line("def f():", "\n    pass")

    def test_blank_line_shows_short_blocks(self):
        assert not should_show_only_first_line("\n    ", "a\nb")
        assert should_show_only_first_line("\n    ", "a\nb\nc")


class TestSkipRules:
    """Cursor positions where no request is made."""

    def test_after_statement_terminator(self):
        assert should_skip_completion("const x = 5;", "\n", "typescript")

    def test_after_python_colon(self):
        assert not should_skip_completion("def foo():", "\n", "python")

    def test_mid_word(self):
        assert should_skip_completion("x = comp", "")
        assert not should_skip_completion("x = co", "")

    def test_word_after_cursor(self):
        assert should_skip_completion("x = (", "foo)")

    def test_blank_line_never_skips(self):
        assert not should_skip_completion("a\n   ", "value")

    def test_keyword_terminator(self):
        assert should_skip_completion("then echo; fi", "", "bash")


class TestPostprocessing:
    def test_clean_removes_suffix_overlap(self):
        assert clean_completion("a + b;\n}", "\n}") == "a + b;"

    def test_clean_strips_fim_tokens(self):
        assert clean_completion("value<|fim_middle|>  ", "") == "value"

    def test_duplication(self):
        assert is_duplication("   ", "x", "y")
        assert is_duplication("return x", "    return x", "")
        assert is_duplication("}", "", "  }\n")
        assert is_duplication("foo()", "foo()\n", "")
        assert not is_duplication("bar()", "foo()\n", "")

    def test_extreme_repetition(self):
        assert has_extreme_repetition("x\n" * 6)
        assert not has_extreme_repetition("x\n" * 5)
        assert not has_extreme_repetition("x\n\nx\n\nx\n\nx\n\nx\n\nx\n\nx")

    def test_postprocess_drops_duplicates(self):
        assert postprocess_suggestion("return x", "return x", "") is None
        assert postprocess_suggestion("a + b;", "return ", "\n}") == "a + b;"


class TestAbortSignal:
    def test_callbacks_run_once(self):
        signal = AbortSignal()
        calls = []
        signal.add_callback(lambda: calls.append("a"))

        signal.abort("superseded")
        signal.abort("again")

        assert calls == ["a"]
        assert signal.aborted
        assert signal.reason == "superseded"

    def test_callback_added_after_abort_runs_immediately(self):
        signal = AbortSignal()
        signal.abort()
        calls = []

        signal.add_callback(lambda: calls.append(1))

        assert calls == [1]

    def test_failing_callback_does_not_block_others(self):
        signal = AbortSignal()
        calls = []

        def broken():
            raise RuntimeError("boom")

        signal.add_callback(broken)
        signal.add_callback(lambda: calls.append(1))
        signal.abort()

        assert calls == [1]


class TestAdaptiveDebouncer:
    """Delay follows the recent latency mean."""

    def test_initial_delay_until_enough_samples(self):
        debouncer = AdaptiveDebouncer(initial_ms=300, min_ms=150, max_ms=1000, sample_size=3)
        debouncer.record_latency(500)
        debouncer.record_latency(500)

        assert debouncer.delay_ms == 300

        debouncer.record_latency(800)
        assert debouncer.delay_ms == 600

    def test_delay_is_clamped(self):
        debouncer = AdaptiveDebouncer(initial_ms=300, min_ms=150, max_ms=1000, sample_size=2)
        debouncer.record_latency(10)
        debouncer.record_latency(20)
        assert debouncer.delay_ms == 150

        debouncer.record_latency(5000)
        debouncer.record_latency(5000)
        assert debouncer.delay_ms == 1000

    def test_only_recent_samples_count(self):
        debouncer = AdaptiveDebouncer(initial_ms=0, min_ms=0, max_ms=10_000, sample_size=2)
        for latency in (900, 200, 400):
            debouncer.record_latency(latency)

        assert debouncer.samples == [200, 400]
        assert debouncer.delay_ms == 300

        debouncer.reset()
        assert debouncer.delay_ms == 0

    def test_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            AdaptiveDebouncer(min_ms=500, max_ms=100)

    @pytest.mark.asyncio
    async def test_wait_completes_without_abort(self):
        debouncer = AdaptiveDebouncer(initial_ms=0, min_ms=0)

        assert await debouncer.wait(AbortSignal()) is True
        assert await debouncer.wait() is True

    @pytest.mark.asyncio
    async def test_wait_returns_false_when_already_aborted(self):
        signal = AbortSignal()
        signal.abort()

        assert await AdaptiveDebouncer().wait(signal) is False

    @pytest.mark.asyncio
    async def test_abort_wakes_waiter_early(self):
        debouncer = AdaptiveDebouncer(initial_ms=5000, min_ms=0, max_ms=5000)
        signal = AbortSignal()
        asyncio.get_running_loop().call_later(0.01, signal.abort)

        started = time.monotonic()
        result = await debouncer.wait(signal)

        assert result is False
        assert time.monotonic() - started < 1.0


class TestSessionState:
    def test_settle_returns_to_idle(self):
        session = SessionState(session_id="s")
        request = InFlightRequest(session_id="s")
        session.in_flight = request
        session.transition(RequestState.DEBOUNCING)

        assert session.settle(RequestState.COMPLETED, request) is True
        assert session.state is RequestState.IDLE
        assert session.in_flight is None
        assert session.transitions[-2:] == [RequestState.COMPLETED, RequestState.IDLE]

    def test_superseded_request_cannot_settle(self):
        session = SessionState(session_id="s")
        old = InFlightRequest(session_id="s")
        new = InFlightRequest(session_id="s")
        session.in_flight = new
        session.transition(RequestState.IN_FLIGHT)

        assert session.settle(RequestState.CANCELLED, old) is False
        assert session.state is RequestState.IN_FLIGHT
        assert session.in_flight is new

    def test_transition_log_is_bounded(self):
        session = SessionState(session_id="s")
        for _ in range(MAX_TRANSITIONS + 10):
            session.transition(RequestState.DEBOUNCING)

        assert len(session.transitions) == MAX_TRANSITIONS

    def test_abort_cancels_stream(self):
        class Stream:
            cancelled = False

            def cancel(self):
                self.cancelled = True

        request = InFlightRequest(session_id="s", stream=Stream())
        request.abort("superseded")

        assert request.abort_signal.aborted
        assert request.stream.cancelled


class TestCostListener:
    def test_usage_is_summed_and_recorded_once(self):
        records = []

        class Sink:
            def record(self, usage):
                records.append(usage)

        metrics = CompletionMetrics()
        listener = CostListener(Sink(), metrics)
        listener(ModelChunk(text="a"))
        listener(ModelChunk(usage=UsageSummary(cost=0.25, input_tokens=10)))
        listener(ModelChunk(usage=UsageSummary(cost=0.25, output_tokens=5)))
        listener(None)
        listener(None)

        assert records == [UsageSummary(cost=0.5, input_tokens=10, output_tokens=5)]
        assert listener.recorded
        assert metrics.total_tokens_used == 15
        assert metrics.total_cost == 0.5

    def test_zero_usage_is_still_recorded(self):
        metrics = CompletionMetrics()
        listener = CostListener(metrics=metrics)
        listener(None)

        assert listener.recorded
        assert listener.usage == UsageSummary()


class TestTelemetry:
    def test_events_are_prefixed(self):
        events = []

        class Sink:
            def capture_event(self, name, properties):
                events.append((name, properties))

        CompletionTelemetry(Sink()).suggestion_dismissed("s1")

        assert events == [("nextedit.suggestion_dismissed", {"session_id": "s1"})]

    def test_failing_sink_is_ignored(self):
        class Sink:
            def capture_event(self, name, properties):
                raise RuntimeError("offline")

        CompletionTelemetry(Sink()).suggestion_requested("s1", "fim-default")
        CompletionTelemetry(None).suggestion_requested("s1", "fim-default")

    def test_metrics_average(self):
        metrics = CompletionMetrics(successful_requests=4, total_latency_ms=400)

        assert metrics.avg_latency_ms == 100
        assert metrics.to_dict()["avg_latency_ms"] == 100
        assert CompletionMetrics().avg_latency_ms == 0.0

    def test_metrics_average_ignores_cache_hits_and_empty_results(self):
        metrics = CompletionMetrics(
            successful_requests=3, cache_hits=1, empty_results=2, total_latency_ms=400
        )

        assert metrics.avg_latency_ms == 200
        assert CompletionMetrics(successful_requests=2, cache_hits=2).avg_latency_ms == 0.0


class TestSettings:
    """YAML, environment and validation."""

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "nextedit.yaml"
        path.write_text(
            "prev_edit_capacity: 7\n"
            "snippet_order: [static, recently_viewed]\n"
            "static_snippets:\n"
            "  - file_path: docs/style.md\n"
            "    content: Use snake_case.\n"
        )

        settings = load_settings(path)

        assert settings.prev_edit_capacity == 7
        assert settings.snippet_order == [SnippetSource.STATIC, SnippetSource.RECENTLY_VIEWED]
        assert settings.static_snippets[0].file_path == "docs/style.md"

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.yaml")

        assert settings.prev_edit_capacity == 5
        assert settings.debounce_initial_ms == 300

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            load_settings(path)

    def test_environment_and_overrides(self, monkeypatch):
        monkeypatch.setenv("VICTOR_NEXTEDIT_DEBOUNCE_INITIAL_MS", "50")

        assert NextEditSettings().debounce_initial_ms == 50
        assert load_settings(debounce_initial_ms=10).debounce_initial_ms == 10

    def test_debounce_bounds_validated(self):
        with pytest.raises(ValidationError):
            NextEditSettings(debounce_min_ms=500, debounce_max_ms=100)

    def test_duplicate_snippet_sources_rejected(self):
        with pytest.raises(ValidationError):
            NextEditSettings(snippet_order=["static", "static"])

    def test_global_settings_singleton(self):
        assert get_settings() is get_settings()
