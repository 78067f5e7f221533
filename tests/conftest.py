# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Shared fixtures: fake editor host, fake model transport and sinks."""

import asyncio
from typing import Any, Optional

import pytest

from victor_nextedit.config import NextEditSettings, reset_settings
from victor_nextedit.history.document_history import reset_document_history_tracker
from victor_nextedit.history.prev_edits import reset_prev_edit_cache
from victor_nextedit.host import EditorViewport
from victor_nextedit.protocol import CompletionEdit, UsageSummary
from victor_nextedit.strategies.registry import reset_strategy_registry
from victor_nextedit.transport.protocol import ChatResponse


class FakeHost:
    """In-memory editor host."""

    def __init__(self, documents: Optional[dict[str, str]] = None, root: str = "/repo"):
        self.documents = documents or {}
        self.viewports: list[EditorViewport] = []
        self.root = root
        self.applied: list[tuple[str, CompletionEdit]] = []
        self.dismissed: list[str] = []
        self.failing_uris: set[str] = set()

    def visible_editors(self) -> list[EditorViewport]:
        return list(self.viewports)

    async def read_lines(self, uri: str, start_line: int, end_line: int) -> str:
        if uri in self.failing_uris:
            raise OSError(f"cannot read {uri}")
        lines = self.documents[uri].split("\n")
        return "\n".join(lines[start_line : end_line + 1])

    def workspace_root(self) -> Optional[str]:
        return self.root

    async def apply_completion(self, session_id: str, edit: CompletionEdit) -> None:
        self.applied.append((session_id, edit))

    async def dismiss_completion(self, session_id: str) -> None:
        self.dismissed.append(session_id)


class FakeTransport:
    """Model transport that replays scripted chunks.

    Attributes:
        fim_chunks: Values yielded by stream_fim
        chat_reply: Returned by chat (a ChatResponse or a list of chunks)
        chunk_delay: Seconds to sleep before each chunk
        error: Raised by the stream after the scripted chunks
    """

    def __init__(self):
        self.fim_chunks: list[Any] = []
        self.chat_reply: Any = ChatResponse(content="")
        self.chunk_delay = 0.0
        self.error: Optional[Exception] = None
        self.fim_requests: list = []
        self.chat_requests: list = []
        self.closed = 0

    async def stream_fim(self, request):
        self.fim_requests.append(request)
        try:
            for chunk in self.fim_chunks:
                if self.chunk_delay:
                    await asyncio.sleep(self.chunk_delay)
                yield chunk
            if self.error is not None:
                raise self.error
        finally:
            self.closed += 1

    async def chat(self, request):
        self.chat_requests.append(request)
        if isinstance(self.chat_reply, list):
            return self._iterate(self.chat_reply)
        return self.chat_reply

    async def _iterate(self, chunks):
        for chunk in chunks:
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            yield chunk


class RecordingCostSink:
    def __init__(self):
        self.records: list[UsageSummary] = []

    def record(self, usage: UsageSummary) -> None:
        self.records.append(usage)


class RecordingTelemetrySink:
    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def capture_event(self, name: str, properties: dict[str, Any]) -> None:
        self.events.append((name, properties))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture(autouse=True)
def reset_globals():
    """Isolate process-wide singletons between tests."""
    reset_settings()
    reset_document_history_tracker()
    reset_prev_edit_cache()
    reset_strategy_registry()
    yield
    reset_settings()
    reset_document_history_tracker()
    reset_prev_edit_cache()
    reset_strategy_registry()


@pytest.fixture
def settings() -> NextEditSettings:
    """Settings with no debounce delay and no contextual skip."""
    return NextEditSettings(
        debounce_initial_ms=0,
        debounce_min_ms=0,
        debounce_max_ms=1000,
        enable_contextual_skip=False,
        strict_invariants=True,
    )


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def cost_sink() -> RecordingCostSink:
    return RecordingCostSink()


@pytest.fixture
def telemetry_sink() -> RecordingTelemetrySink:
    return RecordingTelemetrySink()
