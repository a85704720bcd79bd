"""Shared fixtures for Lethe tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio
from pydantic import TypeAdapter

from lethe.events.bus import EventBus, LetheEvent
from lethe.models.compression import CompressionLevel, CompressionTask
from lethe.models.config import BatchConfig, LetheConfig, ProviderConfig, StoreConfig
from lethe.models.record import Record
from lethe.store.lineage import LineageStore
from lethe.store.records import RecordStore
from lethe.tokens.estimator import TokenEstimator

_RECORD: TypeAdapter[Any] = TypeAdapter(Record)


@pytest.fixture
def config(tmp_path):
    """LetheConfig with every path under a temp directory."""
    return LetheConfig(
        batch=BatchConfig(concurrency=3, max_attempts=4, min_tokens=30),
        provider=ProviderConfig(model="test/small", large_model="test/large"),
        store=StoreConfig(
            log_dir=str(tmp_path / "logs"),
            lineage_db_path=str(tmp_path / "lineage.db"),
            debug_log_dir=str(tmp_path / "debug"),
        ),
    )


@pytest.fixture
def record_store(config):
    """RecordStore rooted at the temp log directory."""
    return RecordStore(config.store.log_dir)


@pytest_asyncio.fixture
async def lineage(config):
    """Initialized LineageStore backed by a temp SQLite database."""
    store = LineageStore(config.store.lineage_db_path)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def estimator():
    return TokenEstimator()


@pytest.fixture
def event_bus():
    """EventBus with a .collected list for asserting events."""
    bus = EventBus()
    collected: list[tuple[LetheEvent, dict[str, Any]]] = []

    def _collect(event: LetheEvent, payload: dict[str, Any]) -> None:
        collected.append((event, payload))

    bus.subscribe_all(_collect)
    bus.collected = collected  # type: ignore[attr-defined]
    return bus


# ── Record builders ────────────────────────────────────────────────────────────


def make_record(data: dict[str, Any]) -> Record:
    """Validate a wire-shaped dict as a Record, exactly as a log line would be."""
    return _RECORD.validate_python(data)


def make_user(
    content: str | list[dict[str, Any]],
    uuid: str,
    parent: str | None = None,
    *,
    session_id: str | None = "sess-1",
    is_meta: bool = False,
    **extra: Any,
) -> Record:
    """Helper to create a user record. ``content`` is a string or wire-shaped blocks."""
    data: dict[str, Any] = {
        "type": "user",
        "uuid": uuid,
        "parentUuid": parent,
        "message": {"role": "user", "content": content},
        **extra,
    }
    if session_id is not None:
        data["sessionId"] = session_id
    if is_meta:
        data["isMeta"] = True
    return make_record(data)


def make_assistant(
    content: str | list[dict[str, Any]],
    uuid: str,
    parent: str | None = None,
    *,
    session_id: str | None = "sess-1",
    **extra: Any,
) -> Record:
    """Helper to create an assistant record."""
    data: dict[str, Any] = {
        "type": "assistant",
        "uuid": uuid,
        "parentUuid": parent,
        "message": {"role": "assistant", "content": content},
        **extra,
    }
    if session_id is not None:
        data["sessionId"] = session_id
    return make_record(data)


def text(value: str) -> dict[str, Any]:
    return {"type": "text", "text": value}


def thinking(value: str = "let me think") -> dict[str, Any]:
    return {"type": "thinking", "thinking": value, "signature": "sig"}


def tool_use(tool_id: str, name: str = "Read", input: Any = None) -> dict[str, Any]:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": input or {"path": "a.py"}}


def tool_result(tool_id: str, content: Any = "ok") -> dict[str, Any]:
    return {"type": "tool_result", "tool_use_id": tool_id, "content": content}


def tool_turn(n: int, *, prompt: str | None = None, answer: str | None = None) -> list[Record]:
    """
    One four-record turn: prompt, tool call (with thinking), tool result, answer.

    Record uuids are ``u{n}``, ``a{n}``, ``r{n}``, ``f{n}``; the turn's
    prompt links to ``f{n-1}``.
    """
    return [
        make_user(prompt or f"Question number {n}", f"u{n}", f"f{n - 1}" if n > 0 else None),
        make_assistant(
            [thinking(), text(f"Checking {n}"), tool_use(f"t{n}")], f"a{n}", f"u{n}"
        ),
        make_user([tool_result(f"t{n}", f"file contents {n}")], f"r{n}", f"a{n}"),
        make_assistant(answer or f"Answer number {n}", f"f{n}", f"r{n}"),
    ]


def make_conversation(turns: int) -> list[Record]:
    """``turns`` consecutive tool turns."""
    records: list[Record] = []
    for n in range(turns):
        records.extend(tool_turn(n))
    return records


def make_task(
    index: int,
    *,
    tokens: int = 100,
    level: CompressionLevel = "compress",
    status: str = "pending",
    timeout_ms: int = 1_000,
    content: str | None = None,
) -> CompressionTask:
    """Helper to create a CompressionTask directly, bypassing the task factory."""
    return CompressionTask(
        message_index=index,
        entry_type="user" if index % 2 == 0 else "assistant",
        original_content=content or f"content of record {index}",
        level=level,
        estimated_tokens=tokens,
        timeout_ms=timeout_ms,
        initial_timeout_ms=timeout_ms,
        status=status,
    )


# ── Fake compressors ───────────────────────────────────────────────────────────


class FixedCompressor:
    """Always succeeds with the same output. Records every call."""

    def __init__(self, output: str = "short") -> None:
        self.output = output
        self.calls: list[tuple[str, CompressionLevel, bool]] = []

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        self.calls.append((text, level, use_large_model))
        return self.output


class FailingCompressor:
    """Always raises. Counts attempts."""

    def __init__(self, message: str = "provider unavailable") -> None:
        self.message = message
        self.calls = 0

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        self.calls += 1
        raise RuntimeError(self.message)


class FlakyCompressor:
    """Fails the first ``failures`` calls for each input, then succeeds."""

    def __init__(self, failures: int, output: str = "short") -> None:
        self.failures = failures
        self.output = output
        self.attempts: dict[str, int] = {}

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        seen = self.attempts.get(text, 0)
        self.attempts[text] = seen + 1
        if seen < self.failures:
            raise RuntimeError(f"transient failure {seen + 1}")
        return self.output


class SlowCompressor:
    """Sleeps before answering; used to exceed small task timeouts."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.calls = 0

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return "late"


class TrackingCompressor:
    """Records the peak number of concurrent calls."""

    def __init__(self, delay: float = 0.01) -> None:
        self.delay = delay
        self.in_flight = 0
        self.peak = 0
        self.calls = 0

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        self.calls += 1
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return "short"
