"""Typed payload definitions for each LetheEvent.

Usage example::

    from lethe.events.bus import EventBus, LetheEvent
    from lethe.events.payloads import CompressionCompletedPayload

    def on_done(event: LetheEvent, payload: CompressionCompletedPayload) -> None:
        print(f"{payload['reduction_percent']}% smaller")

    bus.subscribe(LetheEvent.COMPRESSION_COMPLETED, on_done)  # type: ignore[arg-type]
"""

from __future__ import annotations

from typing import TypedDict


class CompressionStartedPayload(TypedDict):
    """Payload for :attr:`LetheEvent.COMPRESSION_STARTED`."""

    pending: int
    """Tasks that will be submitted to the compressor."""
    skipped: int
    """Tasks below the minimum-token threshold."""
    concurrency: int


class CompressionTaskCompletedPayload(TypedDict):
    """Payload for :attr:`LetheEvent.COMPRESSION_TASK_COMPLETED`."""

    message_index: int
    status: str
    """``"success"`` or ``"failed"``."""
    attempts: int
    duration_ms: int | None


class CompressionTaskRetriedPayload(TypedDict):
    """Payload for :attr:`LetheEvent.COMPRESSION_TASK_RETRIED`."""

    message_index: int
    attempt: int
    """Failed attempts so far."""
    timeout_ms: int
    """Timeout for the next attempt."""
    error: str


class CompressionCompletedPayload(TypedDict):
    """Payload for :attr:`LetheEvent.COMPRESSION_COMPLETED`."""

    messages_compressed: int
    messages_skipped: int
    messages_failed: int
    original_tokens: int
    compressed_tokens: int
    tokens_removed: int
    reduction_percent: int
    total_duration_ms: int | None
    avg_duration_ms: int | None


class CloneCompletedPayload(TypedDict):
    """Payload for :attr:`LetheEvent.CLONE_COMPLETED`."""

    source_log_id: str
    log_id: str
    output_path: str
