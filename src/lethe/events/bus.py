"""In-process pub/sub event bus for Lethe pipeline events."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

Handler = Callable[["LetheEvent", dict[str, Any]], None | Awaitable[None]]


class LetheEvent(StrEnum):
    """All event types published by Lethe components.

    Typed payload definitions for each event live in
    :mod:`lethe.events.payloads`.

    ``COMPRESSION_STARTED``
        :class:`~lethe.events.payloads.CompressionStartedPayload`:
        ``pending: int``, ``skipped: int``, ``concurrency: int``

    ``COMPRESSION_TASK_COMPLETED``
        :class:`~lethe.events.payloads.CompressionTaskCompletedPayload`:
        one terminal task (``success`` or ``failed``).

    ``COMPRESSION_TASK_RETRIED``
        :class:`~lethe.events.payloads.CompressionTaskRetriedPayload`:
        a failed attempt that was re-enqueued.

    ``COMPRESSION_COMPLETED``
        :class:`~lethe.events.payloads.CompressionCompletedPayload`:
        all fields of :class:`~lethe.models.compression.CompressionStats`.

    ``CLONE_COMPLETED``
        :class:`~lethe.events.payloads.CloneCompletedPayload`:
        ``source_log_id``, ``log_id``, ``output_path``.
    """

    COMPRESSION_STARTED = "compression.started"
    COMPRESSION_TASK_COMPLETED = "compression.task_completed"
    COMPRESSION_TASK_RETRIED = "compression.task_retried"
    COMPRESSION_COMPLETED = "compression.completed"

    CLONE_COMPLETED = "clone.completed"


class EventBus:
    """
    In-process pub/sub bus for pipeline progress.

    - Sync handlers are called inline within ``publish()``.
    - Async handlers are scheduled on the running loop; ``drain()`` awaits them.
    - Handler exceptions are logged but never propagate to the publisher.

    Example::

        bus = EventBus()

        def on_task(event, payload):
            print(f"record {payload['message_index']}: {payload['status']}")

        bus.subscribe(LetheEvent.COMPRESSION_TASK_COMPLETED, on_task)
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._handlers: dict[LetheEvent, list[Handler]] = {}
        self._global_handlers: list[Handler] = []
        self._pending: set[asyncio.Task[Any]] = set()
        self._logger = logger or structlog.get_logger("lethe.events")

    def subscribe(self, event: LetheEvent, handler: Handler) -> None:
        """Register a handler for a specific event type. May be sync or async."""
        self._handlers.setdefault(event, []).append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register a handler for ALL event types."""
        self._global_handlers.append(handler)

    def unsubscribe(self, event: LetheEvent, handler: Handler) -> None:
        """Remove a previously registered handler. No-op if not found."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: LetheEvent, payload: dict[str, Any]) -> None:
        """
        Deliver ``payload`` to the handlers of ``event``, then to global handlers.

        Coroutine results are scheduled on the running loop and tracked until
        they finish; see :meth:`drain`. Without a running loop they are
        discarded. A failing handler is logged and never reaches the publisher.
        """
        for handler in [*self._handlers.get(event, []), *self._global_handlers]:
            try:
                result = handler(event, payload)
            except Exception as exc:
                self._handler_failed(event, handler, exc)
                continue
            if asyncio.iscoroutine(result):
                self._schedule(event, handler, result)

    async def drain(self) -> None:
        """Wait for every async handler scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, event: LetheEvent, handler: Handler, coro: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return
        task = loop.create_task(coro)
        self._pending.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._pending.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                self._handler_failed(event, handler, finished.exception())

        task.add_done_callback(_done)

    def _handler_failed(self, event: LetheEvent, handler: Handler, exc: BaseException | None) -> None:
        self._logger.error(
            "event_handler_error",
            event_type=str(event),
            handler=getattr(handler, "__qualname__", repr(handler)),
            error=str(exc),
        )
