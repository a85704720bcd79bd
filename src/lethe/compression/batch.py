"""Batch engine: bounded-concurrency compression with timeout-escalating retries."""

from __future__ import annotations

import asyncio
import time
from collections import deque

import structlog

from lethe.compression.provider import Compressor
from lethe.events.bus import EventBus, LetheEvent
from lethe.models.compression import CompressionTask
from lethe.models.config import BatchConfig

MAX_TIMEOUT_MULTIPLIER: float = 3.0


def retry_timeout_ms(initial_timeout_ms: int, attempt: int) -> int:
    """
    Timeout for the attempt following ``attempt`` failures.

    Grows linearly from the first attempt's timeout: 1.5x after one failure,
    2x after two, 2.5x after three, never more than 3x.
    """
    return round(initial_timeout_ms * min(1 + attempt * 0.5, MAX_TIMEOUT_MULTIPLIER))


class BatchEngine:
    """
    Runs pending compression tasks against a :class:`Compressor`.

    Pending tasks are taken from a FIFO queue in batches of ``concurrency``.
    All members of a batch run concurrently and the engine waits for the whole
    batch to settle before starting the next one, so no more than
    ``concurrency`` calls are ever in flight. Each call races a timer set to
    the task's current timeout; a timeout counts as a failure.

    A failed task goes to the back of the queue with ``attempt + 1`` and a
    longer timeout until ``max_attempts`` attempts have been made, then it is
    marked ``failed``. Failures never propagate out of :meth:`run`.

    Example::

        engine = BatchEngine(compressor, BatchConfig(concurrency=3, max_attempts=4))
        finished = await engine.run(tasks)
        compressed = [t for t in finished if t.status == "success"]
    """

    def __init__(
        self,
        compressor: Compressor,
        config: BatchConfig,
        event_bus: EventBus | None = None,
    ) -> None:
        self._compressor = compressor
        self._config = config
        self._event_bus = event_bus
        self._logger = structlog.get_logger("lethe.batch")

    async def run(self, tasks: list[CompressionTask]) -> list[CompressionTask]:
        """
        Drive every pending task to a terminal state.

        Args:
            tasks: Tasks from the task factory. ``skipped`` tasks are passed
                through untouched and never reach the compressor.

        Returns:
            Every terminal task (success, failed and skipped), sorted by
            ``message_index``.
        """
        pending: deque[CompressionTask] = deque(t for t in tasks if t.status == "pending")
        finished: list[CompressionTask] = [t for t in tasks if t.status == "skipped"]
        concurrency = self._config.concurrency
        max_attempts = self._config.max_attempts

        if self._event_bus:
            self._event_bus.publish(
                LetheEvent.COMPRESSION_STARTED,
                {"pending": len(pending), "skipped": len(finished), "concurrency": concurrency},
            )

        batch_number = 0
        while pending:
            batch = [pending.popleft() for _ in range(min(concurrency, len(pending)))]
            batch_number += 1
            self._logger.debug("batch_started", batch=batch_number, size=len(batch))

            settled = await asyncio.gather(*(self._attempt(task) for task in batch))

            for task in settled:
                if task.status == "success":
                    finished.append(task)
                    self._task_completed(task)
                    continue

                attempt = task.attempt + 1
                if attempt < max_attempts:
                    retry = task.model_copy(
                        update={
                            "attempt": attempt,
                            "timeout_ms": retry_timeout_ms(task.initial_timeout_ms, attempt),
                            "status": "pending",
                        }
                    )
                    pending.append(retry)
                    self._logger.warning(
                        "batch_task_retry",
                        message_index=task.message_index,
                        attempt=attempt,
                        timeout_ms=retry.timeout_ms,
                        error=task.error,
                    )
                    if self._event_bus:
                        self._event_bus.publish(
                            LetheEvent.COMPRESSION_TASK_RETRIED,
                            {
                                "message_index": task.message_index,
                                "attempt": attempt,
                                "timeout_ms": retry.timeout_ms,
                                "error": task.error or "",
                            },
                        )
                else:
                    failed = task.model_copy(update={"attempt": attempt, "status": "failed"})
                    finished.append(failed)
                    self._logger.warning(
                        "batch_task_failed",
                        message_index=task.message_index,
                        attempts=attempt,
                        error=task.error,
                    )
                    self._task_completed(failed)

        finished.sort(key=lambda t: t.message_index)
        return finished

    async def _attempt(self, task: CompressionTask) -> CompressionTask:
        """
        Run one attempt of one task.

        Returns the task as ``success`` with its result, or with ``error``
        set and status still ``pending`` for the caller to retry or fail.
        """
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._compressor.compress(
                    task.original_content, task.level, task.use_large_model
                ),
                timeout=task.timeout_ms / 1000,
            )
        except TimeoutError:
            error = f"Compression timeout after {task.timeout_ms}ms"
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        else:
            return task.model_copy(
                update={
                    "status": "success",
                    "result": result,
                    "error": None,
                    "duration_ms": _elapsed_ms(started),
                }
            )
        return task.model_copy(update={"error": error, "duration_ms": _elapsed_ms(started)})

    def _task_completed(self, task: CompressionTask) -> None:
        if self._event_bus:
            self._event_bus.publish(
                LetheEvent.COMPRESSION_TASK_COMPLETED,
                {
                    "message_index": task.message_index,
                    "status": task.status,
                    "attempts": task.attempt + 1 if task.status == "success" else task.attempt,
                    "duration_ms": task.duration_ms,
                },
            )


def _elapsed_ms(started: float) -> int:
    return round((time.monotonic() - started) * 1000)
