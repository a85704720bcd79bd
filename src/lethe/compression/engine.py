"""Compression engine: bands, tasks, batch execution and merge in one call."""

from __future__ import annotations

import structlog

from lethe.compression.bands import map_turns_to_bands
from lethe.compression.batch import BatchEngine
from lethe.compression.merge import apply_compression_results, calculate_stats
from lethe.compression.provider import Compressor
from lethe.compression.tasks import create_compression_tasks
from lethe.events.bus import EventBus, LetheEvent
from lethe.models.compression import CompressionBand, CompressionStats
from lethe.models.config import BatchConfig
from lethe.models.record import Record, Turn
from lethe.models.results import CompressionOutcome
from lethe.tokens.estimator import TokenEstimator


class CompressionEngine:
    """
    Compresses the message text of every turn that falls inside a band.

    Example::

        engine = CompressionEngine(compressor, BatchConfig(concurrency=5))
        outcome = await engine.compress(records, identify_turns(records), bands)
        print(outcome.stats.reduction_percent)
    """

    def __init__(
        self,
        compressor: Compressor,
        config: BatchConfig | None = None,
        estimator: TokenEstimator | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._compressor = compressor
        self._config = config or BatchConfig()
        self._estimator = estimator or TokenEstimator()
        self._event_bus = event_bus
        self._logger = structlog.get_logger("lethe.compression")

    async def compress(
        self,
        records: list[Record],
        turns: list[Turn],
        bands: list[CompressionBand],
        include_user_messages: bool = True,
    ) -> CompressionOutcome:
        """
        Run compression over ``records``.

        The returned record list has the same length and order as the input.
        Records of failed or skipped tasks are carried over unchanged. With no
        bands the compressor is never called.
        """
        if not bands:
            return CompressionOutcome(records=list(records), stats=CompressionStats(), tasks=[])

        mapping = map_turns_to_bands(turns, bands)
        tasks = create_compression_tasks(
            records,
            turns,
            mapping,
            min_tokens=self._config.min_tokens,
            estimator=self._estimator,
            include_user_messages=include_user_messages,
        )
        self._logger.info(
            "compression_started",
            turns=len(turns),
            bands=len(bands),
            tasks=len(tasks),
            pending=sum(1 for t in tasks if t.status == "pending"),
        )

        finished = await BatchEngine(self._compressor, self._config, self._event_bus).run(tasks)
        compressed = apply_compression_results(records, finished)
        stats = calculate_stats(finished)

        self._logger.info(
            "compression_completed",
            compressed=stats.messages_compressed,
            skipped=stats.messages_skipped,
            failed=stats.messages_failed,
            original_tokens=stats.original_tokens,
            compressed_tokens=stats.compressed_tokens,
            reduction_percent=stats.reduction_percent,
        )
        if self._event_bus:
            self._event_bus.publish(LetheEvent.COMPRESSION_COMPLETED, stats.model_dump())

        return CompressionOutcome(records=compressed, stats=stats, tasks=finished)
