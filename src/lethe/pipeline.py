"""
Clone pipeline: read a log, compress, trim, repair and write a new log.

Usage::

    async with LogTransformer.open(LetheConfig.from_env()) as transformer:
        result = await transformer.clone(
            CloneRequest(
                log_id="0f9e6c1a-...",
                tool_removal=80,
                thinking_removal=100,
                bands=[CompressionBand(start=0, end=50, level="heavy-compress")],
            )
        )
        print(result.output_path, result.stats.compression)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from ulid import ULID

from lethe.compression.debug_log import write_debug_report
from lethe.compression.engine import CompressionEngine
from lethe.compression.provider import Compressor, get_compressor
from lethe.events.bus import EventBus, LetheEvent
from lethe.models.compression import CompressionStats, CompressionTask
from lethe.models.config import CloneRequest, LetheConfig, ProviderConfig
from lethe.models.record import (
    Record,
    SummaryRecord,
    TextBlock,
    UserRecord,
    content_of,
)
from lethe.models.results import CloneResult, CloneStats
from lethe.store.lineage import LineageStore
from lethe.store.records import RecordStore
from lethe.tokens.estimator import TokenEstimator
from lethe.transform.chain import repair_parent_chain
from lethe.transform.removal import apply_removals
from lethe.transform.turns import identify_turns

CLONE_TITLE_PREVIEW_CHARS: int = 50

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def make_log_id() -> str:
    """A fresh conversation id: a ULID rendered as a version 4 UUID."""
    return str(ULID().to_uuid4())


def format_clone_timestamp(moment: datetime) -> str:
    """Short local timestamp such as ``Dec 12 2:30pm``."""
    hour = moment.hour % 12 or 12
    suffix = "pm" if moment.hour >= 12 else "am"
    return f"{_MONTHS[moment.month - 1]} {moment.day} {hour}:{moment.minute:02d}{suffix}"


def clone_title(first_user_message: str, moment: datetime | None = None) -> str:
    """``Clone: <first 50 characters...> (<timestamp>)``."""
    trimmed = first_user_message.strip()
    if not trimmed:
        preview = "(No message)"
    elif len(trimmed) <= CLONE_TITLE_PREVIEW_CHARS:
        preview = trimmed
    else:
        preview = trimmed[:CLONE_TITLE_PREVIEW_CHARS] + "..."
    return f"Clone: {preview} ({format_clone_timestamp(moment or datetime.now())})"


def first_user_message(records: list[Record]) -> str:
    """Text of the first user record with content: a string, or its first text block."""
    for record in records:
        if not isinstance(record, UserRecord):
            continue
        content = content_of(record)
        if not content:
            continue
        if isinstance(content, str):
            return content
        return next((b.text for b in content if isinstance(b, TextBlock)), "")
    return ""


def make_summary_record(records: list[Record], title_source: str) -> SummaryRecord:
    """The ``summary`` record that names a clone; ``leafUuid`` is the first record uuid."""
    leaf = next((r.uuid for r in records if r.uuid), None) or make_log_id()
    return SummaryRecord(type="summary", summary=clone_title(title_source), leafUuid=leaf)


def assign_session_id(records: list[Record], session_id: str) -> list[Record]:
    """Replace ``sessionId`` on records that carry one; records without one keep none."""
    return [
        r.model_copy(update={"session_id": session_id}) if r.session_id is not None else r
        for r in records
    ]


class LogTransformer:
    """
    Produces trimmed and compressed copies of conversation logs.

    The compressor is resolved lazily on the first request that asks for
    compression, so removal-only clones never need provider credentials.
    A ``compressor_factory`` may be supplied in place of a ready compressor.
    """

    def __init__(
        self,
        config: LetheConfig,
        store: RecordStore,
        lineage: LineageStore | None = None,
        *,
        compressor: Compressor | None = None,
        compressor_factory: Callable[[ProviderConfig], Compressor] = get_compressor,
        event_bus: EventBus | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._lineage = lineage
        self._compressor = compressor
        self._compressor_factory = compressor_factory
        self._event_bus = event_bus or EventBus()
        self._estimator = estimator or TokenEstimator()
        self._logger = structlog.get_logger("lethe.pipeline")

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        config: LetheConfig | None = None,
        *,
        compressor: Compressor | None = None,
        event_bus: EventBus | None = None,
    ) -> AsyncGenerator[LogTransformer, None]:
        """
        Build a transformer from ``config`` with its stores opened.

        The lineage database is closed when the block exits, even on exception.
        """
        cfg = config or LetheConfig.from_env()
        lineage = LineageStore(cfg.store.lineage_db_path)
        await lineage.initialize()
        try:
            yield cls(
                cfg,
                RecordStore(cfg.store.log_dir),
                lineage,
                compressor=compressor,
                event_bus=event_bus,
            )
        finally:
            await lineage.close()

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    def _resolve_compressor(self) -> Compressor:
        if self._compressor is None:
            self._compressor = self._compressor_factory(self._config.provider)
        return self._compressor

    async def clone(self, request: CloneRequest) -> CloneResult:
        """
        Clone ``request.log_id`` into a new log.

        Steps: compression over the requested bands, tool and thinking
        removal, parent-chain repair, a fresh conversation id, and a leading
        ``summary`` record. The result is written next to the source and
        recorded in the lineage log.

        Raises:
            ConfigMissingError: When compression is requested and the
                provider is not configured. Raised before the log is read.
            LogNotFoundError: When the source log does not exist.
            MalformedRecordError: When the source log cannot be parsed.
        """
        log = self._logger.bind(source_log_id=request.log_id)
        compressor = self._resolve_compressor() if request.bands else None

        records = self._store.read(request.log_id)
        source_path = self._store.path_for(request.log_id)
        turns = identify_turns(records)
        log.info("clone_started", records=len(records), turns=len(turns))

        original_records = records
        compression: CompressionStats | None = None
        tasks: list[CompressionTask] = []
        if compressor is not None:
            engine = CompressionEngine(
                compressor, self._config.batch, self._estimator, self._event_bus
            )
            outcome = await engine.compress(
                records, turns, request.bands, request.include_user_messages
            )
            records = outcome.records
            compression = outcome.stats
            tasks = outcome.tasks
        compressed_records = records

        # Compression keeps the record count, so the turns still line up.
        removal = apply_removals(records, request.removal_options, turns)
        records = repair_parent_chain(removal.records)

        log_id = make_log_id()
        records = assign_session_id(records, log_id)
        output_turn_count = len(identify_turns(records))
        summary = make_summary_record(records, first_user_message(original_records))

        output_path = self._store.write(log_id, [summary, *records])

        stats = CloneStats(
            original_turn_count=len(turns),
            output_turn_count=output_turn_count,
            tool_calls_removed=removal.tool_calls_removed,
            tool_calls_truncated=removal.tool_calls_truncated,
            thinking_blocks_removed=removal.thinking_blocks_removed,
            compression=compression,
        )

        if self._lineage is not None:
            await self._lineage.record(
                source_log_id=request.log_id,
                source_path=str(source_path),
                target_log_id=log_id,
                target_path=str(output_path),
                options=request.model_dump(exclude={"log_id", "debug_log"}),
                stats=stats.model_dump(),
            )

        debug_log_path = None
        if request.debug_log and tasks:
            try:
                debug_log_path = str(
                    write_debug_report(
                        self._config.store.debug_log_dir,
                        log_id,
                        source_log_id=request.log_id,
                        source_path=str(source_path),
                        target_path=str(output_path),
                        original_records=original_records,
                        compressed_records=compressed_records,
                        tasks=tasks,
                        output_records=records,
                        provider_config=self._config.provider,
                    )
                )
            except Exception as exc:
                log.warning("debug_log_failed", target_log_id=log_id, error=str(exc))

        log.info(
            "clone_completed",
            log_id=log_id,
            original_turns=stats.original_turn_count,
            output_turns=stats.output_turn_count,
            tool_calls_removed=stats.tool_calls_removed,
            tool_calls_truncated=stats.tool_calls_truncated,
            thinking_blocks_removed=stats.thinking_blocks_removed,
        )
        self._event_bus.publish(
            LetheEvent.CLONE_COMPLETED,
            {
                "source_log_id": request.log_id,
                "log_id": log_id,
                "output_path": str(output_path),
            },
        )
        return CloneResult(
            log_id=log_id,
            source_log_id=request.log_id,
            output_path=str(output_path),
            stats=stats,
            debug_log_path=debug_log_path,
        )
