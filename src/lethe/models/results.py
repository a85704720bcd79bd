"""Result types returned by the transformation pipeline."""

from __future__ import annotations

from pydantic import BaseModel, Field

from lethe.models.compression import CompressionStats, CompressionTask
from lethe.models.record import Record


class RemovalResult(BaseModel):
    """The output of a removal pass: the new record sequence plus counts."""

    records: list[Record]
    tool_calls_removed: int = 0
    tool_calls_truncated: int = 0
    thinking_blocks_removed: int = 0


class CompressionOutcome(BaseModel):
    """The output of a compression run: new records, aggregate stats and every terminal task."""

    records: list[Record]
    stats: CompressionStats = Field(default_factory=CompressionStats)
    tasks: list[CompressionTask] = Field(default_factory=list)


class CloneStats(BaseModel):
    """Statistics for a clone request."""

    original_turn_count: int
    output_turn_count: int
    tool_calls_removed: int = 0
    tool_calls_truncated: int = 0
    thinking_blocks_removed: int = 0
    compression: CompressionStats | None = None


class CloneResult(BaseModel):
    """
    The result of :meth:`lethe.pipeline.LogTransformer.clone`.

    ``debug_log_path`` is set only when a debug report was requested and
    written successfully.
    """

    log_id: str
    """Id of the newly written log."""
    source_log_id: str
    output_path: str
    stats: CloneStats
    debug_log_path: str | None = None
