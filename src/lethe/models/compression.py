"""Compression band, task and statistics models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

CompressionLevel = Literal["compress", "heavy-compress"]
"""``compress`` is the standard intensity, ``heavy-compress`` the aggressive one."""

TaskStatus = Literal["pending", "success", "failed", "skipped"]


class CompressionBand(BaseModel):
    """
    A percentage range of the conversation mapped to a compression intensity.

    ``start`` and ``end`` are percentages of conversation length (0–100) and
    form a half-open interval ``[start, end)``. Bands may be non-contiguous
    or overlapping; the first matching band in list order wins.
    """

    start: float = Field(ge=0, le=100)
    end: float = Field(ge=0, le=100)
    level: CompressionLevel = "compress"

    @model_validator(mode="after")
    def validate_range(self) -> CompressionBand:
        if self.start >= self.end:
            raise ValueError("band start must be less than band end")
        return self


class CompressionTask(BaseModel):
    """
    One unit of compression work targeting a single record's text.

    Tasks are frozen; every state transition produces a new task via
    ``model_copy``. Lifecycle::

        pending → success            (terminal)
        pending → pending (retry)    (attempt + 1, longer timeout)
        pending → failed             (terminal, attempts exhausted)
        skipped                      (terminal, never submitted)
    """

    model_config = ConfigDict(frozen=True)

    message_index: int
    """Index of the target record in the record sequence."""
    entry_type: Literal["user", "assistant"]
    original_content: str
    level: CompressionLevel
    estimated_tokens: int
    attempt: int = 0
    """Number of failed attempts so far."""
    timeout_ms: int
    """Timeout for the next attempt."""
    initial_timeout_ms: int
    """Timeout of the first attempt; retries scale from this value."""
    status: TaskStatus = "pending"
    result: str | None = None
    error: str | None = None
    duration_ms: int | None = None
    """Wall time of the last attempt."""

    @property
    def use_large_model(self) -> bool:
        """Inputs above 1000 estimated tokens are routed to the larger model."""
        return self.estimated_tokens > 1000

    @property
    def is_terminal(self) -> bool:
        return self.status in ("success", "failed", "skipped")


class CompressionStats(BaseModel):
    """Aggregate before/after token counts and outcome counts for a compression run."""

    messages_compressed: int = 0
    messages_skipped: int = 0
    messages_failed: int = 0
    original_tokens: int = 0
    """Sum of ``estimated_tokens`` over non-skipped tasks."""
    compressed_tokens: int = 0
    """Sum of re-estimated sizes of successful results."""
    tokens_removed: int = 0
    reduction_percent: int = 0
    total_duration_ms: int | None = None
    avg_duration_ms: int | None = None
