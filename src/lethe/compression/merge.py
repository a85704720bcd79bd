"""Merging compression results back into records, and aggregate statistics."""

from __future__ import annotations

from lethe.models.compression import CompressionStats, CompressionTask
from lethe.models.record import Record, TextBlock, content_of, text_block, with_content
from lethe.tokens.estimator import estimate_tokens


def apply_compressed_content(record: Record, compressed: str) -> Record:
    """
    Return a copy of ``record`` whose text is replaced by ``compressed``.

    A plain-string content is replaced outright. For a block list, every text
    block is removed and one new text block is inserted where the first text
    block used to be; tool, thinking, image and opaque blocks keep their
    relative order. Records without content are returned unchanged.
    """
    content = content_of(record)
    if isinstance(content, str):
        return with_content(record, compressed)
    if not isinstance(content, list):
        return record

    first_text = next((i for i, b in enumerate(content) if isinstance(b, TextBlock)), 0)
    others = [b for b in content if not isinstance(b, TextBlock)]
    # Non-text blocks before the first text block keep their positions.
    insert_at = min(first_text, len(others))
    return with_content(record, [*others[:insert_at], text_block(compressed), *others[insert_at:]])


def apply_compression_results(
    records: list[Record], tasks: list[CompressionTask]
) -> list[Record]:
    """
    Apply every successful task to its target record.

    Failed and skipped tasks leave their record unchanged. The record count
    never changes.
    """
    results = {
        task.message_index: task.result
        for task in tasks
        if task.status == "success" and task.result is not None
    }
    return [
        apply_compressed_content(record, results[index]) if index in results else record
        for index, record in enumerate(records)
    ]


def calculate_stats(tasks: list[CompressionTask]) -> CompressionStats:
    """
    Aggregate a full task set into before/after token counts.

    ``original_tokens`` sums the estimates of every non-skipped task;
    ``compressed_tokens`` re-estimates the successful results. A zero
    original size yields a zero reduction.
    """
    successful = [t for t in tasks if t.status == "success"]
    failed = [t for t in tasks if t.status == "failed"]
    skipped = [t for t in tasks if t.status == "skipped"]

    original = sum(t.estimated_tokens for t in tasks if t.status != "skipped")
    compressed = sum(estimate_tokens(t.result or "") for t in successful)
    removed = original - compressed
    # Halves round up, as in removal_boundary.
    reduction = (200 * removed + original) // (2 * original) if original > 0 else 0

    timed = [t.duration_ms for t in tasks if t.duration_ms is not None]
    total_ms = sum(timed) if timed else None
    avg_ms = round(sum(timed) / len(timed)) if timed else None

    return CompressionStats(
        messages_compressed=len(successful),
        messages_skipped=len(skipped),
        messages_failed=len(failed),
        original_tokens=original,
        compressed_tokens=compressed,
        tokens_removed=removed,
        reduction_percent=reduction,
        total_duration_ms=total_ms,
        avg_duration_ms=avg_ms,
    )
