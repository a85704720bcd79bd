"""Conversion of band-assigned turns into compression tasks."""

from __future__ import annotations

from lethe.compression.bands import TurnBandMapping
from lethe.models.compression import CompressionTask
from lethe.models.record import AssistantRecord, Record, Turn, UserRecord, extract_text
from lethe.tokens.estimator import TokenEstimator

DEFAULT_MIN_TOKENS: int = 30


def initial_timeout_ms(estimated_tokens: int) -> int:
    """Size-tiered first-attempt timeout: 90 s from 4000 tokens, 30 s from 1000, else 20 s."""
    if estimated_tokens >= 4000:
        return 90_000
    if estimated_tokens >= 1000:
        return 30_000
    return 20_000


def create_compression_tasks(
    records: list[Record],
    turns: list[Turn],
    mapping: list[TurnBandMapping],
    min_tokens: int = DEFAULT_MIN_TOKENS,
    estimator: TokenEstimator | None = None,
    include_user_messages: bool = True,
) -> list[CompressionTask]:
    """
    Create one task per user/assistant record with text, in every banded turn.

    Meta records and records without extractable text produce no task.
    Tasks estimated below ``min_tokens`` are created ``skipped`` and must
    never be submitted to the compressor; the rest are ``pending``.
    """
    estimator = estimator or TokenEstimator()
    tasks: list[CompressionTask] = []

    for entry in mapping:
        if entry.band is None:
            continue
        turn = turns[entry.turn_index]
        for index in turn.indices():
            record = records[index]
            if isinstance(record, UserRecord):
                if not include_user_messages:
                    continue
                entry_type = "user"
            elif isinstance(record, AssistantRecord):
                entry_type = "assistant"
            else:
                continue
            if record.is_meta:
                continue

            text = extract_text(record)
            if not text:
                continue

            tokens = estimator.estimate(text)
            timeout = initial_timeout_ms(tokens)
            tasks.append(
                CompressionTask(
                    message_index=index,
                    entry_type=entry_type,
                    original_content=text,
                    level=entry.band.level,
                    estimated_tokens=tokens,
                    timeout_ms=timeout,
                    initial_timeout_ms=timeout,
                    status="skipped" if tokens < min_tokens else "pending",
                )
            )

    return tasks
