"""Mapping turns onto percentage-based compression bands."""

from __future__ import annotations

from dataclasses import dataclass

from lethe.models.compression import CompressionBand
from lethe.models.record import Turn


@dataclass(frozen=True)
class TurnBandMapping:
    """The band assigned to one turn, or None when the turn is not compressed."""

    turn_index: int
    band: CompressionBand | None


def turn_position(turn_index: int, total_turns: int) -> float:
    """Relative position of a turn in the conversation, as a percentage in ``[0, 100)``."""
    return 100 * turn_index / total_turns


def map_turns_to_bands(turns: list[Turn], bands: list[CompressionBand]) -> list[TurnBandMapping]:
    """
    Assign each turn the first band whose half-open range contains its position.

    Turn ``i`` of ``n`` sits at ``100 * i / n`` and matches a band when
    ``band.start <= position < band.end``. A turn exactly at a band's ``end``
    is outside that band. Zero turns yield an empty mapping.
    """
    if not turns:
        return []

    total = len(turns)
    mapping: list[TurnBandMapping] = []
    for turn_index in range(total):
        position = turn_position(turn_index, total)
        band = next((b for b in bands if b.start <= position < b.end), None)
        mapping.append(TurnBandMapping(turn_index=turn_index, band=band))
    return mapping
