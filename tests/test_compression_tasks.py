"""Tests for band mapping and compression task creation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from lethe.compression.bands import map_turns_to_bands
from lethe.compression.tasks import create_compression_tasks, initial_timeout_ms
from lethe.models.compression import CompressionBand
from lethe.models.record import Turn
from lethe.transform.turns import identify_turns
from tests.conftest import make_assistant, make_user, text, tool_use


def _turns(n: int) -> list[Turn]:
    return [Turn(i, i) for i in range(n)]


def _sized_conversation() -> list:
    """
    Six turns. Turns 0-2 carry user text of 100/150/100 tokens and assistant
    text of 200/250/200 tokens.
    """
    user_sizes = [100, 150, 100, 100, 100, 100]
    assistant_sizes = [200, 250, 200, 200, 200, 200]
    records = []
    parent = None
    for i, (u, a) in enumerate(zip(user_sizes, assistant_sizes)):
        records.append(make_user("u" * (u * 4), f"u{i}", parent))
        records.append(make_assistant([text("a" * (a * 4))], f"a{i}", f"u{i}"))
        parent = f"a{i}"
    return records


class TestCompressionBand:
    def test_start_must_precede_end(self):
        """A band must start before it ends."""
        with pytest.raises(ValidationError):
            CompressionBand(start=50, end=50)

    def test_range_limits(self):
        """Band bounds may not exceed 100."""
        with pytest.raises(ValidationError):
            CompressionBand(start=0, end=120)

    def test_default_level(self):
        """Bands default to standard compression."""
        assert CompressionBand(start=0, end=10).level == "compress"


class TestBandMapping:
    def test_half_open_boundary(self):
        """A turn at exactly a band's end belongs to the next band."""
        mapping = map_turns_to_bands(_turns(10), [CompressionBand(start=0, end=50)])
        included = [m.turn_index for m in mapping if m.band is not None]
        assert included == [0, 1, 2, 3, 4]

    def test_zero_turns(self):
        """Mapping over no turns yields nothing."""
        assert map_turns_to_bands([], [CompressionBand(start=0, end=100)]) == []

    def test_first_matching_band_wins(self):
        """Overlapping bands resolve to the first one listed."""
        heavy = CompressionBand(start=0, end=60, level="heavy-compress")
        standard = CompressionBand(start=40, end=100)
        mapping = map_turns_to_bands(_turns(10), [heavy, standard])
        assert mapping[5].band == heavy
        assert mapping[6].band == standard

    def test_gaps_between_bands(self):
        """Turns between bands get no band."""
        bands = [CompressionBand(start=0, end=20), CompressionBand(start=80, end=100)]
        mapping = map_turns_to_bands(_turns(10), bands)
        assert [m.band is not None for m in mapping] == [
            True, True, False, False, False, False, False, False, True, True,
        ]


class TestCreateCompressionTasks:
    def test_six_turn_scenario(self, estimator):
        """Six turns split across two bands produce the expected tasks."""
        records = _sized_conversation()
        turns = identify_turns(records)
        assert len(turns) == 6
        mapping = map_turns_to_bands(turns, [CompressionBand(start=0, end=50)])
        tasks = create_compression_tasks(records, turns, mapping, estimator=estimator)
        assert len(tasks) == 6
        assert sum(t.estimated_tokens for t in tasks) == 1000
        assert all(t.status == "pending" for t in tasks)
        assert [t.entry_type for t in tasks] == ["user", "assistant"] * 3

    def test_below_threshold_is_skipped(self):
        """Short records become skipped tasks."""
        records = [make_user("short", "u0"), make_assistant("x" * 400, "a0", "u0")]
        turns = identify_turns(records)
        mapping = map_turns_to_bands(turns, [CompressionBand(start=0, end=100)])
        tasks = create_compression_tasks(records, turns, mapping, min_tokens=30)
        assert [t.status for t in tasks] == ["skipped", "pending"]

    def test_records_without_text_produce_no_task(self):
        """Records with no text produce no task."""
        records = [
            make_user("q" * 200, "u0"),
            make_assistant([tool_use("t0")], "a0", "u0"),
        ]
        turns = identify_turns(records)
        mapping = map_turns_to_bands(turns, [CompressionBand(start=0, end=100)])
        tasks = create_compression_tasks(records, turns, mapping)
        assert [t.message_index for t in tasks] == [0]

    def test_meta_records_produce_no_task(self):
        """Meta records are never compressed."""
        records = [
            make_user("q" * 200, "u0"),
            make_user("m" * 200, "m0", "u0", is_meta=True),
        ]
        turns = identify_turns(records)
        mapping = map_turns_to_bands(turns, [CompressionBand(start=0, end=100)])
        tasks = create_compression_tasks(records, turns, mapping)
        assert [t.message_index for t in tasks] == [0]

    def test_user_messages_can_be_excluded(self):
        """User records can be left out of compression."""
        records = _sized_conversation()
        turns = identify_turns(records)
        mapping = map_turns_to_bands(turns, [CompressionBand(start=0, end=50)])
        tasks = create_compression_tasks(records, turns, mapping, include_user_messages=False)
        assert {t.entry_type for t in tasks} == {"assistant"}
        assert len(tasks) == 3

    def test_level_follows_band(self):
        """Each task takes the level of its band."""
        records = _sized_conversation()
        turns = identify_turns(records)
        bands = [CompressionBand(start=0, end=50, level="heavy-compress")]
        tasks = create_compression_tasks(records, turns, map_turns_to_bands(turns, bands))
        assert {t.level for t in tasks} == {"heavy-compress"}

    def test_large_inputs_use_large_model(self):
        """Inputs over 1000 tokens go to the large model with a 30s timeout."""
        records = [make_user("z" * 4004, "u0")]
        turns = identify_turns(records)
        mapping = map_turns_to_bands(turns, [CompressionBand(start=0, end=100)])
        (task,) = create_compression_tasks(records, turns, mapping)
        assert task.estimated_tokens == 1001
        assert task.use_large_model
        assert task.timeout_ms == task.initial_timeout_ms == 30_000

    @pytest.mark.parametrize(
        ("tokens", "expected"),
        [(0, 20_000), (999, 20_000), (1000, 30_000), (3999, 30_000), (4000, 90_000)],
    )
    def test_timeout_tiers(self, tokens, expected):
        """The initial timeout depends on the input size."""
        assert initial_timeout_ms(tokens) == expected
