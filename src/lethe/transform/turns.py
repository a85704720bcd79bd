"""Turn identification over a record sequence."""

from __future__ import annotations

from lethe.models.record import Record, TextBlock, ToolResultBlock, Turn, UserRecord


def starts_turn(record: Record) -> bool:
    """
    Return True if ``record`` opens a new human turn.

    A turn starts at a non-meta user record whose content is a plain string,
    or a block list with at least one text block and no tool result. A user
    record carrying a tool result is a continuation of the current turn's
    tool round-trip, not a new submission.
    """
    if not isinstance(record, UserRecord) or record.is_meta:
        return False
    if record.message is None:
        return False
    content = record.message.content
    if isinstance(content, str):
        return True
    if isinstance(content, list):
        has_text = any(isinstance(b, TextBlock) for b in content)
        has_tool_result = any(isinstance(b, ToolResultBlock) for b in content)
        return has_text and not has_tool_result
    return False


def identify_turns(records: list[Record]) -> list[Turn]:
    """
    Group records into turns with a single left-to-right scan.

    Turns are disjoint, ordered and contiguous: each turn ends at the record
    before the next turn's start, and the last turn runs to the end of the
    sequence. Records before the first turn start belong to no turn.
    """
    turns: list[Turn] = []
    current_start: int | None = None

    for index, record in enumerate(records):
        if starts_turn(record):
            if current_start is not None:
                turns.append(Turn(start=current_start, end=index - 1))
            current_start = index

    if current_start is not None:
        turns.append(Turn(start=current_start, end=len(records) - 1))

    return turns
