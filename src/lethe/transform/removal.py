"""Zone-based removal of tool-call and reasoning content.

The leading ``N`` percent of turns form a *removal zone*. Tool content and
thinking content have independent zones:

* **Tool zone, remove mode**: every ``tool_use`` block in an assistant record
  of the zone is deleted, together with every ``tool_result`` block anywhere
  in the log that references one of the deleted ids. Results may be emitted
  several records after their invocation, so ids are collected across the
  whole zone before any result is filtered.
* **Tool zone, truncate mode**: invocation inputs and result outputs are
  shortened to at most 3 lines / 250 characters with a ``...`` marker. The
  blocks stay in place.
* **Thinking zone**: ``thinking`` blocks are deleted from assistant records.
  There is no truncate mode for thinking.

A record whose block list becomes empty is dropped from the output. Callers
must run :func:`lethe.transform.chain.repair_parent_chain` afterwards.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from lethe.models.config import RemovalOptions
from lethe.models.record import (
    AssistantRecord,
    ContentBlock,
    Record,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
    UserRecord,
    blocks_of,
    with_content,
)
from lethe.models.results import RemovalResult
from lethe.transform.turns import identify_turns

logger = structlog.get_logger("lethe.transform.removal")

TRUNCATE_MAX_LINES: int = 3
TRUNCATE_MAX_CHARS: int = 250
TRUNCATION_MARKER: str = "..."


def removal_boundary(turn_count: int, percent: int) -> int:
    """
    Convert a removal percentage into a number of leading turns.

    ``round(turn_count * percent / 100)`` with halves rounded up, computed in
    integers so results do not depend on float representation. 0 % always
    yields 0 and 100 % always yields ``turn_count``.
    """
    if percent <= 0:
        return 0
    if percent >= 100:
        return turn_count
    return (2 * turn_count * percent + 100) // 200


def truncate_tool_content(content: str) -> str:
    """
    Shorten tool content to 3 lines or 250 characters, whichever is shorter.

    Returns the input unchanged when it already fits; otherwise the kept
    prefix (trailing whitespace stripped) followed by ``...``.
    """
    if not content:
        return content

    lines = content.split("\n")
    truncated = "\n".join(lines[:TRUNCATE_MAX_LINES])
    was_truncated = len(lines) > TRUNCATE_MAX_LINES

    if len(truncated) > TRUNCATE_MAX_CHARS:
        truncated = truncated[:TRUNCATE_MAX_CHARS]
        was_truncated = True

    if was_truncated:
        truncated = truncated.rstrip() + TRUNCATION_MARKER
    return truncated


def _zone_indices(turns: list[Turn], boundary: int) -> set[int]:
    """Record indices covered by the first ``boundary`` turns."""
    zone: set[int] = set()
    for turn in turns[:boundary]:
        zone.update(turn.indices())
    return zone


def _tool_input_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def _truncate_result_content(content: Any) -> Any:
    """Truncate a tool result's output, or return it unchanged if it is not plain text."""
    if isinstance(content, str):
        return truncate_tool_content(content)
    if isinstance(content, list) and content and all(
        isinstance(item, dict) and item.get("type") == "text" for item in content
    ):
        joined = "\n".join(str(item.get("text", "")) for item in content)
        shortened = truncate_tool_content(joined)
        return content if shortened == joined else shortened
    return content


def _collect_invocation_ids(records: list[Record], zone: set[int]) -> set[str]:
    ids: set[str] = set()
    for index in zone:
        record = records[index]
        if not isinstance(record, AssistantRecord):
            continue
        for block in blocks_of(record) or []:
            if isinstance(block, ToolUseBlock):
                ids.add(block.id)
    return ids


def apply_removals(
    records: list[Record],
    options: RemovalOptions,
    turns: list[Turn] | None = None,
) -> RemovalResult:
    """
    Apply tool and thinking removal to the leading zones of a conversation.

    Pure: the input list and its records are never modified. Unchanged
    records are carried over as the same objects.

    Args:
        records: The full record sequence.
        options: Zone percentages and the tool handling mode.
        turns: Pre-computed turns for ``records``. Identified when omitted.

    Returns:
        RemovalResult with the new sequence and block counts.
    """
    if turns is None:
        turns = identify_turns(records)

    tool_boundary = removal_boundary(len(turns), options.tool_removal)
    thinking_boundary = removal_boundary(len(turns), options.thinking_removal)
    tool_zone = _zone_indices(turns, tool_boundary)
    thinking_zone = _zone_indices(turns, thinking_boundary)
    removing_tools = options.tool_mode == "remove"

    # Pass 1: every invocation id slated for deletion, across the whole zone.
    removed_ids = _collect_invocation_ids(records, tool_zone) if removing_tools else set()

    tool_calls_removed = 0
    tool_calls_truncated = 0
    thinking_blocks_removed = 0
    dropped = 0
    output: list[Record] = []

    # Pass 2: block-level edits.
    for index, record in enumerate(records):
        blocks = blocks_of(record)
        if blocks is None:
            output.append(record)
            continue

        in_tool_zone = index in tool_zone
        is_assistant = isinstance(record, AssistantRecord)
        new_blocks: list[ContentBlock] = []
        modified = False

        for block in blocks:
            if isinstance(block, ToolUseBlock) and is_assistant and in_tool_zone:
                if removing_tools:
                    tool_calls_removed += 1
                    modified = True
                    continue
                text = _tool_input_text(block.input)
                shortened = truncate_tool_content(text)
                if shortened != text:
                    block = block.model_copy(update={"input": shortened})
                    tool_calls_truncated += 1
                    modified = True

            elif isinstance(block, ToolResultBlock):
                if removing_tools and block.tool_use_id in removed_ids:
                    modified = True
                    continue
                if not removing_tools and in_tool_zone and isinstance(record, UserRecord):
                    shortened_content = _truncate_result_content(block.content)
                    if shortened_content != block.content:
                        block = block.model_copy(update={"content": shortened_content})
                        tool_calls_truncated += 1
                        modified = True

            elif isinstance(block, ThinkingBlock) and is_assistant and index in thinking_zone:
                thinking_blocks_removed += 1
                modified = True
                continue

            new_blocks.append(block)

        if not modified:
            output.append(record)
        elif not new_blocks:
            dropped += 1
        else:
            output.append(with_content(record, new_blocks))

    logger.debug(
        "removals_applied",
        turns=len(turns),
        tool_boundary=tool_boundary,
        thinking_boundary=thinking_boundary,
        tool_calls_removed=tool_calls_removed,
        tool_calls_truncated=tool_calls_truncated,
        thinking_blocks_removed=thinking_blocks_removed,
        records_dropped=dropped,
    )
    return RemovalResult(
        records=output,
        tool_calls_removed=tool_calls_removed,
        tool_calls_truncated=tool_calls_truncated,
        thinking_blocks_removed=thinking_blocks_removed,
    )
