"""Structural transformations over record sequences."""

from lethe.transform.analysis import TokensByType, TurnBreakdown, turn_breakdown
from lethe.transform.chain import repair_parent_chain
from lethe.transform.removal import apply_removals, removal_boundary, truncate_tool_content
from lethe.transform.turns import identify_turns, starts_turn

__all__ = [
    "TokensByType",
    "TurnBreakdown",
    "apply_removals",
    "identify_turns",
    "removal_boundary",
    "repair_parent_chain",
    "starts_turn",
    "truncate_tool_content",
    "turn_breakdown",
]
