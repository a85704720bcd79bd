"""Deterministic character-based token estimation."""

from __future__ import annotations

import json
import math
from typing import Any

from lethe.models.record import (
    ContentBlock,
    ImageBlock,
    OpaqueBlock,
    Record,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    content_of,
)


def estimate_tokens(text: str) -> int:
    """Return ``ceil(len(text) / 4)``, or 0 for empty text."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def tool_result_text(content: Any) -> str:
    """Flatten a tool result's ``content`` (string, block list or other JSON) to text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces: list[str] = []
        for item in content:
            if isinstance(item, str):
                pieces.append(item)
            elif isinstance(item, dict) and item.get("type") == "text":
                pieces.append(str(item.get("text", "")))
        return "\n".join(pieces)
    return json.dumps(content)


class TokenEstimator:
    """
    Size heuristic used throughout the pipeline: 4 characters per token, rounded up.

    The same estimate is used when deciding whether a task is worth compressing,
    when picking its timeout tier, and when reporting before/after statistics,
    so every figure Lethe reports is comparable.

    Images and opaque blocks are excluded from size accounting.
    """

    def estimate(self, text: str) -> int:
        """Estimate tokens for a string."""
        return estimate_tokens(text)

    def estimate_block(self, block: ContentBlock) -> int:
        """Estimate tokens for a single content block."""
        match block:
            case TextBlock():
                return estimate_tokens(block.text)
            case ThinkingBlock():
                return estimate_tokens(block.thinking)
            case ToolUseBlock():
                return estimate_tokens(json.dumps(block.input or {}))
            case ToolResultBlock():
                return estimate_tokens(tool_result_text(block.content))
            case ImageBlock() | OpaqueBlock():
                return 0
        return 0

    def estimate_content(self, content: str | list[ContentBlock] | None) -> int:
        """Estimate tokens for message content that may be a string or a block list."""
        if not content:
            return 0
        if isinstance(content, str):
            return estimate_tokens(content)
        return sum(self.estimate_block(block) for block in content)

    def estimate_record(self, record: Record) -> int:
        """Estimate tokens for a record's message content. Non-conversational records count 0."""
        return self.estimate_content(content_of(record))
