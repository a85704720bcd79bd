"""Per-turn token breakdown of a conversation log."""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, Field

from lethe.models.record import (
    AssistantRecord,
    ContentBlock,
    Record,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
    UserRecord,
)
from lethe.tokens.estimator import TokenEstimator
from lethe.transform.turns import identify_turns

BlockCategory = Literal["text", "thinking", "tool"]


class TokensByType(BaseModel):
    user: int = 0
    assistant: int = 0
    thinking: int = 0
    tool: int = 0

    @property
    def total(self) -> int:
        return self.user + self.assistant + self.thinking + self.tool


class ToolCallSummary(BaseModel):
    name: str
    input: str


class TurnContent(BaseModel):
    """The readable content of one turn: prompt, tool calls and final response."""

    user_prompt: str = ""
    tool_calls: list[ToolCallSummary] = Field(default_factory=list)
    assistant_response: str = ""


class TurnBreakdown(BaseModel):
    turn_index: int
    start: int
    end: int
    tokens: TokensByType
    """Tokens contributed by this turn alone."""
    cumulative: TokensByType
    """Tokens from the first turn up to and including this one."""
    content: TurnContent


def classify_block(block: ContentBlock) -> BlockCategory:
    """Bucket a block for accounting. Images and unknown blocks count as text."""
    if isinstance(block, ThinkingBlock):
        return "thinking"
    if isinstance(block, ToolUseBlock | ToolResultBlock):
        return "tool"
    return "text"


def turn_tokens(records: list[Record], turn: Turn, estimator: TokenEstimator) -> TokensByType:
    """Count the tokens of one turn by category. Meta records are ignored."""
    result = TokensByType()
    for index in turn.indices():
        record = records[index]
        if not isinstance(record, UserRecord | AssistantRecord) or record.is_meta:
            continue
        if record.message is None:
            continue
        speaker = "assistant" if isinstance(record, AssistantRecord) else "user"
        content = record.message.content
        if isinstance(content, str):
            setattr(result, speaker, getattr(result, speaker) + estimator.estimate(content))
            continue
        for block in content or []:
            tokens = estimator.estimate_block(block)
            bucket = classify_block(block)
            if bucket == "text":
                bucket = speaker
            setattr(result, bucket, getattr(result, bucket) + tokens)
    return result


def turn_content(records: list[Record], turn: Turn) -> TurnContent:
    """Extract the first user prompt, tool calls and concatenated assistant text of a turn."""
    content = TurnContent()
    responses: list[str] = []
    for index in turn.indices():
        record = records[index]
        if record.is_meta or not isinstance(record, UserRecord | AssistantRecord):
            continue
        if record.message is None:
            continue
        body = record.message.content
        if isinstance(record, UserRecord):
            if content.user_prompt:
                continue
            if isinstance(body, str):
                content.user_prompt = body
            elif body:
                content.user_prompt = "\n".join(
                    b.text for b in body if isinstance(b, TextBlock)
                )
            continue
        if isinstance(body, str):
            responses = [body]
            continue
        for block in body or []:
            if isinstance(block, ToolUseBlock):
                content.tool_calls.append(
                    ToolCallSummary(name=block.name or "tool", input=json.dumps(block.input or {}))
                )
            elif isinstance(block, TextBlock):
                responses.append(block.text)
    content.assistant_response = "\n".join(responses)
    return content


def turn_breakdown(
    records: list[Record],
    estimator: TokenEstimator | None = None,
) -> list[TurnBreakdown]:
    """
    Summarise every turn of a log with its own and cumulative token counts.

    Useful for choosing removal percentages and compression bands before
    cloning a log.
    """
    estimator = estimator or TokenEstimator()
    running = TokensByType()
    result: list[TurnBreakdown] = []
    for turn_index, turn in enumerate(identify_turns(records)):
        tokens = turn_tokens(records, turn, estimator)
        running = TokensByType(
            user=running.user + tokens.user,
            assistant=running.assistant + tokens.assistant,
            thinking=running.thinking + tokens.thinking,
            tool=running.tool + tokens.tool,
        )
        result.append(
            TurnBreakdown(
                turn_index=turn_index,
                start=turn.start,
                end=turn.end,
                tokens=tokens,
                cumulative=running,
                content=turn_content(records, turn),
            )
        )
    return result
