"""Lethe event bus."""

from lethe.events.bus import EventBus, Handler, LetheEvent
from lethe.events.payloads import (
    CloneCompletedPayload,
    CompressionCompletedPayload,
    CompressionStartedPayload,
    CompressionTaskCompletedPayload,
    CompressionTaskRetriedPayload,
)

__all__ = [
    "CloneCompletedPayload",
    "CompressionCompletedPayload",
    "CompressionStartedPayload",
    "CompressionTaskCompletedPayload",
    "CompressionTaskRetriedPayload",
    "EventBus",
    "Handler",
    "LetheEvent",
]
