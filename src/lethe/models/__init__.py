"""Lethe data models."""

from lethe.models.compression import (
    CompressionBand,
    CompressionLevel,
    CompressionStats,
    CompressionTask,
    TaskStatus,
)
from lethe.models.config import (
    BatchConfig,
    CloneRequest,
    LetheConfig,
    ProviderConfig,
    RemovalOptions,
    StoreConfig,
    ToolMode,
)
from lethe.models.record import (
    AssistantRecord,
    ContentBlock,
    ImageBlock,
    Message,
    OpaqueBlock,
    QueueOperationRecord,
    Record,
    SnapshotRecord,
    SummaryRecord,
    SystemRecord,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
    UserRecord,
)
from lethe.models.results import CloneResult, CloneStats, CompressionOutcome, RemovalResult

__all__ = [
    # Config
    "BatchConfig",
    "CloneRequest",
    "LetheConfig",
    "ProviderConfig",
    "RemovalOptions",
    "StoreConfig",
    "ToolMode",
    # Content blocks
    "TextBlock",
    "ThinkingBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "ImageBlock",
    "OpaqueBlock",
    "ContentBlock",
    # Records
    "Message",
    "Record",
    "UserRecord",
    "AssistantRecord",
    "SummaryRecord",
    "SnapshotRecord",
    "QueueOperationRecord",
    "SystemRecord",
    "Turn",
    # Compression
    "CompressionBand",
    "CompressionLevel",
    "CompressionStats",
    "CompressionTask",
    "TaskStatus",
    # Results
    "RemovalResult",
    "CompressionOutcome",
    "CloneStats",
    "CloneResult",
]
