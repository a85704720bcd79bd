"""
Lethe: trimming and compression of AI coding-assistant conversation logs.

Primary entry point::

    from lethe import CloneRequest, CompressionBand, LogTransformer

    async with LogTransformer.open() as transformer:
        result = await transformer.clone(
            CloneRequest(log_id="0f9e6c1a-...", tool_removal=100, thinking_removal=100)
        )
        print(result.output_path)
"""

from lethe.compression import CompressionEngine, Compressor, LiteLLMCompressor, MockCompressor
from lethe.errors import ConfigMissingError, LetheError, LogNotFoundError, MalformedRecordError
from lethe.events.bus import EventBus, LetheEvent
from lethe.models import (
    BatchConfig,
    CloneRequest,
    CloneResult,
    CloneStats,
    CompressionBand,
    CompressionStats,
    CompressionTask,
    LetheConfig,
    ProviderConfig,
    Record,
    RemovalOptions,
    RemovalResult,
    StoreConfig,
    Turn,
)
from lethe.models.record import dump_records, parse_records
from lethe.pipeline import LogTransformer
from lethe.profiles import get_builtin_profiles, get_profile
from lethe.store import LineageStore, RecordStore
from lethe.tokens.estimator import TokenEstimator, estimate_tokens
from lethe.transform import (
    apply_removals,
    identify_turns,
    repair_parent_chain,
    turn_breakdown,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "LogTransformer",
    # Config
    "LetheConfig",
    "BatchConfig",
    "ProviderConfig",
    "StoreConfig",
    "CloneRequest",
    "RemovalOptions",
    "CompressionBand",
    # Results
    "CloneResult",
    "CloneStats",
    "CompressionStats",
    "CompressionTask",
    "RemovalResult",
    # Records
    "Record",
    "Turn",
    "parse_records",
    "dump_records",
    # Transforms
    "identify_turns",
    "apply_removals",
    "repair_parent_chain",
    "turn_breakdown",
    "get_profile",
    "get_builtin_profiles",
    # Compression
    "CompressionEngine",
    "Compressor",
    "LiteLLMCompressor",
    "MockCompressor",
    # Stores
    "RecordStore",
    "LineageStore",
    # Tokens
    "TokenEstimator",
    "estimate_tokens",
    # Events
    "EventBus",
    "LetheEvent",
    # Errors
    "LetheError",
    "LogNotFoundError",
    "MalformedRecordError",
    "ConfigMissingError",
]
