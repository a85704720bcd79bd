"""Lethe compression components."""

from lethe.compression.bands import TurnBandMapping, map_turns_to_bands
from lethe.compression.batch import BatchEngine, retry_timeout_ms
from lethe.compression.debug_log import render_debug_report, write_debug_report
from lethe.compression.engine import CompressionEngine
from lethe.compression.merge import (
    apply_compressed_content,
    apply_compression_results,
    calculate_stats,
)
from lethe.compression.provider import (
    Compressor,
    LiteLLMCompressor,
    MockCompressor,
    get_compressor,
    parse_compression_response,
)
from lethe.compression.tasks import create_compression_tasks, initial_timeout_ms

__all__ = [
    "CompressionEngine",
    "BatchEngine",
    "Compressor",
    "LiteLLMCompressor",
    "MockCompressor",
    "TurnBandMapping",
    "apply_compressed_content",
    "apply_compression_results",
    "calculate_stats",
    "create_compression_tasks",
    "get_compressor",
    "initial_timeout_ms",
    "map_turns_to_bands",
    "parse_compression_response",
    "render_debug_report",
    "retry_timeout_ms",
    "write_debug_report",
]
