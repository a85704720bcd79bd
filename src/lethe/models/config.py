"""Configuration and request models for Lethe."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field

from lethe.models.compression import CompressionBand

ToolMode = Literal["remove", "truncate"]


class BatchConfig(BaseModel):
    """Configuration for the task factory and the batch engine."""

    concurrency: int = Field(
        default=10,
        ge=1,
        le=128,
        description="Maximum in-flight compression calls (batch size).",
    )

    max_attempts: int = Field(
        default=4,
        ge=1,
        le=10,
        description="Maximum attempts per task before it is marked failed.",
    )

    min_tokens: int = Field(
        default=30,
        ge=0,
        description="Tasks estimated below this many tokens are skipped.",
    )


class ProviderConfig(BaseModel):
    """Configuration for the litellm-backed compressor."""

    model: str = "anthropic/claude-haiku-4-5"
    """Model used for inputs up to 1000 estimated tokens."""

    large_model: str = "anthropic/claude-opus-4-5"
    """Model used for inputs above 1000 estimated tokens."""

    target_standard: int = Field(
        default=35,
        ge=1,
        le=100,
        description="Target length, in percent of the input, for 'compress'.",
    )

    target_heavy: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Target length, in percent of the input, for 'heavy-compress'.",
    )

    temperature: float = 0.0


class StoreConfig(BaseModel):
    """Locations of the record store, lineage database and debug reports."""

    log_dir: str = Field(
        default="~/.claude/projects",
        description="Directory holding <log_id>.jsonl files. ~ is expanded at runtime.",
    )

    lineage_db_path: str = Field(
        default="~/.lethe/lineage.db",
        description="SQLite database recording clone lineage. ~ is expanded at runtime.",
    )

    debug_log_dir: str = Field(
        default="./clone-debug-log",
        description="Directory for compression debug reports.",
    )


class LetheConfig(BaseModel):
    """
    Top-level configuration.

    All sub-configs have defaults and can be overridden individually::

        config = LetheConfig(
            batch=BatchConfig(concurrency=3),
            store=StoreConfig(log_dir="/tmp/logs"),
        )
    """

    batch: BatchConfig = Field(default_factory=BatchConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def default(cls) -> LetheConfig:
        """Return a config instance with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> LetheConfig:
        """
        Build a config from environment variables, falling back to defaults.

        Recognised variables: ``COMPRESSION_CONCURRENCY``,
        ``COMPRESSION_MAX_ATTEMPTS``, ``COMPRESSION_MIN_TOKENS``,
        ``COMPRESSION_TARGET_STANDARD``, ``COMPRESSION_TARGET_HEAVY``,
        ``LETHE_MODEL``, ``LETHE_MODEL_LARGE``, ``LETHE_LOG_DIR``,
        ``LETHE_LINEAGE_DB``, ``LETHE_DEBUG_LOG_DIR``.
        """
        env = os.environ if environ is None else environ

        def _pick(mapping: dict[str, str]) -> dict[str, str]:
            return {field: env[var] for var, field in mapping.items() if env.get(var)}

        batch = _pick(
            {
                "COMPRESSION_CONCURRENCY": "concurrency",
                "COMPRESSION_MAX_ATTEMPTS": "max_attempts",
                "COMPRESSION_MIN_TOKENS": "min_tokens",
            }
        )
        provider = _pick(
            {
                "LETHE_MODEL": "model",
                "LETHE_MODEL_LARGE": "large_model",
                "COMPRESSION_TARGET_STANDARD": "target_standard",
                "COMPRESSION_TARGET_HEAVY": "target_heavy",
            }
        )
        store = _pick(
            {
                "LETHE_LOG_DIR": "log_dir",
                "LETHE_LINEAGE_DB": "lineage_db_path",
                "LETHE_DEBUG_LOG_DIR": "debug_log_dir",
            }
        )
        return cls(
            batch=BatchConfig.model_validate(batch),
            provider=ProviderConfig.model_validate(provider),
            store=StoreConfig.model_validate(store),
        )


class RemovalOptions(BaseModel):
    """Which leading share of turns loses tool and thinking content."""

    tool_removal: int = Field(default=0, ge=0, le=100)
    """Percentage of leading turns whose tool calls are removed or truncated."""
    tool_mode: ToolMode = "remove"
    thinking_removal: int = Field(default=0, ge=0, le=100)
    """Percentage of leading turns whose thinking blocks are removed."""


class CloneRequest(BaseModel):
    """A request to produce a trimmed and/or compressed copy of a log."""

    log_id: str
    tool_removal: int = Field(default=0, ge=0, le=100)
    tool_mode: ToolMode = "remove"
    thinking_removal: int = Field(default=0, ge=0, le=100)
    bands: list[CompressionBand] = Field(default_factory=list)
    include_user_messages: bool = True
    debug_log: bool = False

    @property
    def removal_options(self) -> RemovalOptions:
        return RemovalOptions(
            tool_removal=self.tool_removal,
            tool_mode=self.tool_mode,
            thinking_removal=self.thinking_removal,
        )
