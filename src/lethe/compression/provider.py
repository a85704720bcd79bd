"""Text-compression capability: the protocol and its litellm-backed implementation."""

from __future__ import annotations

import json
import os
import re
from typing import Protocol, runtime_checkable

import structlog
from jinja2 import Template
from pydantic import BaseModel

from lethe.errors import ConfigMissingError
from lethe.models.compression import CompressionLevel
from lethe.models.config import ProviderConfig

COMPRESSION_PROMPT = """\
You are TextCompressor. Rewrite the text below to approximately {{ target_percent }}% \
of its original length while preserving intent and factual meaning.

Token estimation: tokens ≈ ceil(characters / 4)

Rules:
- Preserve key entities, claims, and relationships
- Remove redundancy, filler, and hedging
- Keep fluent English
- If unsure about length, err shorter
- Do not include explanations or commentary outside the JSON
- Do not reference "I", "we", "user", "assistant", or conversation roles

Return exactly one JSON object: {"text": "your compressed text"}

Input text:
<<<CONTENT
{{ text }}
CONTENT"""

_CODE_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_TEXT_OBJECT = re.compile(r"\{.*\"text\".*\}", re.DOTALL)


@runtime_checkable
class Compressor(Protocol):
    """
    Anything that can shorten a piece of text.

    Implementations raise on any transport, timeout or malformed-output
    condition. The batch engine treats every failure the same way.
    """

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        """Return a compressed rendition of ``text`` at the requested intensity."""
        ...


class CompressionResponse(BaseModel):
    """The JSON object the model is asked to return."""

    text: str


def parse_compression_response(raw: str) -> str:
    """
    Extract the compressed text from a model reply.

    Accepts a bare ``{"text": ...}`` object, one wrapped in a Markdown code
    fence, or one preceded by preamble text.

    Raises:
        ValueError: If no valid ``{"text": str}`` object can be found.
            (``json.JSONDecodeError`` and pydantic's ``ValidationError`` are
            both ``ValueError`` subclasses.)
    """
    fence = _CODE_FENCE.search(raw)
    if fence:
        candidate = fence.group(1).strip()
    else:
        obj = _TEXT_OBJECT.search(raw)
        candidate = obj.group(0) if obj else raw
    return CompressionResponse.model_validate(json.loads(candidate)).text


class LiteLLMCompressor:
    """
    Compresses text with an LLM through ``litellm.acompletion``.

    Inputs flagged ``use_large_model`` go to ``config.large_model``; the rest
    go to ``config.model``. Credentials for both models are checked when the
    compressor is built, so a misconfigured pipeline fails before any work.

    Example::

        compressor = LiteLLMCompressor(ProviderConfig(model="openrouter/google/gemini-2.5-flash"))
        short = await compressor.compress(long_text, "compress", use_large_model=False)
    """

    def __init__(self, config: ProviderConfig, *, check_credentials: bool = True) -> None:
        self._config = config
        self._template = Template(COMPRESSION_PROMPT)
        self._logger = structlog.get_logger("lethe.provider")
        if check_credentials:
            for model in {config.model, config.large_model}:
                self._require_credentials(model)

    @staticmethod
    def _require_credentials(model: str) -> None:
        import litellm

        env = litellm.validate_environment(model=model)
        if not env.get("keys_in_environment", False):
            missing = ", ".join(env.get("missing_keys") or []) or f"credentials for {model}"
            raise ConfigMissingError(missing)

    def render_prompt(self, text: str, level: CompressionLevel) -> str:
        target = (
            self._config.target_heavy if level == "heavy-compress" else self._config.target_standard
        )
        return self._template.render(text=text, target_percent=target)

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        import litellm

        model = self._config.large_model if use_large_model else self._config.model
        response = await litellm.acompletion(
            model=model,
            messages=[{"role": "user", "content": self.render_prompt(text, level)}],
            temperature=self._config.temperature,
        )
        content = response.choices[0].message.content
        if not isinstance(content, str):
            raise ValueError(f"Invalid response format from {model}")
        return parse_compression_response(content)


class MockCompressor:
    """
    Offline compressor enabled by ``LETHE_MOCK_LLM=1``.

    Keeps roughly the target share of the input's words, so pipelines can be
    exercised end to end without network access or credentials.
    """

    def __init__(self, config: ProviderConfig | None = None) -> None:
        self._config = config or ProviderConfig()

    async def compress(self, text: str, level: CompressionLevel, use_large_model: bool) -> str:
        target = (
            self._config.target_heavy if level == "heavy-compress" else self._config.target_standard
        )
        words = text.split()
        keep = max(1, len(words) * target // 100)
        return " ".join(words[:keep])


def get_compressor(config: ProviderConfig) -> Compressor:
    """
    Build the configured compressor.

    Raises:
        ConfigMissingError: When the configured models have no credentials.
    """
    if os.environ.get("LETHE_MOCK_LLM") == "1":
        return MockCompressor(config)
    return LiteLLMCompressor(config)
