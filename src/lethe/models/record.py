"""Record and content-block models for append-only conversation logs.

One log line is one :data:`Record`. Records are discriminated on the wire
field ``type``; ``user`` and ``assistant`` records carry a :class:`Message`
whose ``content`` is either a plain string or an ordered list of
:data:`ContentBlock` values.

All models allow extra fields so that wire fields Lethe does not interpret
(``cwd``, ``gitBranch``, ``usage``, ``signature`` ...) survive a round trip.
Records are dumped with ``exclude_unset`` so absent fields stay absent.

Records are treated as immutable values: every transformation builds new
objects with :meth:`~pydantic.BaseModel.model_copy` rather than editing
fields in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
)

from lethe.errors import MalformedRecordError

# ── Content Blocks ─────────────────────────────────────────────────────────────


class TextBlock(BaseModel):
    """Plain text."""

    model_config = ConfigDict(extra="allow")

    type: Literal["text"] = "text"
    text: str


class ThinkingBlock(BaseModel):
    """A reasoning trace emitted by the assistant."""

    model_config = ConfigDict(extra="allow")

    type: Literal["thinking"] = "thinking"
    thinking: str = ""


class ToolUseBlock(BaseModel):
    """A tool invocation. ``id`` is referenced by value from a ToolResultBlock."""

    model_config = ConfigDict(extra="allow")

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str = ""
    input: Any = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """The output of a tool invocation, usually emitted in a later user record."""

    model_config = ConfigDict(extra="allow")

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Any = None


class ImageBlock(BaseModel):
    """An image attachment. Opaque; excluded from size accounting."""

    model_config = ConfigDict(extra="allow")

    type: Literal["image"] = "image"


class OpaqueBlock(BaseModel):
    """Any block type Lethe does not interpret. Kept verbatim, never counted as text."""

    model_config = ConfigDict(extra="allow")

    type: str


_KNOWN_BLOCK_TYPES: frozenset[str] = frozenset(
    {"text", "thinking", "tool_use", "tool_result", "image"}
)


def _block_tag(value: Any) -> str:
    block_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return block_type if block_type in _KNOWN_BLOCK_TYPES else "opaque"


# Tagged union; unknown ``type`` values fall through to OpaqueBlock.
ContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag("text")],
        Annotated[ThinkingBlock, Tag("thinking")],
        Annotated[ToolUseBlock, Tag("tool_use")],
        Annotated[ToolResultBlock, Tag("tool_result")],
        Annotated[ImageBlock, Tag("image")],
        Annotated[OpaqueBlock, Tag("opaque")],
    ],
    Discriminator(_block_tag),
]


# ── Message ────────────────────────────────────────────────────────────────────


class Message(BaseModel):
    """The ``message`` payload of a user or assistant record."""

    model_config = ConfigDict(extra="allow")

    role: str | None = None
    content: str | list[ContentBlock] | None = None


# ── Records ────────────────────────────────────────────────────────────────────


class _RecordBase(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uuid: str | None = None
    """Opaque record id. None for non-conversational kinds."""
    parent_uuid: str | None = Field(default=None, alias="parentUuid")
    """Back-reference to the previous record's ``uuid``; None at a chain root."""
    session_id: str | None = Field(default=None, alias="sessionId")
    """Conversation id. None for non-conversational kinds."""
    is_meta: bool = Field(default=False, alias="isMeta")
    """True for system-injected records that are not human turns."""


class UserRecord(_RecordBase):
    type: Literal["user"] = "user"
    message: Message | None = None


class AssistantRecord(_RecordBase):
    type: Literal["assistant"] = "assistant"
    message: Message | None = None


class SummaryRecord(_RecordBase):
    type: Literal["summary"] = "summary"


class SnapshotRecord(_RecordBase):
    type: Literal["file-history-snapshot"] = "file-history-snapshot"


class QueueOperationRecord(_RecordBase):
    type: Literal["queue-operation"] = "queue-operation"


class SystemRecord(_RecordBase):
    type: Literal["system"] = "system"


Record = Annotated[
    Union[
        UserRecord,
        AssistantRecord,
        SummaryRecord,
        SnapshotRecord,
        QueueOperationRecord,
        SystemRecord,
    ],
    Field(discriminator="type"),
]

_RECORD_ADAPTER: TypeAdapter[Any] = TypeAdapter(Record)


@dataclass(frozen=True)
class Turn:
    """
    An inclusive index range ``[start, end]`` over a record sequence.

    Turns are derived views: they are recomputed whenever the record sequence
    changes and never edited.
    """

    start: int
    end: int

    def indices(self) -> range:
        return range(self.start, self.end + 1)


# ── Parsing / serialisation ────────────────────────────────────────────────────


def parse_record(line: str) -> Record:
    """Validate a single JSON line as a Record. Raises pydantic ``ValidationError``."""
    return _RECORD_ADAPTER.validate_json(line)


def parse_records(text: str) -> list[Record]:
    """
    Parse JSONL text into records.

    Blank lines are ignored. Any other line that fails to parse aborts the
    whole parse; there is no line-skipping tolerance.

    Raises:
        MalformedRecordError: With the 1-based line number of the bad line.
    """
    records: list[Record] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            records.append(parse_record(line))
        except ValidationError as exc:
            raise MalformedRecordError(line_number, str(exc)) from exc
    return records


def dump_record(record: Record) -> str:
    """Serialise one record to a compact JSON line (wire field names, unset fields omitted)."""
    return record.model_dump_json(by_alias=True, exclude_unset=True)


def dump_records(records: list[Record]) -> str:
    """Serialise records to JSONL with a trailing newline."""
    if not records:
        return ""
    return "\n".join(dump_record(r) for r in records) + "\n"


# ── Helpers ────────────────────────────────────────────────────────────────────


def is_conversational(record: Record) -> bool:
    """True for user and assistant records."""
    return isinstance(record, UserRecord | AssistantRecord)


def content_of(record: Record) -> str | list[ContentBlock] | None:
    """Return the message content of a conversational record, else None."""
    if isinstance(record, UserRecord | AssistantRecord) and record.message is not None:
        return record.message.content
    return None


def blocks_of(record: Record) -> list[ContentBlock] | None:
    """Return the block list of a record, or None when content is a string or absent."""
    content = content_of(record)
    return content if isinstance(content, list) else None


def extract_text(record: Record) -> str:
    """
    Extract the compressible text of a record.

    A plain-string content is returned as-is. For a block list, the ``text``
    blocks are joined by a blank line; tool, thinking, image and opaque
    blocks are ignored. Returns ``""`` when there is no text.
    """
    content = content_of(record)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n\n".join(b.text for b in content if isinstance(b, TextBlock))
    return ""


def with_content(record: Record, content: str | list[ContentBlock]) -> Record:
    """Return a copy of a conversational record with its message content replaced."""
    if not isinstance(record, UserRecord | AssistantRecord) or record.message is None:
        raise TypeError(f"record of type {record.type!r} has no message content")
    message = record.message.model_copy(update={"content": content})
    return record.model_copy(update={"message": message})


def text_block(text: str) -> TextBlock:
    """Build a TextBlock whose ``type`` survives ``exclude_unset`` serialisation."""
    return TextBlock(type="text", text=text)
