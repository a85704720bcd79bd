"""Tests for record parsing, serialisation and content helpers."""

from __future__ import annotations

import json

import pytest

from lethe.errors import MalformedRecordError
from lethe.models.record import (
    AssistantRecord,
    ImageBlock,
    OpaqueBlock,
    SnapshotRecord,
    SummaryRecord,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserRecord,
    dump_record,
    dump_records,
    extract_text,
    parse_record,
    parse_records,
    with_content,
)
from tests.conftest import make_assistant, make_user, text, tool_use


class TestParsing:
    def test_user_record_with_string_content(self):
        """A user record with string content parses."""
        record = parse_record(
            json.dumps(
                {
                    "type": "user",
                    "uuid": "u1",
                    "parentUuid": None,
                    "sessionId": "s1",
                    "message": {"role": "user", "content": "hello"},
                }
            )
        )
        assert isinstance(record, UserRecord)
        assert record.parent_uuid is None
        assert record.session_id == "s1"
        assert record.message.content == "hello"

    def test_blocks_are_discriminated(self):
        """Content blocks parse into their typed models."""
        record = parse_record(
            json.dumps(
                {
                    "type": "assistant",
                    "uuid": "a1",
                    "message": {
                        "role": "assistant",
                        "content": [
                            {"type": "text", "text": "hi"},
                            {"type": "tool_use", "id": "t1", "name": "Bash", "input": {"cmd": "ls"}},
                            {"type": "image", "source": {"data": "..."}},
                            {"type": "server_tool_use", "id": "x"},
                        ],
                    },
                }
            )
        )
        assert isinstance(record, AssistantRecord)
        blocks = record.message.content
        assert isinstance(blocks[0], TextBlock)
        assert isinstance(blocks[1], ToolUseBlock)
        assert isinstance(blocks[2], ImageBlock)
        assert isinstance(blocks[3], OpaqueBlock)
        assert blocks[3].type == "server_tool_use"

    def test_non_conversational_kinds(self):
        """Summary and snapshot records parse into their own models."""
        records = parse_records(
            '{"type": "summary", "summary": "title", "leafUuid": "u1"}\n'
            '{"type": "file-history-snapshot", "messageId": "m1", "snapshot": {}}\n'
        )
        assert isinstance(records[0], SummaryRecord)
        assert isinstance(records[1], SnapshotRecord)

    def test_blank_lines_ignored(self):
        """Blank lines between records are skipped."""
        records = parse_records('\n{"type": "summary", "summary": "x"}\n\n')
        assert len(records) == 1

    def test_malformed_line_reports_line_number(self):
        """Parse errors carry the 1-based line number."""
        data = '{"type": "summary", "summary": "x"}\n{"type": "user", "message": 5}\n'
        with pytest.raises(MalformedRecordError) as exc_info:
            parse_records(data)
        assert exc_info.value.line_number == 2

    def test_invalid_json_is_malformed(self):
        """Invalid JSON raises MalformedRecordError."""
        with pytest.raises(MalformedRecordError) as exc_info:
            parse_records("not json")
        assert exc_info.value.line_number == 1

    def test_unknown_record_type_is_malformed(self):
        """An unknown record type is rejected."""
        with pytest.raises(MalformedRecordError):
            parse_records('{"type": "mystery"}')


class TestSerialisation:
    def test_unknown_fields_survive_round_trip(self):
        """Fields the models do not know are written back unchanged."""
        line = json.dumps(
            {
                "type": "user",
                "uuid": "u1",
                "parentUuid": None,
                "sessionId": "s1",
                "cwd": "/work",
                "gitBranch": "main",
                "message": {
                    "role": "user",
                    "content": [{"type": "text", "text": "hi", "citations": None}],
                },
            }
        )
        assert json.loads(dump_record(parse_record(line))) == json.loads(line)

    def test_absent_fields_stay_absent(self):
        """Fields missing on input are not added on output."""
        line = '{"type":"summary","summary":"x"}'
        dumped = json.loads(dump_record(parse_record(line)))
        assert "uuid" not in dumped
        assert "sessionId" not in dumped

    def test_dump_records_trailing_newline(self):
        """Dumped logs end with a newline."""
        records = parse_records('{"type":"summary","summary":"a"}\n{"type":"summary","summary":"b"}')
        assert dump_records(records).endswith("\n")
        assert dump_records(records).count("\n") == 2
        assert dump_records([]) == ""


class TestContentHelpers:
    def test_extract_text_from_string(self):
        """String content is its own text."""
        assert extract_text(make_user("plain", "u1")) == "plain"

    def test_extract_text_joins_text_blocks(self):
        """Text blocks are joined with a blank line."""
        record = make_assistant([text("one"), tool_use("t1"), text("two")], "a1")
        assert extract_text(record) == "one\n\ntwo"

    def test_extract_text_without_text(self):
        """Records without text yield an empty string."""
        record = make_user([{"type": "tool_result", "tool_use_id": "t1", "content": "x"}], "r1")
        assert extract_text(record) == ""
        assert isinstance(record.message.content[0], ToolResultBlock)

    def test_with_content_does_not_modify_original(self):
        """with_content returns a copy."""
        record = make_user("before", "u1")
        updated = with_content(record, "after")
        assert record.message.content == "before"
        assert updated.message.content == "after"
        assert updated.uuid == "u1"

    def test_with_content_rejects_records_without_message(self):
        """Records without a message cannot take new content."""
        record = parse_record('{"type": "summary", "summary": "x"}')
        with pytest.raises(TypeError):
            with_content(record, "text")
