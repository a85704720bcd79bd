"""Tests for per-turn token breakdown, the event bus and the debug report."""

from __future__ import annotations

from structlog.testing import capture_logs

from lethe.compression.debug_log import render_debug_report, write_debug_report
from lethe.events.bus import EventBus, LetheEvent
from lethe.transform.analysis import turn_breakdown
from tests.conftest import make_assistant, make_conversation, make_task, make_user, text, thinking


class TestTurnBreakdown:
    def test_categories_and_cumulative(self):
        """Per-category counts add up per turn and accumulate across turns."""
        records = [
            make_user("u" * 40, "u0"),
            make_assistant([thinking("t" * 20), text("a" * 80)], "a0", "u0"),
            make_user("v" * 4, "u1", "a0"),
            make_assistant("b" * 8, "a1", "u1"),
        ]
        (first, second) = turn_breakdown(records)
        assert first.tokens.user == 10
        assert first.tokens.thinking == 5
        assert first.tokens.assistant == 20
        assert first.tokens.total == 35
        assert second.tokens.user == 1
        assert second.cumulative.total == 35 + 1 + 2

    def test_tool_tokens_counted(self):
        """Tool calls and results count toward the tool category."""
        breakdown = turn_breakdown(make_conversation(2))
        assert all(b.tokens.tool > 0 for b in breakdown)

    def test_turn_content(self):
        """Each turn reports its prompt, tool call names and final response."""
        (turn,) = turn_breakdown(make_conversation(1))
        assert turn.content.user_prompt == "Question number 0"
        assert [c.name for c in turn.content.tool_calls] == ["Read"]
        assert turn.content.assistant_response == "Answer number 0"

    def test_empty_log(self):
        """An empty log has no turns to break down."""
        assert turn_breakdown([]) == []


class TestEventBus:
    def test_sync_handler_called(self):
        """Sync handlers receive only the events they subscribed to."""
        bus = EventBus()
        seen = []
        bus.subscribe(LetheEvent.CLONE_COMPLETED, lambda e, p: seen.append(p["log_id"]))
        bus.publish(LetheEvent.CLONE_COMPLETED, {"log_id": "x"})
        bus.publish(LetheEvent.COMPRESSION_COMPLETED, {"log_id": "y"})
        assert seen == ["x"]

    def test_handler_errors_swallowed(self):
        """A raising handler does not stop delivery to the remaining handlers."""
        bus = EventBus()
        seen = []

        def broken(event, payload):
            raise RuntimeError("boom")

        bus.subscribe(LetheEvent.CLONE_COMPLETED, broken)
        bus.subscribe_all(lambda e, p: seen.append(e))
        bus.publish(LetheEvent.CLONE_COMPLETED, {})
        assert seen == [LetheEvent.CLONE_COMPLETED]

    def test_handler_error_logged_with_event_type(self):
        """The failure log names the event and the failing handler."""
        bus = EventBus()

        def broken(event, payload):
            raise RuntimeError("boom")

        bus.subscribe(LetheEvent.CLONE_COMPLETED, broken)
        with capture_logs() as logs:
            bus.publish(LetheEvent.CLONE_COMPLETED, {})
        (entry,) = [e for e in logs if e["event"] == "event_handler_error"]
        assert entry["event_type"] == str(LetheEvent.CLONE_COMPLETED)
        assert entry["error"] == "boom"
        assert entry["handler"].endswith("broken")

    def test_unsubscribe(self):
        """An unsubscribed handler is no longer called."""
        bus = EventBus()
        seen = []

        def handler(event, payload):
            seen.append(event)

        bus.subscribe(LetheEvent.CLONE_COMPLETED, handler)
        bus.unsubscribe(LetheEvent.CLONE_COMPLETED, handler)
        bus.publish(LetheEvent.CLONE_COMPLETED, {})
        assert seen == []

    async def test_async_handlers_drained(self):
        """drain() waits for coroutine handlers to finish."""
        bus = EventBus()
        seen = []

        async def handler(event, payload):
            seen.append(payload["log_id"])

        bus.subscribe(LetheEvent.CLONE_COMPLETED, handler)
        bus.publish(LetheEvent.CLONE_COMPLETED, {"log_id": "x"})
        await bus.drain()
        assert seen == ["x"]

    async def test_async_handler_errors_swallowed(self):
        """A failing coroutine handler is logged and drain() still returns."""
        bus = EventBus()

        async def broken(event, payload):
            raise RuntimeError("boom")

        bus.subscribe(LetheEvent.CLONE_COMPLETED, broken)
        with capture_logs() as logs:
            bus.publish(LetheEvent.CLONE_COMPLETED, {})
            await bus.drain()
        assert [e["event_type"] for e in logs if e["event"] == "event_handler_error"] == [
            str(LetheEvent.CLONE_COMPLETED)
        ]


class TestDebugReport:
    def _report(self, tasks, records, compressed=None) -> str:
        return render_debug_report(
            source_log_id="src",
            target_log_id="dst",
            source_path="/logs/src.jsonl",
            target_path="/logs/dst.jsonl",
            original_records=records,
            compressed_records=compressed or records,
            tasks=tasks,
        )

    def test_sections_per_status(self):
        """The report has one section per task, labelled by its outcome."""
        records = [
            make_user("q" * 400, "u0", cwd="/work", gitBranch="main"),
            make_assistant("a" * 400, "a0", "u0"),
            make_user("short", "u1", "a0"),
            make_assistant("outside", "a1", "u1"),
        ]
        tasks = [
            make_task(0).model_copy(update={"status": "success", "result": "q", "duration_ms": 1200}),
            make_task(1).model_copy(update={"status": "failed", "attempt": 4, "error": "timeout"}),
            make_task(2, tokens=2, status="skipped"),
        ]
        report = self._report(tasks, records)
        assert report.startswith("# Compression Debug Log")
        assert "- cwd: `/work`" in report
        assert "- gitBranch: `main`" in report
        assert "## Message 1 - UserMessage `u0`" in report
        assert "**Status:** Compressed (35% target)" in report
        assert "Failed After 4 Attempts" in report
        assert "Below Threshold (2 tokens)" in report
        assert "## Messages Not in Compression Bands" in report
        assert "Message 3 - AssistantMessage `a1`" in report
        assert "- Compressed successfully: 1" in report
        assert "- Total: 1.20s" in report

    def test_backticks_escaped(self):
        """Code fences inside message text cannot close the report's own fences."""
        records = [make_user("```python\nprint(1)\n```", "u0")]
        tasks = [make_task(0, content="```python\nprint(1)\n```", status="skipped")]
        report = self._report(tasks, records)
        assert "\\`\\`\\`python" in report

    def test_written_to_debug_dir(self, tmp_path):
        """The report lands in the debug dir under the target log id."""
        records = [make_user("q" * 400, "u0")]
        tasks = [make_task(0).model_copy(update={"status": "success", "result": "q"})]
        path = write_debug_report(
            tmp_path / "debug",
            "dst",
            source_log_id="src",
            source_path="src.jsonl",
            target_path="dst.jsonl",
            original_records=records,
            compressed_records=records,
            tasks=tasks,
        )
        assert path == tmp_path / "debug" / "dst-compression-debug.md"
        assert "Compressed successfully: 1" in path.read_text()
