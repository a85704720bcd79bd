"""
Example 01: Clone a Log
=======================

Demonstrates a full clone of a conversation log:
- Writing a small log into a RecordStore
- Inspecting per-turn token counts with turn_breakdown()
- Cloning with tool removal, thinking removal and a compression band
- Reading the stats and the debug report path

Run without an API key:
    LETHE_MOCK_LLM=1 uv run python examples/01_clone_log.py

Run with a real LLM (set your API key first):
    ANTHROPIC_API_KEY=sk-... uv run python examples/01_clone_log.py
"""

import asyncio
import sys
import tempfile
from pathlib import Path

# Add project root to path when running directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def build_log(turns: int) -> str:
    import json

    lines = []
    parent = None
    for n in range(turns):
        prompt = f"u{n}"
        call = f"a{n}"
        result = f"r{n}"
        answer = f"f{n}"
        lines += [
            {
                "type": "user",
                "uuid": prompt,
                "parentUuid": parent,
                "sessionId": "demo",
                "message": {"role": "user", "content": f"Step {n}: explain the module layout " * 8},
            },
            {
                "type": "assistant",
                "uuid": call,
                "parentUuid": prompt,
                "sessionId": "demo",
                "message": {
                    "role": "assistant",
                    "content": [
                        {"type": "thinking", "thinking": "I should read the file first."},
                        {"type": "text", "text": "Let me look at the source tree. " * 6},
                        {"type": "tool_use", "id": f"t{n}", "name": "Read", "input": {"path": "src"}},
                    ],
                },
            },
            {
                "type": "user",
                "uuid": result,
                "parentUuid": call,
                "sessionId": "demo",
                "message": {
                    "role": "user",
                    "content": [{"type": "tool_result", "tool_use_id": f"t{n}", "content": "a.py\nb.py"}],
                },
            },
            {
                "type": "assistant",
                "uuid": answer,
                "parentUuid": result,
                "sessionId": "demo",
                "message": {"role": "assistant", "content": "The layout is flat with two modules. " * 6},
            },
        ]
        parent = answer
    return "\n".join(json.dumps(line) for line in lines) + "\n"


async def main() -> None:
    from lethe import (
        CloneRequest,
        CompressionBand,
        LetheConfig,
        LogTransformer,
        StoreConfig,
        parse_records,
        turn_breakdown,
    )

    print("=== Lethe Clone Example ===\n")

    workdir = Path(tempfile.mkdtemp(prefix="lethe_example_"))
    log_dir = workdir / "logs"
    log_dir.mkdir()
    (log_dir / "demo.jsonl").write_text(build_log(6))

    config = LetheConfig(
        store=StoreConfig(
            log_dir=str(log_dir),
            lineage_db_path=str(workdir / "lineage.db"),
            debug_log_dir=str(workdir / "debug"),
        )
    )

    records = parse_records((log_dir / "demo.jsonl").read_text())
    for turn in turn_breakdown(records):
        print(
            f"Turn {turn.turn_index}: {turn.tokens.total} tokens "
            f"(cumulative {turn.cumulative.total})"
        )
    print()

    async with LogTransformer.open(config) as transformer:
        result = await transformer.clone(
            CloneRequest(
                log_id="demo",
                tool_removal=50,
                thinking_removal=100,
                bands=[
                    CompressionBand(start=0, end=50, level="heavy-compress"),
                    CompressionBand(start=50, end=80),
                ],
                debug_log=True,
            )
        )

        print(f"New log: {result.log_id}")
        print(f"Written to: {result.output_path}")
        print(f"Turns: {result.stats.original_turn_count} -> {result.stats.output_turn_count}")
        print(f"Tool calls removed: {result.stats.tool_calls_removed}")
        print(f"Thinking blocks removed: {result.stats.thinking_blocks_removed}")
        if result.stats.compression:
            stats = result.stats.compression
            print(
                f"Compressed {stats.messages_compressed} messages: "
                f"{stats.original_tokens} -> {stats.compressed_tokens} tokens "
                f"({stats.reduction_percent}% smaller)"
            )
        if result.debug_log_path:
            print(f"Debug report: {result.debug_log_path}")


if __name__ == "__main__":
    asyncio.run(main())
