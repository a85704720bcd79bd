"""Human-readable before/after report of a compression run."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
from jinja2 import Environment

from lethe.models.compression import CompressionTask
from lethe.models.config import ProviderConfig
from lethe.models.record import (
    AssistantRecord,
    Record,
    UserRecord,
    extract_text,
)
from lethe.tokens.estimator import estimate_tokens

logger = structlog.get_logger("lethe.debug_log")

_REPORT_TEMPLATE = """\
# Compression Debug Log

## Cloning Session

**Source:** `{{ source_log_id }}`
**Target:** `{{ target_log_id }}`

**Source File:** `{{ source_path }}`
**Target File:** `{{ target_path }}`

{% if source_fields %}
### Source Session Fields
{% for key, value in source_fields %}
- {{ key }}: `{{ value }}`
{% endfor %}

{% endif %}
{% if target_fields %}
### Target Session Fields
{% for key, value in target_fields %}
- {{ key }}: `{{ value }}`
{% endfor %}

{% endif %}
---

{% for item in items %}
## Message {{ loop.index }} - {{ item.label }} `{{ item.uuid }}`

### Before Compression

**Content:**
```
{{ item.task.original_content | fence }}
```

**Message Fields:**
{% for line in item.source_fields %}
{{ line }}
{% endfor %}
- estimatedTokens: `{{ item.task.estimated_tokens }}`

### After Compression

{% if item.task.status == "success" %}
**Status:** Compressed ({{ item.target_percent }}% target)

**Content:**
```
{{ item.task.result | fence }}
```

**Message Fields:**
{% for line in item.target_fields %}
{{ line }}
{% endfor %}

**Compression Stats:**
- Original: {{ item.task.estimated_tokens }} tokens
- Compressed: {{ item.compressed_tokens }} tokens
- Reduction: {{ item.reduction }}%
{% if item.task.duration_ms is not none %}
- Duration: {{ item.task.duration_ms }}ms
{% endif %}
{% elif item.task.status == "skipped" %}
**Status:** Not Compressed - Below Threshold ({{ item.task.estimated_tokens }} tokens)

**Content:**
```
{{ item.task.original_content | fence }}
```
{% else %}
**Status:** Not Compressed - Failed After {{ item.task.attempt }} Attempts

**Error:** `{{ item.task.error or "Unknown error" }}`
{% if item.task.duration_ms is not none %}
**Duration:** {{ item.task.duration_ms }}ms
{% endif %}

**Content:**
```
{{ item.task.original_content | fence }}
```
{% endif %}

---

{% endfor %}
{% if outside %}
## Messages Not in Compression Bands

{% for entry in outside %}
{{ loop.index }}. Message {{ entry.index }} - {{ entry.label }} `{{ entry.uuid }}` ({{ entry.tokens }} tokens) - Band: none
{% endfor %}

---

{% endif %}
## Summary

Total messages in bands: {{ items | length }}
- Compressed successfully: {{ counts.success }}
- Skipped (below threshold): {{ counts.skipped }}
- Failed: {{ counts.failed }}
{% if outside %}

Messages not in any band: {{ outside | length }}
{% endif %}
{% if timed %}

**Timing:**
- Total: {{ "%.2f" | format(total_ms / 1000) }}s
- Average per call: {{ avg_ms }}ms
{% endif %}
"""


def _fence(text: str | None) -> str:
    """Escape triple backticks so content cannot close the surrounding code block."""
    return (text or "").replace("```", "\\`\\`\\`")


_env = Environment(trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)
_env.filters["fence"] = _fence
_template = _env.from_string(_REPORT_TEMPLATE)


def _label(record: Record | None) -> str:
    return "UserMessage" if isinstance(record, UserRecord) else "AssistantMessage"


def _session_fields(records: list[Record]) -> list[tuple[str, Any]]:
    first_user = next((r for r in records if isinstance(r, UserRecord)), None)
    if first_user is None:
        return []
    fields: list[tuple[str, Any]] = []
    if first_user.session_id:
        fields.append(("sessionId", first_user.session_id))
    for key in ("cwd", "gitBranch", "version"):
        value = (first_user.model_extra or {}).get(key)
        if value:
            fields.append((key, value))
    return fields


def _message_fields(record: Record | None) -> list[str]:
    if not isinstance(record, UserRecord | AssistantRecord) or record.message is None:
        return []
    message = record.message
    extra = message.model_extra or {}
    lines: list[str] = []
    if message.role:
        lines.append(f"- role: `{message.role}`")
    for key in ("model", "id"):
        if extra.get(key):
            lines.append(f"- {key}: `{extra[key]}`")
    if "stop_reason" in extra:
        lines.append(f"- stop_reason: `{extra['stop_reason']}`")
    usage = extra.get("usage")
    if isinstance(usage, dict):
        lines.append("- usage:")
        for key in (
            "input_tokens",
            "output_tokens",
            "cache_creation_input_tokens",
            "cache_read_input_tokens",
        ):
            if usage.get(key):
                lines.append(f"  - {key}: {usage[key]}")
    return lines


def render_debug_report(
    *,
    source_log_id: str,
    target_log_id: str,
    source_path: str,
    target_path: str,
    original_records: list[Record],
    compressed_records: list[Record],
    tasks: list[CompressionTask],
    provider_config: ProviderConfig | None = None,
    output_records: list[Record] | None = None,
) -> str:
    """
    Render the Markdown report.

    ``original_records`` and ``compressed_records`` must be index-aligned
    (the compression step never changes the record count), so each task's
    ``message_index`` addresses the same record in both.

    ``output_records`` are the records as written, after removal and id
    assignment; the target session fields come from them when given.
    """
    provider_config = provider_config or ProviderConfig()
    items: list[dict[str, Any]] = []
    for task in tasks:
        source = original_records[task.message_index]
        target = compressed_records[task.message_index]
        compressed_tokens = estimate_tokens(task.result or "")
        reduction = (
            round(100 * (task.estimated_tokens - compressed_tokens) / task.estimated_tokens)
            if task.estimated_tokens > 0
            else 0
        )
        items.append(
            {
                "task": task,
                "label": _label(source),
                "uuid": source.uuid or "unknown",
                "source_fields": _message_fields(source),
                "target_fields": _message_fields(target),
                "target_percent": (
                    provider_config.target_heavy
                    if task.level == "heavy-compress"
                    else provider_config.target_standard
                ),
                "compressed_tokens": compressed_tokens,
                "reduction": reduction,
            }
        )

    in_bands = {t.message_index for t in tasks}
    outside = [
        {
            "index": index,
            "label": _label(record),
            "uuid": record.uuid or "unknown",
            "tokens": estimate_tokens(extract_text(record)),
        }
        for index, record in enumerate(original_records)
        if isinstance(record, UserRecord | AssistantRecord) and index not in in_bands
    ]

    timed = [t.duration_ms for t in tasks if t.duration_ms is not None]
    return _template.render(
        source_log_id=source_log_id,
        target_log_id=target_log_id,
        source_path=source_path,
        target_path=target_path,
        source_fields=_session_fields(original_records),
        target_fields=_session_fields(
            compressed_records if output_records is None else output_records
        ),
        items=items,
        outside=outside,
        counts={
            "success": sum(1 for t in tasks if t.status == "success"),
            "skipped": sum(1 for t in tasks if t.status == "skipped"),
            "failed": sum(1 for t in tasks if t.status == "failed"),
        },
        timed=bool(timed),
        total_ms=sum(timed),
        avg_ms=round(sum(timed) / len(timed)) if timed else 0,
    )


def write_debug_report(debug_dir: str | Path, target_log_id: str, **kwargs: Any) -> Path:
    """
    Render the report and write it to ``<debug_dir>/<target_log_id>-compression-debug.md``.

    Keyword arguments are passed to :func:`render_debug_report`.

    Returns:
        The path of the written report.
    """
    markdown = render_debug_report(target_log_id=target_log_id, **kwargs)
    directory = Path(debug_dir).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{target_log_id}-compression-debug.md"
    path.write_text(markdown, encoding="utf-8")
    logger.info("debug_log_written", path=str(path), tasks=len(kwargs.get("tasks", [])))
    return path
