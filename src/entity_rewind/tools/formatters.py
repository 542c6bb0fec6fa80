"""Compact output formatters for MCP tool responses."""

import json

from entity_rewind.models.approach import Approach, ApproachMethod
from entity_rewind.models.version import VersionRecord

_MAX_VALUE_CHARS = 40


def format_value(value: object) -> str:
    """JSON-encode a value, truncated for one-line display."""
    text = json.dumps(value)
    if len(text) > _MAX_VALUE_CHARS:
        return text[: _MAX_VALUE_CHARS - 3] + "..."
    return text


def format_changes(record: VersionRecord) -> str:
    """Format: status: "draft" -> "active", title: "a" -> "b"."""
    names = list(record.new_values) + [n for n in record.old_values if n not in record.new_values]
    parts = []
    for name in names:
        old = format_value(record.old_values[name]) if name in record.old_values else "-"
        new = format_value(record.new_values[name]) if name in record.new_values else "-"
        parts.append(f"{name}: {old} -> {new}")
    return ", ".join(parts) if parts else "(no changes)"


def format_version_line(record: VersionRecord, current: int | None = None) -> str:
    """Format: * v3 (2026-01-01T10:00:00) [snapshot] by alice | status: ..."""
    marker = "*" if current == record.version else " "
    date_str = record.created_at.isoformat()[:19] if record.created_at else "unknown"
    flags = " [snapshot]" if record.is_snapshot else ""
    author = f" by {record.author_id}" if record.author_id else ""
    return f"{marker} v{record.version} ({date_str}){flags}{author} | {format_changes(record)}"


def format_history(
    entity_type: str, entity_id: str, current: int, records: list[VersionRecord]
) -> str:
    """Header plus one line per version, the current one starred."""
    lines = [f"Version history for {entity_type}:{entity_id} (current: v{current})"]
    if not records:
        lines.append("No version records found.")
    else:
        lines.extend(format_version_line(record, current) for record in records)
    return "\n".join(lines)


def format_move(
    entity_type: str, entity_id: str, previous: int, current: int, approach: Approach
) -> str:
    """One-line summary of a navigation."""
    if approach.method is ApproachMethod.NONE:
        return f"{entity_type}:{entity_id} already at v{current}."
    via = "direct diff walk"
    if approach.method is ApproachMethod.FROM_SNAPSHOT and approach.snapshot:
        via = f"snapshot v{approach.snapshot.version}"
    return (
        f"{entity_type}:{entity_id} moved v{previous} -> v{current}"
        f" via {via} (cost {approach.cost})."
    )
