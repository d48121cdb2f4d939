"""Entry formatting for CLI display. Pure functions over Entry snapshots."""

from datetime import date, datetime, timedelta, timezone

from todust.models import Entry, ProjectCount

PREVIEW_WIDTH = 100


def single_line(text: str) -> str:
    """Collapse all whitespace, newlines included, into single spaces."""
    return " ".join(text.split())


def preview(text: str, width: int = PREVIEW_WIDTH) -> str:
    line = single_line(text)
    if len(line) <= width:
        return line
    return line[: max(width - 1, 0)] + "…"


def format_duration(duration: timedelta) -> str:
    # Clock skew can put started after now.
    seconds = max(int(duration.total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def format_duration_since(started: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return format_duration(now - started)


def due_or_dash(due: date | None) -> str:
    return due.isoformat() if due else "-"


def entry_to_dict(entry: Entry) -> dict:
    return {
        "uuid": entry.uuid,
        "short_id": entry.short_id,
        "project": entry.project,
        "state": entry.state.value,
        "text": entry.text,
        "started": entry.started.isoformat(timespec="microseconds"),
        "last_change": entry.last_change.isoformat(timespec="microseconds"),
        "finished": entry.finished.isoformat(timespec="microseconds") if entry.finished else None,
        "due": entry.due.isoformat() if entry.due else None,
    }


def format_entry_list(entries: list[Entry], now: datetime | None = None) -> str:
    """One row per entry: short id, age, due date and a text preview.

    Age is measured since started for active entries and is blank for done ones.
    """
    if not entries:
        return "No entries"

    rows = [("ID", "Age", "Due", "Description")]
    for entry in entries:
        age = format_duration_since(entry.started, now) if entry.is_active else ""
        rows.append((entry.short_id, age, due_or_dash(entry.due), preview(entry.text)))

    return _table(rows)


def format_entry_detail(entry: Entry) -> str:
    lines = [
        f"ID: {entry.uuid}",
        f"Project: {entry.project}",
        f"State: {entry.state.value}",
        f"Started: {entry.started.isoformat()}",
        f"Last change: {entry.last_change.isoformat()}",
    ]
    if entry.finished:
        lines.append(f"Finished: {entry.finished.isoformat()}")
    lines.append(f"Due: {due_or_dash(entry.due)}")
    lines.append(f"\n{entry.text}")
    return "\n".join(lines)


def format_project_counts(counts: list[ProjectCount], totals: ProjectCount | None = None) -> str:
    if not counts:
        return "No projects"

    rows = [("Project", "Active", "Done", "Total")]
    for count in counts:
        rows.append(
            (count.project, str(count.active_count), str(count.done_count), str(count.total_count))
        )
    if totals is not None:
        rows.append(("", "------", "----", "-----"))
        rows.append(
            ("", str(totals.active_count), str(totals.done_count), str(totals.total_count))
        )
    return _table(rows)


def _table(rows: list[tuple[str, ...]]) -> str:
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    lines = []
    for row in rows:
        cells = [cell.ljust(width) for cell, width in zip(row, widths)]
        lines.append("  ".join(cells).rstrip())
    return "\n".join(lines)
