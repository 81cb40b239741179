"""Serialize decoded events for files and terminals (JSON, CSV, table)."""

import csv
import io
import json
from collections.abc import Sequence
from datetime import datetime

from trainex_sync.models import CalendarEvent

CSV_HEADER = ["start", "end", "summary", "location", "description", "categories"]


def _local(iso: str) -> datetime | None:
    try:
        return datetime.fromisoformat(iso.replace("Z", "+00:00")).astimezone()
    except ValueError:
        return None


def day_key(iso: str) -> str:
    """Local calendar day (YYYY-MM-DD) of an ISO timestamp."""
    local = _local(iso)
    return local.strftime("%Y-%m-%d") if local else iso[:10]


def format_time(iso: str) -> str:
    local = _local(iso)
    return local.strftime("%H:%M") if local else iso


def group_by_day(events: Sequence[CalendarEvent]) -> dict[str, list[CalendarEvent]]:
    """Bucket events by local start day, days in ascending order."""
    buckets: dict[str, list[CalendarEvent]] = {}
    for event in events:
        buckets.setdefault(day_key(event.start), []).append(event)
    return dict(sorted(buckets.items()))


def events_to_json(events: Sequence[CalendarEvent]) -> str:
    return json.dumps(
        [event.model_dump(mode="json", exclude_none=True) for event in events],
        indent=2,
        ensure_ascii=False,
    )


def events_to_csv(events: Sequence[CalendarEvent]) -> str:
    """CSV with a fixed header; categories joined by ', '."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for event in events:
        writer.writerow(
            [
                event.start,
                event.end,
                event.summary,
                event.location or "",
                event.description or "",
                ", ".join(event.categories or []),
            ]
        )
    return buffer.getvalue().rstrip("\n")


def format_table(events: Sequence[CalendarEvent]) -> str:
    """Format events as a human-readable table.

    Columns: Date | Time | Summary | Location
    """
    if not events:
        return "(no events)"

    headers = ["Date", "Time", "Summary", "Location"]

    rows = []
    for e in events:
        rows.append(
            [
                day_key(e.start),
                f"{format_time(e.start)}-{format_time(e.end)}",
                e.summary,
                e.location or "-",
            ]
        )

    # Calculate column widths
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)

    row_lines = []
    for row in rows:
        row_lines.append(
            " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row))
        )

    return "\n".join([header_line, separator, *row_lines])
