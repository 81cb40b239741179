"""iCalendar decoding for TraiNex exports.

Only single-occurrence VEVENTs are handled; RRULEs are ignored. The decoder
never raises: malformed lines are skipped and events lacking a summary or a
start are dropped.
"""

import re
from datetime import datetime, timedelta, timezone

from trainex_sync.logging import get_logger
from trainex_sync.models import CalendarEvent

log = get_logger(__name__)

_DATE_RE = re.compile(r"^\d{8}$")
_DATETIME_RE = re.compile(r"^\d{8}T\d{6}$")
_DURATION_RE = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$")
_ESCAPE_RE = re.compile(r"\\([nN,;\\])")
_FOLD_RE = re.compile(r"\n[ \t]")

_UNESCAPED = {"n": "\n", "N": "\n", ",": ",", ";": ";", "\\": "\\"}


def unfold_lines(text: str) -> str:
    """Normalize line endings to ``\\n`` and join folded continuation lines."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return _FOLD_RE.sub("", normalized)


def unescape_text(value: str) -> str:
    r"""Resolve ``\n``, ``\,``, ``\;`` and ``\\`` escapes in a property value."""
    return _ESCAPE_RE.sub(lambda m: _UNESCAPED[m.group(1)], value)


def split_property(line: str) -> tuple[str | None, str]:
    """Split ``NAME;PARAM=x:value`` into ``("NAME", "value")``.

    Returns ``(None, "")`` for lines without a colon.
    """
    name, sep, value = line.partition(":")
    if not sep:
        return None, ""
    key = name.split(";", 1)[0].strip().upper()
    return key or None, unescape_text(value)


def _to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ics_date_to_iso(value: str) -> str:
    """Convert a DATE or DATE-TIME value to an ISO-8601 UTC timestamp.

    ``YYYYMMDD`` is local midnight, ``YYYYMMDDThhmmss`` is local wall-clock
    time and a trailing ``Z`` marks UTC. Anything else is returned unchanged.
    """
    utc = value.endswith("Z")
    raw = value[:-1] if utc else value

    try:
        if _DATE_RE.match(raw):
            # naive datetime.astimezone() treats the value as local time
            return _to_iso(datetime(int(raw[0:4]), int(raw[4:6]), int(raw[6:8])))

        if _DATETIME_RE.match(raw):
            dt = datetime(
                int(raw[0:4]),
                int(raw[4:6]),
                int(raw[6:8]),
                int(raw[9:11]),
                int(raw[11:13]),
                int(raw[13:15]),
                tzinfo=timezone.utc if utc else None,
            )
            return _to_iso(dt)
    except (ValueError, OverflowError):
        log.debug("ics_date_out_of_range", value=value)

    return value


def parse_duration(value: str) -> timedelta | None:
    """Parse ``P[nD][T[nH][nM][nS]]``; None if malformed or empty."""
    match = _DURATION_RE.match(value.strip().upper())
    if not match or not any(match.groups()):
        return None
    days, hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    try:
        return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
    except OverflowError:
        return None


def end_from_duration(start_iso: str, duration: str | None) -> str | None:
    if not duration:
        return None
    delta = parse_duration(duration)
    if delta is None:
        return None
    try:
        start = datetime.fromisoformat(start_iso.replace("Z", "+00:00"))
    except ValueError:
        return None
    try:
        if start.tzinfo is None:
            start = start.astimezone()
        return _to_iso(start + delta)
    except (ValueError, OverflowError):
        log.debug("ics_duration_out_of_range", start=start_iso, duration=duration)
        return None


def make_event_id(summary: str, start: str, end: str, location: str) -> str:
    """Deterministic fingerprint of an event's identifying fields.

    32-bit ``h * 31 + unit`` rolling hash over the UTF-16 code units of
    ``summary|start|end|location``, rendered as hex.
    """
    data = f"{summary}|{start}|{end}|{location}".encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + (data[i] | data[i + 1] << 8)) & 0xFFFFFFFF
    return f"evt_{h:x}"


def _build_event(props: dict[str, object]) -> CalendarEvent | None:
    summary = str(props.get("summary") or "").strip()
    start = str(props.get("start") or "").strip()
    if not summary or not start:
        return None

    end = str(props.get("end") or "").strip()
    if not end:
        end = end_from_duration(start, props.get("duration")) or start  # type: ignore[arg-type]

    # the id covers the location as written, the event field is trimmed
    raw_location = str(props.get("location") or "")
    location = raw_location.strip()
    description = str(props.get("description") or "").strip()
    return CalendarEvent(
        id=make_event_id(summary, start, end, raw_location),
        summary=summary,
        start=start,
        end=end,
        location=location or None,
        description=description or None,
        categories=props.get("categories"),  # type: ignore[arg-type]
    )


def parse_ics(text: str) -> list[CalendarEvent]:
    """Decode iCalendar text into events sorted by start.

    Args:
        text: Calendar text, already decoded from bytes (see decode_calendar_bytes).

    Returns:
        List of CalendarEvent sorted ascending by ISO start string. Empty for
        empty or non-calendar input.
    """
    events: list[CalendarEvent] = []
    current: dict[str, object] | None = None
    dropped = 0

    for raw_line in unfold_lines(text).split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        marker = line.upper()
        if marker == "BEGIN:VEVENT":
            current = {}
            continue
        if marker == "END:VEVENT":
            if current is not None:
                event = _build_event(current)
                if event is None:
                    dropped += 1
                else:
                    events.append(event)
            current = None
            continue

        if current is None:
            continue

        key, value = split_property(line)
        if key == "SUMMARY":
            current["summary"] = value
        elif key == "DESCRIPTION":
            current["description"] = value
        elif key == "LOCATION":
            current["location"] = value
        elif key == "CATEGORIES":
            current["categories"] = [c.strip() for c in value.split(",") if c.strip()]
        elif key == "DTSTART":
            current["start"] = ics_date_to_iso(value.strip())
        elif key == "DTEND":
            current["end"] = ics_date_to_iso(value.strip())
        elif key == "DURATION":
            current["duration"] = value

    events.sort(key=lambda e: e.start)
    log.debug("ics_parsed", events=len(events), dropped=dropped)
    return events
