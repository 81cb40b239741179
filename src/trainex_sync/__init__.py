"""TraiNex schedule sync.

Logs into the TraiNex portal with Playwright, fetches the iCal export of a
month or a single day and decodes it into sorted CalendarEvent objects.
"""

from trainex_sync.encoding import decode_calendar_bytes, looks_like_calendar
from trainex_sync.ics import parse_ics
from trainex_sync.models import (
    CalendarEvent,
    Credentials,
    RetrievalFailure,
    RetrievalRequest,
    RetrievalResult,
    RetrievalSuccess,
)
from trainex_sync.retrieval import RetrievalEngine, sync_schedule

__all__ = [
    "CalendarEvent",
    "Credentials",
    "RetrievalEngine",
    "RetrievalFailure",
    "RetrievalRequest",
    "RetrievalResult",
    "RetrievalSuccess",
    "decode_calendar_bytes",
    "looks_like_calendar",
    "parse_ics",
    "sync_schedule",
]
