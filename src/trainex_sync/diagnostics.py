"""Progress and diagnostic reporting for a sync run.

Every diagnostic goes to structlog and, when the caller passed one, to its
``log(event, data)`` callback. Callbacks are observers only: an exception in
one is logged and otherwise ignored.
"""

import re
from collections.abc import Callable
from typing import Any

from trainex_sync.discovery import redact_url
from trainex_sync.logging import get_logger

log = get_logger(__name__)

StatusCallback = Callable[[str], None]
LogCallback = Callable[[str, dict[str, Any] | None], None]

PREVIEW_BYTES = 200

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]+")


def scrub_preview(data: bytes, limit: int = PREVIEW_BYTES) -> str:
    """First ``limit`` bytes as text with control characters collapsed to spaces."""
    text = data[:limit].decode("utf-8", errors="replace")
    return _CONTROL_CHARS_RE.sub(" ", text).strip()


class SyncReporter:
    """Fan-out of status text and diagnostic events for one sync run."""

    def __init__(
        self,
        status: StatusCallback | None = None,
        log_callback: LogCallback | None = None,
    ) -> None:
        self._status = status
        self._log_callback = log_callback

    def status(self, text: str) -> None:
        log.debug("sync_status", text=text)
        if self._status is None:
            return
        try:
            self._status(text)
        except Exception as e:
            log.warning("status_callback_failed", error=str(e))

    def event(self, name: str, **data: Any) -> None:
        # URLs, previews and error texts can carry session-token values
        data = {
            key: redact_url(value) if isinstance(value, str) else value
            for key, value in data.items()
        }
        log.info(name, **data)
        if self._log_callback is None:
            return
        try:
            self._log_callback(name, data or None)
        except Exception as e:
            log.warning("log_callback_failed", event_name=name, error=str(e))
