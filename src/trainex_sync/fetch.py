"""Fetch a candidate export URL and check that the answer is a calendar.

Requests go through the browser context's request API so they carry the
session cookies of the logged-in page.
"""

from playwright.async_api import BrowserContext, Page

from trainex_sync.diagnostics import SyncReporter, scrub_preview
from trainex_sync.encoding import looks_like_calendar

ACCEPT_CALENDAR = "text/calendar, text/plain;q=0.9, */*;q=0.8"


class ExportFetcher:
    """GET + validate for candidate export URLs.

    A non-2xx status or a body without a VCALENDAR marker is a miss (None),
    never an error; transport exceptions propagate to the orchestrator.
    """

    def __init__(self, context: BrowserContext, page: Page, reporter: SyncReporter) -> None:
        self.context = context
        self.page = page
        self.reporter = reporter

    async def fetch(self, url: str, *, step: str) -> bytes | None:
        """Fetch ``url`` and return its body if it looks like iCalendar data.

        Args:
            url: Absolute candidate URL.
            step: Name of the chain step, for diagnostics.

        Returns:
            Raw response bytes, or None on a miss.
        """
        self.reporter.event("fetch_attempt", step=step, url=url)
        response = await self.context.request.get(
            url,
            headers={"Accept": ACCEPT_CALENDAR, "Referer": self.page.url},
        )

        if not response.ok:
            self.reporter.event(
                "fetch_miss", step=step, reason="status", status=response.status, url=url
            )
            return None

        body = await response.body()
        if not looks_like_calendar(body):
            self.reporter.event(
                "fetch_miss",
                step=step,
                reason="not_calendar",
                status=response.status,
                final_url=response.url,
                content_type=response.headers.get("content-type", ""),
                preview=scrub_preview(body),
            )
            return None

        self.reporter.event(
            "fetch_hit", step=step, status=response.status, final_url=response.url, bytes=len(body)
        )
        return body
