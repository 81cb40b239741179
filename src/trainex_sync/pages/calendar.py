"""CalendarPage - navigation and link scraping inside the logged-in portal.

Pages visited here are only used as sources of session tokens (in the URL
after redirects) and of export links (in the rendered HTML):

  cfm/einsatzplan/einsatzplan_listenansicht.cfm  -> list view, links to iCal export
  cfm/einsatzplan/einsatzplan.cfm                -> schedule grid
  cfm/index.cfm                                  -> portal start page
  cfm/einsatzplan/index.cfm                      -> calendar index

Export links look like:
  <a href="einsatzplan_listenansicht_iCal.cfm?ics=1&amp;CFID=..&amp;CFTOKEN=..">
"""

from playwright.async_api import Page

from trainex_sync.browser import WaitOutcome, wait_for_network_idle
from trainex_sync.diagnostics import SyncReporter


class CalendarPage:
    """Portal pages that lead to the iCal export."""

    ANCHORS = "a[href]"

    def __init__(
        self,
        page: Page,
        reporter: SyncReporter,
        *,
        network_idle_timeout_ms: int,
    ) -> None:
        self.page = page
        self.reporter = reporter
        self.network_idle_timeout_ms = network_idle_timeout_ms

    async def visit(self, url: str) -> str:
        """Navigate to ``url`` and return the final page URL after redirects."""
        self.reporter.event("navigation_start", url=url)
        await self.page.goto(url, wait_until="domcontentloaded")
        outcome = await wait_for_network_idle(self.page, self.network_idle_timeout_ms)
        self.reporter.event(
            "navigation_end",
            url=url,
            final_url=self.page.url,
            network_idle=outcome is WaitOutcome.READY,
        )
        return self.page.url

    async def html(self) -> str:
        return await self.page.content()

    async def anchor_hrefs(self) -> list[str | None]:
        """Raw ``href`` attribute of every anchor in the live DOM."""
        return await self.page.locator(self.ANCHORS).evaluate_all(
            "els => els.map(e => e.getAttribute('href'))"
        )
