"""Schedule retrieval: login, then a fallback chain until the iCal export answers.

Chain steps run strictly in order and the first one that returns calendar
bytes ends the run:

  1. bootstrap_navigation  -> visit list/schedule/index pages, use the session
                              tokens they carry and the export links they show
  2. direct_construction   -> export URL from path conventions alone
  3. index_discovery       -> export link on the calendar index page
  4. dom_anchor_discovery  -> export link among the live page's anchors

Where a step builds URLs itself it tries the month-wide URL (empty utag)
before the single-day one. The portal accepts either depending on server
state, so both are kept.
"""

import time
from collections.abc import Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pydantic import ValidationError

from trainex_sync.browser import BrowserSession, open_browser_session
from trainex_sync.config import SyncConfig, get_config
from trainex_sync.diagnostics import LogCallback, StatusCallback, SyncReporter
from trainex_sync.discovery import (
    build_export_url,
    find_bare_export_url,
    find_export_url,
    find_export_urls,
    find_session_tokens,
    first_export_href,
    redact_url,
    with_date_params,
)
from trainex_sync.errors import (
    AuthenticationError,
    BrowserMissingError,
    ExportNotFoundError,
    LoginFormNotFoundError,
    TransientError,
)
from trainex_sync.fetch import ExportFetcher
from trainex_sync.logging import get_logger
from trainex_sync.models import (
    RetrievalFailure,
    RetrievalRequest,
    RetrievalResult,
    RetrievalSuccess,
)
from trainex_sync.pages.calendar import CalendarPage
from trainex_sync.pages.login import LoginPage

log = get_logger(__name__)

MSG_INVALID_CREDENTIALS_INPUT = "Please enter login and password."
MSG_INVALID_MONTH = "Invalid month."
MSG_INVALID_REQUEST = "Invalid sync request."
MSG_BROWSER_MISSING = "Playwright browser (Chromium) is not installed."
MSG_AUTH_FAILED = "Login failed: TraiNex rejected the username or password."
MSG_LOGIN_FORM_MISSING = "Login failed: the TraiNex login form was not found."
MSG_TIMEOUT = "Sync timed out while waiting for TraiNex."
MSG_NOT_FOUND = "Sync failed: the iCal/ICS export could not be loaded."
MSG_UNEXPECTED = "Sync failed (unexpected error)."

HINT_BROWSER_MISSING = "Run once in the project environment: playwright install chromium"
HINT_LOGIN_FORM_MISSING = "The TraiNex landing page may have changed its layout."
HINT_NOT_FOUND = (
    "Possible causes: captcha/2FA, or the TraiNex page or export link has changed."
)

SessionFactory = Callable[[SyncConfig, int], AbstractAsyncContextManager[BrowserSession]]


@dataclass(frozen=True)
class ChainContext:
    """Everything a chain step needs; steps never mutate it."""

    request: RetrievalRequest
    config: SyncConfig
    calendar: CalendarPage
    fetcher: ExportFetcher
    reporter: SyncReporter
    deadline: float | None = None

    @property
    def day_variants(self) -> tuple[int, ...]:
        """Month-wide query first, then the requested day (if any)."""
        if self.request.is_month_query:
            return (0,)
        return (0, self.request.target_day)

    def stamp(self, url: str, day: int) -> str:
        return with_date_params(url, day, self.request.target_month, self.request.target_year)

    @property
    def export_script(self) -> str:
        return self.config.export_path.rsplit("/", 1)[-1]


ChainStep = Callable[[ChainContext], Awaitable[bytes | None]]


async def _fetch_variants(ctx: ChainContext, url: str, step: str) -> bytes | None:
    for day in ctx.day_variants:
        body = await ctx.fetcher.fetch(ctx.stamp(url, day), step=step)
        if body is not None:
            return body
    return None


async def bootstrap_navigation(ctx: ChainContext) -> bytes | None:
    """Visit the bootstrap pages and try tokens and links found on each."""
    for path in ctx.config.bootstrap_paths:
        final_url = await ctx.calendar.visit(ctx.config.page_url(path))

        tokens = find_session_tokens(final_url)
        if tokens:
            # names only, values are session secrets
            ctx.reporter.event("session_tokens_found", names=sorted(tokens))
            for day in ctx.day_variants:
                url = build_export_url(
                    ctx.config.export_url,
                    tokens,
                    day,
                    ctx.request.target_month,
                    ctx.request.target_year,
                )
                body = await ctx.fetcher.fetch(url, step="bootstrap_tokens")
                if body is not None:
                    return body

        html = await ctx.calendar.html()
        discovered = list(
            dict.fromkeys(find_export_urls(html, ctx.config.base_url, ctx.export_script))
        )
        # token-carrying links first, document order otherwise
        discovered.sort(key=lambda u: not find_session_tokens(u))
        for url in discovered:
            body = await _fetch_variants(ctx, url, "bootstrap_links")
            if body is not None:
                return body
    return None


async def direct_construction(ctx: ChainContext) -> bytes | None:
    """Guess the export URL from path conventions, without tokens."""
    return await _fetch_variants(ctx, ctx.config.export_url, "direct")


async def index_discovery(ctx: ChainContext) -> bytes | None:
    """Scan the calendar index for an export link."""
    await ctx.calendar.visit(ctx.config.page_url(ctx.config.calendar_index_path))
    html = await ctx.calendar.html()
    url = find_export_url(html, ctx.config.base_url, ctx.export_script) or find_bare_export_url(
        html, ctx.config.base_url, ctx.export_script
    )
    if url is None:
        ctx.reporter.event("export_link_missing", step="index")
        return None
    return await ctx.fetcher.fetch(ctx.stamp(url, ctx.request.target_day), step="index")


async def dom_anchor_discovery(ctx: ChainContext) -> bytes | None:
    """Take the first export anchor of the live page."""
    hrefs = await ctx.calendar.anchor_hrefs()
    url = first_export_href(hrefs, ctx.config.base_url, ctx.export_script)
    if url is None:
        ctx.reporter.event("export_link_missing", step="dom_anchors")
        return None
    return await ctx.fetcher.fetch(ctx.stamp(url, ctx.request.target_day), step="dom_anchors")


DEFAULT_CHAIN: tuple[ChainStep, ...] = (
    bootstrap_navigation,
    direct_construction,
    index_discovery,
    dom_anchor_discovery,
)


async def run_chain(steps: Sequence[ChainStep], ctx: ChainContext) -> bytes:
    """Run ``steps`` in order until one returns calendar bytes.

    Raises:
        TransientError: If the caller's deadline passes between steps.
        ExportNotFoundError: If every step misses.
    """
    for step in steps:
        name = getattr(step, "__name__", repr(step))
        if ctx.deadline is not None and time.monotonic() >= ctx.deadline:
            raise TransientError(f"Deadline passed before chain step {name}")
        ctx.reporter.event("chain_step_started", step=name)
        body = await step(ctx)
        if body is not None:
            ctx.reporter.event("chain_step_succeeded", step=name, bytes=len(body))
            return body
    raise ExportNotFoundError(f"All {len(steps)} discovery strategies missed")


class RetrievalEngine:
    """Logs into TraiNex and fetches the iCal export for one request.

    ``retrieve`` never raises: every error path ends in a RetrievalFailure,
    and the browser is closed on all of them.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        session_factory: SessionFactory = open_browser_session,
        steps: Sequence[ChainStep] = DEFAULT_CHAIN,
    ) -> None:
        self.config = config or get_config()
        self.session_factory = session_factory
        self.steps = tuple(steps)

    async def retrieve(
        self,
        request: RetrievalRequest,
        *,
        timeout_ms: int | None = None,
        deadline: float | None = None,
        reporter: SyncReporter | None = None,
    ) -> RetrievalResult:
        """Fetch the calendar export for ``request``.

        Args:
            request: Validated retrieval request.
            timeout_ms: Per-operation timeout; defaults to config.timeout_ms.
            deadline: Optional ``time.monotonic()`` value checked between chain steps.
            reporter: Progress/diagnostic sink.

        Returns:
            RetrievalSuccess with the raw export bytes, or RetrievalFailure.
        """
        reporter = reporter or SyncReporter()
        timeout = timeout_ms or self.config.timeout_ms
        reporter.event(
            "sync_started",
            year=request.target_year,
            month=request.target_month,
            day=request.target_day,
        )

        try:
            reporter.status("Starting browser...")
            async with self.session_factory(self.config, timeout) as session:
                body = await self._run(session, request, reporter, deadline)
        except Exception as e:
            failure = self._failure_from(e)
            reporter.event(
                "sync_failed", kind=failure.kind, error=failure.message, has_hint=bool(failure.hint)
            )
            reporter.status(failure.message)
            return failure

        reporter.event("sync_succeeded", bytes=len(body))
        reporter.status("Calendar loaded.")
        return RetrievalSuccess(raw_bytes=body)

    async def _run(
        self,
        session: BrowserSession,
        request: RetrievalRequest,
        reporter: SyncReporter,
        deadline: float | None,
    ) -> bytes:
        idle_timeout = self.config.network_idle_timeout_ms
        login = LoginPage(session.page, self.config.base_url, network_idle_timeout_ms=idle_timeout)

        reporter.status("Signing in...")
        reporter.event("navigation_start", url=self.config.base_url)
        await login.navigate()
        reporter.event("navigation_end", url=self.config.base_url, final_url=session.page.url)
        try:
            await login.login(
                request.credentials.username,
                request.credentials.password.get_secret_value(),
            )
        except AuthenticationError as e:
            reporter.event("login_failed", reason=str(e))
            raise
        reporter.event("login_succeeded", url=session.page.url)

        reporter.status("Looking for the calendar export...")
        ctx = ChainContext(
            request=request,
            config=self.config,
            calendar=CalendarPage(session.page, reporter, network_idle_timeout_ms=idle_timeout),
            fetcher=ExportFetcher(session.context, session.page, reporter),
            reporter=reporter,
            deadline=deadline,
        )
        return await run_chain(self.steps, ctx)

    @staticmethod
    def _failure_from(error: Exception) -> RetrievalFailure:
        detail = redact_url(str(error))
        if isinstance(error, BrowserMissingError):
            return RetrievalFailure(
                kind="browser_missing", message=MSG_BROWSER_MISSING, hint=HINT_BROWSER_MISSING
            )
        if isinstance(error, LoginFormNotFoundError):
            return RetrievalFailure(
                kind="authentication", message=MSG_LOGIN_FORM_MISSING, hint=HINT_LOGIN_FORM_MISSING
            )
        if isinstance(error, AuthenticationError):
            return RetrievalFailure(kind="authentication", message=MSG_AUTH_FAILED, hint=detail)
        if isinstance(error, ExportNotFoundError):
            return RetrievalFailure(kind="not_found", message=MSG_NOT_FOUND, hint=HINT_NOT_FOUND)
        if isinstance(error, (TransientError, PlaywrightTimeoutError)):
            return RetrievalFailure(kind="timeout", message=MSG_TIMEOUT, hint=detail)
        log.error("sync_unexpected_error", error=detail, type=type(error).__name__)
        return RetrievalFailure(kind="unexpected", message=MSG_UNEXPECTED, hint=detail)


def _validation_failure(error: ValidationError) -> RetrievalFailure:
    fields = {str(loc[0]) for loc in (err["loc"] for err in error.errors()) if loc}
    if "credentials" in fields:
        message = MSG_INVALID_CREDENTIALS_INPUT
    elif "target_month" in fields:
        message = MSG_INVALID_MONTH
    else:
        message = MSG_INVALID_REQUEST
    hint = ", ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    )
    return RetrievalFailure(kind="validation", message=message, hint=hint)


async def sync_schedule(
    username: str,
    password: str,
    month: int,
    year: int,
    day: int = 0,
    *,
    timeout_ms: int | None = None,
    status: StatusCallback | None = None,
    log: LogCallback | None = None,
    config: SyncConfig | None = None,
    engine: RetrievalEngine | None = None,
    deadline: float | None = None,
) -> RetrievalResult:
    """Fetch the TraiNex iCal export for one month (``day=0``) or one day.

    Invalid input (empty credentials, month outside 1-12) fails before any
    browser is started.

    Args:
        username: TraiNex login.
        password: TraiNex password; never logged or stored.
        month: Month 1-12.
        year: Four-digit year.
        day: Day of month, or 0 for the whole month.
        timeout_ms: Per-operation timeout (default 45s).
        status: Optional callback receiving progress text.
        log: Optional callback receiving ``(event, data)`` diagnostics.
        config: Sync configuration (defaults to get_config()).
        engine: Pre-built engine, mainly for tests.
        deadline: Optional ``time.monotonic()`` value checked between chain steps.

    Returns:
        RetrievalSuccess or RetrievalFailure.
    """
    reporter = SyncReporter(status, log)
    try:
        request = RetrievalRequest(
            credentials={"username": username, "password": password},
            target_year=year,
            target_month=month,
            target_day=day,
        )
    except ValidationError as e:
        failure = _validation_failure(e)
        reporter.event("sync_failed", kind=failure.kind, error=failure.message)
        return failure

    engine = engine or RetrievalEngine(config)
    return await engine.retrieve(
        request, timeout_ms=timeout_ms, deadline=deadline, reporter=reporter
    )
