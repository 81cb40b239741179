"""
Pytest configuration and shared fixtures.

FakePage / FakeContext stand in for Playwright objects: they record
navigations and requests and serve canned HTML and responses, so retrieval
can be exercised without a browser or network.
"""

from collections.abc import Callable
from contextlib import asynccontextmanager

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from trainex_sync.browser import BrowserSession
from trainex_sync.config import SyncConfig
from trainex_sync.logging import setup_logging

BASE_URL = "https://portal.test/trainex/"

SAMPLE_ICS = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//TraiNex//Einsatzplan//DE\r\n"
    "BEGIN:VEVENT\r\n"
    "SUMMARY:Mathematik I\r\n"
    "DTSTART:20260105T081500Z\r\n"
    "DTEND:20260105T094500Z\r\n"
    "LOCATION:Raum 1.02\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)

LOGIN_FORM = {
    'input[placeholder="Login"]': 1,
    'input[placeholder="Passwort"]': 1,
    'input[type="password"]': 1,
    'input[type="text"]': 1,
    'button:has-text("Anmelden")': 1,
    'input[type="submit"]': 0,
}


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    async def count(self) -> int:
        return self.page.counts.get(self.selector, 0)

    async def fill(self, value: str) -> None:
        self.page.filled[self.selector] = value

    async def click(self) -> None:
        self.page.clicked.append(self.selector)
        if self.page.login_succeeds:
            self.page.counts = {}

    async def evaluate_all(self, expression: str) -> list[str | None]:
        self.page.anchor_reads += 1
        return list(self.page.hrefs)


class FakePage:
    """Minimal async Playwright Page double."""

    def __init__(
        self,
        *,
        login_succeeds: bool = True,
        redirects: dict[str, str] | None = None,
        html: dict[str, str] | None = None,
        hrefs: list[str | None] | None = None,
        idle_times_out: bool = False,
        goto_error: Exception | None = None,
    ) -> None:
        self.url = "about:blank"
        self.counts = dict(LOGIN_FORM)
        self.login_succeeds = login_succeeds
        self.redirects = redirects or {}
        self.html_by_url = html or {}
        self.hrefs = hrefs or []
        self.idle_times_out = idle_times_out
        self.goto_error = goto_error
        self.visited: list[str] = []
        self.filled: dict[str, str] = {}
        self.clicked: list[str] = []
        self.anchor_reads = 0

    async def goto(self, url: str, wait_until: str | None = None, **kwargs) -> None:
        if self.goto_error is not None:
            raise self.goto_error
        self.visited.append(url)
        self.url = self.redirects.get(url, url)

    async def wait_for_load_state(self, state: str = "load", timeout: float | None = None) -> None:
        if self.idle_times_out:
            raise PlaywrightTimeoutError("Timeout exceeded waiting for networkidle")

    async def content(self) -> str:
        return self.html_by_url.get(self.url, "<html></html>")

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)


class FakeResponse:
    def __init__(self, url: str, status: int, body: bytes, headers: dict[str, str] | None = None) -> None:
        self.url = url
        self.status = status
        self._body = body
        self.headers = headers or {"content-type": "text/calendar"}

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def body(self) -> bytes:
        return self._body


Responder = Callable[[str], tuple[int, bytes]]


class FakeRequest:
    def __init__(self, responder: Responder, error: Exception | None = None) -> None:
        self.responder = responder
        self.error = error
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def get(self, url: str, headers: dict[str, str] | None = None, **kwargs) -> FakeResponse:
        self.calls.append((url, dict(headers or {})))
        if self.error is not None:
            raise self.error
        status, body = self.responder(url)
        return FakeResponse(url, status, body)

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


class FakeContext:
    def __init__(self, responder: Responder | None = None, error: Exception | None = None) -> None:
        self.request = FakeRequest(responder or (lambda url: (404, b"")), error)


def ics_when(predicate: Callable[[str], bool]) -> Responder:
    """Responder serving SAMPLE_ICS for URLs matching ``predicate``, 404 otherwise."""

    def _respond(url: str) -> tuple[int, bytes]:
        if predicate(url):
            return 200, SAMPLE_ICS.encode("utf-8")
        return 404, b"<html>Not found</html>"

    return _respond


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig(
        _env_file=None,
        base_url=BASE_URL,
        timeout_ms=1000,
        network_idle_timeout_ms=100,
    )


@pytest.fixture
def session_factory():
    """Build a session factory yielding the given fakes; records closes."""
    closed: list[bool] = []

    def _make(page: FakePage, context: FakeContext):
        @asynccontextmanager
        async def _factory(config: SyncConfig, timeout_ms: int):
            try:
                yield BrowserSession(context=context, page=page)  # type: ignore[arg-type]
            finally:
                closed.append(True)

        return _factory

    _make.closed = closed  # type: ignore[attr-defined]
    return _make


@pytest.fixture(scope="session", autouse=True)
def _logging_to_stderr():
    """Configure structlog as the CLI does, so stdout only carries data."""
    setup_logging(json_output=False, log_level="DEBUG")
