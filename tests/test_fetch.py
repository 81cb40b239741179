"""Tests for ExportFetcher (GET + calendar validation)."""

import pytest

from trainex_sync.diagnostics import SyncReporter, scrub_preview
from trainex_sync.fetch import ACCEPT_CALENDAR, ExportFetcher

from conftest import SAMPLE_ICS, FakeContext, FakePage

URL = "https://portal.test/trainex/cfm/einsatzplan/einsatzplan_listenansicht_iCal.cfm?ics=1"


def _fetcher(responder, events=None):
    page = FakePage()
    page.url = "https://portal.test/trainex/cfm/index.cfm"
    context = FakeContext(responder)
    reporter = SyncReporter(log_callback=(lambda e, d: events.append((e, d))) if events is not None else None)
    return ExportFetcher(context, page, reporter), context


@pytest.mark.asyncio
async def test_calendar_body_is_returned():
    fetcher, context = _fetcher(lambda url: (200, SAMPLE_ICS.encode()))
    assert await fetcher.fetch(URL, step="direct") == SAMPLE_ICS.encode()


@pytest.mark.asyncio
async def test_sends_accept_and_referer_headers():
    fetcher, context = _fetcher(lambda url: (200, SAMPLE_ICS.encode()))
    await fetcher.fetch(URL, step="direct")
    [(url, headers)] = context.request.calls
    assert url == URL
    assert headers["Accept"] == ACCEPT_CALENDAR
    assert headers["Referer"] == "https://portal.test/trainex/cfm/index.cfm"


@pytest.mark.asyncio
async def test_non_2xx_is_a_miss():
    events = []
    fetcher, _ = _fetcher(lambda url: (500, SAMPLE_ICS.encode()), events)
    assert await fetcher.fetch(URL, step="direct") is None
    assert ("fetch_miss", {"step": "direct", "reason": "status", "status": 500, "url": URL}) in events


@pytest.mark.asyncio
async def test_non_calendar_body_is_a_miss_with_preview():
    events = []
    html = b"<html>\r\n<body>\x00Bitte anmelden</body></html>" + b"x" * 500
    fetcher, _ = _fetcher(lambda url: (200, html), events)

    assert await fetcher.fetch(URL, step="direct") is None

    miss = next(data for name, data in events if name == "fetch_miss")
    assert miss["reason"] == "not_calendar"
    assert "\r" not in miss["preview"] and "\x00" not in miss["preview"]
    assert len(miss["preview"]) <= 200


@pytest.mark.asyncio
async def test_utf16_calendar_accepted():
    body = b"\xff\xfe" + SAMPLE_ICS.encode("utf-16-le")
    fetcher, _ = _fetcher(lambda url: (200, body))
    assert await fetcher.fetch(URL, step="direct") == body


def test_scrub_preview_truncates_and_removes_control_chars():
    assert scrub_preview(b"a\r\nb\tc\x07d" + b"e" * 300, limit=10) == "a b c dee"
