"""Playwright browser session for one sync run.

open_browser_session is an async context manager: Chromium (and the context
on top of it) is closed on every exit path, including exceptions. Nothing is
kept between runs except the optional on-disk profile and disk cache.
"""

import enum
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Route,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from trainex_sync.config import SyncConfig
from trainex_sync.errors import BrowserMissingError
from trainex_sync.logging import get_logger

log = get_logger(__name__)

BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "font", "media"})

# Login is a POST; anything beyond that has no business in a read-only sync.
_BLOCKED_METHODS: frozenset[str] = frozenset({"PUT", "DELETE", "PATCH"})


class WaitOutcome(enum.Enum):
    """Result of a best-effort wait: ready, or timed out but safe to continue."""

    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass
class BrowserSession:
    """The context/page pair a sync run drives."""

    context: BrowserContext
    page: Page


async def wait_for_network_idle(page: Page, timeout_ms: int) -> WaitOutcome:
    """Wait for network quiescence without failing on timeout.

    Args:
        page: Playwright Page.
        timeout_ms: Upper bound for the wait.

    Returns:
        WaitOutcome.READY, or WaitOutcome.TIMED_OUT when the page kept loading.
    """
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError:
        log.debug("network_idle_timeout", url=page.url, timeout_ms=timeout_ms)
        return WaitOutcome.TIMED_OUT
    return WaitOutcome.READY


async def configure_page_for_sync(
    page: Page, *, timeout_ms: int, block_resources: bool = True
) -> None:
    """Set up a Playwright page for the sync.

    Applies the default timeout to every page operation and, optionally,
    blocks heavy resource types and mutating HTTP methods.

    Args:
        page: Playwright Page instance.
        timeout_ms: Default operation and navigation timeout.
        block_resources: If True, abort image/font/media and PUT/DELETE/PATCH requests.
    """

    async def _block_resources(route: Route) -> None:
        request = route.request

        if request.method in _BLOCKED_METHODS:
            log.warning(
                "blocked_mutating_request",
                method=request.method,
                url=request.url,
            )
            await route.abort("blockedbyclient")
            return

        if request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    if block_resources:
        await page.route("**/*", _block_resources)
    page.set_default_timeout(timeout_ms)
    page.set_default_navigation_timeout(timeout_ms)


def _launch_args(config: SyncConfig) -> list[str]:
    args: list[str] = []
    if config.cache_dir:
        Path(config.cache_dir).mkdir(parents=True, exist_ok=True)
        args.append(f"--disk-cache-dir={config.cache_dir}")
        args.append("--disable-gpu-shader-disk-cache")
    return args


@asynccontextmanager
async def open_browser_session(
    config: SyncConfig, timeout_ms: int
) -> AsyncIterator[BrowserSession]:
    """Launch Chromium and yield a configured context/page pair.

    Uses a persistent profile when ``config.profile_dir`` is set, an
    ephemeral context otherwise.

    Raises:
        BrowserMissingError: If the Playwright Chromium build is not installed.
    """
    async with async_playwright() as pw:
        executable = pw.chromium.executable_path
        if not Path(executable).exists():
            raise BrowserMissingError(f"Chromium not found at {executable}")

        browser = None
        if config.profile_dir:
            Path(config.profile_dir).mkdir(parents=True, exist_ok=True)
            context = await pw.chromium.launch_persistent_context(
                config.profile_dir,
                headless=config.headless,
                args=_launch_args(config),
            )
            page = context.pages[0] if context.pages else await context.new_page()
            log.info("browser_launched", type="persistent", profile_dir=config.profile_dir)
        else:
            browser = await pw.chromium.launch(
                headless=config.headless, args=_launch_args(config)
            )
            context = await browser.new_context()
            page = await context.new_page()
            log.info("browser_launched", type="ephemeral")

        try:
            await configure_page_for_sync(
                page, timeout_ms=timeout_ms, block_resources=config.block_resources
            )
            context.set_default_timeout(timeout_ms)
            yield BrowserSession(context=context, page=page)
        finally:
            try:
                await context.close()
                if browser is not None:
                    await browser.close()
            except PlaywrightError as e:
                log.debug("browser_close_failed", error=str(e))
            log.info("browser_closed")
