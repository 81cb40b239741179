"""LoginPage - signs in on the TraiNex landing page.

The login form has no stable ids, so every control is found through an
ordered list of selectors; the first selector that matches anything wins.

DOM structure (landing page):
  input[placeholder="Login"]     -> username
  input[placeholder="Passwort"]  -> password
  button "Anmelden"              -> submit

A failed login re-renders the same form, so "form still present after
submit" is the failure signal.
"""

from collections.abc import Sequence

from playwright.async_api import Locator, Page

from trainex_sync.browser import WaitOutcome, wait_for_network_idle
from trainex_sync.errors import AuthenticationError, LoginFormNotFoundError
from trainex_sync.logging import get_logger

log = get_logger(__name__)

USERNAME_SELECTORS: tuple[str, ...] = (
    'input[placeholder="Login"]',
    'input[name*="login" i]',
    'input[name*="user" i]',
    'input[type="text"]',
)

PASSWORD_SELECTORS: tuple[str, ...] = (
    'input[placeholder="Passwort"]',
    'input[type="password"]',
)

SUBMIT_SELECTORS: tuple[str, ...] = (
    'button:has-text("Anmelden")',
    'input[type="submit"]',
    'button[type="submit"]',
)

# Any of these after submitting means we are still on the login form.
LOGIN_FORM_MARKERS: tuple[str, ...] = (
    'input[placeholder="Passwort"]',
    'input[type="password"]',
    'input[placeholder="Login"]',
    'button:has-text("Anmelden")',
)


async def first_match(page: Page, selectors: Sequence[str]) -> Locator | None:
    """Return the first element of the first selector that matches, or None."""
    for selector in selectors:
        locator = page.locator(selector)
        if await locator.count() > 0:
            log.debug("selector_matched", selector=selector)
            return locator.first
    return None


class LoginPage:
    """TraiNex landing page with the login form."""

    def __init__(self, page: Page, base_url: str, *, network_idle_timeout_ms: int) -> None:
        self.page = page
        self.base_url = base_url
        self.network_idle_timeout_ms = network_idle_timeout_ms

    async def navigate(self) -> None:
        await self.page.goto(self.base_url, wait_until="domcontentloaded")
        log.info("login_page_navigated", url=self.page.url)

    async def is_login_form_present(self) -> bool:
        return await first_match(self.page, LOGIN_FORM_MARKERS) is not None

    async def login(self, username: str, password: str) -> WaitOutcome:
        """Fill the login form, submit it and verify we got past it.

        Args:
            username: TraiNex login.
            password: TraiNex password (never logged).

        Returns:
            Outcome of the post-submit network-idle wait.

        Raises:
            LoginFormNotFoundError: If a form control cannot be found.
            AuthenticationError: If the login form is still shown after
                submitting.
        """
        user_field = await first_match(self.page, USERNAME_SELECTORS)
        pass_field = await first_match(self.page, PASSWORD_SELECTORS)
        if user_field is None or pass_field is None:
            raise LoginFormNotFoundError("Login form not found on landing page")

        await user_field.fill(username)
        await pass_field.fill(password)

        submit = await first_match(self.page, SUBMIT_SELECTORS)
        if submit is None:
            raise LoginFormNotFoundError("Login submit button not found")
        await submit.click()

        outcome = await wait_for_network_idle(self.page, self.network_idle_timeout_ms)

        if await self.is_login_form_present():
            log.warning("authentication_failed", reason="login_form_still_present")
            raise AuthenticationError(
                "Login form still present after submit - invalid credentials?"
            )

        log.info("authentication_succeeded", url=self.page.url, network_idle=outcome.value)
        return outcome
