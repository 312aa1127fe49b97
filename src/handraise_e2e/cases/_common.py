"""Shared steps for the bundled Handraise scenarios.

Selectors here track the current Handraise UI and are expected to drift; each
lookup tries several candidates with short bounded waits instead of relying on
one exact selector.
"""

from typing import Optional, Sequence

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from handraise_e2e.exceptions import ScenarioExecutionError

APP_ROOT_SELECTOR = '#root, [id*="app"], main, .app'
INTERACTIVE_SELECTOR = 'button, input, a, [role="button"]'

EMAIL_SELECTORS = (
    'input[type="email"]',
    'input[name="email"]',
    'input[name="username"]',
    "input#email",
    'input[aria-label*="mail" i]',
    'input[placeholder*="mail" i]',
)
PASSWORD_SELECTORS = (
    'input[type="password"]',
    'input[name="password"]',
    "input#password",
    'input[aria-label*="password" i]',
)
SUBMIT_SELECTOR = (
    'button[type="submit"], button:has-text("Sign in"), '
    'button:has-text("Login"), input[type="submit"]'
)
VIEW_NEWSFEED_SELECTORS = (
    'button:has-text("View Newsfeed")',
    'a:has-text("View Newsfeed")',
    '[aria-label*="View Newsfeed" i]',
    'button:has-text("Newsfeed")',
    'a:has-text("Newsfeed")',
)
LOGIN_PATH_MARKER = "auth/login"


async def first_visible(
    page: Page,
    selectors: Sequence[str],
    timeout_ms: int = 1000,
    attempts: int = 1,
    retry_delay_ms: int = 0,
) -> Optional[Locator]:
    """
    Return the first candidate selector that becomes visible, or None.

    Each candidate gets `timeout_ms`; the whole list is retried `attempts`
    times with `retry_delay_ms` between passes.
    """
    for attempt in range(attempts):
        for selector in selectors:
            locator = page.locator(selector).first
            try:
                await locator.wait_for(state="visible", timeout=timeout_ms)
            except PlaywrightTimeoutError:
                continue
            return locator
        if retry_delay_ms and attempt < attempts - 1:
            await page.wait_for_timeout(retry_delay_ms)
    return None


async def settle(page: Page, timeout_ms: int = 10_000) -> None:
    """Wait for network idle without failing when the app keeps polling."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError:
        pass


def require_target(session, credentials: bool = True) -> None:
    settings = session.settings
    if not settings.handraise_url:
        raise ScenarioExecutionError("HANDRAISE_URL must be set in .env file")
    if credentials and (not settings.handraise_username or not settings.handraise_password):
        raise ScenarioExecutionError(
            "HANDRAISE_USERNAME and HANDRAISE_PASSWORD must be set in .env file"
        )


async def open_app(session) -> str:
    """Navigate to HANDRAISE_URL, wait for the React app to mount and return the title."""
    page = session.page
    session.step(f"Navigating to: {session.settings.handraise_url}")
    await page.goto(session.settings.handraise_url, wait_until="domcontentloaded")

    try:
        await page.wait_for_selector(APP_ROOT_SELECTOR, timeout=15_000)
        session.step("React app container found")
    except PlaywrightTimeoutError:
        session.step("React container not found, waiting for interactive elements...")
        await page.wait_for_selector(INTERACTIVE_SELECTOR, timeout=10_000)

    title = await page.title()
    if not title or "Error" in title:
        raise ScenarioExecutionError("Page failed to load properly")
    session.step(f"Page title verified: {title}")
    return title


async def log_in(session) -> None:
    """Fill the login form and submit it."""
    page = session.page
    settings = session.settings

    email_input = await first_visible(page, EMAIL_SELECTORS, timeout_ms=10_000 // len(EMAIL_SELECTORS))
    if email_input is None:
        raise ScenarioExecutionError("Could not find email input field")
    password_input = await first_visible(page, PASSWORD_SELECTORS, timeout_ms=1000)
    if password_input is None:
        raise ScenarioExecutionError("Could not find password input field")

    await email_input.fill(settings.handraise_username)
    await password_input.fill(settings.handraise_password)
    session.step("Login form filled")

    submit = page.locator(SUBMIT_SELECTOR).first
    try:
        await submit.wait_for(state="visible", timeout=5000)
        await submit.click()
    except PlaywrightTimeoutError:
        session.step("Submit button not visible, pressing Enter")
        await page.keyboard.press("Enter")
    session.step("Login submitted")

    await settle(page)


async def reach_newsfeeds(session) -> None:
    """After login, make sure the newsfeeds page is showing."""
    page = session.page
    try:
        await page.wait_for_url("**/newsfeeds**", timeout=15_000)
        session.step("Redirected to newsfeeds page")
        return
    except PlaywrightTimeoutError:
        session.step(f"No redirect to newsfeeds, current URL: {page.url}")

    link = await first_visible(page, VIEW_NEWSFEED_SELECTORS, timeout_ms=2000)
    if link is not None:
        await link.click()
        await settle(page, 10_000)

    if LOGIN_PATH_MARKER in page.url:
        raise ScenarioExecutionError(f"Login appears to have failed. Still on: {page.url}")
