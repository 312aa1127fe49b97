"""Sign in, open a newsfeed, generate an AI summary for a Key Message filter and copy it."""

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from handraise_e2e.cases._common import (
    first_visible,
    log_in,
    open_app,
    reach_newsfeeds,
    require_target,
    settle,
)
from handraise_e2e.exceptions import ScenarioExecutionError

NAME = "Key Message Insights"
DESCRIPTION = "Tests login, navigating to newsfeed, generating a KM insights, and copying summary"

FILTER_ITEM_SELECTORS = (
    '[role="menuitem"][aria-label*="filter item"]',
    'div.group:has(button[aria-label*="Filter by"])',
    'div.group:has(output[aria-label*="items"])',
    'div.group:has(button[role="checkbox"]):has(output)',
)
MORE_OPTIONS_SELECTORS = (
    'button[aria-label="More options"]',
    'button[aria-haspopup="true"]:has(svg)',
)
GENERATE_SUMMARY_SELECTORS = (
    '[role="menuitem"]:has(span:has-text("Generate AI Summary"))',
    'div[role="menuitem"]:has-text("Generate AI Summary")',
    '[role="menu"] [role="menuitem"]:has-text("Generate AI Summary")',
)
COPY_SELECTORS = (
    'button:has-text("Copy summary")',
    '[aria-label="Copy summary"]',
    '[role="dialog"] button:has-text("Copy")',
    'button:has-text("Copy")',
    '[aria-label*="Copy"]',
)
RESULT_SELECTOR = '[role="dialog"], [class*="summary"], [class*="insight"]'

READ_CLIPBOARD_JS = """async () => {
    try {
        return await navigator.clipboard.readText();
    } catch (e) {
        const el = document.querySelector('[class*="summary"], [class*="insight"]');
        return el ? el.textContent : null;
    }
}"""


async def _open_last_newsfeed(session) -> None:
    page = session.page
    buttons = await page.locator('button:has-text("View Newsfeed")').all()
    if buttons:
        session.step(f"Opening the last of {len(buttons)} newsfeeds")
        await buttons[-1].click()
        await page.wait_for_timeout(2000)
    else:
        session.step("No View Newsfeed buttons, staying on current page")


async def _generate_summary(session) -> None:
    page = session.page
    try:
        await page.wait_for_selector('[role="menuitem"]', timeout=10_000)
    except PlaywrightTimeoutError:
        session.step("Sidebar menu items did not appear within 10s")

    filter_item = await first_visible(
        page, FILTER_ITEM_SELECTORS, timeout_ms=1000, attempts=3, retry_delay_ms=3000
    )
    if filter_item is None:
        raise ScenarioExecutionError("Person filter item not found in sidebar")
    session.step(f"Using filter item: {(await filter_item.text_content() or '').strip()[:60]}")

    try:
        await filter_item.hover(timeout=5000)
    except PlaywrightTimeoutError:
        await filter_item.scroll_into_view_if_needed()
        await filter_item.hover(force=True)
    await page.wait_for_timeout(1500)

    more_options = None
    for selector in MORE_OPTIONS_SELECTORS:
        candidate = filter_item.locator(selector).first
        if await candidate.count() > 0:
            more_options = candidate
            break
    if more_options is None:
        raise ScenarioExecutionError("Could not find more options button after hovering")

    try:
        await more_options.click(timeout=3000)
    except PlaywrightTimeoutError:
        await more_options.click(force=True)
    await page.wait_for_timeout(1500)

    generate = await first_visible(page, GENERATE_SUMMARY_SELECTORS, timeout_ms=5000)
    if generate is None:
        raise ScenarioExecutionError("Generate AI Summary button not found in menu")
    await generate.click()
    session.step("Generate AI Summary clicked")

    await settle(page, 15_000)
    try:
        await page.wait_for_selector(RESULT_SELECTOR, state="visible", timeout=10_000)
        session.step("Insights rendered")
    except PlaywrightTimeoutError:
        session.step("No insights container detected, continuing")


async def _copy_summary(session) -> None:
    page = session.page
    copy_button = await first_visible(page, COPY_SELECTORS, timeout_ms=1000)
    if copy_button is None:
        session.step("Copy button not found, continuing without copying")
        return

    await copy_button.click()
    await page.wait_for_timeout(1000)
    copied = await page.evaluate(READ_CLIPBOARD_JS)
    if copied:
        session.step(f"Copied summary ({len(copied)} chars): {copied.strip()[:200]}")
    else:
        session.step("Clipboard was empty after copy")


async def run(session):
    require_target(session)
    session.monitor_graphql()
    await open_app(session)
    await log_in(session)
    await reach_newsfeeds(session)
    await _open_last_newsfeed(session)

    # Dismiss any hover state left by the newsfeed list
    await session.page.locator("body").click(position={"x": 350, "y": 223})
    await session.page.wait_for_timeout(500)

    await _generate_summary(session)
    await _copy_summary(session)
