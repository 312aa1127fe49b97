"""Sign in and verify the newsfeeds page renders newsfeed cards."""

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from handraise_e2e.cases._common import log_in, open_app, require_target
from handraise_e2e.exceptions import ScenarioExecutionError

NAME = "Handraise Full Login Flow"
DESCRIPTION = "Tests complete login flow and verifies newsfeed page loads with content"

MAIN_CONTAINER = "main.overflow-y-auto.flex-col.items-center.p-6"
NEWSFEED_CARD = 'div[role="button"]'
CARD_TITLE = "h1.text-xl.text-gray-800.font-serif"
VIEW_BUTTON = 'button:has-text("View Newsfeed")'


async def run(session):
    page = session.page
    require_target(session)
    await open_app(session)
    await log_in(session)

    try:
        await page.wait_for_url("**/newsfeeds**", timeout=15_000)
    except PlaywrightTimeoutError:
        if "newsfeeds" not in page.url:
            raise ScenarioExecutionError(
                f"Expected redirect to newsfeeds page, but got: {page.url}"
            )
    session.step("On newsfeeds page")

    await page.wait_for_selector(MAIN_CONTAINER, timeout=10_000)
    cards = page.locator(MAIN_CONTAINER).locator(NEWSFEED_CARD)
    count = await cards.count()
    if count == 0:
        raise ScenarioExecutionError("No newsfeed cards found in main container")
    session.step(f"Found {count} newsfeed cards")

    first_card = cards.first
    if await first_card.locator(CARD_TITLE).count() == 0:
        raise ScenarioExecutionError("Newsfeed card missing title element")
    if await first_card.locator(VIEW_BUTTON).count() == 0:
        raise ScenarioExecutionError('Newsfeed card missing "View Newsfeed" button')
    session.step("Newsfeed card structure verified")
