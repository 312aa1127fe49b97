"""Isolated Playwright browser sessions for scenario execution.

Each call to `PlaywrightSessionProvider.acquire()` launches a new browser,
context and page. Nothing is shared between scenarios: cookies, storage and
open pages die with the session.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol

from handraise_e2e.exceptions import SessionError
from handraise_e2e.runner.step_reporter import StepReporter
from handraise_e2e.settings import RunnerSettings

if TYPE_CHECKING:  # pragma: no cover - typing only
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

logger = logging.getLogger(__name__)

GRAPHQL_URL_MARKERS = ("graphql", "/api")
FEED_VOLUME_OPERATION = "feedVolumeData"

# Evaluated in the page to snapshot web storage
STORAGE_SNAPSHOT_JS = """() => {
    const dump = (store) => {
        const out = {};
        for (let i = 0; i < store.length; i++) {
            const key = store.key(i);
            out[key] = store.getItem(key);
        }
        return out;
    };
    return { localStorage: dump(window.localStorage), sessionStorage: dump(window.sessionStorage) };
}"""


class BrowserSession:
    """
    One isolated browser session handed to a scenario body.

    Scenarios drive `session.page` with the Playwright async API and report
    progress with `session.step(...)`. Target credentials are available on
    `session.settings`.
    """

    def __init__(
        self,
        page: "Page",
        settings: RunnerSettings,
        reporter: Optional[StepReporter] = None,
        context: Optional["BrowserContext"] = None,
        browser: Optional["Browser"] = None,
        playwright: Optional["Playwright"] = None,
    ):
        self.page = page
        self.settings = settings
        self.reporter = reporter
        self.context = context
        self.browser = browser
        self._playwright = playwright
        self._closed = False

    def step(self, message: str) -> None:
        """Report one progress line."""
        if self.reporter is not None:
            self.reporter.emit(message)
        else:
            logger.info(message)

    def monitor_graphql(self) -> None:
        """Report every GraphQL request and response on the page as a progress line."""
        _attach_graphql_monitor(self.page, self)

    @property
    def closed(self) -> bool:
        return self._closed

    async def screenshot(self, path: str) -> None:
        await self.page.screenshot(path=path, full_page=True)

    async def content(self) -> str:
        return await self.page.content()

    async def page_state(self) -> Dict[str, Any]:
        """Snapshot of URL, title, cookies, web storage and viewport."""
        storage = await self.page.evaluate(STORAGE_SNAPSHOT_JS)
        cookies: List[Dict[str, Any]] = []
        if self.context is not None:
            cookies = await self.context.cookies()
        return {
            "url": self.page.url,
            "title": await self.page.title(),
            "cookies": cookies,
            "localStorage": storage.get("localStorage", {}),
            "sessionStorage": storage.get("sessionStorage", {}),
            "viewport": self.page.viewport_size,
        }

    async def close(self) -> None:
        """Close context, browser and the Playwright driver in that order."""
        if self._closed:
            return
        self._closed = True

        errors: List[str] = []
        for label, closer in (
            ("context", self.context.close if self.context else None),
            ("browser", self.browser.close if self.browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                errors.append(f"{label}: {e}")

        if errors:
            raise SessionError("Session teardown failed: " + "; ".join(errors))


class SessionProvider(Protocol):
    """Anything that can hand out a fresh isolated session."""

    async def acquire(self, reporter: Optional[StepReporter] = None) -> BrowserSession: ...


def _attach_listeners(page: "Page", session: BrowserSession) -> None:
    """Forward browser console errors, page errors and failed requests as steps."""

    def on_console(msg):
        if msg.type == "error":
            session.step(f"[BROWSER ERROR] {msg.text}")

    def on_page_error(error):
        session.step(f"Page error: {error}")

    def on_request_failed(request):
        session.step(f"Request failed: {request.url} - {request.failure}")

    page.on("console", on_console)
    page.on("pageerror", on_page_error)
    page.on("requestfailed", on_request_failed)


def _is_graphql(url: str) -> bool:
    return any(marker in url for marker in GRAPHQL_URL_MARKERS)


def _operation_name(post_data: Optional[str]) -> Optional[str]:
    """operationName from a GraphQL POST body; None when the body is not JSON."""
    try:
        body = json.loads(post_data)
    except (TypeError, ValueError):
        return None
    if isinstance(body, dict) and body.get("operationName"):
        return body["operationName"]
    return "Unknown"


def _attach_graphql_monitor(page: "Page", session: BrowserSession) -> None:
    def on_request(request):
        if not _is_graphql(request.url) or not request.post_data:
            return
        operation = _operation_name(request.post_data)
        if operation is None:
            session.step("GraphQL request sent")
            return
        session.step(f"GraphQL request: {operation}")
        if FEED_VOLUME_OPERATION in operation:
            session.step("This is the feedVolumeData request for insights generation")

    def on_response(response):
        if not _is_graphql(response.url):
            return
        operation = _operation_name(response.request.post_data) or "Unknown"
        session.step(f"GraphQL response [{response.status}]: {operation}")
        if FEED_VOLUME_OPERATION in operation:
            session.step("feedVolumeData response received, insights should be ready")

    page.on("request", on_request)
    page.on("response", on_response)


class PlaywrightSessionProvider:
    """Launches one Chromium browser per acquired session."""

    def __init__(self, settings: RunnerSettings):
        self.settings = settings

    async def acquire(self, reporter: Optional[StepReporter] = None) -> BrowserSession:
        try:
            from playwright.async_api import async_playwright
        except ImportError as exc:  # pragma: no cover - import guard
            raise SessionError(
                "Playwright is not installed. Install with `pip install playwright` and "
                "run `playwright install chromium`."
            ) from exc

        profile = self.settings.browser_profile
        launch_options = dict(profile.get("launch", {}))
        context_options = dict(profile.get("context", {}))
        timeouts = profile.get("timeouts", {})

        playwright = await async_playwright().start()
        browser = None
        try:
            browser = await playwright.chromium.launch(**launch_options)
            context = await browser.new_context(**context_options)
            page = await context.new_page()
        except Exception as e:
            if browser is not None:
                await browser.close()
            await playwright.stop()
            raise SessionError(f"Failed to launch browser session: {e}") from e

        if timeouts.get("default_ms"):
            page.set_default_timeout(timeouts["default_ms"])
        if timeouts.get("navigation_ms"):
            page.set_default_navigation_timeout(timeouts["navigation_ms"])

        session = BrowserSession(
            page=page,
            settings=self.settings,
            reporter=reporter,
            context=context,
            browser=browser,
            playwright=playwright,
        )
        _attach_listeners(page, session)
        logger.debug(f"Browser session ready (headless={launch_options.get('headless', True)})")
        return session
