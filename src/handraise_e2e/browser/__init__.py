"""Browser session provisioning."""

from handraise_e2e.browser.session import BrowserSession, PlaywrightSessionProvider, SessionProvider

__all__ = ["BrowserSession", "PlaywrightSessionProvider", "SessionProvider"]
