"""Open the Handraise app and sign in."""

from handraise_e2e.cases._common import log_in, open_app, require_target
from handraise_e2e.exceptions import ScenarioExecutionError

NAME = "Load And Login"
DESCRIPTION = "Tests loading Handraise and performing login"


async def run(session):
    require_target(session)
    await open_app(session)
    await log_in(session)

    # Give the post-login redirect a moment to land
    await session.page.wait_for_timeout(2000)
    if "auth/login" in session.page.url:
        raise ScenarioExecutionError(f"Login failed, still on: {session.page.url}")
    session.step(f"Logged in, now at {session.page.url}")
