"""Open the Handraise app and check that the login page renders."""

from handraise_e2e.cases._common import open_app, require_target

NAME = "Load"
DESCRIPTION = "Tests that the Handraise app login page loads successfully"


async def run(session):
    require_target(session, credentials=False)
    await open_app(session)
