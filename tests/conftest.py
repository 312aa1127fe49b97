"""Shared pytest fixtures for all tests."""

import textwrap
from pathlib import Path
from typing import List, Optional
from unittest.mock import MagicMock

import pytest

from handraise_e2e.settings import RunnerSettings, clear_settings_cache


@pytest.fixture(autouse=True)
def set_test_environment(monkeypatch):
    """
    Automatically set ENVIRONMENT variable for all tests.

    This prevents ValueError from being raised when initializing
    StructuredLogger or calling setup_logging() in tests.
    """
    monkeypatch.setenv("ENVIRONMENT", "development")


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Drop cached settings so env changes in one test never leak into another."""
    clear_settings_cache()
    yield
    clear_settings_cache()


class FakeSession:
    """
    Stand-in for BrowserSession.

    Records teardown, and can be told to fail individual artifact calls.
    """

    def __init__(self, settings, reporter=None, url="https://app.example.com/newsfeeds"):
        self.settings = settings
        self.reporter = reporter
        self.page = MagicMock()
        self.page.url = url
        self.closed = False
        self.close_error: Optional[Exception] = None
        self.screenshot_error: Optional[Exception] = None
        self.content_error: Optional[Exception] = None
        self.page_state_error: Optional[Exception] = None

    def step(self, message):
        if self.reporter is not None:
            self.reporter.emit(message)

    async def screenshot(self, path):
        if self.screenshot_error:
            raise self.screenshot_error
        Path(path).write_bytes(b"\x89PNG fake")

    async def content(self):
        if self.content_error:
            raise self.content_error
        return "<html><body>fake</body></html>"

    async def page_state(self):
        if self.page_state_error:
            raise self.page_state_error
        return {
            "url": self.page.url,
            "title": "Handraise",
            "cookies": [],
            "localStorage": {"token": "abc"},
            "sessionStorage": {},
            "viewport": {"width": 1280, "height": 720},
        }

    async def close(self):
        self.closed = True
        if self.close_error:
            raise self.close_error


class FakeSessionProvider:
    """Hands out FakeSessions and remembers every one of them."""

    def __init__(self, settings, acquire_error: Optional[Exception] = None):
        self.settings = settings
        self.acquire_error = acquire_error
        self.sessions: List[FakeSession] = []
        self.configure = None

    async def acquire(self, reporter=None):
        if self.acquire_error:
            raise self.acquire_error
        session = FakeSession(self.settings, reporter)
        if self.configure is not None:
            self.configure(session)
        self.sessions.append(session)
        return session


@pytest.fixture
def runner_settings(tmp_path):
    """Settings pointing at a temporary artifact root with target configured."""
    return RunnerSettings(
        handraise_url="https://app.example.com",
        handraise_username="qa@example.com",
        handraise_password="secret",
        artifacts_dir=tmp_path / "artifacts",
        scenarios_dir=tmp_path / "cases",
        scenario_timeout_seconds=5,
    )


@pytest.fixture
def session_provider(runner_settings):
    return FakeSessionProvider(runner_settings)


@pytest.fixture
def scenarios_dir(tmp_path):
    directory = tmp_path / "cases"
    directory.mkdir()
    return directory


@pytest.fixture
def write_scenario(scenarios_dir):
    """
    Write a scenario module into the temporary scenario directory.

    Usage:
        write_scenario("a_pass.py", "A", body="session.step('hi')")
    """

    def _write(filename: str, name: str, body: str = "pass", description: str = "A scenario"):
        body = textwrap.dedent(body).strip("\n") or "pass"
        source = (
            f"NAME = {name!r}\n"
            f"DESCRIPTION = {description!r}\n"
            "\n\n"
            "async def run(session):\n"
            f"{textwrap.indent(body, '    ')}\n"
        )
        path = scenarios_dir / filename
        path.write_text(source, encoding="utf-8")
        return path

    return _write
