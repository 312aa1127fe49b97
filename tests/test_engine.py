"""Tests for ExecutionEngine - isolated execution, failure capture and timeouts."""

import asyncio
import json
from pathlib import Path

import pytest

from handraise_e2e.exceptions import SessionError
from handraise_e2e.models import ScenarioDescriptor
from handraise_e2e.runner.artifacts import ArtifactStore
from handraise_e2e.runner.engine import ExecutionEngine, error_message

from conftest import FakeSessionProvider


def _descriptor(name, body):
    return ScenarioDescriptor(
        name=name, description=f"{name} scenario", run=body, source=Path(f"{name}.py")
    )


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def engine(session_provider, store):
    return ExecutionEngine(
        session_provider, store, timeout_seconds=5, handraise_url="https://app.example.com"
    )


class TestErrorMessage:
    """Tests for error_message()."""

    def test_uses_exception_text(self):
        assert error_message(RuntimeError("boom")) == "boom"

    def test_falls_back_to_class_name(self):
        assert error_message(AssertionError()) == "AssertionError"
        assert error_message(ValueError("   ")) == "ValueError"


class TestPassingScenario:
    """A scenario that returns normally."""

    def test_passed_result_has_no_error_or_artifacts(self, engine, session_provider, store):
        async def body(session):
            session.step("did a thing")

        result = asyncio.run(engine.execute(_descriptor("Ok", body)))

        assert result.is_passed
        assert result.error is None
        assert result.artifacts is None
        assert result.duration_ms >= 0
        assert session_provider.sessions[0].closed
        assert list((store.root / "screenshots").glob("*")) == []

    def test_steps_forwarded_in_order(self, engine):
        seen = []

        async def body(session):
            session.step("first")
            session.step("second")

        asyncio.run(engine.execute(_descriptor("Steps", body), on_step=seen.append))

        assert seen == [
            "Running test: Steps",
            "first",
            "second",
            'Test "Steps" passed',
        ]

    def test_run_report_written(self, engine, store):
        async def body(session):
            pass

        asyncio.run(engine.execute(_descriptor("Report Me", body)))

        (report_path,) = list((store.root / "reports").glob("*.json"))
        report = json.loads(report_path.read_text())
        assert report_path.name.startswith("Report-Me_")
        assert report["testName"] == "Report Me"
        assert report["success"] is True
        assert report["artifacts"] == {}
        assert report["environment"]["handraise_url"] == "https://app.example.com"

    def test_each_execution_gets_fresh_session(self, engine, session_provider):
        async def body(session):
            pass

        asyncio.run(engine.execute(_descriptor("A", body)))
        asyncio.run(engine.execute(_descriptor("B", body)))

        assert len(session_provider.sessions) == 2
        assert session_provider.sessions[0] is not session_provider.sessions[1]
        assert all(s.closed for s in session_provider.sessions)


class TestFailingScenario:
    """A scenario that raises."""

    def test_error_text_preserved_and_artifacts_attached(self, engine, session_provider):
        async def body(session):
            raise RuntimeError("boom")

        result = asyncio.run(engine.execute(_descriptor("Broken", body)))

        assert not result.is_passed
        assert result.status == "failed"
        assert result.error == "boom"
        assert set(result.artifacts) == {"screenshot", "html", "pageState", "errorLog"}
        for path in result.artifacts.values():
            assert Path(path).exists()
        assert session_provider.sessions[0].closed

    def test_screenshot_failure_keeps_original_error(self, engine, session_provider):
        """Losing one artifact never changes the scenario's error message."""

        def break_screenshot(session):
            session.screenshot_error = RuntimeError("page crashed")

        session_provider.configure = break_screenshot

        async def body(session):
            raise RuntimeError("expected element missing")

        result = asyncio.run(engine.execute(_descriptor("Partial", body)))

        assert result.error == "expected element missing"
        assert "screenshot" not in result.artifacts
        assert {"html", "pageState", "errorLog"} <= set(result.artifacts)

    def test_error_log_contains_progress_and_url(self, engine):
        async def body(session):
            session.step("clicked login")
            raise RuntimeError("no dashboard")

        result = asyncio.run(engine.execute(_descriptor("Logged", body)))

        log = Path(result.artifacts["errorLog"]).read_text()
        assert "Test: Logged" in log
        assert "no dashboard" in log
        assert "URL at failure: https://app.example.com/newsfeeds" in log
        assert "clicked login" in log

    def test_failure_line_emitted(self, engine):
        seen = []

        async def body(session):
            raise RuntimeError("boom")

        asyncio.run(engine.execute(_descriptor("Loud", body), on_step=seen.append))

        assert seen[-1] == 'Test "Loud" failed: boom'

    def test_failed_report_lists_artifacts(self, engine, store):
        async def body(session):
            raise RuntimeError("boom")

        result = asyncio.run(engine.execute(_descriptor("Reported", body)))

        (report_path,) = list((store.root / "reports").glob("*.json"))
        report = json.loads(report_path.read_text())
        assert report["success"] is False
        assert report["artifacts"] == result.artifacts

    def test_teardown_error_does_not_change_result(self, engine, session_provider):
        def break_close(session):
            session.close_error = RuntimeError("browser already gone")

        session_provider.configure = break_close

        async def ok(session):
            pass

        result = asyncio.run(engine.execute(_descriptor("Teardown", ok)))

        assert result.is_passed

    def test_session_acquire_failure_becomes_failed_result(self, runner_settings, store):
        provider = FakeSessionProvider(
            runner_settings, acquire_error=SessionError("Executable doesn't exist")
        )
        engine = ExecutionEngine(provider, store, timeout_seconds=5)

        async def body(session):
            pytest.fail("body must not run without a session")

        result = asyncio.run(engine.execute(_descriptor("No Browser", body)))

        assert result.error == "Executable doesn't exist"
        assert set(result.artifacts) == {"errorLog"}


class TestTimeout:
    """Per-scenario hard timeout."""

    def test_slow_scenario_times_out(self, session_provider, store):
        engine = ExecutionEngine(session_provider, store, timeout_seconds=0.05)

        async def body(session):
            await asyncio.sleep(5)

        result = asyncio.run(engine.execute(_descriptor("Slow", body)))

        assert not result.is_passed
        assert result.error == "Scenario timed out after 0.05s"
        assert session_provider.sessions[0].closed

    def test_zero_disables_timeout(self, session_provider, store):
        engine = ExecutionEngine(session_provider, store, timeout_seconds=0)

        async def body(session):
            await asyncio.sleep(0.01)

        result = asyncio.run(engine.execute(_descriptor("Untimed", body)))

        assert engine.timeout_seconds is None
        assert result.is_passed

    def test_scenario_timeout_error_keeps_its_message(self, session_provider, store):
        """A TimeoutError raised by the scenario is not the engine deadline."""
        engine = ExecutionEngine(session_provider, store, timeout_seconds=300)

        async def body(session):
            raise TimeoutError("clipboard never populated")

        result = asyncio.run(engine.execute(_descriptor("Clipboard", body)))

        assert result.error == "clipboard never populated"
        assert result.duration_ms < 300_000

    def test_inner_wait_for_timeout_is_scenario_failure(self, session_provider, store):
        engine = ExecutionEngine(session_provider, store, timeout_seconds=300)

        async def body(session):
            await asyncio.wait_for(asyncio.sleep(1), 0.01)

        result = asyncio.run(engine.execute(_descriptor("Inner Wait", body)))

        assert not result.is_passed
        assert result.error == "TimeoutError"
        assert "timed out after" not in result.error


class TestDuration:
    """duration_ms spans the scenario body only."""

    def test_slow_teardown_not_counted(self, engine, session_provider):
        async def slow_close():
            await asyncio.sleep(0.3)

        def slow_teardown(session):
            session.close = slow_close

        session_provider.configure = slow_teardown

        async def body(session):
            pass

        result = asyncio.run(engine.execute(_descriptor("Quick", body)))

        assert result.is_passed
        assert result.duration_ms < 250

    def test_body_time_counted(self, engine):
        async def body(session):
            await asyncio.sleep(0.05)

        result = asyncio.run(engine.execute(_descriptor("Sleepy", body)))

        assert result.duration_ms >= 40

    def test_no_session_means_zero_duration(self, runner_settings, store):
        provider = FakeSessionProvider(runner_settings, acquire_error=SessionError("no browser"))
        engine = ExecutionEngine(provider, store, timeout_seconds=5)

        async def body(session):
            pass

        result = asyncio.run(engine.execute(_descriptor("Never Ran", body)))

        assert result.duration_ms == 0
