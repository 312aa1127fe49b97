"""Tests for the Flask HTTP surface."""

import asyncio
import json
import threading
import time
from unittest.mock import MagicMock

import pytest

from handraise_e2e.exceptions import ConfigurationError
from handraise_e2e.flask_server import create_app
from handraise_e2e.job_trigger import JobTrigger
from handraise_e2e.models import ExecutionResult, TriggerResponse
from handraise_e2e.runner.artifacts import ArtifactStore
from handraise_e2e.runner.engine import ExecutionEngine
from handraise_e2e.runner.orchestrator import (
    SuiteOrchestrator,
    all_complete_event,
    complete_event,
    step_event,
)
from handraise_e2e.scenarios.registry import ScenarioRegistry

from conftest import FakeSessionProvider


def _parse_sse(body: str):
    return [json.loads(chunk[len("data: "):]) for chunk in body.split("\n\n") if chunk.strip()]


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.registry.list.return_value = [
        {"name": "Load", "description": "Tests loading the Handraise login page"}
    ]
    return mock


@pytest.fixture
def job_trigger():
    mock = MagicMock()
    mock.stats.return_value = {"running_jobs": 1, "accepted_jobs": 3, "last_error": None}
    mock.run_exclusive.side_effect = lambda run: asyncio.run(run())
    return mock


@pytest.fixture
def client(orchestrator, job_trigger):
    app = create_app(orchestrator, job_trigger)
    app.config["TESTING"] = True
    return app.test_client()


class TestHealth:
    """Tests for /health."""

    def test_reports_job_counters(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["running_jobs"] == 1
        assert data["accepted_jobs"] == 3
        assert data["last_error"] is None
        assert data["uptime"] >= 0


class TestTestCases:
    """Tests for /test-cases."""

    def test_lists_scenarios(self, client):
        response = client.get("/test-cases")

        assert response.get_json() == [
            {"name": "Load", "description": "Tests loading the Handraise login page"}
        ]

    def test_registry_error(self, client, orchestrator):
        orchestrator.registry.list.side_effect = ConfigurationError("No scenario modules found in x")

        response = client.get("/test-cases")

        assert response.status_code == 500
        assert response.get_json() == {"error": "No scenario modules found in x"}


class TestRunTests:
    """Tests for POST /run-tests."""

    def test_accepted(self, client, job_trigger):
        job_trigger.submit.return_value = (
            TriggerResponse(success=True, jobId="job-1", message="Test run started."),
            202,
        )
        body = {"notifications": {"email": "qa@example.com"}, "tests": "all"}

        response = client.post("/run-tests", json=body)

        assert response.status_code == 202
        assert response.get_json() == {"success": True, "jobId": "job-1", "message": "Test run started."}
        job_trigger.submit.assert_called_once_with(body)

    def test_rejected(self, client, job_trigger):
        job_trigger.submit.return_value = (
            TriggerResponse(success=False, message="Invalid request", errors=["tests: bad"]),
            400,
        )

        response = client.post("/run-tests", json={"tests": "x"})

        assert response.status_code == 400
        assert response.get_json()["errors"] == ["tests: bad"]

    def test_non_json_body_passed_as_none(self, client, job_trigger):
        job_trigger.submit.return_value = (TriggerResponse(success=False), 400)

        client.post("/run-tests", data="not json", content_type="text/plain")

        job_trigger.submit.assert_called_once_with(None)


class TestStreams:
    """Tests for the Server-Sent Events endpoints."""

    def test_run_all_stream(self, client, orchestrator):
        result = ExecutionResult.passed("Load", 10)

        async def run_all(on_event):
            on_event(step_event("Running test: Load"))
            on_event(complete_event(result))
            on_event(all_complete_event([result]))
            return [result]

        orchestrator.run_all = run_all

        response = client.get("/run-tests/stream")

        assert response.mimetype == "text/event-stream"
        events = _parse_sse(response.get_data(as_text=True))
        assert [e["type"] for e in events] == ["connected", "step", "complete", "all-complete"]
        assert events[2]["result"]["name"] == "Load"

    def test_run_one_stream_passes_name(self, client, orchestrator):
        seen = []

        async def run_one(name, on_event):
            seen.append(name)
            result = ExecutionResult.not_found(name)
            on_event(complete_event(result))
            return result

        orchestrator.run_one = run_one

        response = client.get("/run-test/Load%20And%20Login/stream")

        events = _parse_sse(response.get_data(as_text=True))
        assert seen == ["Load And Login"]
        assert events[-1]["result"]["error"] == "Test case not found"

    def test_stream_reports_crash(self, client, orchestrator):
        async def run_all(on_event):
            raise ConfigurationError("Scenario directory not found: /nope")

        orchestrator.run_all = run_all

        response = client.get("/run-tests/stream")

        events = _parse_sse(response.get_data(as_text=True))
        assert events[-1] == {"type": "error", "message": "Scenario directory not found: /nope"}


class CountingSessionProvider(FakeSessionProvider):
    """FakeSessionProvider that tracks how many sessions are open at once."""

    def __init__(self, settings):
        super().__init__(settings)
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    async def acquire(self, reporter=None):
        session = await super().acquire(reporter)
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        close = session.close

        async def counted_close():
            with self._lock:
                self.active -= 1
            await close()

        session.close = counted_close
        return session


class TestOneBrowserAtATime:
    """Streams and background jobs share one run lock."""

    def test_stream_waits_for_running_job(self, runner_settings, write_scenario):
        write_scenario("slow.py", "Slow", body="import asyncio\nawait asyncio.sleep(0.5)")
        provider = CountingSessionProvider(runner_settings)
        engine = ExecutionEngine(provider, ArtifactStore(runner_settings.artifacts_dir), timeout_seconds=5)
        orchestrator = SuiteOrchestrator(ScenarioRegistry(runner_settings.scenarios_dir), engine)
        dispatcher = MagicMock()
        trigger = JobTrigger(
            orchestrator, dispatcher, settings_provider=lambda: runner_settings, env={}
        )
        client = create_app(orchestrator, trigger).test_client()

        try:
            accepted = client.post(
                "/run-tests", json={"notifications": {"email": "qa@example.com"}, "tests": "all"}
            )
            assert accepted.status_code == 202
            time.sleep(0.1)

            events = _parse_sse(client.get("/run-tests/stream").get_data(as_text=True))
        finally:
            trigger.shutdown(wait=True)

        assert events[-1]["type"] == "all-complete"
        assert len(provider.sessions) == 2
        assert provider.peak == 1
        dispatcher.dispatch.assert_called_once()
