"""Runs one scenario in one isolated browser session and turns the outcome into a result."""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from handraise_e2e.browser.session import BrowserSession, SessionProvider
from handraise_e2e.exceptions import ScenarioTimeoutError
from handraise_e2e.logging_config import StructuredLogger, get_structured_logger
from handraise_e2e.models import ArtifactBundle, ExecutionResult, ScenarioDescriptor
from handraise_e2e.runner.artifacts import ArtifactCapture, ArtifactStore
from handraise_e2e.runner.step_reporter import StepCallback, StepReporter


def error_message(exc: BaseException) -> str:
    """Human-readable message for a failure; the class name when the message is empty."""
    message = str(exc).strip()
    return message or type(exc).__name__


class ExecutionEngine:
    """
    Executes scenarios one at a time.

    Every execution gets a fresh session from the provider. Scenario
    exceptions never escape `execute()`: they become failed results with
    artifacts attached.
    """

    def __init__(
        self,
        session_provider: SessionProvider,
        store: ArtifactStore,
        timeout_seconds: Optional[float] = None,
        handraise_url: Optional[str] = None,
        slogger: Optional[StructuredLogger] = None,
    ):
        self.session_provider = session_provider
        self.store = store
        self.timeout_seconds = timeout_seconds if timeout_seconds else None
        self.handraise_url = handraise_url
        self.slogger = slogger or get_structured_logger(__name__)
        self.capture = ArtifactCapture(store, self.slogger)

    async def execute(
        self,
        descriptor: ScenarioDescriptor,
        on_step: Optional[StepCallback] = None,
    ) -> ExecutionResult:
        """
        Execute a scenario.

        Args:
            descriptor: Scenario to run
            on_step: Optional callback receiving every progress line in order

        Returns:
            ExecutionResult (passed, or failed with error and artifacts)
        """
        name = descriptor.name
        reporter = StepReporter(name, self.slogger, on_step)
        start: Optional[float] = None
        settled: Optional[float] = None
        session: Optional[BrowserSession] = None
        failure: Optional[BaseException] = None
        artifacts: ArtifactBundle = {}

        self.slogger.scenario_activity(name, "started", {"source": str(descriptor.source)})
        reporter.emit(f"Running test: {name}")

        try:
            session = await self.session_provider.acquire(reporter)
            # Duration spans the scenario body only
            start = time.monotonic()
            try:
                await self._run_body(descriptor, session)
            finally:
                settled = time.monotonic()
        except Exception as e:
            failure = e
            reporter.emit(f"Test \"{name}\" failed: {error_message(e)}")
            self.slogger.logger.error(f"Scenario '{name}' raised", exc_info=True)
            artifacts = await self.capture.capture(session, name, e, reporter.lines)
        finally:
            if session is not None:
                await self._teardown(name, session)

        duration_ms = int((settled - start) * 1000) if start is not None else 0

        if failure is None:
            reporter.emit(f"Test \"{name}\" passed")
            result = ExecutionResult.passed(name, duration_ms)
            self.slogger.scenario_activity(name, "passed", {"duration_ms": duration_ms})
        else:
            result = ExecutionResult.failed(name, duration_ms, error_message(failure), artifacts)
            action = "timeout" if isinstance(failure, ScenarioTimeoutError) else "failed"
            self.slogger.scenario_activity(
                name,
                action,
                {"duration_ms": duration_ms, "error": result.error, "artifacts": artifacts},
            )

        self._write_report(result)
        return result

    async def _run_body(self, descriptor: ScenarioDescriptor, session: BrowserSession) -> None:
        """
        Await the scenario under the engine deadline.

        Only the engine's own deadline becomes ScenarioTimeoutError. A
        TimeoutError raised inside the scenario keeps its own message.
        """
        if self.timeout_seconds is None:
            await descriptor.run(session)
            return

        task = asyncio.ensure_future(descriptor.run(session))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise ScenarioTimeoutError(self.timeout_seconds)

        task.result()

    async def _teardown(self, name: str, session: BrowserSession) -> None:
        try:
            await session.close()
        except Exception as e:
            self.slogger.scenario_activity(name, "teardown_failed", {"error": str(e)})

    def _write_report(self, result: ExecutionResult) -> None:
        try:
            path = self.store.write_run_report(
                result.name,
                success=result.is_passed,
                duration_ms=result.duration_ms,
                artifacts=result.artifacts,
                handraise_url=self.handraise_url,
            )
        except OSError as e:
            self.slogger.artifact_activity(result.name, "report", "failed", {"error": str(e)})
            return
        self.slogger.artifact_activity(result.name, "report", "saved", {"path": str(path)})
