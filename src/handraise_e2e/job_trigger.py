"""
Job trigger boundary: validate a run request, accept it, and run it in the background.

Requests are checked synchronously (payload shape, test selector, notification
config, target settings). Accepted jobs get a uuid4 job id and are queued on a
single-worker executor. The caller gets its answer before the run starts.

Every suite run, background or streamed, goes through `run_exclusive()`, which
holds one process-wide lock, so at most one browser is open at a time.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from pydantic import ValidationError

from handraise_e2e.exceptions import ConfigurationError
from handraise_e2e.logging_config import StructuredLogger, get_structured_logger
from handraise_e2e.models import JobRequest, TriggerRequest, TriggerResponse
from handraise_e2e.notifications.config import parse_notification_config, validate
from handraise_e2e.notifications.dispatcher import NotificationDispatcher
from handraise_e2e.runner.orchestrator import SuiteOrchestrator
from handraise_e2e.settings import RunnerSettings, get_runner_settings

HTTP_ACCEPTED = 202
HTTP_BAD_REQUEST = 400

T = TypeVar("T")


def _format_validation_errors(exc: ValidationError) -> List[str]:
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        errors.append(f"{location}: {message}" if location else message)
    return errors


class JobTrigger:
    """Accepts run requests and executes them on a background worker."""

    def __init__(
        self,
        orchestrator: SuiteOrchestrator,
        dispatcher: NotificationDispatcher,
        settings_provider: Callable[[], RunnerSettings] = get_runner_settings,
        env: Optional[Mapping[str, str]] = None,
        executor: Optional[concurrent.futures.Executor] = None,
        slogger: Optional[StructuredLogger] = None,
    ):
        self.orchestrator = orchestrator
        self.dispatcher = dispatcher
        self.settings_provider = settings_provider
        self.env = env
        self.executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="e2e-job"
        )
        self.slogger = slogger or get_structured_logger(__name__)

        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._state: Dict[str, Any] = {
            "running_jobs": 0,
            "accepted_jobs": 0,
            "last_error": None,
        }

    def _reject(self, message: str, errors: List[str]) -> Tuple[TriggerResponse, int]:
        self.slogger.job_status("unassigned", "rejected", {"message": message, "errors": errors})
        return TriggerResponse(success=False, message=message, errors=errors), HTTP_BAD_REQUEST

    def submit(self, payload: Any) -> Tuple[TriggerResponse, int]:
        """
        Validate and accept a run request.

        Args:
            payload: Decoded JSON body, e.g.
                {"notifications": {"email": "qa@example.com"}, "tests": "all"}

        Returns:
            (TriggerResponse, HTTP status): 202 with a jobId, or 400 with errors
        """
        if not isinstance(payload, dict):
            return self._reject("Request body must be a JSON object", ["body: expected object"])

        try:
            request = TriggerRequest.model_validate(payload)
        except ValidationError as e:
            return self._reject("Invalid request", _format_validation_errors(e))

        if request.tests is None:
            return self._reject(
                "Invalid request", ['tests: must be "all" or a list of test names']
            )

        config = parse_notification_config(request.notifications)
        validation = validate(config, self.env)
        if not validation.valid:
            return self._reject("Invalid notification configuration", validation.errors)

        try:
            self.settings_provider().require_target()
        except ConfigurationError as e:
            return self._reject("Runner is not configured", [str(e)])

        job = JobRequest(job_id=str(uuid.uuid4()), selector=request.selector(), notifications=config)

        with self._lock:
            self._state["accepted_jobs"] += 1
        self.slogger.job_status(
            job.job_id,
            "accepted",
            {"tests": job.selector, "channels": config.enabled_channels},
        )
        self.executor.submit(self._run_job, job)

        return (
            TriggerResponse(
                success=True,
                jobId=job.job_id,
                message="Test run started. Results will be sent to the configured notification channels.",
            ),
            HTTP_ACCEPTED,
        )

    def _run_job(self, job: JobRequest) -> None:
        """Background task. Never raises: every failure is logged with the job id."""
        with self._lock:
            self._state["running_jobs"] += 1
        self.slogger.job_status(job.job_id, "running")

        try:
            results = self.run_exclusive(lambda: self.orchestrator.run_selected(job.selector))
            outcome = self.dispatcher.dispatch(results, job.notifications, job.job_id)
            self.slogger.job_status(
                job.job_id,
                "completed",
                {
                    "results": len(results),
                    "failed": sum(1 for r in results if not r.is_passed),
                    "notifications_success": outcome.success,
                },
            )
        except Exception as e:
            with self._lock:
                self._state["last_error"] = str(e)
            self.slogger.logger.error(f"Job {job.job_id} crashed: {e}", exc_info=True)
            self.slogger.job_status(job.job_id, "failed", {"error": str(e)})
        finally:
            with self._lock:
                self._state["running_jobs"] -= 1

    def run_exclusive(self, run: Callable[[], Awaitable[T]]) -> T:
        """
        Run an orchestrator coroutine on the calling thread, one run at a time.

        Background jobs and SSE streams share this lock; a caller blocks
        until the run ahead of it has closed its browser.

        Args:
            run: Zero-argument callable returning the coroutine to run
        """
        with self._run_lock:
            return asyncio.run(run())

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._state)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and optionally wait for the running job."""
        self.executor.shutdown(wait=wait)
