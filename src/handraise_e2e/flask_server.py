#!/usr/bin/env python3
"""
Flask server for triggering Handraise E2E runs.

This server provides:
- HTTP health endpoint with job counters
- Scenario listing
- Asynchronous job trigger with email/webhook notifications
- Server-Sent Events streams for watching runs live
"""
import json
import queue
import sys
import threading
import time
from typing import Any, Callable, Dict

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request, stream_with_context

from handraise_e2e.exceptions import ConfigurationError
from handraise_e2e.job_trigger import JobTrigger
from handraise_e2e.logging_config import get_structured_logger, setup_logging
from handraise_e2e.maintenance import run_maintenance
from handraise_e2e.notifications.dispatcher import NotificationDispatcher
from handraise_e2e.runner.artifacts import ArtifactStore
from handraise_e2e.runner.orchestrator import SuiteOrchestrator, build_orchestrator
from handraise_e2e.settings import get_runner_settings

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}

_STREAM_DONE = object()


def _sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, default=str)}\n\n"


def stream_run(
    run: Callable[[Callable[[Dict[str, Any]], None]], Any], job_trigger: JobTrigger
) -> Response:
    """
    Run an orchestrator coroutine on its own thread and relay its events as SSE.

    The run waits on the job trigger's run lock, so a stream never overlaps a
    background job or another stream.

    Args:
        run: Callable taking an event callback and returning the coroutine to run
        job_trigger: Owner of the process-wide run lock
    """
    events: "queue.Queue[Any]" = queue.Queue()
    slogger = get_structured_logger(__name__)

    def worker() -> None:
        try:
            job_trigger.run_exclusive(lambda: run(events.put))
        except Exception as e:
            slogger.logger.error(f"Streamed run failed: {e}", exc_info=True)
            events.put({"type": "error", "message": str(e)})
        finally:
            events.put(_STREAM_DONE)

    threading.Thread(target=worker, daemon=True, name="e2e-stream").start()

    def generate():
        yield _sse({"type": "connected"})
        while True:
            event = events.get()
            if event is _STREAM_DONE:
                break
            yield _sse(event)

    return Response(stream_with_context(generate()), mimetype="text/event-stream", headers=SSE_HEADERS)


def create_app(orchestrator: SuiteOrchestrator, job_trigger: JobTrigger) -> Flask:
    """Build the Flask app around an orchestrator and job trigger."""
    app = Flask(__name__)
    app.config["START_TIME"] = time.time()

    @app.route("/health")
    def health():
        """Health check endpoint."""
        stats = job_trigger.stats()
        return jsonify(
            {
                "status": "healthy",
                "running_jobs": stats["running_jobs"],
                "accepted_jobs": stats["accepted_jobs"],
                "last_error": stats["last_error"],
                "uptime": time.time() - app.config["START_TIME"],
            }
        )

    @app.route("/test-cases")
    def test_cases():
        """List registered scenarios."""
        try:
            return jsonify(orchestrator.registry.list())
        except ConfigurationError as e:
            return jsonify({"error": str(e)}), 500

    @app.route("/run-tests", methods=["POST"])
    def run_tests():
        """Validate a run request and start it in the background."""
        payload = request.get_json(silent=True)
        response, status = job_trigger.submit(payload)
        return jsonify(response.to_dict()), status

    @app.route("/run-tests/stream")
    def run_tests_stream():
        """Run every scenario, streaming progress as Server-Sent Events."""
        return stream_run(lambda on_event: orchestrator.run_all(on_event), job_trigger)

    @app.route("/run-test/<path:name>/stream")
    def run_test_stream(name: str):
        """Run one scenario by name, streaming progress as Server-Sent Events."""
        return stream_run(lambda on_event: orchestrator.run_one(name, on_event), job_trigger)

    return app


def main() -> int:
    """Main entry point."""
    load_dotenv()
    setup_logging()
    slogger = get_structured_logger(__name__)

    try:
        settings = get_runner_settings()

        store = ArtifactStore(settings.artifacts_dir)
        store.ensure_dirs()
        slogger.runner_status("cleanup", run_maintenance(store, settings.artifact_retention_days))

        orchestrator = build_orchestrator(settings)
        scenarios = orchestrator.registry.load()
        slogger.runner_status("scenarios_loaded", {"count": len(scenarios)})

        job_trigger = JobTrigger(orchestrator, NotificationDispatcher())
        app = create_app(orchestrator, job_trigger)

        slogger.runner_status("flask_server_starting", {"host": settings.host, "port": settings.port})
        app.run(host=settings.host, port=settings.port, debug=False, use_reloader=False, threaded=True)

    except Exception as e:
        slogger.logger.error(f"Fatal error in Flask server: {e}", exc_info=True)
        return 1

    job_trigger.shutdown(wait=False)
    slogger.runner_status("stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
