"""Failure artifacts and per-execution run reports.

Layout under the artifact root (ARTIFACTS_DIR, default ./test-artifacts):

    screenshots/  full-page PNGs taken at the moment of failure
    logs/         page HTML, page state JSON and error logs
    reports/      one JSON report per scenario execution
"""

from __future__ import annotations

import json
import logging
import platform
import re
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from handraise_e2e.exceptions import ArtifactCaptureError
from handraise_e2e.logging_config import StructuredLogger
from handraise_e2e.models import ArtifactBundle, ArtifactKind

logger = logging.getLogger(__name__)

SCREENSHOTS_DIR = "screenshots"
LOGS_DIR = "logs"
REPORTS_DIR = "reports"
ARTIFACT_SUBDIRS = (SCREENSHOTS_DIR, LOGS_DIR, REPORTS_DIR)

# kind -> (sub-directory, file suffix)
ARTIFACT_FILES = {
    ArtifactKind.SCREENSHOT: (SCREENSHOTS_DIR, "failure.png"),
    ArtifactKind.HTML: (LOGS_DIR, "page.html"),
    ArtifactKind.PAGE_STATE: (LOGS_DIR, "state.json"),
    ArtifactKind.ERROR_LOG: (LOGS_DIR, "error.log"),
}

_WHITESPACE = re.compile(r"\s+")


def artifact_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with ':' and '.' replaced so it is safe in file names."""
    moment = moment or datetime.now(timezone.utc)
    iso = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z").replace(":", "-").replace(".", "-")


def artifact_basename(scenario_name: str, timestamp: str) -> str:
    return f"{_WHITESPACE.sub('-', scenario_name.strip())}_{timestamp}"


class ArtifactStore:
    """Owns the artifact root directory and its sub-directories."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def ensure_dirs(self) -> None:
        for subdir in ARTIFACT_SUBDIRS:
            (self.root / subdir).mkdir(parents=True, exist_ok=True)

    def subdir(self, name: str) -> Path:
        return self.root / name

    def path_for(self, kind: ArtifactKind, scenario_name: str, timestamp: str) -> Path:
        subdir, suffix = ARTIFACT_FILES[kind]
        return self.root / subdir / f"{artifact_basename(scenario_name, timestamp)}_{suffix}"

    def report_path(self, scenario_name: str, timestamp: str) -> Path:
        return self.root / REPORTS_DIR / f"{artifact_basename(scenario_name, timestamp)}.json"

    def write_run_report(
        self,
        scenario_name: str,
        success: bool,
        duration_ms: int,
        artifacts: Optional[ArtifactBundle] = None,
        handraise_url: Optional[str] = None,
    ) -> Path:
        """
        Write the JSON report for one execution.

        Returns:
            Path of the written report
        """
        self.ensure_dirs()
        now = datetime.now(timezone.utc)
        report = {
            "testName": scenario_name,
            "success": success,
            "duration": duration_ms,
            "timestamp": now.isoformat(),
            "artifacts": dict(artifacts or {}),
            "environment": {
                "python": sys.version.split()[0],
                "platform": platform.system().lower(),
                "handraise_url": handraise_url,
            },
        }
        path = self.report_path(scenario_name, artifact_timestamp(now))
        path.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
        return path


def format_error_log(
    scenario_name: str,
    error: BaseException,
    url: Optional[str],
    log_lines: List[str],
) -> str:
    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    separator = "=" * 40
    return "\n".join(
        [
            separator,
            f"Test: {scenario_name}",
            f"Timestamp: {datetime.now(timezone.utc).isoformat()}",
            separator,
            "",
            "ERROR:",
            stack.rstrip() or str(error),
            "",
            f"URL at failure: {url or 'N/A'}",
            "",
            "PROGRESS LOG:",
            *log_lines,
            "",
            separator,
        ]
    )


class ArtifactCapture:
    """
    Gathers diagnostics for a failed scenario.

    Each artifact is attempted independently; a failure to capture one is
    logged and skipped and never affects the others or the scenario error.
    """

    def __init__(self, store: ArtifactStore, slogger: StructuredLogger):
        self.store = store
        self.slogger = slogger

    async def capture(
        self,
        session: Any,
        scenario_name: str,
        error: BaseException,
        log_lines: List[str],
    ) -> ArtifactBundle:
        """
        Capture failure artifacts.

        Args:
            session: Browser session the scenario ran in, or None when the
                session could not be acquired (only the error log is written)
            scenario_name: Scenario that failed
            error: The exception that failed the scenario
            log_lines: Buffered progress lines

        Returns:
            Mapping of artifact kind to saved file path (missing kinds failed)
        """
        try:
            self.store.ensure_dirs()
        except OSError as e:
            self.slogger.artifact_activity(scenario_name, "all", "failed", {"error": str(e)})
            return {}

        timestamp = artifact_timestamp()
        bundle: ArtifactBundle = {}
        url: Optional[str] = None

        if session is not None:
            url = getattr(session.page, "url", None)
            await self._attempt(
                bundle, ArtifactKind.SCREENSHOT, scenario_name, timestamp,
                self._screenshot, session,
            )
            await self._attempt(
                bundle, ArtifactKind.HTML, scenario_name, timestamp,
                self._html, session,
            )
            await self._attempt(
                bundle, ArtifactKind.PAGE_STATE, scenario_name, timestamp,
                self._page_state, session,
            )

        await self._attempt(
            bundle, ArtifactKind.ERROR_LOG, scenario_name, timestamp,
            self._error_log, scenario_name, error, url, log_lines,
        )
        return bundle

    async def _attempt(self, bundle, kind, scenario_name, timestamp, func, *args) -> None:
        path = self.store.path_for(kind, scenario_name, timestamp)
        try:
            await func(path, *args)
        except Exception as e:
            failure = ArtifactCaptureError(kind.value, str(e))
            self.slogger.artifact_activity(
                scenario_name, kind.value, "failed", {"error": str(failure)}
            )
            return
        bundle[kind.value] = str(path)
        self.slogger.artifact_activity(scenario_name, kind.value, "saved", {"path": str(path)})

    @staticmethod
    async def _screenshot(path: Path, session) -> None:
        await session.screenshot(str(path))

    @staticmethod
    async def _html(path: Path, session) -> None:
        path.write_text(await session.content(), encoding="utf-8")

    @staticmethod
    async def _page_state(path: Path, session) -> None:
        state: Dict[str, Any] = await session.page_state()
        path.write_text(json.dumps(state, indent=2, default=str), encoding="utf-8")

    @staticmethod
    async def _error_log(path: Path, scenario_name, error, url, log_lines) -> None:
        path.write_text(format_error_log(scenario_name, error, url, log_lines), encoding="utf-8")
