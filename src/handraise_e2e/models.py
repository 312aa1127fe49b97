"""
Data models shared by the runner, the job trigger and the notification channels.

Wire-facing shapes (results, trigger request/response) are pydantic models whose
`to_dict()` output keeps the camelCase keys the HTTP clients already consume.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from handraise_e2e.exceptions import ScenarioNotFoundError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from handraise_e2e.notifications.config import NotificationConfig

NOT_FOUND_ERROR = ScenarioNotFoundError.NOT_FOUND_MESSAGE


class ScenarioStatus(str, Enum):
    """
    Outcome of a single scenario execution.

    There is no skipped/pending state: a scenario either ran to completion
    or it failed (including "not found" and timeouts).
    """

    PASSED = "passed"
    FAILED = "failed"


class ArtifactKind(str, Enum):
    """Kinds of diagnostic artifacts gathered when a scenario fails."""

    SCREENSHOT = "screenshot"
    HTML = "html"
    ERROR_LOG = "errorLog"
    PAGE_STATE = "pageState"


# Keyed by ArtifactKind value, path as string. Created only on failure.
ArtifactBundle = Dict[str, str]

ScenarioBody = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class ScenarioDescriptor:
    """A named, described UI flow loaded from a scenario module."""

    name: str
    description: str
    run: ScenarioBody
    source: Path

    def metadata(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description}


class ExecutionResult(BaseModel):
    """
    Result of executing one scenario.

    `status == failed` exactly when `error` is set. `duration_ms` is wall time
    from just before the session was acquired to just after it was torn down.
    """

    model_config = ConfigDict(use_enum_values=True, frozen=True)

    name: str
    status: ScenarioStatus
    duration_ms: int = Field(ge=0)
    error: Optional[str] = None
    artifacts: Optional[ArtifactBundle] = None

    @model_validator(mode="after")
    def _status_matches_error(self) -> "ExecutionResult":
        failed = self.status == ScenarioStatus.FAILED.value
        if failed and self.error is None:
            raise ValueError("failed results must carry an error message")
        if not failed and self.error is not None:
            raise ValueError("passed results cannot carry an error message")
        return self

    @classmethod
    def passed(cls, name: str, duration_ms: int) -> "ExecutionResult":
        return cls(name=name, status=ScenarioStatus.PASSED, duration_ms=duration_ms)

    @classmethod
    def failed(
        cls,
        name: str,
        duration_ms: int,
        error: str,
        artifacts: Optional[ArtifactBundle] = None,
    ) -> "ExecutionResult":
        return cls(
            name=name,
            status=ScenarioStatus.FAILED,
            duration_ms=duration_ms,
            error=error,
            artifacts=artifacts or None,
        )

    @classmethod
    def not_found(cls, name: str) -> "ExecutionResult":
        """Placeholder for a requested name that matches no registered scenario."""
        return cls(name=name, status=ScenarioStatus.FAILED, duration_ms=0, error=NOT_FOUND_ERROR)

    @property
    def is_passed(self) -> bool:
        return self.status == ScenarioStatus.PASSED.value

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape: {name, status, duration, error?, artifacts?}."""
        data: Dict[str, Any] = {
            "name": self.name,
            "status": self.status,
            "duration": self.duration_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.artifacts:
            data["artifacts"] = dict(self.artifacts)
        return data


Selector = Union[str, Tuple[str, ...]]


@dataclass(frozen=True)
class JobRequest:
    """An accepted run request. `selector` is "all" or a tuple of scenario names."""

    job_id: str
    selector: Selector
    notifications: "NotificationConfig"


class TriggerRequest(BaseModel):
    """
    Inbound body of POST /run-tests.

    `notifications.email` / `notifications.webhook` accept a string, a boolean
    or an object; they are parsed into channel configs by
    handraise_e2e.notifications.config.
    """

    model_config = ConfigDict(extra="ignore")

    notifications: Optional[Dict[str, Any]] = None
    tests: Optional[Union[str, List[str]]] = None

    @model_validator(mode="after")
    def _check_selector(self) -> "TriggerRequest":
        if isinstance(self.tests, str) and self.tests != "all":
            raise ValueError('tests must be "all" or a list of test names')
        if isinstance(self.tests, list) and not self.tests:
            raise ValueError("tests list cannot be empty")
        return self

    def selector(self) -> Selector:
        if self.tests is None:
            raise ValueError("tests selector is required")
        if isinstance(self.tests, str):
            return self.tests
        return tuple(self.tests)


class TriggerResponse(BaseModel):
    """Response body for POST /run-tests."""

    success: bool
    jobId: Optional[str] = None
    message: Optional[str] = None
    errors: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RunSummary(BaseModel):
    """Aggregate counts for a batch of results."""

    total: int
    passed: int
    failed: int
    total_duration_ms: int
    success_rate: float
    timestamp: datetime
    is_success: bool

    @classmethod
    def from_results(cls, results: List[ExecutionResult]) -> "RunSummary":
        total = len(results)
        passed = sum(1 for r in results if r.is_passed)
        failed = total - passed
        return cls(
            total=total,
            passed=passed,
            failed=failed,
            total_duration_ms=sum(r.duration_ms for r in results),
            success_rate=round(passed / total * 100, 1) if total else 0.0,
            timestamp=datetime.now(timezone.utc),
            is_success=failed == 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "totalDuration": self.total_duration_ms,
            "successRate": self.success_rate,
            "timestamp": self.timestamp.isoformat(),
            "isSuccess": self.is_success,
        }
