"""Logging configuration with JSON output to stdout and file."""

import json
import logging
import os
import sys
import yaml
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

# Global configuration cache
_logging_config: Optional[Dict] = None

# Error message for missing ENVIRONMENT variable
ENVIRONMENT_REQUIRED_ERROR = (
    "ENVIRONMENT variable is required but not set. "
    "Must be set to 'staging', 'production', or 'development'. "
    "This prevents accidental production deployments."
)

SERVICE_NAME = "e2e-runner"


def _load_logging_config() -> Dict:
    """
    Load logging configuration from config/logging.yaml.

    Returns:
        Dict with logging configuration, or default config if file not found.
    """
    global _logging_config

    if _logging_config is not None:
        return _logging_config

    config_path = Path(__file__).parent.parent.parent / "config" / "logging.yaml"

    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                _logging_config = yaml.safe_load(f) or {}
        except Exception as e:
            print(
                f"⚠️  Failed to load logging config from {config_path}: {e}",
                file=sys.stderr,
            )
            _logging_config = {}
    else:
        _logging_config = {}

    # Apply defaults if keys are missing
    if "console" not in _logging_config:
        _logging_config["console"] = {}
    if "structured" not in _logging_config:
        _logging_config["structured"] = {}

    _logging_config["console"].setdefault("max_scenario_name_length", 60)
    _logging_config["console"].setdefault("max_step_message_length", 300)
    _logging_config["structured"].setdefault("include_display_fields", True)

    return _logging_config


def _truncate(value: str, max_length: int) -> str:
    if max_length <= 0 or len(value) <= max_length:
        return value
    if max_length <= 3:
        return value[:max_length]
    return value[: max_length - 3] + "..."


def format_scenario_name(scenario_name: str, max_length: Optional[int] = None) -> Tuple[str, str]:
    """
    Format a scenario name for logging with both full and display versions.

    Args:
        scenario_name: The full scenario name to format.
        max_length: Maximum length for display version. If None, uses config value.

    Returns:
        Tuple of (full_name, display_name)
    """
    if not scenario_name:
        return "", ""

    full_name = scenario_name.strip()

    if max_length is None:
        config = _load_logging_config()
        max_length = config["console"]["max_scenario_name_length"]

    return full_name, _truncate(full_name, max_length)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Every record becomes one JSON object per line so run logs can be
    shipped and queried without a parser.
    """

    def __init__(self, environment: str = "development"):
        """
        Initialize JSON formatter.

        Args:
            environment: Environment name (staging, production, development)
        """
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        severity_map = {
            logging.DEBUG: "DEBUG",
            logging.INFO: "INFO",
            logging.WARNING: "WARNING",
            logging.ERROR: "ERROR",
            logging.CRITICAL: "ERROR",
        }
        severity = severity_map.get(record.levelno, "INFO")

        log_entry: Dict[str, Any] = {
            "severity": severity,
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "environment": self.environment,
            "service": SERVICE_NAME,
        }

        # Records emitted through StructuredLogger carry their own fields
        if hasattr(record, "structured_fields"):
            log_entry.update(record.structured_fields)
        else:
            log_entry.update(
                {
                    "category": "system",
                    "action": "log",
                    "message": record.getMessage(),
                    "logger": record.name,
                }
            )

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            log_entry["error"] = {
                "type": exc_type.__name__ if exc_type else "Exception",
                "message": str(exc_value),
                "stack": self.formatException(record.exc_info) if exc_tb else None,
            }

        return json.dumps(log_entry, default=str)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging with JSON output to stdout and file.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, uses logs/e2e-runner.log.

    Environment Variables:
        LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        LOG_FILE: Override log file path.
        ENVIRONMENT: Environment name (staging, production, development).
    """
    log_level = os.getenv("LOG_LEVEL", log_level).upper()

    if log_file is None and "LOG_FILE" not in os.environ:
        log_file = str(Path(__file__).parent.parent.parent / "logs" / "e2e-runner.log")
    else:
        log_file = os.getenv("LOG_FILE", log_file)

    # Default to "development" to avoid crashing at startup
    environment = os.getenv("ENVIRONMENT")
    if not environment:
        environment = "development"
        os.environ["ENVIRONMENT"] = environment
        print("WARNING: ENVIRONMENT not set, defaulting to 'development'", file=sys.stderr)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    json_formatter = JSONFormatter(environment=environment)

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(json_formatter)
    console_handler.setLevel(getattr(logging, log_level))
    handlers.append(console_handler)

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(json_formatter)
    file_handler.setLevel(getattr(logging, log_level))
    handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level),
        handlers=handlers,
        force=True,
    )

    structured = StructuredLogger(logging.getLogger(__name__))
    structured.runner_status(
        "logging_configured",
        details={
            "environment": environment,
            "level": log_level,
            "file": log_file,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


class StructuredLogger:
    """
    Helper class for structured logging with JSON output.

    Each helper maps one runner concern (scenario, job, artifact,
    notification, runner lifecycle) to a log category.
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize structured logger.

        Args:
            logger: Base logger instance

        Raises:
            ValueError: If ENVIRONMENT variable is not set
        """
        self.logger = logger
        self.environment = os.getenv("ENVIRONMENT")
        if not self.environment:
            raise ValueError(ENVIRONMENT_REQUIRED_ERROR)

    def _log(self, level: str, structured_fields: Dict[str, Any]) -> None:
        log_method = getattr(self.logger, level.lower())
        message = structured_fields.get("message", "")
        log_method(message, extra={"structured_fields": structured_fields})

    def scenario_activity(
        self, scenario_name: str, action: str, details: Optional[Dict] = None
    ) -> None:
        """
        Log scenario lifecycle and progress.

        Args:
            scenario_name: Scenario name
            action: Action being performed (started, step, passed, failed)
            details: Optional additional details
        """
        full_name, display_name = format_scenario_name(scenario_name)
        config = _load_logging_config()

        message = f"Scenario {action}: {display_name}"
        if details and action == "step" and "message" in details:
            step = _truncate(str(details["message"]), config["console"]["max_step_message_length"])
            message = f"[{display_name}] {step}"

        structured_fields = {
            "category": "scenario",
            "action": action.lower(),
            "message": message,
            "scenarioName": full_name,
            "details": details or {},
        }
        if config["structured"]["include_display_fields"]:
            structured_fields["scenarioNameDisplay"] = display_name

        level = "info"
        if action.lower() in ("failed", "error", "timeout"):
            level = "error"
        elif action.lower() in ("teardown_failed", "skipped"):
            level = "warning"
        self._log(level, structured_fields)

    def job_status(self, job_id: str, status: str, details: Optional[Dict] = None) -> None:
        """
        Log job lifecycle transitions.

        Args:
            job_id: Job identifier
            status: Job status (accepted, rejected, running, completed, failed)
            details: Optional additional details
        """
        structured_fields = {
            "category": "job",
            "action": status.lower(),
            "message": f"Job {status}",
            "jobId": job_id,
            "details": details or {},
        }
        level = "error" if status.lower() == "failed" else "info"
        self._log(level, structured_fields)

    def artifact_activity(
        self, scenario_name: str, kind: str, status: str, details: Optional[Dict] = None
    ) -> None:
        """
        Log artifact capture outcomes.

        Args:
            scenario_name: Scenario the artifact belongs to
            kind: Artifact kind (screenshot, html, pageState, errorLog, report)
            status: saved or failed
            details: Optional additional details (path, error)
        """
        structured_fields = {
            "category": "artifact",
            "action": status.lower(),
            "message": f"Artifact {kind} {status}",
            "scenarioName": scenario_name,
            "artifactKind": kind,
            "details": details or {},
        }
        level = "warning" if status.lower() == "failed" else "info"
        self._log(level, structured_fields)

    def notification_activity(
        self, channel: str, status: str, job_id: str, details: Optional[Dict] = None
    ) -> None:
        """
        Log notification channel outcomes.

        Args:
            channel: Channel name (email, webhook, console)
            status: sent, error or skipped
            job_id: Job identifier the notification belongs to
            details: Optional additional details
        """
        structured_fields = {
            "category": "notification",
            "action": status.lower(),
            "message": f"Notification {channel} {status}",
            "channel": channel,
            "jobId": job_id,
            "details": details or {},
        }
        level = "error" if status.lower() == "error" else "info"
        self._log(level, structured_fields)

    def runner_status(self, status: str, details: Optional[Dict] = None) -> None:
        """
        Log runner process status changes.

        Args:
            status: Runner status (starting, started, stopping, cleanup)
            details: Optional additional details
        """
        structured_fields = {
            "category": "runner",
            "action": status.lower(),
            "message": f"Runner {status}",
            "details": details or {},
        }
        self._log("info", structured_fields)


def get_structured_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        StructuredLogger instance.
    """
    base_logger = logging.getLogger(name)
    return StructuredLogger(base_logger)
