"""Custom exceptions for the Handraise E2E runner.

This module defines domain-specific exceptions that give the runner a clear
error taxonomy. Only configuration and validation errors are expected to reach
synchronous callers; the others are converted into result records or
per-channel outcomes at their component boundary.
"""


class HandraiseE2EError(Exception):
    """Base exception for all runner errors.

    All custom exceptions in this module inherit from this base class,
    making it easy to catch all runner-specific errors.
    """

    pass


class ConfigurationError(HandraiseE2EError):
    """Raised when required configuration is missing or invalid.

    This is a pre-run error: the run never starts.

    Examples:
    - HANDRAISE_URL, HANDRAISE_USERNAME or HANDRAISE_PASSWORD unset
    - Scenario directory missing or empty
    - Unreadable browser configuration file
    """

    pass


class ScenarioLoadError(HandraiseE2EError):
    """Raised when a single scenario module cannot be turned into a descriptor.

    The registry catches this, logs a warning and skips the module.

    Attributes:
        source: Path of the offending scenario module
    """

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid scenario module {source}: {reason}")


class ScenarioNotFoundError(HandraiseE2EError):
    """Raised when a requested scenario name matches nothing in the registry.

    The orchestrator reports this as a failed result, never as an exception.
    """

    NOT_FOUND_MESSAGE = "Test case not found"

    def __init__(self, name: str):
        self.name = name
        super().__init__(self.NOT_FOUND_MESSAGE)


class ScenarioExecutionError(HandraiseE2EError):
    """Raised by scenario bodies to signal a failed UI expectation.

    Any exception raised by a scenario is treated as a failure; this class
    exists so scenario helpers can raise something more descriptive than
    a bare RuntimeError.
    """

    pass


class ScenarioTimeoutError(ScenarioExecutionError):
    """Raised when a scenario exceeds the per-scenario hard timeout.

    Attributes:
        timeout_seconds: The timeout that was exceeded
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Scenario timed out after {timeout_seconds:g}s")


class SessionError(HandraiseE2EError):
    """Raised when an isolated browser session cannot be provisioned or used.

    Examples:
    - Browser binary missing (playwright install not run)
    - Session accessed after it was closed
    """

    pass


class ArtifactCaptureError(HandraiseE2EError):
    """Raised when gathering one diagnostic artifact fails.

    Never propagates past artifact capture and never replaces the
    original scenario error.

    Attributes:
        kind: Artifact kind that failed (screenshot, html, pageState, errorLog)
    """

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(f"Failed to capture {kind}: {message}")


class NotificationDispatchError(HandraiseE2EError):
    """Raised when a notification channel cannot deliver a result summary.

    Recorded per channel by the dispatcher; does not abort other channels.

    Attributes:
        channel: Channel name (email, webhook)
    """

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(message)
