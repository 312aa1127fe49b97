"""Fan a batch of results out to every enabled notification channel."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from handraise_e2e.exceptions import NotificationDispatchError
from handraise_e2e.logging_config import StructuredLogger, get_structured_logger
from handraise_e2e.models import ExecutionResult, RunSummary
from handraise_e2e.notifications.config import (
    NotificationConfig,
    ResolvedTarget,
    resolve_email,
    resolve_webhook,
)
from handraise_e2e.notifications.email import EmailChannel
from handraise_e2e.notifications.formatters import calculate_summary, format_console_report
from handraise_e2e.notifications.webhook import WebhookChannel

logger = logging.getLogger(__name__)

STATUS_SENT = "sent"
STATUS_ERROR = "error"


@dataclass
class ChannelOutcome:
    channel: str
    status: str
    target: Optional[str] = None
    detail: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"channel": self.channel, "status": self.status, "target": self.target}
        if self.status == STATUS_SENT:
            data["detail"] = self.detail or {}
        else:
            data["error"] = self.error
        return data


@dataclass
class DispatchOutcome:
    success: bool
    per_channel: List[ChannelOutcome] = field(default_factory=list)
    summary: Optional[RunSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "perChannel": [c.to_dict() for c in self.per_channel],
            "summary": self.summary.to_dict() if self.summary else None,
        }


class NotificationDispatcher:
    """
    Delivers result summaries.

    Channels are independent: each one is resolved, formatted and sent inside
    its own error boundary, so a broken channel never blocks the others.
    """

    def __init__(
        self,
        email_channel: Optional[EmailChannel] = None,
        webhook_channel: Optional[WebhookChannel] = None,
        env: Optional[Mapping[str, str]] = None,
        slogger: Optional[StructuredLogger] = None,
    ):
        self.email_channel = email_channel or EmailChannel.from_env()
        self.webhook_channel = webhook_channel or WebhookChannel.from_env()
        self.env = env
        self.slogger = slogger or get_structured_logger(__name__)

    def dispatch(
        self,
        results: Sequence[ExecutionResult],
        config: NotificationConfig,
        job_id: str,
    ) -> DispatchOutcome:
        """
        Send results to every enabled channel and log the console summary.

        Args:
            results: Results of the run
            config: Parsed notification config
            job_id: Job the results belong to

        Returns:
            DispatchOutcome; success only when every enabled channel sent
        """
        env = os.environ if self.env is None else self.env
        outcomes: List[ChannelOutcome] = []

        if "email" in config.enabled_channels:
            outcomes.append(
                self._deliver(
                    "email",
                    resolve_email(config.email, env),
                    lambda target: self.email_channel.send(target.recipients, results, job_id),
                    job_id,
                )
            )

        if "webhook" in config.enabled_channels:
            outcomes.append(
                self._deliver(
                    "webhook",
                    resolve_webhook(config.webhook, env),
                    lambda target: self.webhook_channel.send(target.value, results, job_id),
                    job_id,
                )
            )

        self.log_results(results, job_id)

        return DispatchOutcome(
            success=all(o.status == STATUS_SENT for o in outcomes),
            per_channel=outcomes,
            summary=calculate_summary(results),
        )

    def _deliver(self, channel: str, resolution, send, job_id: str) -> ChannelOutcome:
        if not isinstance(resolution, ResolvedTarget):
            error = f"{channel}: {resolution.reason}"
            self.slogger.notification_activity(channel, STATUS_ERROR, job_id, {"error": error})
            return ChannelOutcome(channel, STATUS_ERROR, error=error)

        target = resolution.value
        try:
            detail = send(resolution)
        except NotificationDispatchError as e:
            error = str(e)
        except Exception as e:
            self.slogger.logger.error(f"Unexpected {channel} notification failure", exc_info=True)
            error = f"{type(e).__name__}: {e}"
        else:
            self.slogger.notification_activity(
                channel, STATUS_SENT, job_id, {"target": target, **(detail or {})}
            )
            return ChannelOutcome(channel, STATUS_SENT, target=target, detail=detail)

        self.slogger.notification_activity(
            channel, STATUS_ERROR, job_id, {"target": target, "error": error}
        )
        return ChannelOutcome(channel, STATUS_ERROR, target=target, error=error)

    def log_results(self, results: Sequence[ExecutionResult], job_id: str) -> None:
        """Console summary; written for every dispatch regardless of channel outcomes."""
        logger.info(format_console_report(results, job_id))
