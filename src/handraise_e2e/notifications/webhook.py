"""Webhook channel: Slack-compatible (default) or generic JSON result payloads."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Sequence

import requests

from handraise_e2e.exceptions import NotificationDispatchError
from handraise_e2e.models import ExecutionResult, RunSummary
from handraise_e2e.notifications.formatters import calculate_summary, filter_failed

WEBHOOK_TIMEOUT_SECONDS = 10
FORMAT_SLACK = "slack"
FORMAT_GENERIC = "generic"


def _environment() -> str:
    return os.getenv("ENVIRONMENT", "development")


def build_slack_payload(
    results: Sequence[ExecutionResult], summary: RunSummary, job_id: str
) -> Dict[str, Any]:
    """Slack incoming-webhook message with text fallback, blocks and attachments."""
    emoji = ":white_check_mark:" if summary.is_success else ":x:"
    failed = filter_failed(results)

    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"{emoji} Test Suite Results", "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Total Tests:*\n{summary.total}"},
                {"type": "mrkdwn", "text": f"*Duration:*\n{summary.total_duration_ms / 1000:.2f}s"},
                {"type": "mrkdwn", "text": f"*Passed:*\n{summary.passed} ✅"},
                {"type": "mrkdwn", "text": f"*Failed:*\n{summary.failed} ❌"},
            ],
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": (
                        f"Job ID: `{job_id}` | Environment: {_environment()} | "
                        f"{summary.timestamp.isoformat()}"
                    ),
                }
            ],
        },
    ]

    if failed:
        blocks.append({"type": "divider"})
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": "*Failed Tests:*"}})
        for result in failed:
            blocks.append(
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": f"• *{result.name}*\n```{result.error or 'Unknown error'}```",
                    },
                }
            )
    else:
        blocks.append(
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": ":tada: *All tests passed successfully!*"},
            }
        )

    attachments = []
    if failed:
        attachments.append(
            {
                "color": "#ff0000",
                "fields": [
                    {"title": r.name, "value": r.error or "Test failed", "short": False}
                    for r in failed
                ],
            }
        )

    return {
        "text": f"Test Suite Results: {summary.passed}/{summary.total} Passed",
        "blocks": blocks,
        "attachments": attachments,
    }


def build_generic_payload(
    results: Sequence[ExecutionResult], summary: RunSummary, job_id: str
) -> Dict[str, Any]:
    return {
        "jobId": job_id,
        "timestamp": summary.timestamp.isoformat(),
        "environment": _environment(),
        "summary": {
            "total": summary.total,
            "passed": summary.passed,
            "failed": summary.failed,
            "duration": summary.total_duration_ms,
            "success": summary.is_success,
        },
        "results": [
            {
                "name": r.name,
                "status": r.status,
                "duration": r.duration_ms,
                "error": r.error,
            }
            for r in results
        ],
    }


class WebhookChannel:
    """Posts result summaries with requests."""

    name = "webhook"

    def __init__(self, payload_format: Optional[str] = None, session: Optional[Any] = None):
        self.payload_format = (payload_format or FORMAT_SLACK).lower()
        self.http = session or requests

    @classmethod
    def from_env(cls) -> "WebhookChannel":
        return cls(os.getenv("WEBHOOK_FORMAT"))

    def build_payload(self, results: Sequence[ExecutionResult], job_id: str) -> Dict[str, Any]:
        summary = calculate_summary(results)
        if self.payload_format == FORMAT_GENERIC:
            return build_generic_payload(results, summary, job_id)
        return build_slack_payload(results, summary, job_id)

    def send(self, url: str, results: Sequence[ExecutionResult], job_id: str) -> Dict[str, Any]:
        """
        POST the payload to the webhook URL.

        Returns:
            Delivery details (HTTP status)

        Raises:
            NotificationDispatchError: On transport errors or a non-2xx response
        """
        payload = self.build_payload(results, job_id)
        try:
            response = self.http.post(url, json=payload, timeout=WEBHOOK_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NotificationDispatchError(self.name, f"Webhook request failed: {e}") from e
        return {"status": response.status_code, "format": self.payload_format}
