"""Email channel: multipart (text + HTML) result summaries over SMTP."""

from __future__ import annotations

import html
import os
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict, Mapping, Optional, Sequence

from handraise_e2e.exceptions import NotificationDispatchError
from handraise_e2e.models import ExecutionResult, RunSummary
from handraise_e2e.notifications.formatters import calculate_summary, status_color, status_emoji

DEFAULT_SMTP_PORT = 587
DEFAULT_SENDER = "Handraise Test Runner <noreply@handraise.com>"
NOT_CONFIGURED = "Email service not configured"


@dataclass(frozen=True)
class SMTPSettings:
    host: str
    port: int
    username: str
    password: str
    use_ssl: bool = False
    sender: str = DEFAULT_SENDER
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> Optional["SMTPSettings"]:
        """SMTP settings from SMTP_* / EMAIL_FROM, or None when host or credentials are missing."""
        env = os.environ if env is None else env
        host = env.get("SMTP_HOST")
        username = env.get("SMTP_USER")
        password = env.get("SMTP_PASS")
        if not host or not username or not password:
            return None
        return cls(
            host=host,
            port=int(env.get("SMTP_PORT") or DEFAULT_SMTP_PORT),
            username=username,
            password=password,
            use_ssl=(env.get("SMTP_SECURE") or "").lower() == "true",
            sender=env.get("EMAIL_FROM") or DEFAULT_SENDER,
        )


def build_subject(summary: RunSummary) -> str:
    mark = "✅" if summary.passed == summary.total else "❌"
    return f"Test Suite Results: {summary.passed}/{summary.total} Passed {mark}"


def render_text_body(results: Sequence[ExecutionResult], summary: RunSummary, job_id: str) -> str:
    lines = [
        "TEST SUITE RESULTS",
        "==================",
        f"Job ID: {job_id}",
        f"Timestamp: {summary.timestamp.isoformat()}",
        "",
        "SUMMARY",
        "-------",
        f"Total Tests: {summary.total}",
        f"Passed: {summary.passed}",
        f"Failed: {summary.failed}",
        f"Duration: {summary.total_duration_ms / 1000:.2f}s",
        "",
        "RESULTS",
        "-------",
    ]
    for result in results:
        tag = "[PASS]" if result.is_passed else "[FAIL]"
        duration = f"{result.duration_ms}ms" if result.duration_ms else "N/A"
        lines.append(f"{tag} {result.name}")
        lines.append(f"  Duration: {duration}")
        if result.error:
            lines.append(f"  Error: {result.error}")
        lines.append("")
    lines.extend(["--", "Generated by Handraise Test Runner"])
    return "\n".join(lines)


def render_html_body(results: Sequence[ExecutionResult], summary: RunSummary, job_id: str) -> str:
    rows = []
    for result in results:
        error = (
            f'<div style="font-family: monospace; color: #991b1b;">{html.escape(result.error)}</div>'
            if result.error
            else ""
        )
        rows.append(
            "<tr>"
            f"<td><strong>{html.escape(result.name)}</strong></td>"
            f'<td style="color: {status_color(result.status)};">'
            f"{status_emoji(result.status)} {result.status.upper()}</td>"
            f"<td>{f'{result.duration_ms}ms' if result.duration_ms else '-'}</td>"
            f"<td>{error}</td>"
            "</tr>"
        )

    border = "#10b981" if summary.is_success else "#ef4444"
    environment = os.getenv("ENVIRONMENT", "development")
    return (
        "<!DOCTYPE html><html><body style=\"font-family: sans-serif; color: #333;\">"
        "<h1>🧪 Test Suite Results</h1>"
        f"<p>Job ID: {html.escape(job_id)}</p>"
        f'<div style="border-left: 4px solid {border}; padding: 10px;">'
        f"<p>Total Tests: <strong>{summary.total}</strong></p>"
        f"<p>Passed: <strong>{summary.passed}</strong></p>"
        f"<p>Failed: <strong>{summary.failed}</strong></p>"
        f"<p>Duration: <strong>{summary.total_duration_ms / 1000:.2f}s</strong></p>"
        "</div>"
        '<table style="width: 100%; border-collapse: collapse;">'
        "<thead><tr><th>Test Name</th><th>Status</th><th>Duration</th><th>Details</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
        f"<p>Generated by Handraise Test Runner at {summary.timestamp.isoformat()}</p>"
        f"<p>Environment: {html.escape(environment)}</p>"
        "</body></html>"
    )


def compose_email(
    results: Sequence[ExecutionResult],
    recipients: Sequence[str],
    job_id: str,
    sender: str = DEFAULT_SENDER,
) -> EmailMessage:
    """Build the multipart summary message."""
    summary = calculate_summary(results)
    message = EmailMessage()
    message["Message-ID"] = make_msgid()
    message["From"] = sender
    message["To"] = ", ".join(recipients)
    message["Subject"] = build_subject(summary)
    message["X-Job-Id"] = job_id
    message.set_content(render_text_body(results, summary, job_id))
    message.add_alternative(render_html_body(results, summary, job_id), subtype="html")
    return message


class EmailChannel:
    """Sends result summaries with smtplib."""

    name = "email"

    def __init__(self, settings: Optional[SMTPSettings] = None):
        self.settings = settings

    @classmethod
    def from_env(cls) -> "EmailChannel":
        return cls(SMTPSettings.from_env())

    def send(
        self, recipients: Sequence[str], results: Sequence[ExecutionResult], job_id: str
    ) -> Dict[str, Any]:
        """
        Send the summary to every recipient.

        Returns:
            Delivery details (message id, recipient count)

        Raises:
            NotificationDispatchError: If SMTP is not configured or delivery fails
        """
        if self.settings is None:
            raise NotificationDispatchError(self.name, NOT_CONFIGURED)

        message = compose_email(results, recipients, job_id, sender=self.settings.sender)
        try:
            self._deliver(message, list(recipients))
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDispatchError(self.name, f"SMTP delivery failed: {e}") from e

        return {
            "messageId": message["Message-ID"],
            "recipients": len(recipients),
            "sentAt": datetime.now(timezone.utc).isoformat(),
        }

    def _deliver(self, message: EmailMessage, recipients: Sequence[str]) -> None:
        settings = self.settings
        smtp: smtplib.SMTP
        if settings.use_ssl:
            smtp = smtplib.SMTP_SSL(settings.host, settings.port, timeout=settings.timeout_seconds)
        else:
            smtp = smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout_seconds)
        try:
            smtp.ehlo()
            if not settings.use_ssl and smtp.has_extn("starttls"):
                smtp.starttls()
                smtp.ehlo()
            smtp.login(settings.username, settings.password)
            smtp.send_message(message, to_addrs=list(recipients))
        finally:
            smtp.quit()
