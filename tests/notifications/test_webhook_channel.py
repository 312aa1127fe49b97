"""Tests for the webhook channel and its payload builders."""

from unittest.mock import MagicMock

import pytest
import requests

from handraise_e2e.exceptions import NotificationDispatchError
from handraise_e2e.models import ExecutionResult
from handraise_e2e.notifications.webhook import WEBHOOK_TIMEOUT_SECONDS, WebhookChannel

HOOK_URL = "https://hooks.example.com/services/T000/B000/XXX"


@pytest.fixture
def results():
    return [
        ExecutionResult.passed("Load", 1200),
        ExecutionResult.failed("Load And Login", 2300, "Could not find email input field"),
    ]


@pytest.fixture
def http():
    session = MagicMock()
    session.post.return_value.status_code = 200
    return session


class TestSlackPayload:
    """Default Slack-compatible payload."""

    def test_failed_run(self, results):
        payload = WebhookChannel().build_payload(results, "job-1")

        assert payload["text"] == "Test Suite Results: 1/2 Passed"
        assert payload["blocks"][0]["text"]["text"] == ":x: Test Suite Results"
        texts = [b.get("text", {}).get("text", "") for b in payload["blocks"]]
        assert any("*Load And Login*" in t and "Could not find email input field" in t for t in texts)
        assert payload["attachments"][0]["fields"] == [
            {"title": "Load And Login", "value": "Could not find email input field", "short": False}
        ]

    def test_all_passed(self, results):
        payload = WebhookChannel().build_payload(results[:1], "job-1")

        assert payload["blocks"][0]["text"]["text"].startswith(":white_check_mark:")
        assert payload["blocks"][-1]["text"]["text"] == ":tada: *All tests passed successfully!*"
        assert payload["attachments"] == []


class TestGenericPayload:
    """WEBHOOK_FORMAT=generic payload."""

    def test_shape(self, results):
        payload = WebhookChannel("generic").build_payload(results, "job-7")

        assert payload["jobId"] == "job-7"
        assert payload["environment"] == "development"
        assert payload["summary"] == {
            "total": 2,
            "passed": 1,
            "failed": 1,
            "duration": 3500,
            "success": False,
        }
        assert payload["results"][1] == {
            "name": "Load And Login",
            "status": "failed",
            "duration": 2300,
            "error": "Could not find email input field",
        }

    def test_format_from_env(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_FORMAT", "GENERIC")

        assert WebhookChannel.from_env().payload_format == "generic"


class TestWebhookSend:
    """Tests for WebhookChannel.send()."""

    def test_posts_json(self, http, results):
        detail = WebhookChannel(session=http).send(HOOK_URL, results, "job-1")

        args, kwargs = http.post.call_args
        assert args == (HOOK_URL,)
        assert kwargs["timeout"] == WEBHOOK_TIMEOUT_SECONDS
        assert "blocks" in kwargs["json"]
        assert detail == {"status": 200, "format": "slack"}

    def test_http_error_wrapped(self, http, results):
        http.post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

        with pytest.raises(NotificationDispatchError, match="Webhook request failed") as exc_info:
            WebhookChannel(session=http).send(HOOK_URL, results, "job-1")

        assert exc_info.value.channel == "webhook"

    def test_connection_error_wrapped(self, http, results):
        http.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(NotificationDispatchError):
            WebhookChannel(session=http).send(HOOK_URL, results, "job-1")
