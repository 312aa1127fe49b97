"""Notification channel configuration: parsing, resolution and validation.

A request's `notifications` block carries one entry per channel. Each entry
is parsed into exactly one of three variants:

    Disabled            false, absent, {"enabled": false}
    ExplicitTarget      "a@b.com" / "https://..." / {"enabled": true, "to"|"url": ...}
    EnvironmentDefault  true / {"enabled": true} (target read from the environment)

Email defaults come from EMAIL_TO; webhook defaults from WEBHOOK_URL, then
SLACK_WEBHOOK_URL.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EMAIL_ENV_VARS = ("EMAIL_TO",)
WEBHOOK_ENV_VARS = ("WEBHOOK_URL", "SLACK_WEBHOOK_URL")

NO_TARGET_RESOLVED = "no target resolved"


@dataclass(frozen=True)
class Disabled:
    """Channel not requested."""


@dataclass(frozen=True)
class ExplicitTarget:
    """Target given in the request. `value` is kept as received so validation can report on it."""

    value: Any


@dataclass(frozen=True)
class EnvironmentDefault:
    """
    Channel enabled; target comes from the environment at resolution time.

    `from_object` records the {"enabled": true} form, which gets its own
    validation message when no environment target is set.
    """

    from_object: bool = field(default=False, compare=False)


ChannelConfig = Union[Disabled, ExplicitTarget, EnvironmentDefault]


@dataclass(frozen=True)
class ResolvedTarget:
    value: str
    recipients: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UnresolvedTarget:
    reason: str = NO_TARGET_RESOLVED


Resolution = Union[ResolvedTarget, UnresolvedTarget]


@dataclass(frozen=True)
class NotificationConfig:
    """Parsed notification block. `provided` is False when the request had none."""

    email: ChannelConfig = field(default_factory=Disabled)
    webhook: ChannelConfig = field(default_factory=Disabled)
    provided: bool = True

    @property
    def enabled_channels(self) -> List[str]:
        return [
            name
            for name, channel in (("email", self.email), ("webhook", self.webhook))
            if not isinstance(channel, Disabled)
        ]


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _parse_channel(raw: Any, target_key: str) -> ChannelConfig:
    if raw is None or raw is False:
        return Disabled()
    if raw is True:
        return EnvironmentDefault()
    if isinstance(raw, str):
        return ExplicitTarget(raw) if raw.strip() else Disabled()
    if isinstance(raw, dict):
        if not raw.get("enabled"):
            return Disabled()
        target = raw.get(target_key)
        if target is None or target == "" or target == []:
            return EnvironmentDefault(from_object=True)
        if isinstance(target, list):
            return ExplicitTarget(tuple(target))
        return ExplicitTarget(target)
    # Unsupported shape; kept so validation can reject it
    return ExplicitTarget(raw)


def parse_notification_config(raw: Optional[Mapping[str, Any]]) -> NotificationConfig:
    """
    Parse the wire `notifications` block into channel variants.

    Args:
        raw: The `notifications` object from the request, or None

    Returns:
        NotificationConfig (never raises; malformed values are reported by validate())
    """
    if raw is None or not isinstance(raw, Mapping):
        return NotificationConfig(provided=False)
    return NotificationConfig(
        email=_parse_channel(raw.get("email"), "to"),
        webhook=_parse_channel(raw.get("webhook"), "url"),
        provided=True,
    )


def is_valid_email(address: Any) -> bool:
    return isinstance(address, str) and bool(EMAIL_PATTERN.match(address))


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _env_lookup(env: Mapping[str, str], names: Tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


def _split_recipients(value: Union[str, Tuple[str, ...]]) -> Tuple[str, ...]:
    if isinstance(value, tuple):
        items = value
    else:
        items = tuple(value.split(","))
    return tuple(item.strip() for item in items if isinstance(item, str) and item.strip())


def resolve_email(channel: ChannelConfig, env: Optional[Mapping[str, str]] = None) -> Resolution:
    """Resolve the email channel to a comma-separated recipient string."""
    env = os.environ if env is None else env
    if isinstance(channel, ExplicitTarget):
        if not isinstance(channel.value, (str, tuple)):
            return UnresolvedTarget()
        recipients = _split_recipients(channel.value)
    elif isinstance(channel, EnvironmentDefault):
        value = _env_lookup(env, EMAIL_ENV_VARS)
        recipients = _split_recipients(value) if value else ()
    else:
        return UnresolvedTarget()

    if not recipients:
        return UnresolvedTarget()
    return ResolvedTarget(",".join(recipients), recipients)


def resolve_webhook(channel: ChannelConfig, env: Optional[Mapping[str, str]] = None) -> Resolution:
    """Resolve the webhook channel to a URL."""
    env = os.environ if env is None else env
    if isinstance(channel, ExplicitTarget):
        url = channel.value if isinstance(channel.value, str) else None
    elif isinstance(channel, EnvironmentDefault):
        url = _env_lookup(env, WEBHOOK_ENV_VARS)
    else:
        return UnresolvedTarget()

    if not url:
        return UnresolvedTarget()
    return ResolvedTarget(url, (url,))


def _validate_email(channel: ChannelConfig, env: Mapping[str, str]) -> List[str]:
    errors: List[str] = []
    if isinstance(channel, EnvironmentDefault):
        env_email = _env_lookup(env, EMAIL_ENV_VARS)
        if not env_email and channel.from_object:
            errors.append("Email recipients not provided and EMAIL_TO environment variable not set")
        elif not env_email:
            errors.append("Email enabled but EMAIL_TO environment variable not set")
        else:
            for address in _split_recipients(env_email):
                if not is_valid_email(address):
                    errors.append(
                        f"Invalid email address in EMAIL_TO environment variable: {address}"
                    )
    elif isinstance(channel, ExplicitTarget):
        value = channel.value
        if isinstance(value, str):
            if not is_valid_email(value):
                errors.append("Invalid email address format")
        elif isinstance(value, tuple):
            for address in value:
                if not is_valid_email(address):
                    errors.append(f"Invalid email address: {address}")
        else:
            errors.append('Email "to" field must be a string or array')
    return errors


def _validate_webhook(channel: ChannelConfig, env: Mapping[str, str]) -> List[str]:
    if isinstance(channel, EnvironmentDefault):
        url = _env_lookup(env, WEBHOOK_ENV_VARS)
        if not url and channel.from_object:
            return ["Webhook URL not provided and not found in environment variables"]
        if not url:
            return [
                "Webhook URL not found in environment variables (WEBHOOK_URL or SLACK_WEBHOOK_URL)"
            ]
    elif isinstance(channel, ExplicitTarget):
        url = channel.value
    else:
        return []

    if not is_valid_url(url):
        return ["Invalid webhook URL format"]
    return []


def validate(
    config: NotificationConfig, env: Optional[Mapping[str, str]] = None
) -> ValidationResult:
    """
    Check a notification config without side effects.

    Args:
        config: Parsed notification config
        env: Environment mapping for default targets (defaults to os.environ)

    Returns:
        ValidationResult with every problem found
    """
    env = os.environ if env is None else env

    if not config.provided:
        return ValidationResult(False, ["No notification configuration provided"])

    errors: List[str] = []
    if not config.enabled_channels:
        errors.append("At least one notification method (email or webhook) must be specified")

    errors.extend(_validate_email(config.email, env))
    errors.extend(_validate_webhook(config.webhook, env))
    return ValidationResult(not errors, errors)
