"""Runtime settings loaded from environment variables and config/browser.yaml.

This module provides centralized access to the runner configuration. Values
are read once from the process environment (populated from `.env` by the
entry points via python-dotenv) and cached.

Usage:
    from handraise_e2e.settings import get_runner_settings

    settings = get_runner_settings()
    settings.require_target()
    timeout = settings.scenario_timeout_seconds
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from handraise_e2e.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent.parent
DEFAULT_BROWSER_CONFIG_PATH = PROJECT_ROOT / "config" / "browser.yaml"
DEFAULT_SCENARIOS_DIR = PACKAGE_DIR / "cases"

DEFAULT_ARTIFACT_RETENTION_DAYS = 7
DEFAULT_SCENARIO_TIMEOUT_SECONDS = 300.0

TARGET_ENV_VARS = ("HANDRAISE_URL", "HANDRAISE_USERNAME", "HANDRAISE_PASSWORD")

# Used when config/browser.yaml is absent
DEFAULT_BROWSER_CONFIG: Dict[str, Any] = {
    "headless": {
        "launch": {"headless": True, "args": ["--no-sandbox", "--disable-setuid-sandbox"]},
        "context": {
            "viewport": {"width": 1280, "height": 720},
            "ignore_https_errors": True,
            "permissions": ["clipboard-read", "clipboard-write"],
        },
    },
    "headed": {
        "launch": {
            "headless": False,
            "args": [
                "--no-sandbox",
                "--disable-setuid-sandbox",
                "--disable-blink-features=AutomationControlled",
                "--start-maximized",
            ],
        },
        "context": {
            "no_viewport": True,
            "ignore_https_errors": True,
            "permissions": ["clipboard-read", "clipboard-write"],
        },
        "timeouts": {"navigation_ms": 30_000},
    },
}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def load_browser_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load browser launch/context profiles from YAML, falling back to defaults."""
    config_path = path or Path(os.getenv("BROWSER_CONFIG_PATH") or DEFAULT_BROWSER_CONFIG_PATH)
    if not config_path.exists():
        logger.debug("Browser config %s not found, using defaults", config_path)
        return copy.deepcopy(DEFAULT_BROWSER_CONFIG)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to read browser config {config_path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Browser config {config_path} must be a mapping")

    merged = copy.deepcopy(DEFAULT_BROWSER_CONFIG)
    for profile, sections in loaded.items():
        if not isinstance(sections, dict):
            raise ConfigurationError(f"Browser profile '{profile}' must be a mapping")
        target = merged.setdefault(profile, {})
        for section, values in sections.items():
            if isinstance(values, dict):
                target.setdefault(section, {}).update(values)
            else:
                target[section] = values
    return merged


@dataclass
class RunnerSettings:
    """Resolved runner configuration."""

    handraise_url: Optional[str] = None
    handraise_username: Optional[str] = None
    handraise_password: Optional[str] = None
    artifacts_dir: Path = Path("test-artifacts")
    artifact_retention_days: int = DEFAULT_ARTIFACT_RETENTION_DAYS
    scenarios_dir: Path = DEFAULT_SCENARIOS_DIR
    scenario_timeout_seconds: float = DEFAULT_SCENARIO_TIMEOUT_SECONDS
    headed: bool = False
    slow_mo_ms: int = 100
    devtools: bool = False
    debug_timeout_ms: int = 120_000
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    browser_config: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_BROWSER_CONFIG))

    @classmethod
    def from_env(cls) -> "RunnerSettings":
        return cls(
            handraise_url=os.getenv("HANDRAISE_URL") or None,
            handraise_username=os.getenv("HANDRAISE_USERNAME") or None,
            handraise_password=os.getenv("HANDRAISE_PASSWORD") or None,
            artifacts_dir=Path(os.getenv("ARTIFACTS_DIR") or "test-artifacts"),
            artifact_retention_days=_env_int(
                "ARTIFACT_RETENTION_DAYS", DEFAULT_ARTIFACT_RETENTION_DAYS
            ),
            scenarios_dir=Path(os.getenv("SCENARIOS_DIR") or DEFAULT_SCENARIOS_DIR),
            scenario_timeout_seconds=_env_float(
                "SCENARIO_TIMEOUT_SECONDS", DEFAULT_SCENARIO_TIMEOUT_SECONDS
            ),
            headed=_env_bool("HEADED_MODE"),
            slow_mo_ms=_env_int("SLOW_MO", 100),
            devtools=_env_bool("DEVTOOLS"),
            debug_timeout_ms=_env_int("DEBUG_TIMEOUT", 120_000),
            host=os.getenv("RUNNER_HOST", "0.0.0.0"),
            port=_env_int("RUNNER_PORT", 3000),
            environment=os.getenv("ENVIRONMENT", "development"),
            browser_config=load_browser_config(),
        )

    def missing_target_settings(self) -> List[str]:
        """Names of target environment variables that are unset."""
        values = {
            "HANDRAISE_URL": self.handraise_url,
            "HANDRAISE_USERNAME": self.handraise_username,
            "HANDRAISE_PASSWORD": self.handraise_password,
        }
        return [name for name in TARGET_ENV_VARS if not values[name]]

    def require_target(self) -> None:
        """Fail loudly when the application under test is not configured."""
        missing = self.missing_target_settings()
        if missing:
            raise ConfigurationError(
                f"{', '.join(missing)} must be set in the environment or .env file"
            )

    @property
    def browser_profile(self) -> Dict[str, Any]:
        """Launch/context options for the active mode (headed or headless)."""
        profile = copy.deepcopy(self.browser_config["headed" if self.headed else "headless"])
        if self.headed:
            launch = profile.setdefault("launch", {})
            launch["slow_mo"] = self.slow_mo_ms
            launch["devtools"] = self.devtools
            profile.setdefault("timeouts", {})["default_ms"] = self.debug_timeout_ms
        return profile


@lru_cache(maxsize=1)
def get_runner_settings() -> RunnerSettings:
    """
    Get runner settings from the environment.

    Results are cached for the lifetime of the process.

    Returns:
        RunnerSettings instance
    """
    settings = RunnerSettings.from_env()
    logger.debug("Loaded runner settings (headed=%s)", settings.headed)
    return settings


def clear_settings_cache() -> None:
    """Clear cached settings (useful for testing or config reload)."""
    get_runner_settings.cache_clear()
