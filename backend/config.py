"""
Application settings.

Values come from the environment (optionally seeded from backend/.env).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from common.errors import ConfigurationError
from providers.registry import FAKE_MODES

ROOT_DIR = Path(__file__).parent


@dataclass(frozen=True)
class Settings:
    mode: str = "prod"
    google_maps_api_key: str = ""
    check_interval_minutes: float = 5
    default_notification_threshold: float = 20
    provider_timeout_seconds: Optional[float] = 10
    max_concurrent_checks: int = 10
    inactive_session_ttl_minutes: float = 0
    log_level: str = "INFO"
    port: int = 3001

    @property
    def uses_fake_providers(self) -> bool:
        return self.mode in FAKE_MODES

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_minutes * 60

    @property
    def inactive_session_ttl_seconds(self) -> Optional[float]:
        """None when inactive sessions are kept forever."""
        if self.inactive_session_ttl_minutes <= 0:
            return None
        return self.inactive_session_ttl_minutes * 60


def _number(name: str, default: float, cast=float):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Read settings from the environment.

    Raises:
        ConfigurationError: If a required value is missing or out of range
    """
    load_dotenv(env_file or ROOT_DIR / ".env")

    mode = os.environ.get("COMMUTE_MODE", "prod").lower()
    api_key = os.environ.get("GOOGLE_MAPS_API_KEY", "")
    if mode not in FAKE_MODES and not api_key:
        raise ConfigurationError("GOOGLE_MAPS_API_KEY is required in .env file")

    timeout = _number("PROVIDER_TIMEOUT_SECONDS", 10.0)
    settings = Settings(
        mode=mode,
        google_maps_api_key=api_key,
        check_interval_minutes=_number("CHECK_INTERVAL_MINUTES", 5.0),
        default_notification_threshold=_number("NOTIFICATION_THRESHOLD", 20.0),
        provider_timeout_seconds=timeout if timeout > 0 else None,
        max_concurrent_checks=_number("MAX_CONCURRENT_CHECKS", 10, int),
        inactive_session_ttl_minutes=_number("INACTIVE_SESSION_TTL_MINUTES", 0.0),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        port=_number("PORT", 3001, int),
    )

    if settings.check_interval_minutes <= 0:
        raise ConfigurationError("CHECK_INTERVAL_MINUTES must be > 0")
    if settings.default_notification_threshold <= 0:
        raise ConfigurationError("NOTIFICATION_THRESHOLD must be > 0")
    if settings.max_concurrent_checks < 1:
        raise ConfigurationError("MAX_CONCURRENT_CHECKS must be >= 1")

    return settings
