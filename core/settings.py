"""Application settings and environment configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
import os
from functools import lru_cache
from typing import Optional


def _env_bool(value: str) -> bool:
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass
class Settings:
    """Runtime configuration resolved from environment variables."""

    onesignal_app_id: Optional[str] = None
    onesignal_api_key: Optional[str] = None
    onesignal_api_url: str = "https://onesignal.com/api/v1/notifications"
    push_timeout_seconds: float = 10.0
    reminder_tick_seconds: float = 60.0
    reminder_clock_enabled: bool = True
    reminder_timezone: Optional[str] = None
    auth_jwt_secret: str = "dev-secret-change-me-before-deploying-0001"
    auth_jwt_audience: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        env_app_id = os.getenv("ONESIGNAL_APP_ID")
        env_api_key = os.getenv("ONESIGNAL_REST_API_KEY")
        env_api_url = os.getenv("ONESIGNAL_API_URL")
        env_timeout = os.getenv("PUSH_TIMEOUT_SECONDS")
        env_tick = os.getenv("REMINDER_TICK_SECONDS")
        env_clock = os.getenv("REMINDER_CLOCK_ENABLED")
        env_tz = os.getenv("REMINDER_TIMEZONE")
        env_secret = os.getenv("AUTH_JWT_SECRET")
        env_audience = os.getenv("AUTH_JWT_AUDIENCE")
        env_log_level = os.getenv("LOG_LEVEL")
        if env_app_id:
            self.onesignal_app_id = env_app_id
        if env_api_key:
            self.onesignal_api_key = env_api_key
        if env_api_url:
            self.onesignal_api_url = env_api_url.rstrip("/")
        if env_timeout:
            self.push_timeout_seconds = float(env_timeout)
        if env_tick:
            self.reminder_tick_seconds = float(env_tick)
        if env_clock is not None:
            self.reminder_clock_enabled = _env_bool(env_clock)
        if env_tz:
            self.reminder_timezone = env_tz
        if env_secret:
            self.auth_jwt_secret = env_secret
        if env_audience:
            self.auth_jwt_audience = env_audience
        if env_log_level:
            self.log_level = env_log_level.upper()

    @property
    def push_enabled(self) -> bool:
        """Push dispatch needs both the app id and the REST key."""

        return bool(self.onesignal_app_id and self.onesignal_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
