"""Central configuration loaded from environment variables and a .env file."""

from __future__ import annotations

from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from otpbot.auth.totp import DEFAULT_ISSUER
from otpbot.models import AuthorizationPolicy

DEFAULT_COOLDOWN_S = 5
DEFAULT_CLEANUP_INTERVAL_S = 300

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Discord
    discord_bot_token: str = ""
    guild_id: str = ""

    # Access control
    dev_user_id: str = ""
    allowed_roles: str = ""  # comma-separated role ids

    # Rate limiting
    command_cooldown: int = DEFAULT_COOLDOWN_S
    cooldown_cleanup_interval: int = DEFAULT_CLEANUP_INTERVAL_S

    # TOTP
    default_issuer: str = DEFAULT_ISSUER

    # Logging
    log_level: str = "INFO"

    @field_validator("command_cooldown", mode="before")
    @classmethod
    def _cooldown_or_default(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_COOLDOWN_S)

    @field_validator("cooldown_cleanup_interval", mode="before")
    @classmethod
    def _interval_or_default(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_CLEANUP_INTERVAL_S)

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_level(cls, value: Any) -> str:
        level = str(value or "").strip().upper()
        if level == "WARN":
            level = "WARNING"
        return level if level in LOG_LEVELS else "INFO"

    @property
    def allowed_role_ids(self) -> frozenset[str] | None:
        """None when ALLOWED_ROLES is unset, otherwise the non-blank ids."""
        if not self.allowed_roles:
            return None
        return frozenset(r.strip() for r in self.allowed_roles.split(",") if r.strip())

    def policy(self) -> AuthorizationPolicy:
        return AuthorizationPolicy(
            bypass_user_id=self.dev_user_id.strip() or None,
            allowed_role_ids=self.allowed_role_ids,
        )


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


settings = Settings()
