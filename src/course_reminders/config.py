"""Reminder engine configuration loaded from environment variables.

Settings are read from the environment with sensible defaults. For local
development, create a .env file in the project root.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class ReminderConfig(BaseSettings):
    """Reminder engine configuration loaded from environment variables."""

    # Periskope WhatsApp gateway
    periskope_api_url: str = Field(
        default="https://api.periskope.app/v1",
        description="Periskope REST API base URL",
    )
    periskope_api_key: str = Field(
        default="",
        description="Bearer token for the Periskope API",
    )
    org_phone: str = Field(
        default="",
        description="Organisation WhatsApp number sent as the x-phone header",
    )
    notifier_timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for a single send request",
    )
    notifier_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per message on transient gateway errors",
    )

    # Firing and dedup windows. The tolerance must be at least the cron cadence.
    firing_tolerance_minutes: int = Field(
        default=5,
        ge=0,
        description="Half-width of the closed window around a fire instant",
    )
    dedup_window_minutes: int = Field(
        default=10,
        ge=0,
        description="Trailing sent-log lookback used to suppress resends",
    )
    dedup_failure_policy: Literal["skip", "send"] = Field(
        default="skip",
        description="What to do with a rule when the sent log cannot be read",
    )

    # Paths
    data_dir: str = Field(
        default="data",
        description="Directory holding the record snapshot and sent_messages.jsonl",
    )
    reports_dir: str = Field(
        default="reports",
        description="Directory for per-cycle JSON reports",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton pattern
_config: ReminderConfig | None = None


def get_config() -> ReminderConfig:
    """Get the reminder configuration singleton.

    Returns:
        ReminderConfig: Reminder configuration instance
    """
    global _config
    if _config is None:
        _config = ReminderConfig()
    return _config
