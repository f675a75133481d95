"""Scheduler settings.

``SchedulerSettings`` carries the tunables every scheduler instance needs
(polling period, lease staleness threshold, schedule timezone, store
namespace, logging) and reads them from ``CRONLEASE_*`` environment
variables or a ``.env`` file.

Examples:
    >>> from cronlease.core.settings import SchedulerSettings
    >>> settings = SchedulerSettings(polling_interval_ms=500, timezone="Europe/Berlin")
    >>> settings.processing_timeout
    datetime.timedelta(seconds=60)

Tags:
    settings, configuration, pydantic, environment, cronlease
"""

from __future__ import annotations

from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerSettings(BaseSettings):
    """Configuration for one scheduler instance.

    Fields
    ──────
    polling_interval_ms   : Pause between poll cycles
    processing_timeout_ms : Age after which a lease counts as abandoned
    timezone              : IANA zone used to evaluate cron expressions.
                            Defaults to UTC, not the host's local zone.
    collection_name       : Store namespace (table name for SQL stores)
    log_level             : Structlog log level, applied by ``create_scheduler``
    log_format            : ``json`` or ``console``, applied by ``create_scheduler``
    """

    model_config = SettingsConfigDict(
        env_prefix="CRONLEASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Polling ──────────────────────────────────────────────────
    polling_interval_ms: int = Field(default=1000, gt=0)
    processing_timeout_ms: int = Field(default=60_000, gt=0)

    # ── Scheduling ───────────────────────────────────────────────
    timezone: str = Field(default="UTC", description="IANA zone for schedule evaluation")

    # ── Store ────────────────────────────────────────────────────
    collection_name: str = Field(default="_scheduled_tasks", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value

    @property
    def polling_interval_seconds(self) -> float:
        return self.polling_interval_ms / 1000

    @property
    def processing_timeout(self) -> timedelta:
        return timedelta(milliseconds=self.processing_timeout_ms)
