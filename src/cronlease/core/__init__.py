"""Cronlease Core -- shared primitives for the scheduler.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (CronleaseError, StoreError)
        protocols.py       Connection protocol for SQL stores
        timestamps.py      UTC helpers with fixed-width ISO encoding

    Layer 2 -- Database
        dialect.py         SQL dialect abstraction (SQLite, PostgreSQL)

    Layer 3 -- Runtime
        logging.py         structlog configuration + get_logger
        settings.py        SchedulerSettings (pydantic-settings, CRONLEASE_* env)
"""

from .errors import (
    ConfigError,
    CronleaseError,
    ErrorCategory,
    LeaseExpiredError,
    MissingConfigError,
    ScheduleParseError,
    StoreError,
    TaskExistsError,
    WorkerNotFoundError,
)
from .timestamps import utc_now

__all__ = [
    "ErrorCategory",
    "CronleaseError",
    "ConfigError",
    "MissingConfigError",
    "WorkerNotFoundError",
    "ScheduleParseError",
    "StoreError",
    "TaskExistsError",
    "LeaseExpiredError",
    "utc_now",
]
