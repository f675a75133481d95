"""
Cronlease - cron scheduling coordinated through a shared task store.

Several processes declare the same tasks; each task runs in exactly one
of them per due time, decided by an atomic lease claim in the store.
"""

__version__ = "0.1.0"

from cronlease.core import (
    ConfigError,
    CronleaseError,
    LeaseExpiredError,
    MissingConfigError,
    ScheduleParseError,
    StoreError,
    TaskExistsError,
    WorkerNotFoundError,
)
from cronlease.core.logging import configure_logging, get_logger
from cronlease.core.settings import SchedulerSettings
from cronlease.scheduling import (
    InMemoryTaskStore,
    SQLTaskStore,
    TaskLease,
    TaskRecord,
    TaskScheduler,
    TaskStore,
    create_scheduler,
)

__all__ = [
    "__version__",
    "CronleaseError",
    "ConfigError",
    "MissingConfigError",
    "WorkerNotFoundError",
    "ScheduleParseError",
    "StoreError",
    "TaskExistsError",
    "LeaseExpiredError",
    "configure_logging",
    "get_logger",
    "SchedulerSettings",
    "TaskScheduler",
    "TaskLease",
    "TaskRecord",
    "TaskStore",
    "InMemoryTaskStore",
    "SQLTaskStore",
    "create_scheduler",
]
