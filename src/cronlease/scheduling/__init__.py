"""Lease-based cron scheduling.

Manifesto:
    Running the same cron job from several processes usually means picking
    a leader or accepting duplicates. Here every process polls a shared
    store instead, and a task runs wherever the atomic claim succeeds.
    Leases that go stale are reclaimed, so a crashed process never strands
    a task.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CRONLEASE SCHEDULER                                                          │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐   │
│  │   from cronlease.scheduling import create_scheduler                 │   │
│  │                                                                      │   │
│  │   scheduler = create_scheduler(conn)                                 │   │
│  │                                                                      │   │
│  │   async def daily_job(lease):                                        │   │
│  │       await step_one()                                               │   │
│  │       await lease.renew_lease()                                      │   │
│  │       await step_two()                                               │   │
│  │       return "ok"                                                    │   │
│  │                                                                      │   │
│  │   scheduler.declare("daily-job", "0 5 * * *", daily_job)             │   │
│  └──────────────────────────────────────────────────────────────────────┘   │
│                                                                               │
│  Modules:                                                                     │
│   models.py          TaskRecord, outcome entries, TaskUpdate                 │
│   cron.py            croniter evaluation in an IANA timezone                 │
│   registry.py        task id → worker mapping (per scheduler)                │
│   lease.py           TaskLease handed to workers                             │
│   store.py           TaskStore protocol, InMemoryTaskStore                   │
│   sql_store.py       SQLTaskStore (single-statement atomic claim)            │
│   protocol.py        PollingBackend protocol                                 │
│   thread_backend.py  ThreadPollingBackend (default)                          │
│   service.py         TaskScheduler                                           │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Workers that run past the processing timeout without renewing
    ✅ ``await lease.renew_lease()`` between long steps
    ❌ Workers with side effects that cannot be repeated
    ✅ Idempotent workers (a crashed run is re-executed after the timeout)
    ❌ Wiring store, backend and settings by hand
    ✅ ``create_scheduler(conn)`` factory function

Tags:
    cronlease, scheduling, cron, lease, atomic-claim, poller

Doc-Types:
    package-overview, module-index
"""

from __future__ import annotations

from cronlease.core.logging import configure_logging
from cronlease.core.settings import SchedulerSettings

# Cron
from .cron import DISPLAY_FORMAT, CronAdapter, format_time, next_fire_after, validate_schedule

# Lease
from .lease import TaskLease

# Models
from .models import (
    HISTORY_LIMIT,
    ExecutionEntry,
    FailureEntry,
    SuccessEntry,
    TaskRecord,
    TaskUpdate,
)

# Protocol
from .protocol import BackendHealth, PollingBackend

# Registry
from .registry import TaskRegistry, TaskWorker

# Service
from .service import ErrorHandler, SchedulerHealth, SchedulerStats, TaskScheduler, log_error

# Stores
from .sql_store import SQLTaskStore
from .store import InMemoryTaskStore, TaskStore

# Backends
from .thread_backend import ThreadPollingBackend


def create_scheduler(
    conn=None,
    *,
    settings: SchedulerSettings | None = None,
    error_handler: ErrorHandler | None = None,
    setup_logging: bool = True,
) -> TaskScheduler:
    """Factory function to create a fully wired scheduler.

    Args:
        conn: Database connection. ``None`` keeps tasks in memory, which
            only coordinates schedulers inside this process.
        settings: Scheduler settings (default: read from environment)
        error_handler: Sink for poll-cycle failures (default: log them)
        setup_logging: Configure structlog from ``log_level`` and
            ``log_format``. Pass False when the application owns logging.

    Returns:
        Configured TaskScheduler, not yet polling (``declare`` starts it)

    Example:
        >>> conn = sqlite3.connect("tasks.db", check_same_thread=False)
        >>> scheduler = create_scheduler(conn)
        >>> scheduler.declare("daily-job", "0 5 * * *", daily_job)
    """
    settings = settings or SchedulerSettings()
    if setup_logging:
        configure_logging(settings.log_level, json_format=settings.log_format == "json")

    store: TaskStore
    if conn is None:
        store = InMemoryTaskStore()
    else:
        sql_store = SQLTaskStore(conn, table_name=settings.collection_name)
        sql_store.create_schema()
        store = sql_store

    return TaskScheduler(
        store,
        settings=settings,
        error_handler=error_handler,
        backend=ThreadPollingBackend(),
    )


__all__ = [
    # Models
    "HISTORY_LIMIT",
    "TaskRecord",
    "TaskUpdate",
    "SuccessEntry",
    "FailureEntry",
    "ExecutionEntry",
    # Cron
    "CronAdapter",
    "DISPLAY_FORMAT",
    "next_fire_after",
    "validate_schedule",
    "format_time",
    # Registry & lease
    "TaskRegistry",
    "TaskWorker",
    "TaskLease",
    # Stores
    "TaskStore",
    "InMemoryTaskStore",
    "SQLTaskStore",
    # Backends
    "PollingBackend",
    "BackendHealth",
    "ThreadPollingBackend",
    # Service
    "TaskScheduler",
    "SchedulerStats",
    "SchedulerHealth",
    "ErrorHandler",
    "log_error",
    "create_scheduler",
]
