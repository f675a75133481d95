"""Task scheduler - declaration API and poll cycle.

Manifesto:
    Every process that declares a task polls the same store. Nobody is
    elected leader; each cycle simply tries to claim one due task, and the
    store's atomic claim guarantees only one process wins it. The winner
    runs the worker and writes the outcome back, which also pushes the
    task's next due time forward.

Tags:
    cronlease, scheduling, orchestrator, poller, lease, service

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  TASK SCHEDULER                                                               │
│                                                                               │
│   declare(id, schedule, worker)                                               │
│      ├── validate schedule            (ScheduleParseError)                   │
│      ├── registry[id] = worker                                                │
│      ├── start()                      (idempotent)                           │
│      └── reconcile record             insert │ overwrite schedule │ no-op   │
│                                                                               │
│   poll()   Idle → Claiming → Executing → Settling → Idle                     │
│      1. claim_due(registered ids, now, now - processing_timeout)             │
│      2. worker(TaskLease)             sync or async, awaited                 │
│      3. success → complete            lease cleared, SuccessEntry           │
│         failure → error_handler, then release   lease cleared, FailureEntry │
│         next_due_time = cron(schedule, now + 1s)                             │
│                                                                               │
│   Nothing raised inside poll() escapes it; failures go to error_handler.    │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from cronlease.core.errors import (
    InvalidConfigError,
    MissingConfigError,
    TaskExistsError,
    WorkerNotFoundError,
    error_category,
    error_message,
    is_retryable,
)
from cronlease.core.logging import LogContext, get_logger
from cronlease.core.settings import SchedulerSettings
from cronlease.core.timestamps import utc_now

from .cron import CronAdapter
from .lease import TaskLease
from .models import FailureEntry, SuccessEntry, TaskRecord, TaskUpdate
from .protocol import PollingBackend
from .registry import TaskRegistry, TaskWorker
from .store import TaskStore
from .thread_backend import ThreadPollingBackend

logger = get_logger(__name__)

ErrorHandler = Callable[[BaseException], Any]

SETTLE_OFFSET = timedelta(seconds=1)


def log_error(error: BaseException) -> None:
    """Default error handler: log the failure with its traceback."""
    logger.error(
        "scheduler.error",
        error=error_message(error),
        error_type=type(error).__name__,
        category=error_category(error).value,
        exc_info=error,
    )


def _duration_ms(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() * 1000))


@dataclass
class SchedulerStats:
    """Counters for one scheduler instance."""

    tick_count: int = 0
    tasks_claimed: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick_count": self.tick_count,
            "tasks_claimed": self.tasks_claimed,
            "tasks_completed": self.tasks_completed,
            "tasks_failed": self.tasks_failed,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "last_error": self.last_error,
        }


@dataclass
class SchedulerHealth:
    """Health snapshot for a scheduler instance."""

    healthy: bool
    backend: dict[str, Any]
    tasks_registered: int = 0
    store_configured: bool = True
    stats: SchedulerStats = field(default_factory=SchedulerStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tasks_registered": self.tasks_registered,
            "store_configured": self.store_configured,
            "stats": self.stats.to_dict(),
        }


class TaskScheduler:
    """Cron scheduler coordinating through a shared task store.

    Example:
        >>> scheduler = TaskScheduler(SQLTaskStore(conn))
        >>>
        >>> async def nightly_report(lease: TaskLease) -> str:
        ...     await build_report()
        ...     await lease.renew_lease()
        ...     await upload_report()
        ...     return "uploaded"
        >>>
        >>> scheduler.declare("nightly-report", "0 5 * * *", nightly_report)
        >>> # ... on process exit
        >>> scheduler.shutdown()
    """

    def __init__(
        self,
        store: TaskStore | None = None,
        *,
        settings: SchedulerSettings | None = None,
        error_handler: ErrorHandler | None = None,
        backend: PollingBackend | None = None,
        clock: Callable[[], datetime] = utc_now,
        cron: CronAdapter | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            store: Shared task store. Declaring without one raises
                ``MissingConfigError``.
            settings: Intervals, timeout and timezone. Read from the
                environment when omitted.
            error_handler: Sink for failures raised inside poll cycles.
                Defaults to logging them.
            backend: Timing backend driving ``poll``.
            clock: Source of "now"; tests inject a controllable one.
            cron: Cron evaluator; defaults to one bound to the settings
                timezone.
        """
        self.settings = settings or SchedulerSettings()
        self.store = store
        self.error_handler: ErrorHandler = error_handler or log_error
        self.backend: PollingBackend = backend or ThreadPollingBackend()
        self.cron = cron or CronAdapter(self.settings.timezone)
        self.registry = TaskRegistry()

        self._clock = clock
        self._stats = SchedulerStats()
        self._running = False

    # === Declaration ===

    def declare(self, task_id: str, schedule: str, worker: TaskWorker) -> TaskRecord:
        """Register ``worker`` for ``task_id`` and reconcile its stored record.

        A record that does not exist yet is inserted with the first fire time
        after now. A stored record whose schedule differs gets the new
        schedule and a freshly computed due time. A stored record with the
        same schedule is left untouched so a pending fire survives restarts.

        Returns:
            The stored record after reconciliation

        Raises:
            MissingConfigError: No store configured
            InvalidConfigError: Empty task id
            ScheduleParseError: Malformed cron expression
            StoreError: The store could not be reached
        """
        if not task_id:
            raise InvalidConfigError("task_id", task_id, "Task id must be a non-empty string")
        store = self._require_store()
        self.cron.validate(schedule)

        self.registry.register(task_id, worker)
        self.start()

        now = self._clock()
        record = store.find_by_id(task_id)

        if record is None:
            record = TaskRecord(
                id=task_id,
                schedule=schedule,
                next_due_time=self.cron.next_fire_after(schedule, now),
            )
            try:
                store.insert(record)
            except TaskExistsError:
                # Another process inserted it first; reconcile against theirs.
                record = store.find_by_id(task_id)
                if record is None:
                    raise
                record = self._reconcile(store, record, schedule, now)
        else:
            record = self._reconcile(store, record, schedule, now)

        logger.info(
            "task.scheduled",
            task_id=task_id,
            schedule=record.schedule,
            next_due=self.cron.format(record.next_due_time),
            timezone=self.cron.timezone,
        )
        return record

    def _reconcile(
        self,
        store: TaskStore,
        record: TaskRecord,
        schedule: str,
        now: datetime,
    ) -> TaskRecord:
        if record.schedule == schedule:
            return record

        next_due = self.cron.next_fire_after(schedule, now)
        store.update_by_id(record.id, TaskUpdate(schedule=schedule, next_due_time=next_due))
        logger.info(
            "task.rescheduled",
            task_id=record.id,
            previous_schedule=record.schedule,
            schedule=schedule,
        )
        record.schedule = schedule
        record.next_due_time = next_due
        return record

    # === Lifecycle ===

    def start(self) -> None:
        """Start polling. A running scheduler is left as is.

        A scheduler whose backend died underneath it is restarted.
        """
        if self.is_running:
            return
        if self._running:
            logger.warning("scheduler.backend_restarted", backend=self.backend.name)

        logger.info(
            "scheduler.started",
            backend=self.backend.name,
            interval_seconds=self.settings.polling_interval_seconds,
        )
        self.backend.start(self.poll, self.settings.polling_interval_seconds)
        self._running = True

    def stop(self) -> None:
        """Stop polling. An in-flight cycle runs to completion."""
        if not self._running:
            return

        self.backend.stop()
        self._running = False
        logger.info("scheduler.stopped")

    def shutdown(self) -> None:
        """Stop polling and forget every registered worker."""
        self.stop()
        self.registry.clear()

    @property
    def is_running(self) -> bool:
        return self._running and bool(self.backend.health().get("healthy", False))

    # === Poll Cycle ===

    async def poll(self) -> TaskRecord | None:
        """Run one claim → execute → settle cycle.

        Returns:
            The claimed record (as it was right after claiming), or ``None``
            when nothing was due
        """
        self._stats.tick_count += 1
        self._stats.last_tick = self._clock()

        try:
            record = self._claim()
            if record is None:
                return None
            await self._execute(record)
            return record
        except Exception as e:
            logger.exception("poll.failed")
            self._report(e)
            return None

    def _claim(self) -> TaskRecord | None:
        task_ids = self.registry.ids()
        if not task_ids:
            return None

        try:
            store = self._require_store()
            now = self._clock()
            record = store.claim_due(task_ids, now, now - self.settings.processing_timeout)
        except Exception as e:
            logger.warning("claim.failed", error=error_message(e), retryable=is_retryable(e))
            self._report(e)
            return None

        if record is not None:
            self._stats.tasks_claimed += 1
            logger.info("task.claimed", task_id=record.id)
        return record

    async def _execute(self, record: TaskRecord) -> None:
        claimed_at = record.lease_holder_since or self._clock()
        lease = TaskLease(
            record.id,
            claimed_at,
            self._require_store(),
            self.settings.processing_timeout,
            self._clock,
        )

        try:
            worker = self.registry.get(record.id)
            if worker is None:
                raise WorkerNotFoundError(record.id)
            async with LogContext(task_id=record.id):
                output = worker(lease)
                if inspect.isawaitable(output):
                    output = await output
        except asyncio.CancelledError as e:
            # A worker awaiting a cancelled task fails like any other worker.
            self._release(record, claimed_at, e)
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            return
        except Exception as e:
            self._release(record, claimed_at, e)
            return

        self._complete(record, claimed_at, output)

    def _complete(self, record: TaskRecord, claimed_at: datetime, output: Any) -> None:
        now = self._clock()
        entry = SuccessEntry(
            claimed_at=claimed_at,
            duration_ms=_duration_ms(claimed_at, now),
            completed_at=now,
            output=None if output is None else str(output),
        )
        self._stats.tasks_completed += 1

        next_due = self._settle(
            record,
            TaskUpdate(clear_lease=True, last_completed_at=now, append_entry=entry),
            now,
        )
        if next_due is not None:
            logger.info(
                "task.completed",
                task_id=record.id,
                duration_ms=entry.duration_ms,
                next_due=self.cron.format(next_due),
            )

    def _release(self, record: TaskRecord, claimed_at: datetime, error: BaseException) -> None:
        now = self._clock()
        entry = FailureEntry(
            claimed_at=claimed_at,
            duration_ms=_duration_ms(claimed_at, now),
            failed_at=now,
            error_message=error_message(error),
        )
        self._stats.tasks_failed += 1
        self._stats.last_error = entry.error_message

        # Reported before the write so a store failure cannot hide it.
        self._report(error)

        next_due = self._settle(
            record,
            TaskUpdate(clear_lease=True, last_failed_at=now, append_entry=entry),
            now,
        )
        logger.warning(
            "task.failed",
            task_id=record.id,
            error=entry.error_message,
            category=error_category(error).value,
            duration_ms=entry.duration_ms,
            next_due=None if next_due is None else self.cron.format(next_due),
        )

    def _settle(self, record: TaskRecord, update: TaskUpdate, now: datetime) -> datetime | None:
        """Write an outcome back; returns the new due time, or None if the write failed."""
        try:
            update.next_due_time = self.cron.next_fire_after(record.schedule, now + SETTLE_OFFSET)
            self._require_store().update_by_id(record.id, update)
        except Exception as e:
            logger.warning(
                "settle.failed",
                task_id=record.id,
                error=error_message(e),
                retryable=is_retryable(e),
            )
            self._report(e)
            return None
        return update.next_due_time

    def _report(self, error: BaseException) -> None:
        self._stats.last_error = error_message(error)
        try:
            self.error_handler(error)
        except Exception:
            logger.exception("error_handler.failed")

    def _require_store(self) -> TaskStore:
        if self.store is None:
            raise MissingConfigError("task store", "No task store configured")
        return self.store

    # === Inspection ===

    def get_task(self, task_id: str) -> TaskRecord | None:
        """Read-only view of the stored record for ``task_id``."""
        return self._require_store().find_by_id(task_id)

    def health(self) -> SchedulerHealth:
        backend_health = self.backend.health()
        return SchedulerHealth(
            healthy=self._running and bool(backend_health.get("healthy", False)),
            backend=backend_health,
            tasks_registered=len(self.registry),
            store_configured=self.store is not None,
            stats=self._stats,
        )

    def get_stats(self) -> SchedulerStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = SchedulerStats()
