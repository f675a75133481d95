"""Lease handle passed to task workers.

A worker receives a ``TaskLease`` and nothing else: no record, no store.
The only operation it offers is ``renew_lease()``, which pushes the
staleness clock forward for long-running work.

Cancellation is cooperative. There is no preemptive termination of a
worker; when renewal fails with ``LeaseExpiredError`` the worker is
expected to stop. A worker that never renews and runs past the processing
timeout may race with another process that reclaimed the task.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from cronlease.core.errors import LeaseExpiredError
from cronlease.core.logging import get_logger

if TYPE_CHECKING:
    from .store import TaskStore

logger = get_logger(__name__)


class TaskLease:
    """Capability to extend one task's lease.

    Example:
        >>> async def crunch(lease: TaskLease) -> str:
        ...     for chunk in chunks:
        ...         process(chunk)
        ...         await lease.renew_lease()
        ...     return "ok"
    """

    __slots__ = ("_task_id", "_claimed_at", "_store", "_timeout", "_clock")

    def __init__(
        self,
        task_id: str,
        claimed_at: datetime,
        store: TaskStore,
        processing_timeout: timedelta,
        clock: Callable[[], datetime],
    ) -> None:
        self._task_id = task_id
        self._claimed_at = claimed_at
        self._store = store
        self._timeout = processing_timeout
        self._clock = clock

    @property
    def task_id(self) -> str:
        return self._task_id

    @property
    def claimed_at(self) -> datetime:
        return self._claimed_at

    async def renew_lease(self) -> None:
        """Signal progress and extend the lease.

        Raises:
            LeaseExpiredError: The lease already aged past the processing
                timeout (and may have been reclaimed elsewhere).
        """
        now = self._clock()
        renewed = self._store.renew_lease(self._task_id, now, now - self._timeout)
        if renewed is None:
            logger.warning("lease.expired", task_id=self._task_id)
            raise LeaseExpiredError(self._task_id)
        logger.debug("lease.renewed", task_id=self._task_id)

    def __repr__(self) -> str:
        return f"TaskLease(task_id={self._task_id!r}, claimed_at={self._claimed_at.isoformat()})"
