"""Task registry.

Maps task ids to the worker callables registered in this process. Each
``TaskScheduler`` owns one registry: ``declare`` populates it, every poll
cycle reads its ids to scope the claim, and ``shutdown`` clears it. The
registry is process-private and is only touched from the scheduler's own
threads, so it carries no lock.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .lease import TaskLease

TaskWorker = Callable[["TaskLease"], "str | None | Awaitable[str | None]"]


class TaskRegistry:
    """Explicit task id → worker mapping.

    Example:
        >>> registry = TaskRegistry()
        >>> registry.register("daily-job", lambda lease: "done")
        >>> "daily-job" in registry
        True
    """

    def __init__(self) -> None:
        self._workers: dict[str, TaskWorker] = {}

    def register(self, task_id: str, worker: TaskWorker) -> None:
        """Register ``worker`` under ``task_id``, replacing any earlier one."""
        if not callable(worker):
            raise TypeError(f"Worker for task {task_id!r} must be callable")
        self._workers[task_id] = worker

    def unregister(self, task_id: str) -> bool:
        return self._workers.pop(task_id, None) is not None

    def get(self, task_id: str) -> TaskWorker | None:
        return self._workers.get(task_id)

    def ids(self) -> list[str]:
        """Snapshot of registered ids, in registration order."""
        return list(self._workers)

    def clear(self) -> None:
        self._workers.clear()

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._workers

    def __len__(self) -> int:
        return len(self._workers)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())
