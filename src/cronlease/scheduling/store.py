"""Task store contract and in-memory implementation.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TASK STORE CONTRACT                                                          │
│                                                                               │
│  The store is the only shared mutable resource between scheduler             │
│  processes. All cross-process mutual exclusion rests on claim_due() being    │
│  a single atomic match-then-mutate.                                          │
│                                                                               │
│   find_by_id(id)                         → TaskRecord | None                  │
│   insert(record)                         → None   (TaskExistsError on dup)    │
│   update_by_id(id, TaskUpdate)           → None                               │
│   claim_due(ids, now, stale_before)      → TaskRecord | None   (atomic)       │
│   renew_lease(id, now, stale_before)     → TaskRecord | None   (conditional)  │
│                                                                               │
│  Claim match predicate:                                                       │
│     id IN ids                                                                 │
│     AND next_due_time < now                                                   │
│     AND (lease_holder_since IS NULL OR lease_holder_since < stale_before)    │
│  Mutation: lease_holder_since = now. Returns the record after mutation.      │
│                                                                               │
│  Renew match predicate:                                                       │
│     id = :id AND lease_holder_since > stale_before                            │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from cronlease.core.errors import TaskExistsError

from .models import HISTORY_LIMIT, TaskRecord, TaskUpdate


@runtime_checkable
class TaskStore(Protocol):
    """Durable storage for task records.

    Implementations:
        - InMemoryTaskStore: process-local, lock-guarded (tests, single process)
        - SQLTaskStore: any DB-API connection with UPDATE ... RETURNING
    """

    def find_by_id(self, task_id: str) -> TaskRecord | None:
        """Point lookup by task id."""
        ...

    def insert(self, record: TaskRecord) -> None:
        """Insert a new record. Raises TaskExistsError if the id is taken."""
        ...

    def update_by_id(self, task_id: str, update: TaskUpdate) -> None:
        """Apply a partial update to one record."""
        ...

    def claim_due(
        self,
        task_ids: Sequence[str],
        now: datetime,
        stale_before: datetime,
    ) -> TaskRecord | None:
        """Atomically claim one due, unleased (or stale) record."""
        ...

    def renew_lease(
        self,
        task_id: str,
        now: datetime,
        stale_before: datetime,
    ) -> TaskRecord | None:
        """Extend a live lease; None when the lease is gone or stale."""
        ...


class InMemoryTaskStore:
    """Lock-guarded dictionary store.

    Several schedulers sharing one instance behave like cooperating
    processes sharing a database: the lock makes each claim atomic.
    Records handed out are copies, so callers never alias stored state.

    Example:
        >>> store = InMemoryTaskStore()
        >>> store.insert(TaskRecord(id="a", schedule="* * * * *", next_due_time=now))
        >>> store.claim_due(["a"], later, later - timeout).lease_holder_since == later
        True
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self._records: dict[str, TaskRecord] = {}
        self._lock = threading.Lock()
        self.history_limit = history_limit

    def find_by_id(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            record = self._records.get(task_id)
            return copy.deepcopy(record) if record else None

    def insert(self, record: TaskRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise TaskExistsError(record.id)
            self._records[record.id] = copy.deepcopy(record)

    def update_by_id(self, task_id: str, update: TaskUpdate) -> None:
        with self._lock:
            record = self._records.get(task_id)
            if record is not None:
                update.apply(record, self.history_limit)

    def claim_due(
        self,
        task_ids: Sequence[str],
        now: datetime,
        stale_before: datetime,
    ) -> TaskRecord | None:
        if not task_ids:
            return None
        wanted = set(task_ids)
        with self._lock:
            # Insertion order is the natural selection order.
            for record in self._records.values():
                if record.id in wanted and record.is_claimable(now, stale_before):
                    record.lease_holder_since = now
                    return copy.deepcopy(record)
        return None

    def renew_lease(
        self,
        task_id: str,
        now: datetime,
        stale_before: datetime,
    ) -> TaskRecord | None:
        with self._lock:
            record = self._records.get(task_id)
            if record is None or record.lease_holder_since is None:
                return None
            if not record.lease_holder_since > stale_before:
                return None
            record.lease_holder_since = now
            return copy.deepcopy(record)

    def delete(self, task_id: str) -> bool:
        """Administrative removal; the scheduler never calls this."""
        with self._lock:
            return self._records.pop(task_id, None) is not None

    def list_all(self) -> list[TaskRecord]:
        with self._lock:
            return [copy.deepcopy(self._records[k]) for k in sorted(self._records)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
