"""Task record models.

Manifesto:
    A task record is the unit of scheduling and leasing. Stores, the
    scheduler and tests all work with the same typed dataclasses, so the
    lease field and the bounded history mean the same thing everywhere.

One ``TaskRecord`` exists per declared task id. ``lease_holder_since``
being set is the only signal that the task is in flight. ``history`` keeps
the last ``HISTORY_LIMIT`` execution outcomes, oldest first.

Tags:
    cronlease, models, scheduling, dataclasses, lease, history

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from cronlease.core.timestamps import from_iso8601, to_iso8601

HISTORY_LIMIT = 10


# ---------------------------------------------------------------------------
# Execution outcome entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SuccessEntry:
    """Outcome of a run whose worker returned normally."""

    claimed_at: datetime
    duration_ms: int
    completed_at: datetime
    output: str | None = None


@dataclass(frozen=True)
class FailureEntry:
    """Outcome of a run whose worker raised."""

    claimed_at: datetime
    duration_ms: int
    failed_at: datetime
    error_message: str


ExecutionEntry = SuccessEntry | FailureEntry


def entry_to_dict(entry: ExecutionEntry) -> dict[str, Any]:
    """Serialize an outcome entry; the terminal key tags the variant."""
    data: dict[str, Any] = {
        "claimed_at": to_iso8601(entry.claimed_at),
        "duration_ms": entry.duration_ms,
    }
    if isinstance(entry, FailureEntry):
        data["failed_at"] = to_iso8601(entry.failed_at)
        data["error_message"] = entry.error_message
    else:
        data["completed_at"] = to_iso8601(entry.completed_at)
        if entry.output is not None:
            data["output"] = entry.output
    return data


def entry_from_dict(data: dict[str, Any]) -> ExecutionEntry:
    """Inverse of :func:`entry_to_dict`."""
    claimed_at = from_iso8601(data["claimed_at"])
    duration_ms = int(data["duration_ms"])
    if "failed_at" in data:
        return FailureEntry(
            claimed_at=claimed_at,
            duration_ms=duration_ms,
            failed_at=from_iso8601(data["failed_at"]),
            error_message=data.get("error_message", ""),
        )
    return SuccessEntry(
        claimed_at=claimed_at,
        duration_ms=duration_ms,
        completed_at=from_iso8601(data["completed_at"]),
        output=data.get("output"),
    )


def append_history(
    history: list[ExecutionEntry],
    entry: ExecutionEntry,
    limit: int = HISTORY_LIMIT,
) -> list[ExecutionEntry]:
    """Return a new history with ``entry`` appended and the oldest evicted.

    Retention is strict FIFO: after appending, entries are dropped from the
    front until at most ``limit`` remain.
    """
    updated = [*history, entry]
    if len(updated) > limit:
        updated = updated[len(updated) - limit:]
    return updated


# ---------------------------------------------------------------------------
# Task record
# ---------------------------------------------------------------------------


@dataclass
class TaskRecord:
    """Persisted state of one declared task."""

    id: str
    schedule: str
    next_due_time: datetime
    lease_holder_since: datetime | None = None
    last_failed_at: datetime | None = None
    last_completed_at: datetime | None = None
    history: list[ExecutionEntry] = field(default_factory=list)

    @property
    def in_flight(self) -> bool:
        return self.lease_holder_since is not None

    def is_claimable(self, now: datetime, stale_before: datetime) -> bool:
        """Match predicate of the claim: due, and unleased or lease stale."""
        if not self.next_due_time < now:
            return False
        return self.lease_holder_since is None or self.lease_holder_since < stale_before

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "schedule": self.schedule,
            "next_due_time": to_iso8601(self.next_due_time),
            "lease_holder_since": to_iso8601(self.lease_holder_since),
            "last_failed_at": to_iso8601(self.last_failed_at),
            "last_completed_at": to_iso8601(self.last_completed_at),
            "history": [entry_to_dict(e) for e in self.history],
        }


# ---------------------------------------------------------------------------
# Partial update
# ---------------------------------------------------------------------------


@dataclass
class TaskUpdate:
    """Partial update applied by ``TaskStore.update_by_id``.

    ``None`` fields are left untouched. ``clear_lease`` removes the lease,
    ``append_entry`` pushes one outcome onto the capped history.
    """

    schedule: str | None = None
    next_due_time: datetime | None = None
    clear_lease: bool = False
    last_completed_at: datetime | None = None
    last_failed_at: datetime | None = None
    append_entry: ExecutionEntry | None = None

    def apply(self, record: TaskRecord, history_limit: int = HISTORY_LIMIT) -> TaskRecord:
        """Mutate ``record`` in place and return it."""
        if self.schedule is not None:
            record.schedule = self.schedule
        if self.next_due_time is not None:
            record.next_due_time = self.next_due_time
        if self.clear_lease:
            record.lease_holder_since = None
        if self.last_completed_at is not None:
            record.last_completed_at = self.last_completed_at
        if self.last_failed_at is not None:
            record.last_failed_at = self.last_failed_at
        if self.append_entry is not None:
            record.history = append_history(record.history, self.append_entry, history_limit)
        return record
