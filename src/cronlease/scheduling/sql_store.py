"""SQL task store.

Manifesto:
    Cooperating scheduler processes need one place that decides who runs
    a task. A relational database already provides atomic single-statement
    updates, so the claim is one ``UPDATE ... RETURNING`` whose WHERE clause
    is the whole match predicate. Whoever's statement changes the row owns
    the lease; everyone else gets zero rows back.

Tags:
    cronlease, scheduling, store, sql, lease, atomic-claim

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  SQL TASK STORE                                                               │
│                                                                               │
│  Table (name = settings.collection_name, default "_scheduled_tasks"):        │
│   id TEXT PK │ schedule │ next_due_time │ lease_holder_since │               │
│   last_failed_at │ last_completed_at │ history (JSON text)                   │
│                                                                               │
│  Instants are fixed-width UTC ISO-8601 strings, so text comparison in SQL    │
│  is time comparison.                                                          │
│                                                                               │
│  Claim (single statement):                                                    │
│   UPDATE t SET lease_holder_since = :now                                      │
│   WHERE id = (SELECT id FROM t WHERE <predicate> LIMIT 1)                     │
│     AND <predicate>                                                           │
│   RETURNING *                                                                 │
│                                                                               │
│  The predicate is repeated on the outer UPDATE so that a writer which        │
│  lost the race re-checks the row it waited on and matches nothing.           │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import json
import re
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from cronlease.core.dialect import Dialect, get_dialect
from cronlease.core.errors import CronleaseError, StoreError, TaskExistsError
from cronlease.core.logging import get_logger
from cronlease.core.protocols import Connection
from cronlease.core.timestamps import from_iso8601, to_iso8601

from .models import (
    HISTORY_LIMIT,
    TaskRecord,
    TaskUpdate,
    append_history,
    entry_from_dict,
    entry_to_dict,
)

logger = get_logger(__name__)

_TABLE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_COLUMNS = [
    "id",
    "schedule",
    "next_due_time",
    "lease_holder_since",
    "last_failed_at",
    "last_completed_at",
    "history",
]


class SQLTaskStore:
    """Task store over a DB-API connection.

    Example:
        >>> conn = sqlite3.connect("tasks.db", check_same_thread=False)
        >>> store = SQLTaskStore(conn)
        >>> store.create_schema()
        >>> store.find_by_id("daily-job")
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        table_name: str = "_scheduled_tasks",
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        """Initialize store.

        Args:
            conn: Database connection. Shared between the declaring thread
                and the polling thread; access is serialized here.
            dialect: SQL dialect. Detected from the connection if omitted.
            table_name: Store namespace
            history_limit: Maximum outcome entries kept per task
        """
        if not _TABLE_NAME.fullmatch(table_name):
            raise ValueError(f"Invalid table name: {table_name!r}")
        self.conn = conn
        self.dialect: Dialect = dialect or get_dialect(conn)
        self.table = table_name
        self.history_limit = history_limit
        self._lock = threading.RLock()

    def _ph(self, count: int = 1) -> str:
        return self.dialect.placeholders(count)

    @contextmanager
    def _transaction(self, action: str) -> Iterator[None]:
        with self._lock:
            try:
                yield
                self.conn.commit()
            except CronleaseError:
                self._rollback()
                raise
            except Exception as e:
                self._rollback()
                raise StoreError(f"Task store {action} failed: {e}", cause=e) from e

    def _rollback(self) -> None:
        try:
            self.conn.rollback()
        except Exception:
            logger.warning("store.rollback_failed", table=self.table, exc_info=True)

    # === Schema ===

    def create_schema(self) -> None:
        """Create the task table and due-time index if missing."""
        text = self.dialect.text_type()
        with self._transaction("create_schema"):
            self.conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id {text} PRIMARY KEY,
                    schedule {text} NOT NULL,
                    next_due_time {text} NOT NULL,
                    lease_holder_since {text},
                    last_failed_at {text},
                    last_completed_at {text},
                    history {text} NOT NULL DEFAULT '[]'
                )
                """
            )
            self.conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx{self.table}_next_due "
                f"ON {self.table} (next_due_time)"
            )

    # === Store contract ===

    def find_by_id(self, task_id: str) -> TaskRecord | None:
        with self._transaction("find_by_id"):
            cursor = self.conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM {self.table} WHERE id = {self._ph()}",
                (task_id,),
            )
            row = cursor.fetchone()
        return self._row_to_record(row) if row else None

    def insert(self, record: TaskRecord) -> None:
        with self._transaction("insert"):
            cursor = self.conn.execute(
                f"""
                INSERT INTO {self.table} ({', '.join(_COLUMNS)})
                VALUES ({self._ph(len(_COLUMNS))})
                ON CONFLICT (id) DO NOTHING
                """,
                (
                    record.id,
                    record.schedule,
                    to_iso8601(record.next_due_time),
                    to_iso8601(record.lease_holder_since),
                    to_iso8601(record.last_failed_at),
                    to_iso8601(record.last_completed_at),
                    json.dumps([entry_to_dict(e) for e in record.history]),
                ),
            )
            if cursor.rowcount == 0:
                raise TaskExistsError(record.id)

    def update_by_id(self, task_id: str, update: TaskUpdate) -> None:
        set_parts: list[str] = []
        params: list[Any] = []

        if update.schedule is not None:
            set_parts.append(f"schedule = {self._ph()}")
            params.append(update.schedule)
        if update.next_due_time is not None:
            set_parts.append(f"next_due_time = {self._ph()}")
            params.append(to_iso8601(update.next_due_time))
        if update.clear_lease:
            set_parts.append("lease_holder_since = NULL")
        if update.last_completed_at is not None:
            set_parts.append(f"last_completed_at = {self._ph()}")
            params.append(to_iso8601(update.last_completed_at))
        if update.last_failed_at is not None:
            set_parts.append(f"last_failed_at = {self._ph()}")
            params.append(to_iso8601(update.last_failed_at))

        with self._transaction("update_by_id"):
            if update.append_entry is not None:
                cursor = self.conn.execute(
                    f"SELECT history FROM {self.table} WHERE id = {self._ph()}",
                    (task_id,),
                )
                row = cursor.fetchone()
                if row is None:
                    return
                history = [entry_from_dict(d) for d in json.loads(row[0] or "[]")]
                history = append_history(history, update.append_entry, self.history_limit)
                set_parts.append(f"history = {self._ph()}")
                params.append(json.dumps([entry_to_dict(e) for e in history]))

            if not set_parts:
                return

            params.append(task_id)
            self.conn.execute(
                f"UPDATE {self.table} SET {', '.join(set_parts)} WHERE id = {self._ph()}",
                params,
            )

    def claim_due(
        self,
        task_ids: Sequence[str],
        now: datetime,
        stale_before: datetime,
    ) -> TaskRecord | None:
        if not task_ids:
            return None

        now_iso = to_iso8601(now)
        stale_iso = to_iso8601(stale_before)
        ph = self._ph()
        predicate = (
            f"next_due_time < {ph} "
            f"AND (lease_holder_since IS NULL OR lease_holder_since < {ph})"
        )

        with self._transaction("claim_due"):
            cursor = self.conn.execute(
                f"""
                UPDATE {self.table} SET lease_holder_since = {ph}
                WHERE id = (
                    SELECT id FROM {self.table}
                    WHERE id IN ({self._ph(len(task_ids))}) AND {predicate}
                    LIMIT 1
                ) AND {predicate}
                RETURNING {', '.join(_COLUMNS)}
                """,
                (now_iso, *task_ids, now_iso, stale_iso, now_iso, stale_iso),
            )
            # Drain RETURNING rows so the statement is finished before commit.
            rows = cursor.fetchall()
            row = rows[0] if rows else None

        if row is None:
            return None
        logger.debug("store.claimed", task_id=row[0], table=self.table)
        return self._row_to_record(row)

    def renew_lease(
        self,
        task_id: str,
        now: datetime,
        stale_before: datetime,
    ) -> TaskRecord | None:
        ph = self._ph()
        with self._transaction("renew_lease"):
            cursor = self.conn.execute(
                f"""
                UPDATE {self.table} SET lease_holder_since = {ph}
                WHERE id = {ph} AND lease_holder_since > {ph}
                RETURNING {', '.join(_COLUMNS)}
                """,
                (to_iso8601(now), task_id, to_iso8601(stale_before)),
            )
            rows = cursor.fetchall()
            row = rows[0] if rows else None

        if row is None:
            return None
        return self._row_to_record(row)

    # === Administration ===

    def delete(self, task_id: str) -> bool:
        """Administrative removal; the scheduler never calls this."""
        with self._transaction("delete"):
            cursor = self.conn.execute(
                f"DELETE FROM {self.table} WHERE id = {self._ph()}",
                (task_id,),
            )
            return cursor.rowcount > 0

    def list_all(self) -> list[TaskRecord]:
        with self._transaction("list_all"):
            cursor = self.conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM {self.table} ORDER BY id"
            )
            rows = cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    # === Private Helpers ===

    def _row_to_record(self, row: Sequence[Any]) -> TaskRecord:
        data = dict(zip(_COLUMNS, row, strict=False))
        return TaskRecord(
            id=data["id"],
            schedule=data["schedule"],
            next_due_time=from_iso8601(data["next_due_time"]),
            lease_holder_since=from_iso8601(data["lease_holder_since"]),
            last_failed_at=from_iso8601(data["last_failed_at"]),
            last_completed_at=from_iso8601(data["last_completed_at"]),
            history=[entry_from_dict(d) for d in json.loads(data["history"] or "[]")],
        )
