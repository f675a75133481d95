"""
Connection protocol for SQL-backed task stores.

``SQLTaskStore`` depends on the shape of a DB-API connection, not on a
concrete driver. ``sqlite3.Connection`` satisfies it natively; other
drivers can be wrapped in a thin adapter exposing the same methods.

Architecture:
    ::

        Connection Protocol:
        ┌────────────────────────────────────────────────────────┐
        │ execute(sql, params)   → cursor                        │
        │ commit()               → Commit transaction            │
        │ rollback()             → Rollback transaction          │
        └────────────────────────────────────────────────────────┘

Tags:
    protocol, connection, database, cronlease
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """Minimal synchronous connection interface used by the SQL store.

    Examples:
        >>> def count_tasks(conn: Connection, table: str) -> int:
        ...     return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    """

    def execute(self, sql: str, params: Any = ()) -> Any:
        """Execute SQL statement with optional parameters; return a cursor."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...
