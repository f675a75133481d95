"""SQL dialect abstraction for the task store.

The SQL store builds its statements through a ``Dialect`` so the same
claim/renew/settle queries run on SQLite and PostgreSQL. Only the
fragments the store needs are modelled here: parameter placeholders and
the column type used for JSON history.

Both supported backends accept ``UPDATE ... RETURNING`` (SQLite 3.35+),
which is what makes the claim a single atomic statement.

Tags:
    dialect, sql, sqlite, postgresql, cronlease
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL fragment generator used by ``SQLTaskStore``."""

    @property
    def name(self) -> str: ...

    def placeholder(self, index: int) -> str: ...

    def placeholders(self, count: int) -> str: ...

    def text_type(self) -> str: ...


class SQLiteDialect:
    """SQLite dialect using ``?`` placeholders."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def text_type(self) -> str:
        return "TEXT"


class PostgreSQLDialect:
    """PostgreSQL dialect using ``%s`` placeholders (psycopg-style)."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def text_type(self) -> str:
        return "TEXT"


_DIALECTS: dict[str, type] = {
    "sqlite": SQLiteDialect,
    "sqlite3": SQLiteDialect,
    "postgresql": PostgreSQLDialect,
    "postgres": PostgreSQLDialect,
    "psycopg": PostgreSQLDialect,
    "psycopg2": PostgreSQLDialect,
}


def get_dialect(conn: Any) -> Dialect:
    """Pick a dialect from the connection's driver module.

    Falls back to SQLite, the only driver shipped with Python.
    """
    module = type(conn).__module__.split(".")[0].lower()
    return _DIALECTS.get(module, SQLiteDialect)()
