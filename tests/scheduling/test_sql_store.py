"""Tests for SQLTaskStore specifics."""

import json
import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from cronlease.core.dialect import PostgreSQLDialect, SQLiteDialect, get_dialect
from cronlease.core.errors import StoreError
from cronlease.scheduling import SQLTaskStore, SuccessEntry, TaskRecord, TaskUpdate

T0 = datetime(2025, 2, 1, tzinfo=UTC)
TIMEOUT = timedelta(seconds=60)


def _record(task_id="daily-job") -> TaskRecord:
    return TaskRecord(id=task_id, schedule="0 5 * * *", next_due_time=T0)


class TestSchema:
    """Test table creation."""

    def test_create_schema_idempotent(self, sql_store):
        """Creating the schema twice is harmless."""
        sql_store.create_schema()
        sql_store.insert(_record())
        sql_store.create_schema()
        assert sql_store.find_by_id("daily-job") is not None

    def test_custom_table_name(self, db_conn):
        """The namespace becomes the table name."""
        store = SQLTaskStore(db_conn, table_name="billing_tasks")
        store.create_schema()
        store.insert(_record())

        count = db_conn.execute("SELECT COUNT(*) FROM billing_tasks").fetchone()[0]
        assert count == 1

    @pytest.mark.parametrize("name", ["", "1tasks", "tasks; DROP TABLE x", "my-tasks"])
    def test_invalid_table_name(self, db_conn, name):
        """Names that are not plain identifiers are rejected."""
        with pytest.raises(ValueError):
            SQLTaskStore(db_conn, table_name=name)


class TestEncoding:
    """Test persisted column formats."""

    def test_instants_stored_fixed_width(self, sql_store, db_conn):
        """Instants are stored as fixed-width UTC text."""
        sql_store.insert(_record())
        stored = db_conn.execute(
            "SELECT next_due_time FROM _scheduled_tasks WHERE id = ?", ("daily-job",)
        ).fetchone()[0]
        assert stored == "2025-02-01T00:00:00.000000+00:00"

    def test_history_stored_as_json(self, sql_store, db_conn):
        """History is a JSON array of outcome dicts."""
        sql_store.insert(_record())
        entry = SuccessEntry(claimed_at=T0, duration_ms=12, completed_at=T0, output="done")
        sql_store.update_by_id("daily-job", TaskUpdate(append_entry=entry))

        raw = db_conn.execute(
            "SELECT history FROM _scheduled_tasks WHERE id = ?", ("daily-job",)
        ).fetchone()[0]
        assert json.loads(raw)[0]["output"] == "done"


class TestMultipleConnections:
    """Test coordination between separate connections to one database."""

    def test_only_one_connection_claims(self, tmp_path):
        """Two processes' claims on one due task yield a single winner."""
        path = tmp_path / "tasks.db"
        conn_a = sqlite3.connect(path, check_same_thread=False)
        conn_b = sqlite3.connect(path, check_same_thread=False)
        try:
            store_a = SQLTaskStore(conn_a)
            store_b = SQLTaskStore(conn_b)
            store_a.create_schema()
            store_a.insert(_record())

            now = T0 + timedelta(seconds=1)
            first = store_a.claim_due(["daily-job"], now, now - TIMEOUT)
            second = store_b.claim_due(["daily-job"], now, now - TIMEOUT)

            assert first is not None
            assert second is None
            assert store_b.find_by_id("daily-job").lease_holder_since == now
        finally:
            conn_a.close()
            conn_b.close()


class TestErrors:
    """Test driver error wrapping."""

    def test_driver_error_wrapped(self, db_conn):
        """Driver failures surface as StoreError with the cause attached."""
        store = SQLTaskStore(db_conn, table_name="never_created")
        with pytest.raises(StoreError) as exc_info:
            store.find_by_id("daily-job")
        assert isinstance(exc_info.value.cause, sqlite3.OperationalError)
        assert exc_info.value.retryable is True

    def test_closed_connection(self):
        """A closed connection still raises StoreError."""
        conn = sqlite3.connect(":memory:")
        store = SQLTaskStore(conn)
        store.create_schema()
        conn.close()

        with pytest.raises(StoreError):
            store.find_by_id("daily-job")


class TestAdministration:
    """Test list and delete helpers."""

    def test_list_all_sorted(self, sql_store):
        """list_all returns every record ordered by id."""
        sql_store.insert(_record("b"))
        sql_store.insert(_record("a"))
        assert [r.id for r in sql_store.list_all()] == ["a", "b"]

    def test_delete(self, sql_store):
        """delete reports whether a row was removed."""
        sql_store.insert(_record())
        assert sql_store.delete("daily-job") is True
        assert sql_store.delete("daily-job") is False


class TestDialect:
    """Test dialect detection."""

    def test_sqlite_detected(self, db_conn):
        """sqlite3 connections get the SQLite dialect."""
        assert isinstance(get_dialect(db_conn), SQLiteDialect)

    def test_unknown_driver_defaults_to_sqlite(self):
        """Unknown drivers fall back to SQLite placeholders."""
        assert isinstance(get_dialect(object()), SQLiteDialect)

    def test_postgres_placeholders(self):
        """PostgreSQL uses psycopg-style placeholders."""
        assert PostgreSQLDialect().placeholders(3) == "%s, %s, %s"
        assert SQLiteDialect().placeholders(2) == "?, ?"
