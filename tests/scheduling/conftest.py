"""Pytest fixtures for scheduling tests."""

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from cronlease.core.settings import SchedulerSettings
from cronlease.scheduling import InMemoryTaskStore, SQLTaskStore, TaskScheduler


class FakeClock:
    """Controllable time source; tests move it instead of sleeping."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, instant: datetime) -> None:
        self.now = instant


class ManualBackend:
    """Backend that never ticks on its own; tests call ``poll()`` directly."""

    name = "manual"

    def __init__(self):
        self.callback = None
        self.interval_seconds = None
        self.start_calls = 0
        self.stop_calls = 0

    def start(self, tick_callback, interval_seconds=1.0):
        self.start_calls += 1
        self.callback = tick_callback
        self.interval_seconds = interval_seconds

    def stop(self):
        self.stop_calls += 1
        self.callback = None

    def health(self):
        return {
            "healthy": self.callback is not None,
            "backend": self.name,
            "tick_count": 0,
            "last_tick": None,
        }


@pytest.fixture
def t0():
    """2025-02-01T00:00:00Z, the reference instant for scenarios."""
    return datetime(2025, 2, 1, tzinfo=UTC)


@pytest.fixture
def clock(t0):
    return FakeClock(t0)


@pytest.fixture
def settings():
    return SchedulerSettings(
        polling_interval_ms=1000,
        processing_timeout_ms=60_000,
        timezone="UTC",
        _env_file=None,
    )


@pytest.fixture
def memory_store():
    return InMemoryTaskStore()


@pytest.fixture
def db_conn():
    """In-memory SQLite connection usable from the polling thread."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    yield conn
    conn.close()


@pytest.fixture
def sql_store(db_conn):
    store = SQLTaskStore(db_conn)
    store.create_schema()
    return store


@pytest.fixture
def reported():
    """Errors routed to the scheduler's error handler."""
    return []


@pytest.fixture
def make_scheduler(settings, clock, reported):
    """Build schedulers sharing the fixture clock and error list."""
    created = []

    def _make(store, **overrides):
        kwargs = {
            "settings": settings,
            "error_handler": reported.append,
            "backend": ManualBackend(),
            "clock": clock,
        }
        kwargs.update(overrides)
        scheduler = TaskScheduler(store, **kwargs)
        created.append(scheduler)
        return scheduler

    yield _make

    for scheduler in created:
        scheduler.shutdown()


@pytest.fixture
def scheduler(make_scheduler, memory_store):
    return make_scheduler(memory_store)
