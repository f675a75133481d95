"""Polling backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  POLLING BACKEND PROTOCOL                                                     │
│                                                                               │
│  A backend decides WHEN a poll cycle runs; TaskScheduler decides WHAT a      │
│  cycle does (claim, execute, settle).                                        │
│                                                                               │
│   ┌─────────────────┐    poll()     ┌──────────────────────────────┐        │
│   │  Thread Backend │ ────────────► │  TaskScheduler               │        │
│   │  (default)      │               │   - claim one due task       │        │
│   └─────────────────┘               │   - run its worker           │        │
│                                     │   - complete / release       │        │
│                                     └──────────────────────────────┘        │
│                                                                               │
│  Cycles never overlap within one backend: the next cycle is armed only      │
│  after the previous callback has returned.                                  │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Awaitable[Any]]


@runtime_checkable
class PollingBackend(Protocol):
    """Timing source for poll cycles.

    Implementations:
        - ThreadPollingBackend: daemon thread, one event loop per cycle

    Example (custom backend):
        >>> class ManualBackend:
        ...     name = "manual"
        ...
        ...     def start(self, tick_callback, interval_seconds=1.0):
        ...         self.callback = tick_callback
        ...
        ...     def stop(self):
        ...         self.callback = None
        ...
        ...     def health(self) -> dict:
        ...         return {"healthy": self.callback is not None, "backend": "manual"}
    """

    name: str

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 1.0,
    ) -> None:
        """Begin invoking ``tick_callback`` every ``interval_seconds``.

        Starting a running backend is a no-op.
        """
        ...

    def stop(self) -> None:
        """Stop arming new cycles; an in-flight cycle is allowed to finish."""
        ...

    def health(self) -> dict[str, Any]:
        """Return at least ``healthy``, ``backend``, ``tick_count``, ``last_tick``."""
        ...


@dataclass
class BackendHealth:
    """Structured backend health."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            **self.extra,
        }
