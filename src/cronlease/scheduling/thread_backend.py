"""Thread-driven polling backend.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD POLLING BACKEND                                                       │
│                                                                               │
│   start()                                                                     │
│      │                                                                        │
│      ▼                                                                        │
│   daemon thread "cronlease-poller"                                            │
│      while not stop_event.wait(interval):                                     │
│          tick_count += 1                                                      │
│          asyncio.run(tick_callback())      ◄── awaited to completion         │
│                                                                               │
│   stop()                                                                      │
│      stop_event.set()        no new cycle is armed                            │
│      thread.join(timeout)    the in-flight cycle runs to completion          │
│                                                                               │
│  The wait happens after each callback returns, so one process never has      │
│  two cycles in flight. A restart whose predecessor outlived join_timeout     │
│  joins that thread before its first cycle.                                   │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime
from typing import Any

from cronlease.core.logging import get_logger

from .protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class ThreadPollingBackend:
    """Daemon-thread timer for poll cycles.

    Example:
        >>> backend = ThreadPollingBackend()
        >>> backend.start(scheduler.poll, interval_seconds=1.0)
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self, join_timeout: float | None = 5.0) -> None:
        """Initialize backend.

        Args:
            join_timeout: Seconds ``stop()`` waits for an in-flight cycle.
                ``None`` waits indefinitely.
        """
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._previous: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float = 1.0
        self._join_timeout = join_timeout
        self._lock = threading.Lock()

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 1.0,
    ) -> None:
        with self._lock:
            if self.is_running:
                logger.debug("poller.already_running")
                return

            self._interval = interval_seconds
            self._stop_event = threading.Event()
            stop_event = self._stop_event
            previous = self._previous or self._thread
            self._previous = None

            def _loop() -> None:
                if previous is not None:
                    if previous.is_alive():
                        logger.info("poller.awaiting_previous", thread=previous.name)
                    previous.join()
                logger.info("poller.started", interval_seconds=interval_seconds)
                while not stop_event.wait(interval_seconds):
                    with self._lock:
                        self._tick_count += 1
                        self._last_tick = datetime.now(UTC)
                    try:
                        asyncio.run(tick_callback())
                    except (KeyboardInterrupt, SystemExit):
                        raise
                    except BaseException:
                        logger.exception("poller.tick_failed")
                logger.info("poller.stopped")

            self._thread = threading.Thread(target=_loop, daemon=True, name="cronlease-poller")
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            self._thread = None
            self._previous = thread

        # A worker may call stop() from inside the polling thread.
        if thread is threading.current_thread():
            return
        thread.join(timeout=self._join_timeout)
        if thread.is_alive():
            logger.warning("poller.stop_timeout", join_timeout=self._join_timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            extra={"interval_seconds": self._interval},
        )
