"""Primary store reachability tracking and the reconnect loop."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol

from .primary import PrimaryUnavailableError, SQLiteRecordStore


LOGGER = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def _thread_timer(interval: float, callback: Callable[[], None]) -> Timer:
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    timer.name = "primary-reconnect"
    return timer


class ConnectivityMonitor:
    """Own the "is the primary store reachable" flag.

    The flag follows the store's connection-state signal. Whenever it drops to
    unreachable a reconnect is scheduled after ``reconnect_interval`` seconds,
    and failed attempts reschedule themselves without limit.
    """

    def __init__(
        self,
        store: SQLiteRecordStore,
        *,
        reconnect_interval: float = 5.0,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self._store = store
        self._reconnect_interval = float(reconnect_interval)
        self._timer_factory: TimerFactory = timer_factory or _thread_timer
        self._lock = threading.Lock()
        self._reachable = False
        self._pending: Optional[Timer] = None
        self._stopped = False
        self._attempts = 0
        self._last_change: Optional[float] = None
        self._last_error: Optional[str] = None
        store.add_state_listener(self._on_state_change)

    def is_reachable(self) -> bool:
        return self._reachable

    @property
    def reconnect_pending(self) -> bool:
        return self._pending is not None

    def status(self) -> Dict[str, Any]:
        return {
            "reachable": self._reachable,
            "reconnectPending": self._pending is not None,
            "reconnectAttempts": self._attempts,
            "lastChange": self._last_change,
            "lastError": self._last_error,
        }

    def start(self) -> bool:
        """Make the initial connection attempt; schedule retries on failure."""

        with self._lock:
            self._stopped = False
        LOGGER.info("Attempting primary store connection at %s", self._store.database_file)
        try:
            self._store.connect()
        except PrimaryUnavailableError as error:
            self._last_error = str(error)
            LOGGER.error("Primary store connection failed: %s", error)
            self._schedule_reconnect()
            return False
        return True

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            timer = self._pending
            self._pending = None
        if timer is not None:
            timer.cancel()

    def _on_state_change(self, connected: bool) -> None:
        self._reachable = connected
        self._last_change = time.time()
        if connected:
            self._last_error = None
            LOGGER.info("Primary store connected")
            return
        LOGGER.warning(
            "Primary store disconnected; reconnecting in %.1f seconds",
            self._reconnect_interval,
        )
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        with self._lock:
            if self._stopped or self._pending is not None:
                return
            timer = self._timer_factory(self._reconnect_interval, self._reconnect)
            self._pending = timer
        timer.start()

    def _reconnect(self) -> None:
        with self._lock:
            self._pending = None
            if self._stopped:
                return
            self._attempts += 1
            attempt = self._attempts
        LOGGER.info("Reconnecting to primary store (attempt %s)", attempt)
        try:
            self._store.connect()
        except PrimaryUnavailableError as error:
            self._last_error = str(error)
            LOGGER.warning(
                "Primary store reconnect failed: %s; retrying in %.1f seconds",
                error,
                self._reconnect_interval,
            )
            self._schedule_reconnect()


__all__ = ["ConnectivityMonitor", "TimerFactory"]
