"""Online/offline tracking with debounced transition events."""

from __future__ import annotations

import threading
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


class ConnectivityEvent(StrEnum):
    BECAME_ONLINE = "became_online"
    BECAME_OFFLINE = "became_offline"


type ConnectivityListener = Callable[[ConnectivityEvent], None]


class CancellableTimer(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


type TimerFactory = Callable[[float, Callable[[], None]], CancellableTimer]


class ConnectivityMonitor:
    """Tracks the effective link state and announces transitions.

    The effective state is the platform signal masked by a manual offline
    override. ``BECAME_ONLINE`` is announced once per offline-to-online
    transition after the state has held for ``debounce_seconds``;
    ``BECAME_OFFLINE`` is announced immediately.
    """

    def __init__(
        self,
        *,
        initially_online: bool,
        debounce_seconds: float = 1.0,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self._lock = threading.RLock()
        self._platform_online = initially_online
        self._forced_offline = False
        self._announced_online = initially_online
        self._debounce_seconds = debounce_seconds
        self._timer_factory = timer_factory
        self._pending: CancellableTimer | None = None
        self._generation = 0
        self._listeners: list[ConnectivityListener] = []
        self._closed = False

    def is_online(self) -> bool:
        with self._lock:
            return self._effective()

    @property
    def forced_offline(self) -> bool:
        return self._forced_offline

    def on_platform_change(self, online: bool) -> None:
        with self._lock:
            if online == self._platform_online:
                return
            self._platform_online = online
            log.debug("Platform connectivity changed: online=%s", online)
        self._reevaluate()

    def force_offline(self) -> None:
        with self._lock:
            self._forced_offline = True
        self._reevaluate()

    def clear_override(self) -> None:
        with self._lock:
            self._forced_offline = False
        self._reevaluate()

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._cancel_pending()
            self._listeners.clear()

    def _effective(self) -> bool:
        return self._platform_online and not self._forced_offline

    def _cancel_pending(self) -> None:
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _reevaluate(self) -> None:
        emit: ConnectivityEvent | None = None
        with self._lock:
            if self._closed:
                return
            online = self._effective()
            if not online:
                self._cancel_pending()
                if self._announced_online:
                    self._announced_online = False
                    emit = ConnectivityEvent.BECAME_OFFLINE
            elif self._announced_online:
                self._cancel_pending()
            elif self._debounce_seconds <= 0:
                self._announced_online = True
                emit = ConnectivityEvent.BECAME_ONLINE
            else:
                self._cancel_pending()
                generation = self._generation
                timer = self._timer_factory(
                    self._debounce_seconds, lambda: self._settle(generation)
                )
                timer.daemon = True
                self._pending = timer
                timer.start()
        if emit is not None:
            self._emit(emit)

    def _settle(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._generation:
                return
            self._pending = None
            if not self._effective() or self._announced_online:
                return
            self._announced_online = True
        self._emit(ConnectivityEvent.BECAME_ONLINE)

    def _emit(self, event: ConnectivityEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        log.info("Connectivity: %s", event)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                log.exception("Connectivity listener failed for %s", event)


class ConnectivityPoller:
    """Samples a connectivity probe on a background thread and feeds a monitor."""

    def __init__(
        self,
        probe: Callable[[], bool],
        monitor: ConnectivityMonitor,
        *,
        interval: float,
    ) -> None:
        if interval <= 0:
            raise ValueError("Poll interval must be positive")
        self._probe = probe
        self._monitor = monitor
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> bool:
        online = self._probe()
        self._monitor.on_platform_change(online)
        return online

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="offline-sync-connectivity", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while True:
            try:
                self.poll_once()
            except Exception:
                log.exception("Connectivity probe failed")
            if self._stop.wait(self._interval):
                return
