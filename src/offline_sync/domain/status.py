"""Queryable synchronization status and its subscription hub."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from offline_sync.domain.model import EntityId, SyncErrorKind
    from offline_sync.domain.ports.unit_of_work import SyncUnitOfWork
    from offline_sync.domain.reconciler import SyncRun

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class ErrorSummary:
    kind: SyncErrorKind
    message: str
    occurred_at: datetime
    sequence: int | None = None
    entity_id: EntityId | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncStatus:
    """Snapshot of the outbox as the UI sees it."""

    pending_count: int
    is_syncing: bool
    last_success_at: datetime | None
    last_error: ErrorSummary | None
    needs_attention: int
    stalled: int

    @property
    def is_settled(self) -> bool:
        return self.pending_count == 0 and not self.is_syncing


type StatusListener = Callable[[SyncStatus], None]


class SyncStatusBoard:
    """Derives ``SyncStatus`` from the durable tables plus in-memory run flags."""

    def __init__(
        self,
        unit_of_work_factory: Callable[[], SyncUnitOfWork],
        *,
        stall_threshold: int = 5,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._stall_threshold = stall_threshold
        self._lock = threading.Lock()
        self._is_syncing = False
        self._last_success_at: datetime | None = None
        self._last_error: ErrorSummary | None = None
        self._listeners: list[StatusListener] = []

    def current(self) -> SyncStatus:
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            pending = repositories.outbox.count()
            attention = repositories.attention.count()
            stalled = len(repositories.outbox.stalled(self._stall_threshold))
        with self._lock:
            return SyncStatus(
                pending_count=pending,
                is_syncing=self._is_syncing,
                last_success_at=self._last_success_at,
                last_error=self._last_error,
                needs_attention=attention,
                stalled=stalled,
            )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def run_started(self) -> None:
        with self._lock:
            self._is_syncing = True
        self.touch()

    def run_finished(self, run: SyncRun) -> None:
        with self._lock:
            self._is_syncing = False
            self._last_error = run.failure
            if run.refreshed:
                self._last_success_at = run.finished_at
        self.touch()

    def touch(self) -> None:
        """Push a fresh snapshot to every subscriber."""

        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        snapshot = self.current()
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                log.exception("Status listener failed")
