"""Write path and sync triggering exposed to the UI layer."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Self

from offline_sync.domain.connectivity import ConnectivityEvent
from offline_sync.domain.errors import EntityNotFoundError
from offline_sync.domain.model import Entity, EntityId, MutationAction, clean_record

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from types import TracebackType

    from offline_sync.domain.connectivity import ConnectivityMonitor
    from offline_sync.domain.model import AttentionItem, JSONValue, OutboxEntry
    from offline_sync.domain.ports.unit_of_work import SyncUnitOfWork
    from offline_sync.domain.reconciler import SyncReconciler, SyncRun
    from offline_sync.domain.status import StatusListener, SyncStatus, SyncStatusBoard

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OfflineSyncService:
    """Optimistic local writes backed by the outbox, plus background sync.

    Each write stores the new local state and its outbox intent in a single
    transaction. Synchronization runs on one worker thread; requests made
    while a run is queued share that run.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], SyncUnitOfWork],
        reconciler: SyncReconciler,
        connectivity: ConnectivityMonitor,
        status: SyncStatusBoard,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._reconciler = reconciler
        self._connectivity = connectivity
        self._status = status
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="offline-sync")
        self._trigger_lock = threading.Lock()
        self._queued: Future[SyncRun | None] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False

    @property
    def connectivity(self) -> ConnectivityMonitor:
        return self._connectivity

    # write path -----------------------------------------------------------

    def create(self, data: Mapping[str, JSONValue]) -> Entity:
        entity = Entity(id=EntityId.mint_temporary(), data=clean_record(data))
        with self._unit_of_work_factory() as uow:
            uow.repositories.entities.put(entity)
            uow.repositories.outbox.enqueue(
                MutationAction.CREATE,
                entity.id,
                dict(entity.data),
                enqueued_at=self._clock(),
            )
            uow.commit()
        log.debug("Queued create for %s", entity.id)
        self._after_write()
        return entity

    def update(self, entity_id: EntityId, changes: Mapping[str, JSONValue]) -> Entity:
        with self._unit_of_work_factory() as uow:
            current = uow.repositories.entities.get(entity_id)
            if current is None:
                raise EntityNotFoundError(entity_id)
            updated = current.merged(changes)
            uow.repositories.entities.put(updated)
            uow.repositories.outbox.enqueue(
                MutationAction.UPDATE,
                entity_id,
                dict(updated.data),
                enqueued_at=self._clock(),
            )
            uow.commit()
        log.debug("Queued update for %s", entity_id)
        self._after_write()
        return updated

    def delete(self, entity_id: EntityId) -> None:
        with self._unit_of_work_factory() as uow:
            if uow.repositories.entities.get(entity_id) is None:
                raise EntityNotFoundError(entity_id)
            uow.repositories.entities.delete(entity_id)
            uow.repositories.outbox.enqueue(
                MutationAction.DELETE,
                entity_id,
                {},
                enqueued_at=self._clock(),
            )
            uow.commit()
        log.debug("Queued delete for %s", entity_id)
        self._after_write()

    # reads ----------------------------------------------------------------

    def get(self, entity_id: EntityId) -> Entity | None:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.entities.get(entity_id)

    def list_entities(self) -> list[Entity]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.entities.list_all()

    def pending_entries(self) -> list[OutboxEntry]:
        with self._unit_of_work_factory() as uow:
            return list(uow.repositories.outbox.peek_ordered())

    def attention_items(self) -> list[AttentionItem]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.attention.list_all()

    def acknowledge(self, sequence: int) -> bool:
        """Dismiss an attention item; ``False`` when there was none."""

        with self._unit_of_work_factory() as uow:
            dismissed = uow.repositories.attention.dismiss(sequence)
            uow.commit()
        if dismissed:
            self._status.touch()
        return dismissed

    # status ---------------------------------------------------------------

    def get_status(self) -> SyncStatus:
        return self._status.current()

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        return self._status.subscribe(listener)

    # synchronization ------------------------------------------------------

    def trigger_sync(self) -> Future[SyncRun | None]:
        """Request a background run; failures surface through the status only."""

        with self._trigger_lock:
            if self._closed:
                skipped: Future[SyncRun | None] = Future()
                skipped.set_result(None)
                return skipped
            queued = self._queued
            if queued is not None and not queued.running() and not queued.done():
                return queued
            future = self._executor.submit(self._run_in_background)
            self._queued = future
            return future

    def sync_now(self) -> SyncRun | None:
        return self._reconciler.run()

    def start(self) -> None:
        """Follow connectivity and push anything already queued."""

        if self._unsubscribe is None:
            self._unsubscribe = self._connectivity.subscribe(self._on_connectivity)
        if self._connectivity.is_online():
            self.trigger_sync()

    def close(self) -> None:
        with self._trigger_lock:
            self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._executor.shutdown(wait=True)

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _after_write(self) -> None:
        self._status.touch()
        if self._connectivity.is_online():
            self.trigger_sync()

    def _on_connectivity(self, event: ConnectivityEvent) -> None:
        if event is ConnectivityEvent.BECAME_ONLINE:
            self.trigger_sync()
        else:
            self._status.touch()

    def _run_in_background(self) -> SyncRun | None:
        try:
            return self._reconciler.run()
        except Exception:
            log.exception("Background synchronization failed")
            return None
