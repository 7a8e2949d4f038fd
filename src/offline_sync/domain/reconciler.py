"""Drains the outbox against the remote authority, one entry at a time."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from offline_sync.domain.errors import (
    IdConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemoteValidationError,
    StorageError,
)
from offline_sync.domain.model import (
    AttentionReason,
    Entity,
    MutationAction,
    SyncErrorKind,
)
from offline_sync.domain.status import ErrorSummary

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from offline_sync.domain.connectivity import ConnectivityMonitor
    from offline_sync.domain.model import EntityId, OutboxEntry
    from offline_sync.domain.ports.remote import EntityRemote
    from offline_sync.domain.ports.unit_of_work import SyncUnitOfWork
    from offline_sync.domain.status import SyncStatusBoard

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, kw_only=True)
class SyncRun:
    """Outcome of one reconciliation attempt."""

    started_at: datetime
    finished_at: datetime | None = None
    attempted: list[int] = field(default_factory=list)
    succeeded: list[int] = field(default_factory=list)
    resolved_locally: list[int] = field(default_factory=list)
    discarded: list[int] = field(default_factory=list)
    failure: ErrorSummary | None = None
    halted_at: int | None = None
    id_remaps: dict[EntityId, EntityId] = field(default_factory=dict)
    refreshed: bool = False

    @property
    def halted(self) -> bool:
        return self.halted_at is not None

    @property
    def ok(self) -> bool:
        return self.failure is None


def overlay_pending(remote: Iterable[Entity], pending: Iterable[OutboxEntry]) -> list[Entity]:
    """Lay still-queued intents over an authoritative list, in sequence order.

    Create and Update entries carry the full record, so the last one wins;
    a Delete hides the entity until the remote confirms it.
    """

    merged = {entity.id: entity for entity in remote}
    for entry in pending:
        if entry.action is MutationAction.DELETE:
            merged.pop(entry.entity_id, None)
        else:
            merged[entry.entity_id] = Entity(id=entry.entity_id, data=dict(entry.payload))
    return list(merged.values())


class SyncReconciler:
    """Single-flight reconciliation of the outbox with the remote.

    Remote calls happen outside any transaction; every state change that
    follows a remote answer is committed in its own short unit of work, so
    writers are never blocked for the duration of a network call.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], SyncUnitOfWork],
        remote: EntityRemote,
        connectivity: ConnectivityMonitor,
        status: SyncStatusBoard | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._remote = remote
        self._connectivity = connectivity
        self._status = status
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run(self) -> SyncRun | None:
        """Drain the outbox; ``None`` when offline or another run is active."""

        if not self._connectivity.is_online():
            log.debug("Offline; skipping synchronization run")
            return None
        if not self._lock.acquire(blocking=False):
            log.debug("Synchronization run already in progress")
            return None
        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> SyncRun:
        run = SyncRun(started_at=self._clock())
        if self._status is not None:
            self._status.run_started()
        try:
            self._drain(run)
            if run.succeeded:
                self._refresh(run)
        except StorageError as exc:
            run.failure = self._summary(SyncErrorKind.STORAGE, str(exc))
            raise
        except Exception as exc:
            message = f"{type(exc).__name__}: {exc}"
            run.failure = self._summary(SyncErrorKind.UNEXPECTED, message)
            raise
        finally:
            run.finished_at = self._clock()
            if self._status is not None:
                self._status.run_finished(run)
        log.info(
            "Synchronization finished: attempted=%s, succeeded=%s, local=%s, "
            "discarded=%s, halted_at=%s, refreshed=%s",
            len(run.attempted),
            len(run.succeeded),
            len(run.resolved_locally),
            len(run.discarded),
            run.halted_at,
            run.refreshed,
        )
        return run

    def _drain(self, run: SyncRun) -> None:
        cursor = 0
        while True:
            if not self._connectivity.is_online():
                log.info("Connectivity lost; stopping after sequence %s", cursor)
                return
            entry = self._head(after=cursor)
            if entry is None:
                return
            cursor = entry.sequence
            if not self._process(entry, run):
                return

    def _head(self, *, after: int) -> OutboxEntry | None:
        with self._unit_of_work_factory() as uow:
            return next(uow.repositories.outbox.peek_ordered(after=after), None)

    def _process(self, entry: OutboxEntry, run: SyncRun) -> bool:
        """Handle one entry; ``False`` halts the run."""

        if entry.entity_id.is_temporary and self._settle_locally(entry, run):
            return True

        run.attempted.append(entry.sequence)
        try:
            confirmed = self._dispatch(entry)
        except RemoteNotFoundError as exc:
            self._discard(entry, AttentionReason.NOT_FOUND, str(exc), run)
            return True
        except RemoteValidationError as exc:
            self._discard(entry, AttentionReason.VALIDATION, str(exc), run)
            return True
        except RemoteError as exc:
            log.info("Transient failure on sequence %s: %s", entry.sequence, exc)
            self._halt(entry, self._summary(SyncErrorKind.TRANSIENT, str(exc), entry), run)
            return False

        try:
            self._apply(entry, confirmed, run)
        except IdConflictError as exc:
            log.error(
                "Identity conflict applying sequence %s (%s -> %s); queue halted",
                entry.sequence,
                exc.old_id,
                exc.new_id,
            )
            self._halt(entry, self._summary(SyncErrorKind.ID_CONFLICT, str(exc), entry), run)
            return False
        run.succeeded.append(entry.sequence)
        return True

    def _settle_locally(self, entry: OutboxEntry, run: SyncRun) -> bool:
        """Resolve entries for a never-synced entity without calling the remote."""

        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            related = repositories.outbox.entries_for(entry.entity_id)
            deleted_later = any(
                other.action is MutationAction.DELETE and other.sequence > entry.sequence
                for other in related
            )
            if entry.action is MutationAction.DELETE or deleted_later:
                repositories.outbox.remove(entry.sequence)
                if entry.action is MutationAction.DELETE:
                    repositories.entities.delete(entry.entity_id)
                uow.commit()
                run.resolved_locally.append(entry.sequence)
                log.debug("Resolved sequence %s locally", entry.sequence)
                return True

            created_earlier = any(
                other.action is MutationAction.CREATE and other.sequence < entry.sequence
                for other in related
            )
            if entry.action is MutationAction.UPDATE and not created_earlier:
                message = f"No pending create for temporary id {entry.entity_id}"
                repositories.attention.record(
                    entry, AttentionReason.ORPHANED, message, recorded_at=self._clock()
                )
                repositories.outbox.remove(entry.sequence)
                uow.commit()
                run.discarded.append(entry.sequence)
                log.warning("Discarded sequence %s: %s", entry.sequence, message)
                return True
        return False

    def _dispatch(self, entry: OutboxEntry) -> Entity | None:
        match entry.action:
            case MutationAction.CREATE:
                return self._remote.create(dict(entry.payload))
            case MutationAction.UPDATE:
                return self._remote.update(entry.entity_id, dict(entry.payload))
            case MutationAction.DELETE:
                self._remote.delete(entry.entity_id)
                return None

    def _apply(self, entry: OutboxEntry, confirmed: Entity | None, run: SyncRun) -> None:
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            entity_id = entry.entity_id
            if entry.action is MutationAction.CREATE and confirmed is not None:
                if confirmed.id != entity_id:
                    repositories.entities.rekey(entity_id, confirmed.id)
                    repositories.outbox.remap_entity_id(entity_id, confirmed.id)
                entity_id = confirmed.id

            later = [
                other
                for other in repositories.outbox.entries_for(entity_id)
                if other.sequence > entry.sequence
            ]
            if not later:
                if confirmed is None:
                    repositories.entities.delete(entity_id)
                else:
                    repositories.entities.put(confirmed.with_id(entity_id))
            repositories.outbox.remove(entry.sequence)
            uow.commit()

        if entity_id != entry.entity_id:
            run.id_remaps[entry.entity_id] = entity_id
            log.debug("Remapped %s to %s", entry.entity_id, entity_id)

    def _discard(
        self,
        entry: OutboxEntry,
        reason: AttentionReason,
        message: str,
        run: SyncRun,
    ) -> None:
        with self._unit_of_work_factory() as uow:
            uow.repositories.attention.record(entry, reason, message, recorded_at=self._clock())
            uow.repositories.outbox.remove(entry.sequence)
            uow.commit()
        run.discarded.append(entry.sequence)
        log.warning(
            "Discarded %s for %s (sequence %s, %s): %s",
            entry.action,
            entry.entity_id,
            entry.sequence,
            reason,
            message,
        )

    def _halt(self, entry: OutboxEntry, summary: ErrorSummary, run: SyncRun) -> None:
        with self._unit_of_work_factory() as uow:
            outbox = uow.repositories.outbox
            current = outbox.get(entry.sequence)
            if current is not None:
                outbox.update_attempts(entry.sequence, current.attempts + 1)
                uow.commit()
        run.failure = summary
        run.halted_at = entry.sequence

    def _refresh(self, run: SyncRun) -> None:
        try:
            authoritative = self._remote.list_all()
        except RemoteError as exc:
            log.warning("Refresh from remote failed: %s", exc)
            if run.failure is None:
                run.failure = self._summary(SyncErrorKind.REFRESH, str(exc))
            return

        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            pending = list(repositories.outbox.peek_ordered())
            repositories.entities.replace_all(overlay_pending(authoritative, pending))
            uow.commit()
        run.refreshed = True

    def _summary(
        self,
        kind: SyncErrorKind,
        message: str,
        entry: OutboxEntry | None = None,
    ) -> ErrorSummary:
        return ErrorSummary(
            kind=kind,
            message=message,
            occurred_at=self._clock(),
            sequence=entry.sequence if entry is not None else None,
            entity_id=entry.entity_id if entry is not None else None,
        )
