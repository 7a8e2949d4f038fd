"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, insert, select, update

from offline_sync.adapters.sqlalchemy.mappings import (
    attention_item_from_row,
    attention_table,
    entity_from_row,
    entity_table,
    outbox_entry_from_row,
    outbox_table,
)
from offline_sync.domain.errors import IdConflictError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from sqlalchemy.orm import Session

    from offline_sync.domain.model import (
        AttentionItem,
        AttentionReason,
        Entity,
        EntityId,
        MutationAction,
        OutboxEntry,
        Payload,
    )

log = getLogger(__name__)

DEFAULT_PEEK_BATCH_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SqlAlchemyEntityStore:
    def __init__(self, session: Session, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.session = session
        self._clock = clock

    def put(self, entity: Entity) -> None:
        values = {"data": dict(entity.data), "updated_at": self._clock()}
        result = self.session.execute(
            update(entity_table).where(entity_table.c.entity_key == entity.id).values(**values)
        )
        if result.rowcount == 0:
            self.session.execute(insert(entity_table).values(entity_key=entity.id, **values))

    def get(self, entity_id: EntityId) -> Entity | None:
        stmt = select(entity_table).where(entity_table.c.entity_key == entity_id)
        row = self.session.execute(stmt).one_or_none()
        return entity_from_row(row) if row is not None else None

    def delete(self, entity_id: EntityId) -> None:
        self.session.execute(delete(entity_table).where(entity_table.c.entity_key == entity_id))

    def list_all(self) -> list[Entity]:
        rows = self.session.execute(select(entity_table)).all()
        entities = [entity_from_row(row) for row in rows]
        return sorted(entities, key=lambda entity: entity.id.sort_key)

    def replace_all(self, entities: Iterable[Entity]) -> None:
        now = self._clock()
        rows = {
            entity.id: {"entity_key": entity.id, "data": dict(entity.data), "updated_at": now}
            for entity in entities
        }
        self.session.execute(delete(entity_table))
        if rows:
            self.session.execute(insert(entity_table), list(rows.values()))

    def rekey(self, old_id: EntityId, new_id: EntityId) -> bool:
        if old_id == new_id:
            return self.get(old_id) is not None
        current = self.get(old_id)
        if current is None:
            return False
        occupant = self.get(new_id)
        if occupant is not None:
            if occupant.data != current.data:
                raise IdConflictError(old_id, new_id)
            log.debug("Rekey target %s already holds identical data; dropping %s", new_id, old_id)
            self.delete(old_id)
            return True
        self.session.execute(
            update(entity_table)
            .where(entity_table.c.entity_key == old_id)
            .values(entity_key=new_id, updated_at=self._clock())
        )
        return True

    def count(self) -> int:
        return self.session.execute(select(func.count()).select_from(entity_table)).scalar_one()


class SqlAlchemyOutboxQueue:
    def __init__(self, session: Session, *, batch_size: int = DEFAULT_PEEK_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.session = session
        self._batch_size = batch_size

    def enqueue(
        self,
        action: MutationAction,
        entity_id: EntityId,
        payload: Payload,
        *,
        enqueued_at: datetime,
    ) -> int:
        result = self.session.execute(
            insert(outbox_table).values(
                action=action,
                entity_key=entity_id,
                payload=dict(payload),
                enqueued_at=enqueued_at,
                attempts=0,
            )
        )
        primary_key = result.inserted_primary_key
        if primary_key is None:
            raise RuntimeError("Outbox insert did not return a sequence")
        return int(primary_key[0])

    def peek_ordered(self, *, after: int = 0) -> Iterator[OutboxEntry]:
        """Yield pending entries in ascending sequence order, one page at a time.

        Every page is a fresh query, so entries removed or appended since the
        previous page are reflected.
        """

        cursor = after
        while True:
            stmt = (
                select(outbox_table)
                .where(outbox_table.c.sequence > cursor)
                .order_by(outbox_table.c.sequence)
                .limit(self._batch_size)
            )
            rows = self.session.execute(stmt).all()
            for row in rows:
                entry = outbox_entry_from_row(row)
                cursor = entry.sequence
                yield entry
            if len(rows) < self._batch_size:
                return

    def get(self, sequence: int) -> OutboxEntry | None:
        stmt = select(outbox_table).where(outbox_table.c.sequence == sequence)
        row = self.session.execute(stmt).one_or_none()
        return outbox_entry_from_row(row) if row is not None else None

    def entries_for(self, entity_id: EntityId) -> list[OutboxEntry]:
        stmt = (
            select(outbox_table)
            .where(outbox_table.c.entity_key == entity_id)
            .order_by(outbox_table.c.sequence)
        )
        return [outbox_entry_from_row(row) for row in self.session.execute(stmt).all()]

    def remove(self, sequence: int) -> None:
        self.session.execute(delete(outbox_table).where(outbox_table.c.sequence == sequence))

    def update_attempts(self, sequence: int, attempts: int) -> None:
        if attempts < 0:
            raise ValueError("attempts must be non-negative")
        self.session.execute(
            update(outbox_table)
            .where(outbox_table.c.sequence == sequence)
            .values(attempts=attempts)
        )

    def remap_entity_id(self, old_id: EntityId, new_id: EntityId) -> int:
        result = self.session.execute(
            update(outbox_table)
            .where(outbox_table.c.entity_key == old_id)
            .values(entity_key=new_id)
        )
        return result.rowcount

    def count(self) -> int:
        return self.session.execute(select(func.count()).select_from(outbox_table)).scalar_one()

    def stalled(self, threshold: int) -> list[OutboxEntry]:
        stmt = (
            select(outbox_table)
            .where(outbox_table.c.attempts >= threshold)
            .order_by(outbox_table.c.sequence)
        )
        return [outbox_entry_from_row(row) for row in self.session.execute(stmt).all()]


class SqlAlchemyAttentionLog:
    def __init__(self, session: Session) -> None:
        self.session = session

    def record(
        self,
        entry: OutboxEntry,
        reason: AttentionReason,
        message: str,
        *,
        recorded_at: datetime,
    ) -> None:
        self.session.execute(
            insert(attention_table).values(
                sequence=entry.sequence,
                action=entry.action,
                entity_key=entry.entity_id,
                payload=dict(entry.payload),
                reason=reason,
                message=message,
                attempts=entry.attempts,
                enqueued_at=entry.enqueued_at,
                recorded_at=recorded_at,
            )
        )

    def list_all(self) -> list[AttentionItem]:
        stmt = select(attention_table).order_by(attention_table.c.sequence)
        return [attention_item_from_row(row) for row in self.session.execute(stmt).all()]

    def dismiss(self, sequence: int) -> bool:
        result = self.session.execute(
            delete(attention_table).where(attention_table.c.sequence == sequence)
        )
        return result.rowcount > 0

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(attention_table)
        ).scalar_one()


if TYPE_CHECKING:
    from typing import cast

    from offline_sync.domain.ports.persistence import AttentionLog, EntityStore, OutboxQueue

    _session_stub = cast("Session", object())
    _entity_store_check: EntityStore = SqlAlchemyEntityStore(_session_stub)
    _outbox_check: OutboxQueue = SqlAlchemyOutboxQueue(_session_stub)
    _attention_check: AttentionLog = SqlAlchemyAttentionLog(_session_stub)
