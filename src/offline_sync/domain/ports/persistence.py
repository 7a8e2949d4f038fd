"""Ports for the durable local tables."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import datetime

    from offline_sync.domain.model import (
        AttentionItem,
        AttentionReason,
        Entity,
        EntityId,
        MutationAction,
        OutboxEntry,
        Payload,
    )


@runtime_checkable
class EntityStore(Protocol):
    """Read model of domain entities, keyed by ``EntityId``."""

    def put(self, entity: Entity) -> None: ...

    def get(self, entity_id: EntityId) -> Entity | None: ...

    def delete(self, entity_id: EntityId) -> None: ...

    def list_all(self) -> list[Entity]: ...

    def replace_all(self, entities: Iterable[Entity]) -> None: ...

    def rekey(self, old_id: EntityId, new_id: EntityId) -> bool: ...

    def count(self) -> int: ...


@runtime_checkable
class OutboxQueue(Protocol):
    """Append-only, strictly ordered log of pending mutation intents."""

    def enqueue(
        self,
        action: MutationAction,
        entity_id: EntityId,
        payload: Payload,
        *,
        enqueued_at: datetime,
    ) -> int: ...

    def peek_ordered(self, *, after: int = 0) -> Iterator[OutboxEntry]: ...

    def get(self, sequence: int) -> OutboxEntry | None: ...

    def entries_for(self, entity_id: EntityId) -> list[OutboxEntry]: ...

    def remove(self, sequence: int) -> None: ...

    def update_attempts(self, sequence: int, attempts: int) -> None: ...

    def remap_entity_id(self, old_id: EntityId, new_id: EntityId) -> int: ...

    def count(self) -> int: ...

    def stalled(self, threshold: int) -> list[OutboxEntry]: ...


@runtime_checkable
class AttentionLog(Protocol):
    """Entries removed from the queue as permanently failed, kept for the user."""

    def record(
        self,
        entry: OutboxEntry,
        reason: AttentionReason,
        message: str,
        *,
        recorded_at: datetime,
    ) -> None: ...

    def list_all(self) -> list[AttentionItem]: ...

    def dismiss(self, sequence: int) -> bool: ...

    def count(self) -> int: ...
