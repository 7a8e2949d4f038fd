from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field

from offline_sync.domain.errors import RemoteNotFoundError
from offline_sync.domain.model import Entity, EntityId, Payload, clean_record


@dataclass(frozen=True, slots=True)
class RemoteCall:
    method: str
    entity_id: EntityId | None = None
    payload: Payload | None = None


@dataclass
class FakeEntityRemote:
    """In-memory stand-in for the remote collection that assigns numeric ids."""

    records: dict[str, Payload] = field(default_factory=dict)
    next_id: int = 1
    online: bool = True
    calls: list[RemoteCall] = field(default_factory=list)
    _failures: dict[str, deque[Exception]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def fail_next(self, method: str, error: Exception) -> None:
        self._failures.setdefault(method, deque()).append(error)

    def calls_to(self, method: str) -> list[RemoteCall]:
        return [call for call in self.calls if call.method == method]

    @property
    def mutation_calls(self) -> list[RemoteCall]:
        return [call for call in self.calls if call.method in {"create", "update", "delete"}]

    def entities(self) -> list[Entity]:
        return sorted(
            (
                Entity(id=EntityId.persistent(key), data=dict(value))
                for key, value in self.records.items()
            ),
            key=lambda entity: entity.id.sort_key,
        )

    def create(self, payload: Payload) -> Entity:
        self._record("create", None, payload)
        with self._lock:
            key = str(self.next_id)
            self.next_id += 1
            self.records[key] = clean_record(payload)
        return Entity(id=EntityId.persistent(key), data=dict(self.records[key]))

    def update(self, entity_id: EntityId, payload: Payload) -> Entity:
        self._record("update", entity_id, payload)
        key = self._existing_key(entity_id)
        self.records[key] = {**self.records[key], **clean_record(payload)}
        return Entity(id=entity_id, data=dict(self.records[key]))

    def delete(self, entity_id: EntityId) -> None:
        self._record("delete", entity_id, None)
        del self.records[self._existing_key(entity_id)]

    def list_all(self) -> list[Entity]:
        self._record("list_all", None, None)
        return self.entities()

    def ping(self) -> bool:
        return self.online

    def _record(self, method: str, entity_id: EntityId | None, payload: Payload | None) -> None:
        self.calls.append(
            RemoteCall(method, entity_id, dict(payload) if payload is not None else None)
        )
        pending = self._failures.get(method)
        if pending:
            raise pending.popleft()

    def _existing_key(self, entity_id: EntityId) -> str:
        if entity_id.is_temporary or entity_id.value not in self.records:
            raise RemoteNotFoundError(f"No record {entity_id}", status_code=404)
        return entity_id.value
