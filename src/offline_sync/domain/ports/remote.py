"""Port for the authoritative remote entity service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from offline_sync.domain.model import Entity, EntityId, Payload


@runtime_checkable
class EntityRemote(Protocol):
    """CRUD contract of the remote service.

    Implementations raise ``RemoteNotFoundError``, ``RemoteValidationError`` or
    ``RemoteTransientError``; anything else is treated as a bug and propagates.
    """

    def create(self, payload: Payload) -> Entity: ...

    def update(self, entity_id: EntityId, payload: Payload) -> Entity: ...

    def delete(self, entity_id: EntityId) -> None: ...

    def list_all(self) -> list[Entity]: ...

    def ping(self) -> bool: ...
