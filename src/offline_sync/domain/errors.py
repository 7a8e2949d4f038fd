"""Error taxonomy for the synchronization engine."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from offline_sync.domain.model import EntityId


class SyncError(RuntimeError):
    """Base class for every error raised by the synchronization engine."""


class StorageError(SyncError):
    """Raised when the durable store could not complete an operation."""


class EntityNotFoundError(SyncError):
    """Raised by the write path when the addressed entity is not stored locally."""

    def __init__(self, entity_id: EntityId) -> None:
        super().__init__(f"No local entity with id {entity_id}")
        self.entity_id = entity_id


class IdConflictError(SyncError):
    """Raised when a rekey target already holds a different record."""

    def __init__(self, old_id: EntityId, new_id: EntityId) -> None:
        super().__init__(
            f"Cannot move {old_id} to {new_id}: a different record is already stored there"
        )
        self.old_id = old_id
        self.new_id = new_id


class RemoteError(SyncError):
    """Raised by remote adapters; subclasses decide how the reconciler reacts."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteNotFoundError(RemoteError):
    """The remote has no record of the addressed entity."""


class RemoteValidationError(RemoteError):
    """The remote permanently rejected the payload."""


class TransientReason(StrEnum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    AUTH = "auth"


class RemoteTransientError(RemoteError):
    """A failure that may succeed on a later attempt."""

    def __init__(
        self,
        message: str,
        *,
        reason: TransientReason,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.reason = reason
