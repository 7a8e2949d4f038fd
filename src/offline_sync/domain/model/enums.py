"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class IdKind(StrEnum):
    """Discriminator for the two identity spaces an entity can live in."""

    TEMPORARY = "tmp"
    PERSISTENT = "srv"


class MutationAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AttentionReason(StrEnum):
    """Why an outbox entry left the active queue without being applied remotely."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    ORPHANED = "orphaned"


class SyncErrorKind(StrEnum):
    TRANSIENT = "transient"
    ID_CONFLICT = "id_conflict"
    STORAGE = "storage"
    REFRESH = "refresh"
    UNEXPECTED = "unexpected"
