"""Domain model for offline synchronization."""

from __future__ import annotations

from .entity import ID_FIELD, Entity, JSONValue, Payload, clean_record
from .enums import AttentionReason, IdKind, MutationAction, SyncErrorKind
from .identity import EntityId
from .outbox import AttentionItem, OutboxEntry

__all__ = [
    "ID_FIELD",
    "AttentionItem",
    "AttentionReason",
    "Entity",
    "EntityId",
    "IdKind",
    "JSONValue",
    "MutationAction",
    "OutboxEntry",
    "Payload",
    "SyncErrorKind",
    "clean_record",
]
