"""Outbox records: pending mutation intents and the ones needing attention."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from .entity import Payload
    from .enums import AttentionReason, MutationAction
    from .identity import EntityId


@dataclass(frozen=True, slots=True, kw_only=True)
class OutboxEntry:
    """One durable mutation intent; ``sequence`` defines the total replay order."""

    sequence: int
    action: MutationAction
    entity_id: EntityId
    payload: Payload = field(default_factory=dict)
    enqueued_at: datetime
    attempts: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class AttentionItem:
    """An outbox entry that was removed from the queue as permanently failed."""

    sequence: int
    action: MutationAction
    entity_id: EntityId
    payload: Payload
    reason: AttentionReason
    message: str
    attempts: int
    enqueued_at: datetime
    recorded_at: datetime
