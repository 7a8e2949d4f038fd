"""SQLAlchemy table metadata for the local entity store and outbox."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
)

from offline_sync.domain.model import (
    AttentionItem,
    AttentionReason,
    Entity,
    EntityId,
    MutationAction,
    OutboxEntry,
    Payload,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Row


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class EntityIdType(TypeDecorator[EntityId]):
    """Stores ``EntityId`` in its tagged text form (``tmp:…`` / ``srv:…``)."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: EntityId | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: Dialect) -> EntityId | None:
        _ = dialect
        if value is None:
            return None
        return EntityId.parse(value)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

entity_table = Table(
    "entity",
    metadata,
    Column("entity_key", EntityIdType, primary_key=True),
    Column("data", JSON, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)

# AUTOINCREMENT keeps sequences strictly above every value ever issued,
# including entries already removed before a restart.
outbox_table = Table(
    "outbox_entry",
    metadata,
    Column("sequence", Integer, primary_key=True, autoincrement=True),
    Column("action", Enum(MutationAction, native_enum=False, length=16), nullable=False),
    Column("entity_key", EntityIdType, nullable=False, index=True),
    Column("payload", JSON, nullable=False),
    Column("enqueued_at", UTCDateTime, nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    sqlite_autoincrement=True,
)

attention_table = Table(
    "attention_item",
    metadata,
    Column("sequence", Integer, primary_key=True, autoincrement=False),
    Column("action", Enum(MutationAction, native_enum=False, length=16), nullable=False),
    Column("entity_key", EntityIdType, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("reason", Enum(AttentionReason, native_enum=False, length=16), nullable=False),
    Column("message", String, nullable=False),
    Column("attempts", Integer, nullable=False),
    Column("enqueued_at", UTCDateTime, nullable=False),
    Column("recorded_at", UTCDateTime, nullable=False),
)


def _payload(value: object) -> Payload:
    if not isinstance(value, dict):
        raise TypeError(f"Stored payload is not a JSON object: {value!r}")
    return cast(Payload, value)


def entity_from_row(row: Row[Any]) -> Entity:
    return Entity(id=row.entity_key, data=_payload(row.data))


def outbox_entry_from_row(row: Row[Any]) -> OutboxEntry:
    return OutboxEntry(
        sequence=row.sequence,
        action=row.action,
        entity_id=row.entity_key,
        payload=_payload(row.payload),
        enqueued_at=row.enqueued_at,
        attempts=row.attempts,
    )


def attention_item_from_row(row: Row[Any]) -> AttentionItem:
    return AttentionItem(
        sequence=row.sequence,
        action=row.action,
        entity_id=row.entity_key,
        payload=_payload(row.payload),
        reason=row.reason,
        message=row.message,
        attempts=row.attempts,
        enqueued_at=row.enqueued_at,
        recorded_at=row.recorded_at,
    )
