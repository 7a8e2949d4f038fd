"""SQLAlchemy adapter package for the local sync tables."""

from __future__ import annotations

from .mappings import attention_table, entity_table, metadata, outbox_table
from .repositories import SqlAlchemyAttentionLog, SqlAlchemyEntityStore, SqlAlchemyOutboxQueue
from .unit_of_work import SqlAlchemyStorage, SqlAlchemyUnitOfWork, StartupError

__all__ = [
    "SqlAlchemyAttentionLog",
    "SqlAlchemyEntityStore",
    "SqlAlchemyOutboxQueue",
    "SqlAlchemyStorage",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "attention_table",
    "entity_table",
    "metadata",
    "outbox_table",
]
