"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import AttentionLog, EntityStore, OutboxQueue
from .remote import EntityRemote
from .unit_of_work import RepositoryCollection, SyncRepositories, SyncUnitOfWork, UnitOfWork

__all__ = [
    "AttentionLog",
    "EntityRemote",
    "EntityStore",
    "OutboxQueue",
    "RepositoryCollection",
    "SyncRepositories",
    "SyncUnitOfWork",
    "UnitOfWork",
]
