from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from offline_sync.adapters.sqlalchemy import SqlAlchemyStorage
from tests.helpers.remote import FakeEntityRemote
from tests.helpers.sync import SyncHarness, build_harness

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def database_uri(tmp_path: Path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'offline_sync.db'}"


@pytest.fixture
def storage(database_uri: str) -> Iterator[SqlAlchemyStorage]:
    # small pages so keyset pagination is exercised
    handle = SqlAlchemyStorage.open(database_uri=database_uri, peek_batch_size=2)
    try:
        yield handle
    finally:
        if handle.is_open:
            handle.close()


@pytest.fixture
def remote() -> FakeEntityRemote:
    return FakeEntityRemote()


@pytest.fixture
def harness(storage: SqlAlchemyStorage, remote: FakeEntityRemote) -> Iterator[SyncHarness]:
    sync = build_harness(storage, remote, online=False)
    try:
        yield sync
    finally:
        sync.close()
