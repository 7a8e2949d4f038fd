from __future__ import annotations

from typing import TYPE_CHECKING

from offline_sync.domain.errors import RemoteTransientError, TransientReason
from offline_sync.domain.status import SyncStatus, SyncStatusBoard
from tests.helpers.sync import build_harness

if TYPE_CHECKING:
    from offline_sync.adapters.sqlalchemy import SqlAlchemyStorage
    from tests.helpers.remote import FakeEntityRemote
    from tests.helpers.sync import SyncHarness


def test_status_reflects_durable_tables(harness: SyncHarness) -> None:
    harness.service.create({"name": "A"})
    harness.service.create({"name": "B"})

    status = harness.service.get_status()

    assert status == SyncStatus(
        pending_count=2,
        is_syncing=False,
        last_success_at=None,
        last_error=None,
        needs_attention=0,
        stalled=0,
    )
    assert not status.is_settled


def test_writes_notify_subscribers(harness: SyncHarness) -> None:
    snapshots: list[SyncStatus] = []
    unsubscribe = harness.service.subscribe(snapshots.append)

    harness.service.create({"name": "A"})
    unsubscribe()
    harness.service.create({"name": "B"})

    assert [snapshot.pending_count for snapshot in snapshots] == [1]


def test_stalled_entries_are_reported_not_removed(
    storage: SqlAlchemyStorage, remote: FakeEntityRemote
) -> None:
    sync = build_harness(storage, remote, stall_threshold=2)
    try:
        sync.service.create({"name": "A"})
        sync.go_online()
        for _ in range(2):
            remote.fail_next("create", RemoteTransientError("503", reason=TransientReason.SERVER))
            sync.reconciler.run()

        status = sync.service.get_status()
    finally:
        sync.close()

    assert status.stalled == 1
    assert status.pending_count == 1
    assert [entry.attempts for entry in sync.service.pending_entries()] == [2]


def test_board_without_listeners_does_not_query(storage: SqlAlchemyStorage) -> None:
    calls = 0

    def factory() -> object:
        nonlocal calls
        calls += 1
        return storage.unit_of_work()

    board = SyncStatusBoard(factory)  # type: ignore[arg-type]
    board.touch()
    board.run_started()

    assert calls == 0
    assert board.current().is_syncing
    assert calls == 1
