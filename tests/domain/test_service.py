from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from offline_sync.domain.errors import EntityNotFoundError, StorageError
from offline_sync.domain.model import Entity, EntityId, MutationAction, SyncErrorKind
from offline_sync.domain.service import OfflineSyncService
from tests.helpers.sync import build_harness

if TYPE_CHECKING:
    from offline_sync.adapters.sqlalchemy import SqlAlchemyStorage
    from offline_sync.domain.reconciler import SyncRun
    from tests.helpers.remote import FakeEntityRemote
    from tests.helpers.sync import SyncHarness


class BlockingReconciler:
    """Counts runs; each run waits until the test releases it."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.runs = 0

    def run(self) -> SyncRun | None:
        self.runs += 1
        self.started.set()
        self.release.wait(5)
        return None


class FailingReconciler:
    def run(self) -> SyncRun | None:
        raise StorageError("disk full")


def _service_with(harness: SyncHarness, reconciler: object) -> OfflineSyncService:
    return OfflineSyncService(
        unit_of_work_factory=harness.storage.unit_of_work,
        reconciler=reconciler,  # type: ignore[arg-type]
        connectivity=harness.connectivity,
        status=harness.status,
    )


def test_create_stores_entity_and_queues_intent(harness: SyncHarness) -> None:
    entity = harness.service.create({"id": 7, "name": "A"})

    assert entity.id.is_temporary
    assert entity.data == {"name": "A"}
    assert harness.service.get(entity.id) == entity
    [entry] = harness.service.pending_entries()
    assert entry.action is MutationAction.CREATE
    assert entry.entity_id == entity.id
    assert entry.payload == {"name": "A"}
    assert entry.attempts == 0
    assert harness.service.get_status().pending_count == 1


def test_update_merges_over_stored_record(harness: SyncHarness) -> None:
    entity = harness.service.create({"name": "A", "qty": 1})

    updated = harness.service.update(entity.id, {"qty": 2})

    assert updated == Entity(id=entity.id, data={"name": "A", "qty": 2})
    entries = harness.service.pending_entries()
    assert [entry.action for entry in entries] == [MutationAction.CREATE, MutationAction.UPDATE]
    assert entries[1].payload == {"name": "A", "qty": 2}
    assert entries[0].sequence < entries[1].sequence


def test_update_and_delete_require_existing_entity(harness: SyncHarness) -> None:
    missing = EntityId.persistent(404)

    with pytest.raises(EntityNotFoundError) as excinfo:
        harness.service.update(missing, {"name": "x"})
    assert excinfo.value.entity_id == missing

    with pytest.raises(EntityNotFoundError):
        harness.service.delete(missing)

    assert harness.service.pending_entries() == []


def test_delete_removes_locally_and_queues_intent(harness: SyncHarness) -> None:
    entity = harness.service.create({"name": "A"})

    harness.service.delete(entity.id)

    assert harness.service.get(entity.id) is None
    assert harness.service.list_entities() == []
    assert [entry.action for entry in harness.service.pending_entries()] == [
        MutationAction.CREATE,
        MutationAction.DELETE,
    ]


def test_online_write_is_pushed_in_background(
    storage: SqlAlchemyStorage, remote: FakeEntityRemote
) -> None:
    sync = build_harness(storage, remote, online=True)
    try:
        sync.service.create({"name": "A"})
        sync.service.trigger_sync().result(timeout=5)
    finally:
        sync.close()

    assert remote.records == {"1": {"name": "A"}}
    assert sync.service.pending_entries() == []


def test_trigger_sync_coalesces_queued_requests(harness: SyncHarness) -> None:
    reconciler = BlockingReconciler()
    service = _service_with(harness, reconciler)
    try:
        running = service.trigger_sync()
        assert reconciler.started.wait(5)
        queued = service.trigger_sync()
        again = service.trigger_sync()

        assert queued is again
        assert queued is not running

        reconciler.release.set()
        running.result(timeout=5)
        queued.result(timeout=5)
    finally:
        reconciler.release.set()
        service.close()

    assert reconciler.runs == 2


def test_background_storage_failure_is_logged(
    harness: SyncHarness, caplog: pytest.LogCaptureFixture
) -> None:
    service = _service_with(harness, FailingReconciler())
    try:
        assert service.trigger_sync().result(timeout=5) is None
    finally:
        service.close()

    assert "Background synchronization failed" in caplog.text


def test_background_unexpected_failure_is_reported(
    harness: SyncHarness, caplog: pytest.LogCaptureFixture
) -> None:
    harness.service.create({"name": "A"})
    harness.remote.fail_next("create", RuntimeError("remote adapter bug"))
    harness.go_online()

    with caplog.at_level("ERROR", logger="offline_sync.domain.service"):
        assert harness.service.trigger_sync().result(timeout=5) is None

    status = harness.service.get_status()
    assert status.last_error is not None
    assert status.last_error.kind is SyncErrorKind.UNEXPECTED
    assert "remote adapter bug" in status.last_error.message
    assert status.pending_count == 1
    assert "Background synchronization failed" in caplog.text
    assert "RuntimeError: remote adapter bug" in caplog.text


def test_sync_now_propagates_storage_failure(harness: SyncHarness) -> None:
    service = _service_with(harness, FailingReconciler())
    try:
        with pytest.raises(StorageError):
            service.sync_now()
    finally:
        service.close()


def test_start_triggers_sync_on_reconnect(harness: SyncHarness) -> None:
    reconciler = BlockingReconciler()
    reconciler.release.set()
    service = _service_with(harness, reconciler)
    try:
        service.start()
        assert not reconciler.started.is_set()

        harness.go_online()

        assert reconciler.started.wait(5)
    finally:
        service.close()


def test_start_pushes_existing_queue_when_online(harness: SyncHarness) -> None:
    harness.service.create({"name": "A"})
    harness.go_online()

    harness.service.start()
    harness.service.trigger_sync().result(timeout=5)

    assert harness.service.pending_entries() == []
    assert harness.remote.records == {"1": {"name": "A"}}


def test_trigger_after_close_is_skipped(harness: SyncHarness) -> None:
    harness.service.close()

    future = harness.service.trigger_sync()

    assert future.done()
    assert future.result() is None


def test_acknowledge_dismisses_attention_item(harness: SyncHarness) -> None:
    orphan = EntityId.mint_temporary()
    with harness.storage.unit_of_work() as uow:
        sequence = uow.repositories.outbox.enqueue(
            MutationAction.UPDATE, orphan, {}, enqueued_at=datetime(2026, 1, 1, tzinfo=UTC)
        )
        uow.commit()
    harness.go_online()
    harness.reconciler.run()
    assert harness.service.get_status().needs_attention == 1

    assert harness.service.acknowledge(sequence) is True
    assert harness.service.acknowledge(sequence) is False
    assert harness.service.get_status().needs_attention == 0
    assert harness.service.attention_items() == []
