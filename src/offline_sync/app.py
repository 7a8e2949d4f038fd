"""Application wiring: storage, remote, connectivity and the sync service."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from offline_sync.adapters.remote import HttpEntityRemote
from offline_sync.adapters.sqlalchemy import SqlAlchemyStorage
from offline_sync.config import get_remote_config, get_sync_config
from offline_sync.domain.connectivity import ConnectivityMonitor, ConnectivityPoller
from offline_sync.domain.reconciler import SyncReconciler
from offline_sync.domain.service import OfflineSyncService
from offline_sync.domain.status import SyncStatusBoard

if TYPE_CHECKING:
    from offline_sync.config import SyncConfig
    from offline_sync.domain.ports.remote import EntityRemote

log = getLogger(__name__)


@dataclass(slots=True)
class OfflineSyncApp:
    """Everything one process needs; closed in reverse order of construction."""

    storage: SqlAlchemyStorage
    remote: EntityRemote
    connectivity: ConnectivityMonitor
    poller: ConnectivityPoller
    service: OfflineSyncService

    def close(self) -> None:
        self.poller.stop()
        self.service.close()
        self.connectivity.close()
        self.storage.close()


def build_app(
    *,
    storage: SqlAlchemyStorage | None = None,
    remote: EntityRemote | None = None,
    sync_config: SyncConfig | None = None,
    initially_online: bool | None = None,
    force_offline: bool = False,
) -> OfflineSyncApp:
    """Wire the service from configuration, probing the remote once for the initial state."""

    config = sync_config or get_sync_config()
    effective_storage = storage or SqlAlchemyStorage.open(peek_batch_size=config.peek_batch_size)
    effective_remote = remote or HttpEntityRemote(config=get_remote_config())

    if initially_online is None:
        initially_online = False if force_offline else effective_remote.ping()
    connectivity = ConnectivityMonitor(
        initially_online=initially_online,
        debounce_seconds=config.debounce_seconds,
    )
    if force_offline:
        connectivity.force_offline()

    status = SyncStatusBoard(
        effective_storage.unit_of_work,
        stall_threshold=config.stall_threshold,
    )
    reconciler = SyncReconciler(
        unit_of_work_factory=effective_storage.unit_of_work,
        remote=effective_remote,
        connectivity=connectivity,
        status=status,
    )
    service = OfflineSyncService(
        unit_of_work_factory=effective_storage.unit_of_work,
        reconciler=reconciler,
        connectivity=connectivity,
        status=status,
    )
    poller = ConnectivityPoller(
        effective_remote.ping,
        connectivity,
        interval=config.poll_interval_seconds,
    )
    log.info("Offline sync ready: online=%s", connectivity.is_online())
    return OfflineSyncApp(
        storage=effective_storage,
        remote=effective_remote,
        connectivity=connectivity,
        poller=poller,
        service=service,
    )
