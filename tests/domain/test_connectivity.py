from __future__ import annotations

import pytest

from offline_sync.domain.connectivity import (
    ConnectivityEvent,
    ConnectivityMonitor,
    ConnectivityPoller,
)
from tests.helpers.timers import ManualTimers


def _monitor(
    *, online: bool, timers: ManualTimers
) -> tuple[ConnectivityMonitor, list[ConnectivityEvent]]:
    monitor = ConnectivityMonitor(
        initially_online=online, debounce_seconds=1.0, timer_factory=timers
    )
    events: list[ConnectivityEvent] = []
    monitor.subscribe(events.append)
    return monitor, events


def test_online_event_waits_for_debounce() -> None:
    timers = ManualTimers()
    monitor, events = _monitor(online=False, timers=timers)

    monitor.on_platform_change(True)

    assert monitor.is_online()
    assert events == []
    assert timers.created[0].interval == 1.0
    assert timers.created[0].daemon

    timers.fire_all()

    assert events == [ConnectivityEvent.BECAME_ONLINE]


def test_flapping_collapses_to_one_online_event() -> None:
    timers = ManualTimers()
    monitor, events = _monitor(online=False, timers=timers)

    for online in (True, False, True, False, True):
        monitor.on_platform_change(online)
    timers.fire_all()
    timers.fire_all()

    assert events == [ConnectivityEvent.BECAME_ONLINE]
    assert sum(not timer.cancelled for timer in timers.created) == 1


def test_offline_is_announced_immediately_and_cancels_pending_online() -> None:
    timers = ManualTimers()
    monitor, events = _monitor(online=True, timers=timers)

    monitor.on_platform_change(False)
    monitor.on_platform_change(True)
    monitor.on_platform_change(False)
    timers.fire_all()

    assert events == [ConnectivityEvent.BECAME_OFFLINE]
    assert not monitor.is_online()


def test_stale_timer_callback_is_ignored() -> None:
    timers = ManualTimers()
    monitor, events = _monitor(online=False, timers=timers)

    monitor.on_platform_change(True)
    stale = timers.created[0]
    monitor.on_platform_change(False)
    monitor.on_platform_change(True)
    stale.function()

    assert events == []
    timers.created[-1].fire()
    assert events == [ConnectivityEvent.BECAME_ONLINE]


def test_manual_override_masks_platform_signal() -> None:
    monitor = ConnectivityMonitor(initially_online=True, debounce_seconds=0)
    events: list[ConnectivityEvent] = []
    monitor.subscribe(events.append)

    monitor.force_offline()
    monitor.on_platform_change(False)
    monitor.on_platform_change(True)

    assert monitor.forced_offline
    assert not monitor.is_online()
    assert events == [ConnectivityEvent.BECAME_OFFLINE]

    monitor.clear_override()

    assert monitor.is_online()
    assert events == [ConnectivityEvent.BECAME_OFFLINE, ConnectivityEvent.BECAME_ONLINE]


def test_unsubscribe_and_close_stop_notifications() -> None:
    timers = ManualTimers()
    monitor, events = _monitor(online=False, timers=timers)
    other: list[ConnectivityEvent] = []
    unsubscribe = monitor.subscribe(other.append)

    unsubscribe()
    monitor.on_platform_change(True)
    monitor.close()
    timers.fire_all()

    assert events == []
    assert other == []
    assert timers.created[0].cancelled


def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    monitor = ConnectivityMonitor(initially_online=False, debounce_seconds=0)
    received: list[ConnectivityEvent] = []

    def broken(_event: ConnectivityEvent) -> None:
        raise RuntimeError("listener bug")

    monitor.subscribe(broken)
    monitor.subscribe(received.append)

    monitor.on_platform_change(True)

    assert received == [ConnectivityEvent.BECAME_ONLINE]
    assert "Connectivity listener failed" in caplog.text


def test_poller_feeds_reachability_to_monitor() -> None:
    monitor = ConnectivityMonitor(initially_online=True, debounce_seconds=0)
    answers = iter([False, True])
    poller = ConnectivityPoller(lambda: next(answers), monitor, interval=30)

    assert poller.poll_once() is False
    assert not monitor.is_online()
    assert poller.poll_once() is True
    assert monitor.is_online()


def test_poller_thread_starts_and_stops() -> None:
    monitor = ConnectivityMonitor(initially_online=False, debounce_seconds=0)
    poller = ConnectivityPoller(lambda: True, monitor, interval=30)

    poller.start()
    try:
        assert poller.is_running
    finally:
        poller.stop(timeout=5)

    assert not poller.is_running
    assert monitor.is_online()


def test_poller_rejects_non_positive_interval() -> None:
    monitor = ConnectivityMonitor(initially_online=False)
    with pytest.raises(ValueError, match="positive"):
        ConnectivityPoller(lambda: True, monitor, interval=0)
