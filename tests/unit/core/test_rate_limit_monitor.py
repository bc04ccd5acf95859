import pytest
from unittest.mock import MagicMock

from shopmon.core.rate_limit_monitor import RateLimitMonitor
from shopmon.domain.events.api_events import RateLimitThresholdCrossed
from shopmon.domain.interfaces.observer import ApiObserver, CallbackObserver
from shopmon.domain.models.throttle import EMPTY_THROTTLE_STATUS, ThrottleStatus


@pytest.fixture
def observer():
    return MagicMock(spec=ApiObserver)

@pytest.fixture
def monitor(observer: MagicMock):
    return RateLimitMonitor(observer=observer, warning_percentage=80.0)


def test_below_threshold_does_not_notify(monitor: RateLimitMonitor, observer: MagicMock):
    monitor.update(ThrottleStatus(1000, 900, 50))
    observer.on_rate_limit_approaching.assert_not_called()
    observer.on_throttled.assert_not_called()
    assert monitor.last_status == ThrottleStatus(1000, 900, 50)


def test_approaching_fires_once_per_crossing(monitor: RateLimitMonitor, observer: MagicMock):
    monitor.update(ThrottleStatus(1000, 150, 50))  # 85% used
    monitor.update(ThrottleStatus(1000, 100, 50))  # still above
    assert observer.on_rate_limit_approaching.call_count == 1
    assert monitor.is_approaching

    monitor.update(ThrottleStatus(1000, 900, 50))  # re-arm
    assert not monitor.is_approaching
    monitor.update(ThrottleStatus(1000, 200, 50))  # exactly 80%
    assert observer.on_rate_limit_approaching.call_count == 2


def test_empty_bucket_is_throttled(monitor: RateLimitMonitor, observer: MagicMock):
    status = ThrottleStatus(1000, 0, 50)
    monitor.update(status)
    monitor.update(status)
    observer.on_throttled.assert_called_once_with(status)
    assert monitor.is_throttled

    monitor.update(ThrottleStatus(1000, 500, 50))
    assert not monitor.is_throttled


def test_mark_throttled_uses_last_known_status(monitor: RateLimitMonitor, observer: MagicMock):
    status = ThrottleStatus(1000, 40, 50)
    monitor.update(status)
    monitor.mark_throttled()
    observer.on_throttled.assert_called_once_with(status)


def test_mark_throttled_without_status_uses_placeholder(monitor: RateLimitMonitor, observer: MagicMock):
    monitor.mark_throttled()
    observer.on_throttled.assert_called_once_with(EMPTY_THROTTLE_STATUS)


def test_events_are_emitted_for_crossings(observer: MagicMock):
    events = []
    monitor = RateLimitMonitor(observer=observer, event_sink=events.append)
    monitor.update(ThrottleStatus(1000, 0, 50))
    assert [e.threshold for e in events] == ["approaching", "throttled"]
    assert all(isinstance(e, RateLimitThresholdCrossed) for e in events)


def test_invalid_warning_percentage():
    with pytest.raises(ValueError):
        RateLimitMonitor(warning_percentage=0)


def test_callback_observer_adapts_plain_functions():
    approaching, throttled = [], []
    monitor = RateLimitMonitor(
        observer=CallbackObserver(on_rate_limit_approaching=approaching.append, on_throttled=throttled.append),
    )
    monitor.update(ThrottleStatus(1000, 0, 50))
    assert approaching == [ThrottleStatus(1000, 0, 50)]
    assert throttled == [ThrottleStatus(1000, 0, 50)]
    # Unset callbacks are no-ops
    monitor.observer.on_error(RuntimeError("ignored"))
