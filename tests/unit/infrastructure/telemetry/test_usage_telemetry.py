import asyncio

import pytest
from unittest.mock import MagicMock

from shopmon.domain.interfaces.storage import UsageHistoryStore
from shopmon.domain.models.throttle import CostExtensions, ThrottleStatus
from shopmon.infrastructure.telemetry.history_store import JsonFileHistoryStore
from shopmon.infrastructure.telemetry.usage_telemetry import (
    HOUR_SECONDS,
    RECENT_RECORDS_LIMIT,
    UsageTelemetry,
)


def cost(actual: float = 10, current: float = 990, maximum: float = 1000, requested: float = 12) -> CostExtensions:
    return CostExtensions(
        requested_query_cost=requested,
        actual_query_cost=actual,
        throttle_status=ThrottleStatus(maximum, current, 50),
    )


@pytest.fixture
def telemetry(clock):
    return UsageTelemetry(clock=clock)


def test_records_are_kept_newest_first(telemetry: UsageTelemetry, clock):
    telemetry.record(cost(actual=1), operation="First")
    clock.advance(1)
    telemetry.record(cost(actual=2), operation="Second")
    assert [r.operation for r in telemetry.history] == ["Second", "First"]
    assert telemetry.current_status == ThrottleStatus(1000, 990, 50)


def test_history_is_bounded(clock):
    telemetry = UsageTelemetry(max_history_length=3, clock=clock)
    for i in range(5):
        telemetry.record(cost(actual=i))
    assert len(telemetry.history) == 3
    assert [r.actual_query_cost for r in telemetry.history] == [4, 3, 2]


def test_record_throttled_keeps_current_status(telemetry: UsageTelemetry):
    telemetry.record(cost(current=600))
    record = telemetry.record_throttled(telemetry.current_status, operation="Products")

    assert record.throttled and not record.success
    assert record.throttle_status == ThrottleStatus(1000, 600, 50)
    assert telemetry.current_status == ThrottleStatus(1000, 600, 50)


def test_record_throttled_without_status_uses_placeholder(telemetry: UsageTelemetry):
    record = telemetry.record_throttled()
    assert record.throttle_status == ThrottleStatus(0, 0, 0)
    assert telemetry.current_status is None


def test_empty_summary(telemetry: UsageTelemetry):
    summary = telemetry.summary()
    assert summary.current_status is None
    assert summary.usage_percentage == 0
    assert summary.recent_records == ()
    assert summary.hourly_usage == () and summary.daily_usage == ()
    assert summary.average_cost_per_request == 0
    assert summary.throttled_requests == 0


def test_summary_aggregates(clock):
    clock.now = 10 * HOUR_SECONDS + 5
    telemetry = UsageTelemetry(clock=clock)
    telemetry.record(cost(actual=10))
    clock.advance(100)
    telemetry.record(cost(actual=20))
    clock.now = 11 * HOUR_SECONDS + 1
    telemetry.record(cost(actual=30, current=250))
    telemetry.record_throttled(telemetry.current_status)

    summary = telemetry.summary()
    assert summary.usage_percentage == pytest.approx(75.0)
    assert summary.throttled_requests == 1
    assert summary.average_cost_per_request == pytest.approx(20.0)
    assert summary.total_records == 4
    assert [(b.timestamp, b.total_cost, b.count) for b in summary.hourly_usage] == [
        (10 * HOUR_SECONDS, 30, 2),
        (11 * HOUR_SECONDS, 30, 1),
    ]
    assert len(summary.daily_usage) == 1
    assert summary.daily_usage[0].count == 3


def test_recent_records_are_limited(telemetry: UsageTelemetry):
    for i in range(RECENT_RECORDS_LIMIT + 10):
        telemetry.record(cost(actual=i))
    recent = telemetry.summary().recent_records
    assert len(recent) == RECENT_RECORDS_LIMIT
    assert recent[0].actual_query_cost == RECENT_RECORDS_LIMIT + 9


def test_clear_history(telemetry: UsageTelemetry):
    telemetry.record(cost())
    telemetry.clear_history()
    assert telemetry.history == ()
    assert telemetry.current_status is None


@pytest.mark.asyncio
async def test_history_survives_restart(tmp_path, clock):
    store = JsonFileHistoryStore(tmp_path / "history.json")
    first = UsageTelemetry(store=store, clock=clock)
    first.record(cost(actual=7, current=800), endpoint="https://shop/api", operation="Products")
    first.record_throttled(first.current_status, operation="Collections")
    await first.flush()

    second = UsageTelemetry(store=store, clock=clock)
    assert second.history == first.history
    assert second.current_status == ThrottleStatus(1000, 800, 50)


@pytest.mark.asyncio
async def test_store_failures_do_not_break_recording(clock):
    store = MagicMock(spec=UsageHistoryStore)
    store.load.return_value = None
    store.save.side_effect = OSError("disk full")
    telemetry = UsageTelemetry(store=store, clock=clock)

    telemetry.record(cost())
    await telemetry.flush()
    assert len(telemetry.history) == 1
    store.save.assert_awaited_once()


def test_invalid_history_length():
    with pytest.raises(ValueError):
        UsageTelemetry(max_history_length=0)


def test_summary_to_dict_is_json_ready(telemetry: UsageTelemetry):
    telemetry.record(cost(actual=7, current=900), operation="Products")
    payload = telemetry.summary().to_dict()

    assert payload["current_status"] == {"maximum_available": 1000, "currently_available": 900, "restore_rate": 50}
    assert payload["usage_percentage"] == pytest.approx(10.0)
    assert payload["recent_records"][0]["operation"] == "Products"
    assert payload["hourly_usage"][0]["total_cost"] == 7
    assert payload["total_records"] == 1


@pytest.mark.asyncio
async def test_rapid_changes_are_coalesced_into_serial_writes(clock):
    store = MagicMock(spec=UsageHistoryStore)
    store.load.return_value = None
    telemetry = UsageTelemetry(store=store, clock=clock)

    for i in range(5):
        telemetry.record(cost(actual=i))
    await telemetry.flush()

    assert store.save.await_count == 1
    latest = store.save.await_args.args[0]
    assert len(latest.records) == 5


def test_changes_recorded_outside_a_loop_are_written_on_flush(tmp_path, clock):
    store = JsonFileHistoryStore(tmp_path / "history.json")
    telemetry = UsageTelemetry(store=store, clock=clock)
    telemetry.record(cost(), operation="Products")
    assert store.load() is None

    asyncio.run(telemetry.flush())
    assert store.load().records[0]["operation"] == "Products"
