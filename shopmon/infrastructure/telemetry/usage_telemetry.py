"""Tracks API usage: a bounded history of request outcomes and aggregates.

History is kept newest first in a bounded deque; once `max_history_length`
is reached the oldest record is dropped on insert. Optionally mirrors the
history into a UsageHistoryStore: every change schedules a background write
on the running loop, and `flush()` waits for pending writes.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from shopmon.domain.interfaces.storage import UsageHistoryStore
from shopmon.domain.models.throttle import (
    EMPTY_THROTTLE_STATUS,
    CostExtensions,
    ThrottleStatus,
    UsageBucket,
    UsageRecord,
    UsageSnapshot,
    UsageSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_LENGTH = 1000
RECENT_RECORDS_LIMIT = 50
HOUR_SECONDS = 60 * 60
DAY_SECONDS = 24 * HOUR_SECONDS


class UsageTelemetry:
    """Usage history with hourly/daily aggregation for dashboards."""

    def __init__(
        self,
        max_history_length: int = DEFAULT_MAX_HISTORY_LENGTH,
        store: Optional[UsageHistoryStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes telemetry and loads persisted history if a store is given.

        Args:
            max_history_length: Maximum number of records kept.
            store: Optional persistence hook (save/load snapshots).
            clock: Returns the current Unix time; injectable for tests.
        """
        if max_history_length < 1:
            raise ValueError("max_history_length must be >= 1")
        self.max_history_length = max_history_length
        self._history: Deque[UsageRecord] = deque(maxlen=max_history_length)
        self._current_status: Optional[ThrottleStatus] = None
        self._store = store
        self._dirty = False
        self._save_task: Optional[asyncio.Task] = None
        self._clock = clock
        if store is not None:
            self._load()

    @property
    def history(self) -> Tuple[UsageRecord, ...]:
        """All stored records, newest first."""
        return tuple(self._history)

    @property
    def current_status(self) -> Optional[ThrottleStatus]:
        return self._current_status

    def record(
        self,
        cost: CostExtensions,
        endpoint: Optional[str] = None,
        operation: Optional[str] = None,
        success: bool = True,
        throttled: bool = False,
    ) -> UsageRecord:
        """Records a request outcome and updates the current throttle status."""
        record = UsageRecord(
            timestamp=self._clock(),
            requested_query_cost=cost.requested_query_cost,
            actual_query_cost=cost.actual_query_cost,
            throttle_status=cost.throttle_status,
            endpoint=endpoint,
            operation=operation,
            success=success,
            throttled=throttled,
        )
        self._append(record)
        self._current_status = cost.throttle_status
        return record

    def record_throttled(
        self,
        last_known_status: Optional[ThrottleStatus] = None,
        endpoint: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> UsageRecord:
        """Records a throttled request. The current status is not updated."""
        record = UsageRecord(
            timestamp=self._clock(),
            requested_query_cost=0,  # Unknown: the request never ran
            actual_query_cost=0,
            throttle_status=last_known_status or EMPTY_THROTTLE_STATUS,
            endpoint=endpoint,
            operation=operation,
            success=False,
            throttled=True,
        )
        self._append(record)
        logger.info(f"Throttled request recorded for {operation or endpoint or 'unknown operation'}")
        return record

    def summary(self) -> UsageSummary:
        successful = [r for r in self._history if r.success]
        average = sum(r.actual_query_cost for r in successful) / len(successful) if successful else 0.0
        return UsageSummary(
            current_status=self._current_status,
            usage_percentage=self._current_status.usage_percentage if self._current_status else 0.0,
            recent_records=tuple(list(self._history)[:RECENT_RECORDS_LIMIT]),
            hourly_usage=self._bucketed_usage(HOUR_SECONDS),
            daily_usage=self._bucketed_usage(DAY_SECONDS),
            throttled_requests=sum(1 for r in self._history if r.throttled),
            average_cost_per_request=average,
            total_records=len(self._history),
        )

    def clear_history(self) -> None:
        self._history.clear()
        self._current_status = None
        logger.info("Usage history cleared.")
        self._save()

    def snapshot(self) -> UsageSnapshot:
        return UsageSnapshot(
            records=[r.to_dict() for r in self._history],
            current_status=self._current_status.to_api() if self._current_status else None,
        )

    # --- Internals ---

    def _append(self, record: UsageRecord) -> None:
        # deque(maxlen) drops from the right, i.e. the oldest record
        self._history.appendleft(record)
        self._save()

    def _bucketed_usage(self, window: int) -> Tuple[UsageBucket, ...]:
        """Sums cost and counts successful records per window, oldest first."""
        buckets: Dict[float, List[float]] = {}
        for record in self._history:
            if not record.success:
                continue
            start = (record.timestamp // window) * window
            totals = buckets.setdefault(start, [0.0, 0])
            totals[0] += record.actual_query_cost
            totals[1] += 1
        return tuple(
            UsageBucket(timestamp=start, total_cost=total, count=int(count))
            for start, (total, count) in sorted(buckets.items())
        )

    def _save(self) -> None:
        """Schedules a background write of the latest snapshot.

        Outside a running event loop the change is only marked dirty and
        written by the next `flush()`.
        """
        if self._store is None:
            return
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._save_task is None or self._save_task.done():
            self._save_task = loop.create_task(self._write_pending())

    async def _write_pending(self) -> None:
        # Writes are serialized; changes made during a write are coalesced into one more
        while self._dirty:
            self._dirty = False
            try:
                await self._store.save(self.snapshot())
            except Exception as e:
                logger.error(f"Failed to save usage history: {e}", exc_info=True)

    async def flush(self) -> None:
        """Waits until every recorded change has been handed to the store."""
        if self._save_task is not None and not self._save_task.done():
            await self._save_task
        if self._dirty and self._store is not None:
            await self._write_pending()

    def _load(self) -> None:
        try:
            snapshot = self._store.load()
        except Exception as e:
            logger.error(f"Failed to load usage history: {e}", exc_info=True)
            return
        if snapshot is None:
            return
        records = []
        for payload in snapshot.records[: self.max_history_length]:
            try:
                records.append(UsageRecord.from_dict(payload))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed usage record: {e}")
        # Stored newest first; extend keeps that order
        self._history.extend(records)
        if snapshot.current_status:
            self._current_status = ThrottleStatus.from_api(snapshot.current_status)
        logger.info(f"Loaded {len(records)} usage records from history store")
