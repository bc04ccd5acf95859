"""Tracks the latest throttle status and fires threshold callbacks.

Callbacks fire once per crossing: entering the "approaching" or "throttled"
state notifies the observer, staying in it does not, and dropping back
below the threshold re-arms the notification.
"""

import logging
from typing import Callable, Optional

from shopmon.domain.events.api_events import DomainEvent, RateLimitThresholdCrossed
from shopmon.domain.interfaces.observer import ApiObserver
from shopmon.domain.models.throttle import EMPTY_THROTTLE_STATUS, ThrottleStatus

logger = logging.getLogger(__name__)

DEFAULT_WARNING_PERCENTAGE = 80.0


class RateLimitMonitor:
    """Keeps the most recent ThrottleStatus and edge-triggers observer callbacks."""

    def __init__(
        self,
        observer: Optional[ApiObserver] = None,
        warning_percentage: float = DEFAULT_WARNING_PERCENTAGE,
        event_sink: Optional[Callable[[DomainEvent], None]] = None,
    ):
        if not 0 < warning_percentage <= 100:
            raise ValueError("warning_percentage must be in (0, 100]")
        self.observer = observer or ApiObserver()
        self.warning_percentage = warning_percentage
        self._event_sink = event_sink
        self._last_status: Optional[ThrottleStatus] = None
        self._approaching = False
        self._throttled = False

    @property
    def last_status(self) -> Optional[ThrottleStatus]:
        return self._last_status

    @property
    def is_approaching(self) -> bool:
        return self._approaching

    @property
    def is_throttled(self) -> bool:
        return self._throttled

    def update(self, status: ThrottleStatus) -> None:
        """Replaces the tracked status (successful responses only)."""
        self._last_status = status
        usage = status.usage_percentage
        logger.debug(
            f"Throttle status: {status.currently_available}/{status.maximum_available} "
            f"available ({usage:.1f}% used), restore rate {status.restore_rate}/s"
        )

        approaching = usage >= self.warning_percentage
        if approaching and not self._approaching:
            logger.warning(f"API rate limit approaching: {usage:.1f}% of bucket used")
            self._emit("approaching", status)
            self.observer.on_rate_limit_approaching(status)
        self._approaching = approaching

        exhausted = status.maximum_available > 0 and status.currently_available <= 0
        if exhausted:
            self._enter_throttled(status)
        else:
            self._throttled = False

    def mark_throttled(self) -> None:
        """Signals a throttled response without a fresh status (e.g. a THROTTLED error)."""
        self._enter_throttled(self._last_status or EMPTY_THROTTLE_STATUS)

    def _enter_throttled(self, status: ThrottleStatus) -> None:
        if self._throttled:
            return
        self._throttled = True
        logger.warning("API rate limit exceeded: request throttled")
        self._emit("throttled", status)
        self.observer.on_throttled(status)

    def _emit(self, threshold: str, status: ThrottleStatus) -> None:
        if self._event_sink:
            self._event_sink(RateLimitThresholdCrossed(threshold=threshold, status=status))
