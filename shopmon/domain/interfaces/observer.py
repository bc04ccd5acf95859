"""Interface for observers of rate-limit and error events.

Implemented by the surrounding application (dashboards, notifications).
All methods are no-ops by default so observers override only what they need.
"""

from typing import Callable, Optional

from ..models.throttle import ThrottleStatus


class ApiObserver:
    """Receives rate-limit threshold crossings and errors from the client."""

    def on_rate_limit_approaching(self, status: ThrottleStatus) -> None:
        pass

    def on_throttled(self, status: ThrottleStatus) -> None:
        pass

    def on_error(self, error: object) -> None:
        """`error` is either an exception or an in-band GraphQL error dict."""
        pass


class CallbackObserver(ApiObserver):
    """Adapts plain callables to the ApiObserver interface."""

    def __init__(
        self,
        on_rate_limit_approaching: Optional[Callable[[ThrottleStatus], None]] = None,
        on_throttled: Optional[Callable[[ThrottleStatus], None]] = None,
        on_error: Optional[Callable[[object], None]] = None,
    ):
        self._on_rate_limit_approaching = on_rate_limit_approaching
        self._on_throttled = on_throttled
        self._on_error = on_error

    def on_rate_limit_approaching(self, status: ThrottleStatus) -> None:
        if self._on_rate_limit_approaching:
            self._on_rate_limit_approaching(status)

    def on_throttled(self, status: ThrottleStatus) -> None:
        if self._on_throttled:
            self._on_throttled(status)

    def on_error(self, error: object) -> None:
        if self._on_error:
            self._on_error(error)
