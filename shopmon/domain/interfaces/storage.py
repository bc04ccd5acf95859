"""Interface for persisting the usage history."""

import abc
from typing import Optional

from ..models.throttle import UsageSnapshot


class UsageHistoryStore(abc.ABC):
    """Durable storage for usage telemetry snapshots."""

    @abc.abstractmethod
    async def save(self, snapshot: UsageSnapshot) -> None:
        """Persists a snapshot without blocking the event loop."""
        pass

    @abc.abstractmethod
    def load(self) -> Optional[UsageSnapshot]:
        """Returns the stored snapshot, or None if nothing was saved yet.

        Called once at start-up, before any request is in flight.
        """
        pass
