"""Value objects for query cost and token-bucket throttle status.

The API returns a `cost` extension alongside every response describing what
the query cost and how much of the bucket is left. These objects mirror that
payload and the usage history built from it.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ThrottleStatus:
    """Snapshot of the token bucket: capacity, remaining points, refill rate."""
    maximum_available: float
    currently_available: float
    restore_rate: float

    @property
    def usage_percentage(self) -> float:
        """Percentage of the bucket currently consumed (0 if capacity unknown)."""
        if not self.maximum_available:
            return 0.0
        return 100.0 * (self.maximum_available - self.currently_available) / self.maximum_available

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "ThrottleStatus":
        """Builds a status from the camelCase `throttleStatus` wire object."""
        return cls(
            maximum_available=float(payload.get("maximumAvailable") or 0),
            currently_available=float(payload.get("currentlyAvailable") or 0),
            restore_rate=float(payload.get("restoreRate") or 0),
        )

    def to_api(self) -> Dict[str, float]:
        return {
            "maximumAvailable": self.maximum_available,
            "currentlyAvailable": self.currently_available,
            "restoreRate": self.restore_rate,
        }


# Placeholder used when a throttled request arrives before any status was seen.
EMPTY_THROTTLE_STATUS = ThrottleStatus(0, 0, 0)


@dataclass(frozen=True)
class CostExtensions:
    """The `extensions.cost` block attached to a successful response."""
    requested_query_cost: float
    actual_query_cost: float
    throttle_status: ThrottleStatus

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> Optional["CostExtensions"]:
        """Parses `extensions.cost`; returns None if no throttle status is present."""
        status = payload.get("throttleStatus")
        if not isinstance(status, Mapping):
            return None
        # actualQueryCost is null for requests the API refused to run
        return cls(
            requested_query_cost=float(payload.get("requestedQueryCost") or 0),
            actual_query_cost=float(payload.get("actualQueryCost") or 0),
            throttle_status=ThrottleStatus.from_api(status),
        )


@dataclass(frozen=True)
class UsageRecord:
    """One request outcome in the usage history. Never mutated once stored."""
    timestamp: float  # Unix timestamp (seconds)
    requested_query_cost: float
    actual_query_cost: float
    throttle_status: ThrottleStatus
    endpoint: Optional[str] = None
    operation: Optional[str] = None
    success: bool = True
    throttled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UsageRecord":
        status = payload.get("throttle_status") or {}
        return cls(
            timestamp=float(payload["timestamp"]),
            requested_query_cost=float(payload.get("requested_query_cost", 0)),
            actual_query_cost=float(payload.get("actual_query_cost", 0)),
            throttle_status=ThrottleStatus(
                maximum_available=float(status.get("maximum_available", 0)),
                currently_available=float(status.get("currently_available", 0)),
                restore_rate=float(status.get("restore_rate", 0)),
            ),
            endpoint=payload.get("endpoint"),
            operation=payload.get("operation"),
            success=bool(payload.get("success", True)),
            throttled=bool(payload.get("throttled", False)),
        )


@dataclass(frozen=True)
class UsageBucket:
    """Aggregated cost for one hourly or daily window."""
    timestamp: float  # Start of the window
    total_cost: float
    count: int


@dataclass(frozen=True)
class UsageSummary:
    """Read-only view of the usage history consumed by dashboards."""
    current_status: Optional[ThrottleStatus]
    usage_percentage: float
    recent_records: Tuple[UsageRecord, ...]
    hourly_usage: Tuple[UsageBucket, ...]
    daily_usage: Tuple[UsageBucket, ...]
    throttled_requests: int
    average_cost_per_request: float
    total_records: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_status": asdict(self.current_status) if self.current_status else None,
            "usage_percentage": self.usage_percentage,
            "recent_records": [r.to_dict() for r in self.recent_records],
            "hourly_usage": [asdict(b) for b in self.hourly_usage],
            "daily_usage": [asdict(b) for b in self.daily_usage],
            "throttled_requests": self.throttled_requests,
            "average_cost_per_request": self.average_cost_per_request,
            "total_records": self.total_records,
        }


@dataclass
class UsageSnapshot:
    """Serializable form of the usage history handed to a history store."""
    records: List[Dict[str, Any]] = field(default_factory=list)
    current_status: Optional[Dict[str, float]] = None
