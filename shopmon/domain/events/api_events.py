"""Domain Events related to API calls and resilience.

Examples include events for when calls are served from cache, retried,
fail, succeed, or cross a rate-limit threshold.
"""

from dataclasses import dataclass, field
import time
from typing import Any, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when a request is about to be sent."""
    endpoint: str
    operation: Optional[str] = None
    attempt_number: int = 1
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a request returns a response body."""
    endpoint: str
    latency_ms: float
    operation: Optional[str] = None
    actual_query_cost: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a request fails definitively (after retries)."""
    endpoint: str
    error_type: str
    error_message: str
    category: Optional[str] = None
    operation: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class CacheHit(DomainEvent):
    """Event triggered when a request is answered from the response cache."""
    endpoint: str
    operation: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed request."""
    attempt_number: int
    delay_seconds: float
    category: str
    operation: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RateLimitThresholdCrossed(DomainEvent):
    """Event triggered when the token bucket crosses a warning threshold."""
    threshold: str  # 'approaching' or 'throttled'
    status: Any
    timestamp: float = field(default_factory=time.time)
