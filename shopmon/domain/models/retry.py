"""Value Object representing retry backoff configuration."""

from dataclasses import dataclass, field
from typing import FrozenSet

from shopmon.domain.models.errors import ErrorCategory

DEFAULT_RETRYABLE_CATEGORIES = frozenset({
    ErrorCategory.NETWORK,
    ErrorCategory.RATE_LIMIT,
    ErrorCategory.SERVER,
})


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration. Delays are in seconds.

    `max_retries` is the total number of attempts; 0 still means one attempt.
    """
    max_retries: int = 3
    initial_delay: float = 0.5
    max_delay: float = 5.0
    backoff_factor: float = 2.0
    retryable_categories: FrozenSet[ErrorCategory] = field(default=DEFAULT_RETRYABLE_CATEGORIES)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        # Accept any iterable of categories but store a frozenset
        object.__setattr__(self, "retryable_categories", frozenset(self.retryable_categories))


DEFAULT_RETRY_POLICY = RetryPolicy()
