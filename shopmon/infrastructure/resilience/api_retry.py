"""Service for executing API calls with automatic retries.

Implements exponential backoff for transient failures (network errors, rate
limits, 5xx responses). Every failure is categorized; only categories listed
in the RetryPolicy are retried. The last error is re-raised unchanged once
attempts run out, so callers can still classify it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shopmon.domain.events.api_events import DomainEvent, RetryScheduled
from shopmon.domain.models.retry import DEFAULT_RETRY_POLICY, RetryPolicy
from shopmon.infrastructure.resilience.error_classifier import classify

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
EventSink = Callable[[DomainEvent], None]
Sleep = Callable[[float], Awaitable[Any]]


def calculate_retry_delay(attempt: int, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> float:
    """Delay in seconds before retrying after the 0-based `attempt`."""
    delay = policy.initial_delay * (policy.backoff_factor ** attempt)
    return min(delay, policy.max_delay)


def is_retryable(error: BaseException, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> bool:
    """An explicit `retryable` flag on the error wins over its category."""
    explicit = getattr(error, "retryable", None)
    if isinstance(explicit, bool):
        return explicit
    return classify(error) in policy.retryable_categories


def _log_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


class RetryCoordinator:
    """Runs an async operation until it succeeds or the policy gives up."""

    def __init__(
        self,
        default_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Sleep = asyncio.sleep,
        event_sink: Optional[EventSink] = None,
    ):
        """Initializes the RetryCoordinator.

        Args:
            default_policy: Policy used when `execute` is called without one.
            sleep: Coroutine used to wait between attempts (cooperative).
            event_sink: Receives RetryScheduled events; logs them if None.
        """
        self.default_policy = default_policy
        self._sleep = sleep
        self._dispatch = event_sink or _log_event
        logger.info(
            f"RetryCoordinator initialized: max_retries={default_policy.max_retries}, "
            f"initial_delay={default_policy.initial_delay}s, factor={default_policy.backoff_factor}, "
            f"max_delay={default_policy.max_delay}s"
        )

    async def execute(
        self,
        operation: Operation,
        policy: Optional[RetryPolicy] = None,
        operation_name: Optional[str] = None,
    ) -> Any:
        """Executes `operation` with retries.

        Args:
            operation: Zero-argument callable returning an awaitable.
            policy: Retry policy for this call (defaults to the coordinator's).
            operation_name: Used for logging/events only.

        Returns:
            The operation's result.

        Raises:
            Exception: The last error observed, unchanged. Non-retryable errors
                are raised on their first occurrence. asyncio.CancelledError is
                never retried.
        """
        effective_policy = policy or self.default_policy
        attempts = max(1, effective_policy.max_retries)
        name = operation_name or getattr(operation, "__name__", "operation")
        last_exception: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                return await operation()
            except Exception as e:
                last_exception = e
                category = classify(e)
                if not is_retryable(e, effective_policy):
                    logger.debug(f"Non-retryable {category.value} error in {name} on attempt {attempt + 1}: {e}")
                    raise
                if attempt >= attempts - 1:
                    logger.error(f"Max retries ({attempts}) reached for {name}. Last error: {e}")
                    raise

                delay = calculate_retry_delay(attempt, effective_policy)
                logger.warning(
                    f"Retryable {category.value} error in {name} on attempt {attempt + 1}/{attempts}: "
                    f"{type(e).__name__}. Waiting {delay:.2f}s..."
                )
                self._dispatch(RetryScheduled(
                    attempt_number=attempt + 1,
                    delay_seconds=delay,
                    category=category.value,
                    operation=name,
                ))
                await self._sleep(delay)

        # Unreachable: the final attempt either returns or raises above.
        raise last_exception  # type: ignore[misc]
