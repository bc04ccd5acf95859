"""Executes one logical Storefront API call.

Pipeline: inject context -> check cache -> send with retries -> record
telemetry -> update cache -> report throttle status. GraphQL-level errors
(HTTP 200 with an `errors` array) are a definitive answer from the server:
they are returned to the caller, never retried and never cached.
"""

import copy
import logging
import time
from typing import Any, Callable, Iterable, Optional

import httpx

from shopmon.core.context_directive import ContextDirectiveInjector, extract_operation_name
from shopmon.core.rate_limit_monitor import RateLimitMonitor
from shopmon.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    CacheHit,
    DomainEvent,
)
from shopmon.domain.interfaces.cache import CacheService
from shopmon.domain.interfaces.observer import ApiObserver
from shopmon.domain.interfaces.tagging import CacheTagStrategy
from shopmon.domain.interfaces.transport import GraphQLTransport
from shopmon.domain.models.common import OBSERVED_ERROR_CODES, THROTTLED, Variables
from shopmon.domain.models.context import RequestContext
from shopmon.domain.models.errors import (
    SECURITY_REJECTION_STATUS,
    ErrorCategory,
    NetworkError,
    RequestTimeoutError,
    SecurityRejectionError,
)
from shopmon.domain.models.response import CacheOptions, CacheStats, GraphQLResponse
from shopmon.domain.models.retry import RetryPolicy
from shopmon.domain.models.throttle import ThrottleStatus
from shopmon.infrastructure.cache.response_cache import DEFAULT_TTL_SECONDS, build_cache_key
from shopmon.infrastructure.cache.tag_strategy import KeywordTagStrategy
from shopmon.infrastructure.resilience.api_retry import RetryCoordinator
from shopmon.infrastructure.resilience.error_classifier import classify
from shopmon.infrastructure.telemetry.usage_telemetry import UsageTelemetry

logger = logging.getLogger(__name__)


def _log_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


def to_typed_error(error: Exception) -> Exception:
    """Maps raw transport failures onto the pipeline's error types.

    Errors that are already typed (or unknown) are returned as-is.
    """
    if isinstance(error, (NetworkError, SecurityRejectionError)):
        return error
    if isinstance(error, httpx.TimeoutException):
        return RequestTimeoutError(context={"cause": str(error)})
    if isinstance(error, httpx.TransportError):
        return NetworkError(context={"cause": str(error)})
    response = getattr(error, "response", None)
    if getattr(response, "status_code", None) == SECURITY_REJECTION_STATUS:
        return SecurityRejectionError()
    return error


class RequestExecutor:
    """Storefront API client: context directives, caching, retries, telemetry."""

    def __init__(
        self,
        transport: GraphQLTransport,
        cache: Optional[CacheService] = None,
        telemetry: Optional[UsageTelemetry] = None,
        observer: Optional[ApiObserver] = None,
        monitor: Optional[RateLimitMonitor] = None,
        retry_coordinator: Optional[RetryCoordinator] = None,
        retry_policy: Optional[RetryPolicy] = None,
        injector: Optional[ContextDirectiveInjector] = None,
        tag_strategy: Optional[CacheTagStrategy] = None,
        context: Optional[RequestContext] = None,
        enable_caching: bool = True,
        default_cache_ttl: float = DEFAULT_TTL_SECONDS,
        event_sink: Optional[Callable[[DomainEvent], None]] = None,
    ):
        """Initializes the executor. Collaborators are injected, never global.

        Args:
            transport: Performs the HTTP round trip.
            cache: Response cache; caching is disabled when None.
            telemetry: Usage history; usage is not recorded when None.
            observer: Receives rate-limit and error callbacks.
            monitor: Throttle status tracker (built around `observer` if None).
            retry_coordinator: Retry/backoff runner.
            retry_policy: Default policy for requests (coordinator default if None).
            injector: Context directive injector.
            tag_strategy: Infers default cache tags from query text.
            context: Initial request context.
            enable_caching: Global switch for the cache.
            default_cache_ttl: TTL in seconds when a request does not give one.
            event_sink: Receives domain events; logs them if None.
        """
        self.transport = transport
        self.cache = cache
        self.telemetry = telemetry
        self.observer = observer or ApiObserver()
        self._dispatch = event_sink or _log_event
        self.monitor = monitor or RateLimitMonitor(observer=self.observer, event_sink=self._dispatch)
        self.retry_coordinator = retry_coordinator or RetryCoordinator(event_sink=self._dispatch)
        self.retry_policy = retry_policy
        self.injector = injector or ContextDirectiveInjector()
        self.tag_strategy = tag_strategy or KeywordTagStrategy()
        self._context = context
        self.enable_caching = enable_caching and cache is not None
        self.default_cache_ttl = default_cache_ttl
        logger.info(
            f"RequestExecutor initialized for {transport.endpoint} "
            f"(caching={'on' if self.enable_caching else 'off'}, ttl={default_cache_ttl}s)"
        )

    # --- Context & cache management ---

    @property
    def endpoint(self) -> str:
        return self.transport.endpoint

    @property
    def scope_tag(self) -> str:
        """Tag carried by every entry this client caches."""
        return f"storefront:{self.transport.endpoint}"

    @property
    def context(self) -> Optional[RequestContext]:
        return self._context

    def set_context(self, context: Optional[RequestContext]) -> None:
        """Replaces the request context and drops every cached response for this endpoint."""
        self._context = context
        if self.enable_caching:
            removed = self.cache.invalidate_by_tag(self.scope_tag)
            logger.info(f"Request context changed; invalidated {removed} cached responses")

    def invalidate_cache(self, resource_types: Iterable[str]) -> int:
        """Invalidates cached responses for resource tags such as 'products'."""
        if not self.enable_caching:
            return 0
        return sum(self.cache.invalidate_by_tag(tag) for tag in resource_types)

    def clear_cache(self) -> int:
        if not self.enable_caching:
            return 0
        return self.cache.invalidate_by_tag(self.scope_tag)

    def cache_stats(self) -> CacheStats:
        if self.cache is None:
            return CacheStats(size=0, oldest_entry=None, newest_entry=None)
        return self.cache.stats()

    @property
    def last_throttle_status(self) -> Optional[ThrottleStatus]:
        return self.monitor.last_status

    # --- Request pipeline ---

    async def request(
        self,
        document: str,
        variables: Optional[Variables] = None,
        cache_options: Optional[CacheOptions] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> GraphQLResponse:
        """Executes a query or mutation.

        Args:
            document: GraphQL document text.
            variables: Variables for the document.
            cache_options: skip_cache / ttl / extra tags for this request.
            retry_policy: Overrides the executor's policy for this request.

        Returns:
            The response; `from_cache` is True when served from the cache.

        Raises:
            StorefrontError: Transport failures after retries are exhausted.
        """
        options = cache_options or CacheOptions()
        query, context_dropped = self.injector.apply(document, self._context)
        operation = extract_operation_name(query)
        use_cache = self.enable_caching and not options.skip_cache
        if use_cache and context_dropped:
            # The response would be stored under a context it was not fetched with
            logger.warning(f"Context could not be applied to {operation or '<anonymous>'}; response will not be cached")
            use_cache = False

        cache_key = build_cache_key(
            self.endpoint,
            self.transport.api_version,
            query,
            variables,
            self._context.to_dict() if self._context else None,
        )
        if use_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self._dispatch(CacheHit(endpoint=self.endpoint, operation=operation))
                return copy.deepcopy(cached).as_cached()

        attempt_number = 0

        async def send() -> GraphQLResponse:
            nonlocal attempt_number
            attempt_number += 1
            self._dispatch(ApiCallInitiated(endpoint=self.endpoint, operation=operation, attempt_number=attempt_number))
            start_time = time.perf_counter()
            try:
                body = await self.transport.post(query, variables)
            except Exception as e:
                typed = to_typed_error(e)
                self._on_transport_error(typed, operation)
                if typed is e:
                    raise
                raise typed from e
            latency_ms = (time.perf_counter() - start_time) * 1000
            response = GraphQLResponse.from_body(body)
            cost = response.cost
            self._dispatch(ApiCallSucceeded(
                endpoint=self.endpoint,
                latency_ms=latency_ms,
                operation=operation,
                actual_query_cost=cost.actual_query_cost if cost else None,
            ))
            return response

        try:
            response = await self.retry_coordinator.execute(
                send, retry_policy or self.retry_policy, operation_name=operation or "request"
            )
        except Exception as e:
            category = classify(e)
            logger.error(f"Request {operation or '<anonymous>'} to {self.endpoint} failed ({category.value}): {e}")
            self._dispatch(ApiCallFailed(
                endpoint=self.endpoint,
                error_type=type(e).__name__,
                error_message=str(e),
                category=category.value,
                operation=operation,
            ))
            raise

        if response.has_errors:
            self._on_graphql_errors(response, operation)
            return response

        cost = response.cost
        if use_cache:
            ttl = options.ttl if options.ttl is not None else self.default_cache_ttl
            tags = set(self.tag_strategy.tags_for(query)) | set(options.tags) | {self.scope_tag}
            self.cache.set(cache_key, copy.deepcopy(response), ttl=ttl, tags=tags)
        if cost is not None:
            if self.telemetry is not None:
                self.telemetry.record(cost, endpoint=self.endpoint, operation=operation)
            self.monitor.update(cost.throttle_status)
        else:
            logger.debug(f"Response for {operation or '<anonymous>'} carried no cost extension")
        return response

    def _on_transport_error(self, error: Exception, operation: Optional[str]) -> None:
        """Every failed attempt reaches the observer; 429s also count as throttled."""
        if classify(error) is ErrorCategory.RATE_LIMIT:
            self._record_throttled(operation)
        self.observer.on_error(error)

    def _on_graphql_errors(self, response: GraphQLResponse, operation: Optional[str]) -> None:
        codes = response.error_codes()
        logger.warning(f"GraphQL errors in {operation or '<anonymous>'} response: {codes or 'no codes'}")
        if THROTTLED in codes:
            self._record_throttled(operation)
        for error in response.errors or []:
            code = (error.get("extensions") or {}).get("code") if isinstance(error, dict) else None
            if code in OBSERVED_ERROR_CODES:
                self.observer.on_error(error)
                break

    def _record_throttled(self, operation: Optional[str]) -> None:
        if self.telemetry is not None:
            self.telemetry.record_throttled(self.monitor.last_status, endpoint=self.endpoint, operation=operation)
        self.monitor.mark_throttled()

    # --- Lifecycle ---

    async def aclose(self) -> None:
        """Closes the transport once pending usage history writes are done."""
        if self.telemetry is not None:
            await self.telemetry.flush()
        await self.transport.aclose()

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
