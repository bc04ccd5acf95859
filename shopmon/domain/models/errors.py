"""Error taxonomy for the request pipeline.

Errors carry an explicit `category` (and optionally `status_code`,
`retryable` and `context`) instead of having attributes bolted on at runtime.
The classifier honours an explicit category before inspecting anything else.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Fixed set of failure categories. Derived, never persisted."""
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    CLIENT = "client"
    UNKNOWN = "unknown"


# HTTP status Shopify uses when a request is rejected for security reasons.
SECURITY_REJECTION_STATUS = 430


class StorefrontError(Exception):
    """Base exception for failures raised by the client runtime."""

    default_category: Optional[ErrorCategory] = None

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.status_code = status_code
        self.retryable = retryable
        self.context = context or {}


class NetworkError(StorefrontError):
    """The request never produced an HTTP response (DNS, refused, reset...)."""
    default_category = ErrorCategory.NETWORK

    def __init__(self, message: str = "Network request failed", **kwargs: Any):
        super().__init__(message, **kwargs)


class RequestTimeoutError(NetworkError):
    """The transport gave up waiting for a response."""

    def __init__(self, message: str = "Request timed out", **kwargs: Any):
        super().__init__(message, **kwargs)


class SecurityRejectionError(StorefrontError):
    """The API rejected the request for security concerns (HTTP 430). Never retried."""
    default_category = ErrorCategory.CLIENT

    def __init__(self, message: str = "Request was rejected due to security concerns", **kwargs: Any):
        kwargs.setdefault("status_code", SECURITY_REJECTION_STATUS)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class HttpStatusError(StorefrontError):
    """Non-2xx HTTP response. Category is left to the classifier (status based)."""

    def __init__(self, status_code: int, message: Optional[str] = None, **kwargs: Any):
        super().__init__(message or f"HTTP {status_code} response from Storefront API", status_code=status_code, **kwargs)


class ConfigurationError(StorefrontError):
    """Required configuration (domain, token...) is missing or invalid."""
    default_category = ErrorCategory.CLIENT

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
