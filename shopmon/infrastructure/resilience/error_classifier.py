"""Maps arbitrary failures onto the fixed ErrorCategory taxonomy.

Classification is pure and total: any object (exception, in-band GraphQL
error dict, or anything else) yields a category and the classifier itself
never raises. Precedence follows the taxonomy order: an explicit category,
then transport signals, then HTTP status codes and message text.
"""

import asyncio
import errno
import logging
from typing import Any, Mapping, Optional

import httpx

from shopmon.domain.models.common import ACCESS_DENIED, GRAPHQL_VALIDATION_FAILED, THROTTLED
from shopmon.domain.models.errors import ErrorCategory

logger = logging.getLogger(__name__)

NETWORK_ERROR_CODES = {"ECONNREFUSED", "ECONNRESET", "ETIMEDOUT"}
NETWORK_ERRNOS = {errno.ECONNREFUSED, errno.ECONNRESET, errno.ETIMEDOUT}
NETWORK_EXCEPTIONS = (httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError)

# In-band GraphQL extension codes with a known category.
EXTENSION_CODE_CATEGORIES = {
    THROTTLED: ErrorCategory.RATE_LIMIT,
    ACCESS_DENIED: ErrorCategory.AUTHORIZATION,
    GRAPHQL_VALIDATION_FAILED: ErrorCategory.VALIDATION,
    "UNAUTHENTICATED": ErrorCategory.AUTHENTICATION,
    "INTERNAL_SERVER_ERROR": ErrorCategory.SERVER,
}

# Message fragments checked per category, in precedence order.
MESSAGE_PATTERNS = (
    (ErrorCategory.NETWORK, ("network", "connection", "timeout", "timed out")),
    (ErrorCategory.AUTHENTICATION, ("unauthorized", "authentication", "invalid token")),
    (ErrorCategory.AUTHORIZATION, ("forbidden", "permission", "access denied")),
    (ErrorCategory.VALIDATION, ("validation", "invalid", "required field")),
    (ErrorCategory.RATE_LIMIT, ("rate limit", "too many requests", "throttled")),
    (ErrorCategory.SERVER, ("server error", "internal error")),
    (ErrorCategory.CLIENT, ("client error",)),
)

FRIENDLY_MESSAGES = {
    ErrorCategory.NETWORK: "Network error: Please check your internet connection and try again.",
    ErrorCategory.AUTHENTICATION: "Authentication error: Your access token may be invalid or expired.",
    ErrorCategory.AUTHORIZATION: "Authorization error: You do not have permission to perform this action.",
    ErrorCategory.RATE_LIMIT: "Rate limit exceeded: Too many requests. Please try again later.",
    ErrorCategory.SERVER: "Server error: The server encountered an error. Please try again later.",
}


def _error_code(error: Any) -> Optional[str]:
    if isinstance(error, Mapping):
        return (error.get("extensions") or {}).get("code")
    code = getattr(error, "code", None)
    return code if isinstance(code, str) else None


def _status_code(error: Any) -> Optional[int]:
    """Reads an HTTP status from the error or its attached response."""
    candidates = [getattr(error, "status_code", None), getattr(error, "status", None)]
    response = getattr(error, "response", None)
    if response is not None:
        candidates.append(getattr(response, "status_code", None))
    for candidate in candidates:
        if isinstance(candidate, int) and not isinstance(candidate, bool):
            return candidate
    return None


def _message(error: Any) -> str:
    if isinstance(error, Mapping):
        return str(error.get("message") or "").lower()
    message = getattr(error, "message", None)
    if not isinstance(message, str):
        try:
            message = str(error)
        except Exception:  # A broken __str__ must not make classification fail
            message = ""
    return message.lower()


def _is_network_failure(error: Any) -> bool:
    if isinstance(error, NETWORK_EXCEPTIONS):
        return True
    if _error_code(error) in NETWORK_ERROR_CODES:
        return True
    return getattr(error, "errno", None) in NETWORK_ERRNOS


def classify(error: Any) -> ErrorCategory:
    """Returns the ErrorCategory for any failure.

    Args:
        error: Exception, GraphQL error dict, or arbitrary object.

    Returns:
        The category; UNKNOWN when nothing matches.
    """
    explicit = getattr(error, "category", None)
    if isinstance(explicit, ErrorCategory):
        return explicit

    if _is_network_failure(error):
        return ErrorCategory.NETWORK

    code = _error_code(error)
    if code in EXTENSION_CODE_CATEGORIES:
        return EXTENSION_CODE_CATEGORIES[code]

    status = _status_code(error)
    message = _message(error)

    if _matches(message, ErrorCategory.NETWORK):
        return ErrorCategory.NETWORK
    if status == 401 or _matches(message, ErrorCategory.AUTHENTICATION):
        return ErrorCategory.AUTHENTICATION
    if status == 403 or _matches(message, ErrorCategory.AUTHORIZATION):
        return ErrorCategory.AUTHORIZATION
    if status == 400 or _matches(message, ErrorCategory.VALIDATION):
        return ErrorCategory.VALIDATION
    if status == 429 or _matches(message, ErrorCategory.RATE_LIMIT):
        return ErrorCategory.RATE_LIMIT
    if (status is not None and 500 <= status < 600) or _matches(message, ErrorCategory.SERVER):
        return ErrorCategory.SERVER
    if (status is not None and 400 <= status < 500) or _matches(message, ErrorCategory.CLIENT):
        return ErrorCategory.CLIENT
    return ErrorCategory.UNKNOWN


def _matches(message: str, category: ErrorCategory) -> bool:
    for candidate, fragments in MESSAGE_PATTERNS:
        if candidate is category:
            return any(fragment in message for fragment in fragments)
    return False


def friendly_message(error: Any) -> str:
    """Creates a user-facing message based on the error category."""
    category = classify(error)
    if category in FRIENDLY_MESSAGES:
        return FRIENDLY_MESSAGES[category]
    detail = error.get("message") if isinstance(error, Mapping) else getattr(error, "message", None) or str(error)
    if category is ErrorCategory.VALIDATION:
        return f"Validation error: {detail or 'Please check your input and try again.'}"
    if category is ErrorCategory.CLIENT:
        return f"Client error: {detail or 'The request could not be processed.'}"
    return f"An unexpected error occurred: {detail or 'Please try again or contact support.'}"
