import errno

import httpx
import pytest

from shopmon.domain.models.errors import (
    ConfigurationError,
    ErrorCategory,
    HttpStatusError,
    NetworkError,
    RequestTimeoutError,
    SecurityRejectionError,
    StorefrontError,
)
from shopmon.infrastructure.resilience.error_classifier import classify, friendly_message


class CodedError(Exception):
    def __init__(self, code: str):
        super().__init__(f"socket failure {code}")
        self.code = code


class BrokenStr:
    def __str__(self):
        raise RuntimeError("no string for you")


_REQUEST = httpx.Request("POST", "https://test-shop.myshopify.com/api/2025-04/graphql.json")


@pytest.mark.parametrize("error, expected", [
    (NetworkError(), ErrorCategory.NETWORK),
    (RequestTimeoutError(), ErrorCategory.NETWORK),
    (httpx.ConnectError("refused", request=_REQUEST), ErrorCategory.NETWORK),
    (ConnectionResetError(), ErrorCategory.NETWORK),
    (CodedError("ECONNREFUSED"), ErrorCategory.NETWORK),
    (OSError(errno.ETIMEDOUT, "timed out"), ErrorCategory.NETWORK),
    (Exception("Network request failed"), ErrorCategory.NETWORK),
    (HttpStatusError(401), ErrorCategory.AUTHENTICATION),
    (HttpStatusError(403), ErrorCategory.AUTHORIZATION),
    (HttpStatusError(400), ErrorCategory.VALIDATION),
    (HttpStatusError(429), ErrorCategory.RATE_LIMIT),
    (HttpStatusError(503), ErrorCategory.SERVER),
    (HttpStatusError(404), ErrorCategory.CLIENT),
    (SecurityRejectionError(), ErrorCategory.CLIENT),
    (ConfigurationError("missing domain"), ErrorCategory.CLIENT),
    (Exception("Unauthorized"), ErrorCategory.AUTHENTICATION),
    (Exception("Too many requests"), ErrorCategory.RATE_LIMIT),
    (Exception("Internal error while resolving"), ErrorCategory.SERVER),
    (Exception("something odd happened"), ErrorCategory.UNKNOWN),
])
def test_classify_exceptions(error, expected):
    assert classify(error) is expected


@pytest.mark.parametrize("code, expected", [
    ("THROTTLED", ErrorCategory.RATE_LIMIT),
    ("ACCESS_DENIED", ErrorCategory.AUTHORIZATION),
    ("GRAPHQL_VALIDATION_FAILED", ErrorCategory.VALIDATION),
    ("INTERNAL_SERVER_ERROR", ErrorCategory.SERVER),
])
def test_classify_graphql_error_dicts(code, expected):
    assert classify({"message": "irrelevant", "extensions": {"code": code}}) is expected


def test_explicit_category_wins_over_message():
    error = StorefrontError("network is down", category=ErrorCategory.VALIDATION)
    assert classify(error) is ErrorCategory.VALIDATION


@pytest.mark.parametrize("value", [None, 42, "plain text", BrokenStr(), {}])
def test_classify_is_total(value):
    assert isinstance(classify(value), ErrorCategory)


def test_status_from_attached_response():
    response = httpx.Response(403, request=_REQUEST)
    error = httpx.HTTPStatusError("denied", request=_REQUEST, response=response)
    assert classify(error) is ErrorCategory.AUTHORIZATION


def test_friendly_messages():
    assert friendly_message(NetworkError()).startswith("Network error")
    assert friendly_message(HttpStatusError(429)).startswith("Rate limit exceeded")
    validation = {"message": "Field 'foo' doesn't exist", "extensions": {"code": "GRAPHQL_VALIDATION_FAILED"}}
    assert friendly_message(validation) == "Validation error: Field 'foo' doesn't exist"
    assert friendly_message(Exception("odd")) == "An unexpected error occurred: odd"
