"""Concrete GraphQLTransport over HTTP using httpx.

Hides the specifics of the HTTP client library and translates transport
failures into the pipeline's typed errors. One call is one round trip:
retries and caching happen above this layer.
"""

import logging
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from shopmon.domain.interfaces.transport import GraphQLTransport
from shopmon.domain.models.common import Variables
from shopmon.domain.models.errors import (
    SECURITY_REJECTION_STATUS,
    ConfigurationError,
    HttpStatusError,
    NetworkError,
    RequestTimeoutError,
    SecurityRejectionError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2025-04"
DEFAULT_TIMEOUT_SECONDS = 30.0
PUBLIC_TOKEN_HEADER = "X-Shopify-Storefront-Access-Token"
PRIVATE_TOKEN_HEADER = "Shopify-Storefront-Private-Token"
BUYER_IP_HEADER = "Shopify-Storefront-Buyer-IP"


def build_endpoint(store_domain: str, api_version: str = DEFAULT_API_VERSION) -> str:
    """`https://<domain>/api/<version>/graphql.json`"""
    domain = store_domain.strip().rstrip("/")
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    return f"https://{domain}/api/{api_version}/graphql.json"


class HttpGraphQLTransport(GraphQLTransport):
    """Posts GraphQL documents to the Storefront API with httpx.AsyncClient."""

    def __init__(
        self,
        store_domain: str,
        public_token: Optional[str] = None,
        private_token: Optional[str] = None,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        custom_headers: Optional[Mapping[str, str]] = None,
        buyer_ip: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the transport.

        Args:
            store_domain: Shop domain, e.g. 'your-store.myshopify.com'.
            public_token: Public Storefront access token.
            private_token: Private (server-side) token; preferred when both are set.
            api_version: API version segment of the endpoint.
            timeout: Request timeout in seconds.
            custom_headers: Extra headers sent with every request.
            buyer_ip: Value for the buyer IP header (private token requests).
            client: Pre-built httpx client (tests inject a MockTransport one).
        """
        if not store_domain:
            raise ConfigurationError("Missing required option: store_domain")
        if not public_token and not private_token:
            raise ConfigurationError("Missing required option: public_token or private_token")

        self._endpoint = build_endpoint(store_domain, api_version)
        self._api_version = api_version
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if private_token:
            headers[PRIVATE_TOKEN_HEADER] = private_token
            if buyer_ip:
                headers[BUYER_IP_HEADER] = buyer_ip
        else:
            headers[PUBLIC_TOKEN_HEADER] = public_token
        headers.update(custom_headers or {})

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers
        logger.info(f"HttpGraphQLTransport initialized for endpoint: {self._endpoint}")

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def api_version(self) -> str:
        return self._api_version

    async def post(self, query: str, variables: Optional[Variables] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        start_time = time.perf_counter()
        try:
            response = await self._client.post(self._endpoint, json=payload, headers=self._headers)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(context={"endpoint": self._endpoint, "cause": str(e)}) from e
        except httpx.TransportError as e:
            raise NetworkError(context={"endpoint": self._endpoint, "cause": str(e)}) from e
        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"POST {self._endpoint} -> {response.status_code} in {latency_ms:.1f}ms")

        if response.status_code == SECURITY_REJECTION_STATUS:
            raise SecurityRejectionError(context={"endpoint": self._endpoint})
        if response.status_code >= 400:
            raise HttpStatusError(
                response.status_code,
                f"HTTP {response.status_code} from Storefront API: {response.reason_phrase}",
                context={"endpoint": self._endpoint, "body": response.text[:500]},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise HttpStatusError(
                response.status_code,
                "Storefront API returned a response that is not valid JSON (server error)",
                context={"endpoint": self._endpoint},
            ) from e
        if not isinstance(body, dict):
            raise HttpStatusError(
                response.status_code,
                "Storefront API returned an unexpected response body (server error)",
                context={"endpoint": self._endpoint},
            )
        return body

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
