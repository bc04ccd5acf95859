"""Interface for the GraphQL transport.

The transport performs a single HTTP round trip and nothing else: no retries,
no caching. Failures that never produced a GraphQL body are raised as
`StorefrontError` subclasses.
"""

import abc
from typing import Any, Dict, Optional

from ..models.common import Variables


class GraphQLTransport(abc.ABC):
    """Abstract Base Class for sending GraphQL documents to an endpoint."""

    @property
    @abc.abstractmethod
    def endpoint(self) -> str:
        """Full URL requests are posted to."""
        pass

    @property
    @abc.abstractmethod
    def api_version(self) -> str:
        pass

    @abc.abstractmethod
    async def post(self, query: str, variables: Optional[Variables] = None) -> Dict[str, Any]:
        """Posts `{query, variables}` and returns the decoded response body.

        Raises:
            NetworkError: If no response was received (incl. timeouts).
            SecurityRejectionError: If the API answered with the security status.
            HttpStatusError: For any other non-2xx response.
        """
        pass

    async def aclose(self) -> None:
        """Releases network resources. Optional."""
        return None
