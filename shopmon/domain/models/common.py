"""Defines common Value Objects used across the request pipeline.

These objects represent simple values like query documents, cache keys and
tags, ensuring consistency and type safety across layers.
"""

from typing import Any, Dict, NewType

# === GraphQL Context ===
QueryDocument = NewType("QueryDocument", str)  # Raw GraphQL query/mutation text
Variables = Dict[str, Any]                     # GraphQL variables mapping
Endpoint = NewType("Endpoint", str)            # Full GraphQL endpoint URL
OperationName = NewType("OperationName", str)  # e.g. 'Products', 'AnonymousQuery'

# === Caching Context ===
CacheKey = NewType("CacheKey", str)            # Hashed key for a cache entry
CacheTag = NewType("CacheTag", str)            # Label for bulk invalidation (e.g. 'products')

# === Error extension codes returned in-band by the API ===
ACCESS_DENIED = "ACCESS_DENIED"
THROTTLED = "THROTTLED"
GRAPHQL_VALIDATION_FAILED = "GRAPHQL_VALIDATION_FAILED"

# Codes that trigger the error observer for in-band GraphQL errors.
OBSERVED_ERROR_CODES = frozenset({ACCESS_DENIED, THROTTLED, GRAPHQL_VALIDATION_FAILED})
