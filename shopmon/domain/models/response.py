"""Response and cache value objects for the Storefront request pipeline."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from shopmon.domain.models.common import CacheKey
from shopmon.domain.models.throttle import CostExtensions


@dataclass(frozen=True)
class GraphQLResponse:
    """Result of one logical API call."""
    data: Optional[Any] = None
    errors: Optional[List[Dict[str, Any]]] = None
    extensions: Optional[Dict[str, Any]] = None
    from_cache: bool = False

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def cost(self) -> Optional[CostExtensions]:
        cost = (self.extensions or {}).get("cost")
        if isinstance(cost, Mapping):
            return CostExtensions.from_api(cost)
        return None

    def error_codes(self) -> List[str]:
        """Extension codes of every in-band error, in order."""
        codes = []
        for error in self.errors or []:
            code = (error.get("extensions") or {}).get("code") if isinstance(error, Mapping) else None
            if code:
                codes.append(str(code))
        return codes

    def as_cached(self) -> "GraphQLResponse":
        return replace(self, from_cache=True)

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> "GraphQLResponse":
        return cls(
            data=body.get("data"),
            errors=body.get("errors") or None,
            extensions=body.get("extensions"),
            from_cache=False,
        )


@dataclass(frozen=True)
class CacheOptions:
    """Per-request cache hints supplied by the caller."""
    skip_cache: bool = False
    ttl: Optional[float] = None  # Seconds; client default if None
    tags: Sequence[str] = ()


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry and tags."""
    key: CacheKey
    value: Any
    created_at: float
    expires_at: float  # Unix timestamp when the entry expires
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True)
class CacheStats:
    """Size and age bounds of the cache (timestamps are None when empty)."""
    size: int
    oldest_entry: Optional[float]
    newest_entry: Optional[float]
