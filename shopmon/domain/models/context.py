"""Request context value objects (localization and buyer identity).

The context is attached to outgoing documents as an `@inContext` directive
and is part of every cache key, since responses are context dependent.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class BuyerIdentity:
    """Identity of the buyer the storefront should resolve prices/availability for."""
    customer_access_token: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    country_code: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.customer_access_token or self.email or self.phone or self.country_code)


@dataclass(frozen=True)
class RequestContext:
    """Localization/identity settings applied to every request of a client."""
    country: Optional[str] = None
    language: Optional[str] = None
    buyer_identity: Optional[BuyerIdentity] = None

    def is_empty(self) -> bool:
        return not (
            self.country
            or self.language
            or (self.buyer_identity is not None and not self.buyer_identity.is_empty())
        )

    def to_dict(self) -> Dict[str, Any]:
        """Dict without unset fields; used for cache keys and logging."""
        payload: Dict[str, Any] = {}
        if self.country:
            payload["country"] = self.country
        if self.language:
            payload["language"] = self.language
        if self.buyer_identity is not None and not self.buyer_identity.is_empty():
            payload["buyer_identity"] = {k: v for k, v in asdict(self.buyer_identity).items() if v}
        return payload

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "RequestContext":
        if not payload:
            return cls()
        buyer = payload.get("buyer_identity") or payload.get("buyerIdentity")
        buyer_identity = None
        if buyer:
            buyer_identity = BuyerIdentity(
                customer_access_token=buyer.get("customer_access_token") or buyer.get("customerAccessToken"),
                email=buyer.get("email"),
                phone=buyer.get("phone"),
                country_code=buyer.get("country_code") or buyer.get("countryCode"),
            )
        return cls(
            country=payload.get("country"),
            language=payload.get("language"),
            buyer_identity=buyer_identity,
        )
