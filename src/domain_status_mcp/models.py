"""
Data model for domain status resolution.

Probe results and classifier output are immutable. A DomainResolution is
built up step by step inside a single resolution call and then handed
back to the caller; nothing here is shared between concurrent calls.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _compact(data: dict) -> dict:
    """Drop keys whose value is None so serialized output stays small."""
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Enumerations
# =============================================================================

class VerificationStatus(Enum):
    """Outcome of probing a domain over HTTP."""

    AVAILABLE = "available"  # never produced by the prober itself
    TAKEN = "taken"
    PARKED = "parked"
    FOR_SALE = "for_sale"
    UNKNOWN = "unknown"


class DomainStatus(Enum):
    """The single canonical status reported for a domain."""

    AVAILABLE = "available"
    TAKEN = "taken"
    PARKED = "parked"
    FOR_SALE = "for_sale"
    PREMIUM = "premium"
    UNKNOWN = "unknown"


class VerificationMethod(Enum):
    """Which source last decided the status."""

    REGISTRY = "registry"
    HTTP_PROBE = "http_probe"
    REGISTRAR_API = "registrar_api"


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Broker(Enum):
    """Known aftermarket brokers and parking services."""

    SEDO = "sedo"
    DAN = "dan"
    AFTERNIC = "afternic"
    GODADDY = "godaddy"
    NAMECHEAP = "namecheap"
    HUGEDOMAINS = "hugedomains"
    PARKINGCREW = "parkingcrew"
    BODIS = "bodis"


# =============================================================================
# HTTP probing
# =============================================================================

@dataclass(frozen=True)
class ParkingEvidence:
    """
    Classifier output for one page or URL.

    `is_parked` and `confidence` are derived from the indicators and the
    broker, so they can never disagree with the evidence that produced them.
    """

    indicators: tuple[str, ...] = ()
    broker: Broker | None = None
    estimated_price: str | None = None

    @property
    def is_parked(self) -> bool:
        return len(self.indicators) >= 2 or self.broker is not None

    @property
    def confidence(self) -> Confidence:
        if self.broker is not None and len(self.indicators) >= 3:
            return Confidence.HIGH
        if len(self.indicators) >= 2:
            return Confidence.MEDIUM
        return Confidence.LOW

    def to_dict(self) -> dict:
        return _compact({
            "isParked": self.is_parked,
            "broker": self.broker.value if self.broker else None,
            "indicators": list(self.indicators),
            "estimatedPrice": self.estimated_price,
            "confidence": self.confidence.value,
        })


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of probing one domain over HTTP. Never cached."""

    status: VerificationStatus
    parking_evidence: ParkingEvidence | None = None
    http_status: int | None = None
    final_url: str | None = None

    def __post_init__(self) -> None:
        parked = self.status in (VerificationStatus.PARKED, VerificationStatus.FOR_SALE)
        if parked != (self.parking_evidence is not None):
            raise ValueError(
                f"parking_evidence must be set exactly when status is parked/for_sale "
                f"(status={self.status.value})"
            )

    @classmethod
    def unknown(cls) -> "VerificationOutcome":
        return cls(status=VerificationStatus.UNKNOWN)

    def to_dict(self) -> dict:
        return _compact({
            "status": self.status.value,
            "parkingDetection": self.parking_evidence.to_dict() if self.parking_evidence else None,
            "httpStatus": self.http_status,
            "redirectUrl": self.final_url,
        })


# =============================================================================
# Registry lookup
# =============================================================================

@dataclass
class RegistryResult:
    """Answer from the registration-data protocol for one domain."""

    domain: str
    available: bool = False
    registered: bool = False
    registrar: str | None = None
    created_date: str | None = None
    expiration_date: str | None = None
    statuses: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class RegistrarAvailability:
    """Availability answer from a registrar API (e.g. NameSilo)."""

    domain: str
    available: bool
    premium: bool = False
    price: float | None = None
    error: str | None = None


# =============================================================================
# Pricing and aftermarket
# =============================================================================

@dataclass(frozen=True)
class RegistrarPrice:
    registrar: str
    registration_price: float
    renewal_price: float
    currency: str = "USD"
    transfer_price: float | None = None
    promo_price: float | None = None

    def to_dict(self) -> dict:
        return _compact({
            "registrar": self.registrar,
            "registrationPrice": self.registration_price,
            "renewalPrice": self.renewal_price,
            "transferPrice": self.transfer_price,
            "currency": self.currency,
            "promoPrice": self.promo_price,
        })


@dataclass
class TldPricing:
    """Prices for one TLD from one pricing provider."""

    tld: str
    prices: list[RegistrarPrice]
    cheapest_registration: RegistrarPrice | None = None
    cheapest_renewal: RegistrarPrice | None = None
    fetched_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_prices(cls, tld: str, prices: list[RegistrarPrice]) -> "TldPricing":
        return cls(
            tld=tld,
            prices=prices,
            cheapest_registration=min(prices, key=lambda p: p.registration_price, default=None),
            cheapest_renewal=min(prices, key=lambda p: p.renewal_price, default=None),
        )

    def to_dict(self) -> dict:
        return _compact({
            "tld": self.tld,
            "prices": [p.to_dict() for p in self.prices],
            "cheapestRegistration": self.cheapest_registration.to_dict() if self.cheapest_registration else None,
            "cheapestRenewal": self.cheapest_renewal.to_dict() if self.cheapest_renewal else None,
            "fetchedAt": self.fetched_at,
        })


@dataclass(frozen=True)
class AuctionListing:
    domain: str
    price: float
    source: str
    currency: str = "USD"
    listing_type: str = "auction"  # fixed | auction | make_offer
    listing_url: str | None = None
    end_time: str | None = None
    bid_count: int | None = None
    start_price: float | None = None
    min_bid: float | None = None
    renewal_price: float | None = None
    metrics: dict | None = None

    def to_dict(self) -> dict:
        return _compact({
            "domain": self.domain,
            "price": self.price,
            "currency": self.currency,
            "source": self.source,
            "listingType": self.listing_type,
            "listingUrl": self.listing_url,
            "endTime": self.end_time,
            "bidCount": self.bid_count,
            "startPrice": self.start_price,
            "minBid": self.min_bid,
            "renewalPrice": self.renewal_price,
            "metrics": _compact(self.metrics) if self.metrics else None,
        })


@dataclass
class AftermarketSearchOptions:
    max_results: int = 50
    min_price: float | None = None
    max_price: float | None = None
    tlds: list[str] | None = None
    listing_type: str = "all"
    sort_by: str = "relevance"  # price | ending_soon | relevance


@dataclass
class AftermarketSearchResult:
    query: str
    listings: list[AuctionListing]
    source: str
    searched_at: str = field(default_factory=utc_now_iso)
    error: str | None = None


# =============================================================================
# Resolution results
# =============================================================================

@dataclass
class PricingSummary:
    """Merged pricing across every configured pricing provider."""

    registrars: list[RegistrarPrice]
    cheapest: RegistrarPrice | None = None

    def to_dict(self) -> dict:
        return _compact({
            "registrars": [p.to_dict() for p in self.registrars],
            "cheapest": self.cheapest.to_dict() if self.cheapest else None,
        })


@dataclass
class AftermarketSummary:
    listings: list[AuctionListing]

    @property
    def is_listed(self) -> bool:
        return bool(self.listings)

    @property
    def cheapest(self) -> AuctionListing | None:
        return min(self.listings, key=lambda listing: listing.price, default=None)

    def to_dict(self) -> dict:
        return {
            "isListed": self.is_listed,
            "listings": [listing.to_dict() for listing in self.listings],
        }


@dataclass
class DomainResolution:
    """The merged, canonical answer for one domain."""

    domain: str
    tld: str
    status: DomainStatus = DomainStatus.UNKNOWN
    verification_method: VerificationMethod = VerificationMethod.REGISTRY
    registrar: str | None = None
    pricing: PricingSummary | None = None
    aftermarket: AftermarketSummary | None = None
    parking: ParkingEvidence | None = None
    http_status: int | None = None
    redirect_url: str | None = None
    error: str | None = None
    verified_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return _compact({
            "domain": self.domain,
            "tld": self.tld,
            "status": self.status.value,
            "verificationMethod": self.verification_method.value,
            "verifiedAt": self.verified_at,
            "registrar": self.registrar,
            "pricing": self.pricing.to_dict() if self.pricing else None,
            "aftermarket": self.aftermarket.to_dict() if self.aftermarket else None,
            "parking": self.parking.to_dict() if self.parking else None,
            "httpStatus": self.http_status,
            "redirectUrl": self.redirect_url,
            "error": self.error,
        })


@dataclass(frozen=True)
class BatchResolution:
    """Per-domain results plus counts derived from their statuses."""

    results: tuple[DomainResolution, ...]
    query: str | None = None
    tlds: tuple[str, ...] = ()
    searched_at: str = field(default_factory=utc_now_iso)

    @property
    def counts(self) -> dict[DomainStatus, int]:
        tally = Counter(r.status for r in self.results)
        return {status: tally.get(status, 0) for status in DomainStatus}

    def to_dict(self) -> dict:
        counts = self.counts
        return _compact({
            "query": self.query,
            "tlds": list(self.tlds) if self.tlds else None,
            "results": [r.to_dict() for r in self.results],
            "totalChecked": len(self.results),
            "available": counts[DomainStatus.AVAILABLE],
            "taken": counts[DomainStatus.TAKEN],
            "parked": counts[DomainStatus.PARKED],
            "forSale": counts[DomainStatus.FOR_SALE],
            "premium": counts[DomainStatus.PREMIUM],
            "unknown": counts[DomainStatus.UNKNOWN],
            "searchedAt": self.searched_at,
        })
