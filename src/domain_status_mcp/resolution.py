"""
Status Resolution Engine

Merges every signal about a domain into one canonical status. Steps run
in a fixed order and each may only override what came before:

1. Registry (RDAP): base truth. Unregistered -> available,
   registered -> taken, no answer -> unknown.
   Registrar API (NameSilo, optional): fills an `unknown` and flags
   `premium`; never contradicts a registry answer.
2. Pricing: metadata only, never touches the status.
3. Aftermarket: a listing turns `taken` into `for_sale`.
4. HTTP probe: `parked`/`for_sale` always wins; `taken` beats
   `available`; `unknown` changes nothing.

Step 4 letting a live site override a registry "available" is a known
inconsistency (stale DNS, or a genuine registry/HTTP race).
"""

import logging
from typing import Awaitable, TypeVar

import httpx

from .errors import DomainStatusError, ValidationError
from .models import (
    AftermarketSearchOptions,
    AftermarketSearchResult,
    AftermarketSummary,
    AuctionListing,
    BatchResolution,
    DomainResolution,
    DomainStatus,
    PricingSummary,
    RegistrarAvailability,
    RegistryResult,
    TldPricing,
    VerificationMethod,
    VerificationOutcome,
    VerificationStatus,
)
from .providers import ProviderRegistry
from .rdap_client import RdapClient
from .validation import normalize_tld, split_tld, validate_domain, validate_keyword
from .verification import HttpVerificationService

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BULK_DOMAINS = 50
HTTP_BULK_LIMIT = 20
SEARCH_AFTERMARKET_RESULTS = 50

DEFAULT_TLDS = [
    "com", "net", "org", "io", "co", "ai", "dev", "app",
    "xyz", "info", "biz", "me", "tv", "cc", "us", "uk",
]


# =============================================================================
# Merge steps
# =============================================================================

def apply_registry(resolution: DomainResolution, result: RegistryResult | None) -> None:
    """Step 1: set the base status from the registry answer."""
    resolution.verification_method = VerificationMethod.REGISTRY
    if result is None:
        resolution.status = DomainStatus.UNKNOWN
        return

    if result.available:
        resolution.status = DomainStatus.AVAILABLE
    elif result.registered:
        resolution.status = DomainStatus.TAKEN
    else:
        resolution.status = DomainStatus.UNKNOWN

    resolution.registrar = result.registrar
    resolution.error = result.error


def apply_registrar(resolution: DomainResolution, availability: RegistrarAvailability | None) -> None:
    """Registrar availability: fill an unknown, flag premium, never downgrade."""
    if availability is None or availability.error:
        return

    premium = availability.available and availability.premium

    if resolution.status is DomainStatus.UNKNOWN:
        if premium:
            resolution.status = DomainStatus.PREMIUM
        elif availability.available:
            resolution.status = DomainStatus.AVAILABLE
        else:
            resolution.status = DomainStatus.TAKEN
        resolution.verification_method = VerificationMethod.REGISTRAR_API
    elif resolution.status is DomainStatus.AVAILABLE and premium:
        resolution.status = DomainStatus.PREMIUM
        resolution.verification_method = VerificationMethod.REGISTRAR_API


def merge_pricing(pricings: list[TldPricing]) -> PricingSummary | None:
    """
    Combine per-provider pricing, given in provider registration order.

    The headline is the cheapest registration price overall; on a tie the
    earlier provider wins.
    """
    registrars = [price for pricing in pricings for price in pricing.prices]
    if not registrars:
        return None
    # min() keeps the first of equal keys.
    cheapest = min(registrars, key=lambda price: price.registration_price)
    return PricingSummary(registrars=registrars, cheapest=cheapest)


def apply_pricing(resolution: DomainResolution, pricings: list[TldPricing]) -> None:
    """Step 2: attach pricing. Never changes the status."""
    summary = merge_pricing(pricings)
    if summary is not None:
        resolution.pricing = summary


def merge_listings(listings: list[AuctionListing]) -> list[AuctionListing]:
    """One listing per (domain, source); the lower price wins."""
    merged: dict[tuple[str, str], AuctionListing] = {}
    for listing in listings:
        key = (listing.domain.lower(), listing.source)
        existing = merged.get(key)
        if existing is None or listing.price < existing.price:
            merged[key] = listing
    return list(merged.values())


def apply_aftermarket(resolution: DomainResolution, listings: list[AuctionListing]) -> None:
    """Step 3: attach listings; a listed `taken` domain is `for_sale`."""
    merged = merge_listings(listings)
    if not merged:
        return

    resolution.aftermarket = AftermarketSummary(listings=merged)
    if resolution.status is DomainStatus.TAKEN:
        resolution.status = DomainStatus.FOR_SALE


def apply_http(resolution: DomainResolution, outcome: VerificationOutcome | None) -> None:
    """Step 4: apply the live HTTP observation."""
    if outcome is None or outcome.status is VerificationStatus.UNKNOWN:
        return

    if outcome.status in (VerificationStatus.PARKED, VerificationStatus.FOR_SALE):
        resolution.status = DomainStatus(outcome.status.value)
        resolution.parking = outcome.parking_evidence
        resolution.verification_method = VerificationMethod.HTTP_PROBE
    elif outcome.status is VerificationStatus.TAKEN and resolution.status is DomainStatus.AVAILABLE:
        resolution.status = DomainStatus.TAKEN
        resolution.verification_method = VerificationMethod.HTTP_PROBE

    resolution.http_status = outcome.http_status
    resolution.redirect_url = outcome.final_url


# =============================================================================
# Engine
# =============================================================================

class StatusResolutionEngine:
    """
    Runs the merge pipeline for one domain, a keyword across TLDs, or a
    list of domains.

    Args:
        registry_client: RDAP lookup client.
        providers: Configured pricing/aftermarket/availability providers.
        verifier: HTTP verification service.
        enable_http_verification: If False, the HTTP step is skipped in
                                  every pipeline (detect_parking still probes).
        http_bulk_limit: Bulk checks larger than this skip the HTTP step.
    """

    def __init__(
        self,
        registry_client: RdapClient,
        providers: ProviderRegistry,
        verifier: HttpVerificationService,
        enable_http_verification: bool = True,
        http_bulk_limit: int = HTTP_BULK_LIMIT,
    ) -> None:
        self.registry_client = registry_client
        self.providers = providers
        self.verifier = verifier
        self.enable_http_verification = enable_http_verification
        self.http_bulk_limit = http_bulk_limit

    async def _guarded(self, provider_name: str, operation: str, call: Awaitable[T]) -> T | None:
        """Await a provider call; a failure removes only that provider from the merge."""
        try:
            return await call
        except (DomainStatusError, httpx.HTTPError) as e:
            logger.warning("Provider %s failed during %s: %s", provider_name, operation, e)
            return None

    async def _registrar_availability(self, domains: list[str]) -> dict[str, RegistrarAvailability]:
        merged: dict[str, RegistrarAvailability] = {}
        for provider in self.providers.get_availability_providers():
            results = await self._guarded(provider.name, "availability check", provider.check_availability(domains))
            for domain, availability in (results or {}).items():
                if availability.error is None:
                    merged.setdefault(domain, availability)
        return merged

    async def _tld_pricing(self, tld: str) -> list[TldPricing]:
        pricings = []
        for provider in self.providers.get_pricing_providers():
            pricing = await self._guarded(provider.name, f"pricing for .{tld}", provider.get_tld_pricing(tld))
            if pricing is not None:
                pricings.append(pricing)
        return pricings

    # -------------------------------------------------------------------------
    # Single domain
    # -------------------------------------------------------------------------

    async def resolve_domain(
        self,
        domain: str,
        include_pricing: bool = True,
        include_aftermarket: bool = True,
        include_parking: bool = True,
    ) -> DomainResolution:
        """
        Full lookup for one domain.

        Raises:
            ValidationError: malformed domain (before any network call).
        """
        domain = validate_domain(domain)
        tld = split_tld(domain)
        resolution = DomainResolution(domain=domain, tld=tld)

        registry = await self._guarded("rdap", "registry lookup", self.registry_client.check_domain(domain))
        apply_registry(resolution, registry)

        availability = await self._registrar_availability([domain])
        apply_registrar(resolution, availability.get(domain))

        if include_pricing:
            apply_pricing(resolution, await self._tld_pricing(tld))

        if include_aftermarket:
            listings = []
            for provider in self.providers.get_aftermarket_providers():
                listing = await self._guarded(provider.name, "listing lookup", provider.get_domain_listing(domain))
                if listing is not None:
                    listings.append(listing)
            apply_aftermarket(resolution, listings)

        if include_parking and self.enable_http_verification:
            apply_http(resolution, await self.verifier.verify_domain(domain))

        return resolution

    # -------------------------------------------------------------------------
    # Keyword search and bulk
    # -------------------------------------------------------------------------

    async def search_keyword(
        self,
        keyword: str,
        tlds: list[str] | None = None,
        include_aftermarket: bool = True,
        include_parking: bool = False,
    ) -> BatchResolution:
        """
        Check `keyword` under every TLD in `tlds` (DEFAULT_TLDS if omitted).

        Raises:
            ValidationError: malformed keyword or TLD.
        """
        keyword = validate_keyword(keyword)
        tld_list = list(dict.fromkeys(normalize_tld(t) for t in (tlds or DEFAULT_TLDS)))
        if not tld_list:
            raise ValidationError("No TLDs specified")

        domains = [validate_domain(f"{keyword}.{tld}") for tld in tld_list]
        resolutions = [DomainResolution(domain=d, tld=split_tld(d)) for d in domains]

        registry = await self._guarded("rdap", "registry lookup", self.registry_client.check_bulk(domains)) or {}
        availability = await self._registrar_availability(domains)
        for resolution in resolutions:
            apply_registry(resolution, registry.get(resolution.domain))
            apply_registrar(resolution, availability.get(resolution.domain))

        for tld in tld_list:
            pricings = await self._tld_pricing(tld)
            for resolution in resolutions:
                if resolution.tld == tld:
                    apply_pricing(resolution, pricings)

        if include_aftermarket:
            by_domain: dict[str, list[AuctionListing]] = {}
            options = AftermarketSearchOptions(max_results=SEARCH_AFTERMARKET_RESULTS, tlds=tld_list)
            for provider in self.providers.get_aftermarket_providers():
                result = await self._guarded(provider.name, "listing search", provider.search_listings(keyword, options))
                if result is None:
                    continue
                if result.error:
                    logger.warning("Aftermarket search on %s failed: %s", provider.name, result.error)
                for listing in result.listings:
                    by_domain.setdefault(listing.domain.lower(), []).append(listing)

            for resolution in resolutions:
                apply_aftermarket(resolution, by_domain.get(resolution.domain, []))

        if include_parking and self.enable_http_verification and len(domains) <= self.http_bulk_limit:
            outcomes = await self.verifier.verify_bulk(domains)
            for resolution in resolutions:
                apply_http(resolution, outcomes.get(resolution.domain))

        return BatchResolution(results=tuple(resolutions), query=keyword, tlds=tuple(tld_list))

    async def check_bulk(self, domains: list[str], verify_http: bool = True) -> BatchResolution:
        """
        Registry (+ registrar) status for up to MAX_BULK_DOMAINS domains,
        plus HTTP verification when the batch is small enough.

        Raises:
            ValidationError: empty or oversized list, or any malformed domain.
        """
        if not isinstance(domains, list) or not domains:
            raise ValidationError("domains must be a non-empty list")
        if len(domains) > MAX_BULK_DOMAINS:
            raise ValidationError(f"Maximum {MAX_BULK_DOMAINS} domains per request")

        normalized = []
        errors = []
        for index, domain in enumerate(domains):
            try:
                normalized.append(validate_domain(domain))
            except ValidationError as e:
                errors.append(f"domains[{index}]: {e}")
        if errors:
            raise ValidationError("; ".join(errors))

        unique = list(dict.fromkeys(normalized))
        resolutions = [DomainResolution(domain=d, tld=split_tld(d)) for d in unique]

        registry = await self._guarded("rdap", "registry lookup", self.registry_client.check_bulk(unique)) or {}
        availability = await self._registrar_availability(unique)
        for resolution in resolutions:
            apply_registry(resolution, registry.get(resolution.domain))
            apply_registrar(resolution, availability.get(resolution.domain))

        if verify_http and self.enable_http_verification and len(unique) <= self.http_bulk_limit:
            outcomes = await self.verifier.verify_bulk(unique)
            for resolution in resolutions:
                apply_http(resolution, outcomes.get(resolution.domain))

        return BatchResolution(results=tuple(resolutions))

    # -------------------------------------------------------------------------
    # Pass-throughs used by the tool layer
    # -------------------------------------------------------------------------

    async def detect_parking(self, domain: str) -> tuple[str, VerificationOutcome]:
        """Probe one domain over HTTP. Returns the normalized domain and outcome."""
        domain = validate_domain(domain)
        return domain, await self.verifier.verify_domain(domain)

    async def tld_pricing(self, tld: str) -> tuple[str, list[TldPricing]]:
        tld = normalize_tld(tld)
        return tld, await self._tld_pricing(tld)

    async def all_tld_pricing(self) -> list[TldPricing]:
        """Every TLD from every pricing provider, in provider order."""
        pricings = []
        for provider in self.providers.get_pricing_providers():
            result = await self._guarded(provider.name, "all pricing", provider.get_all_tld_pricing())
            pricings.extend(result or [])
        return pricings

    async def search_auctions(self, query: str, options: AftermarketSearchOptions) -> AftermarketSearchResult:
        """
        Search every aftermarket provider. Stops at the first provider that
        reports an error and returns that error.
        """
        listings: list[AuctionListing] = []
        sources = []
        for provider in self.providers.get_aftermarket_providers():
            result = await self._guarded(provider.name, "listing search", provider.search_listings(query, options))
            if result is None:
                return AftermarketSearchResult(query=query, listings=[], source=provider.name,
                                               error=f"{provider.name} search failed")
            if result.error:
                return result
            sources.append(result.source)
            listings.extend(result.listings)

        return AftermarketSearchResult(
            query=query,
            listings=listings[:options.max_results],
            source=", ".join(sources),
        )
