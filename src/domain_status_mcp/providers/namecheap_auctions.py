"""
Namecheap Auctions aftermarket provider.

Uses the dedicated Auctions API (aftermarketapi.namecheap.com) with a
bearer token from the Namecheap account settings, which is separate from
the main Namecheap API credentials. The API only returns auctions:
Buy Now listings have no public API.

The API supports keyword search, cursor pagination and price ordering.
Price, TLD and listing-type filters are applied client-side.

API docs: https://aftermarketapi.namecheap.com/client/docs/
"""

import logging

import httpx

from ..errors import UpstreamError
from ..httpclient import client_scope
from ..models import AftermarketSearchOptions, AftermarketSearchResult, AuctionListing
from .base import AftermarketProvider, TtlCache

logger = logging.getLogger(__name__)

NAMECHEAP_AUCTIONS_API_URL = "https://aftermarketapi.namecheap.com/client/api"
DEFAULT_TIMEOUT = 30.0
SOURCE_NAME = "Namecheap"


def _sale_domain(sale: dict) -> str:
    name = str(sale.get("name") or "")
    if "." in name or not sale.get("tld"):
        return name.lower()
    return f"{name}.{str(sale['tld']).lstrip('.')}".lower()


def convert_sale(sale: dict) -> AuctionListing:
    """
    Convert one `/sales` item into an AuctionListing.

    Raises:
        ValueError: the item has no usable price.
    """
    domain = _sale_domain(sale)
    try:
        price = float(sale.get("price") or 0)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Unusable price {sale.get('price')!r} for {domain}") from e

    return AuctionListing(
        domain=domain,
        price=price,
        source=SOURCE_NAME,
        listing_type="auction",
        listing_url=f"https://www.namecheap.com/market/{domain}/",
        end_time=sale.get("endDate"),
        bid_count=sale.get("bidCount"),
        start_price=sale.get("startPrice"),
        min_bid=sale.get("minBid"),
        renewal_price=sale.get("renewPrice"),
        metrics={
            "backlinks": sale.get("backlinksCount"),
            "extensionsTaken": sale.get("extensionsTaken"),
            "cloudflareRanking": sale.get("cloudflareRanking"),
            "ahrefsDomainRating": sale.get("ahrefsDomainRating"),
            "estimatedValue": sale.get("estimatedValue"),
        },
    )


def _convert_items(data: dict) -> list[AuctionListing]:
    """Convert every usable `items` entry; malformed ones are logged and skipped."""
    listings = []
    for sale in data.get("items") or []:
        if not isinstance(sale, dict):
            continue
        try:
            listings.append(convert_sale(sale))
        except ValueError as e:
            logger.debug("Skipping Namecheap sale: %s", e)
    return listings


def matches_filters(listing: AuctionListing, options: AftermarketSearchOptions) -> bool:
    """Client-side filters the Auctions API cannot apply itself."""
    if options.listing_type and options.listing_type != "all":
        if listing.listing_type != options.listing_type:
            return False

    if options.min_price is not None and listing.price < options.min_price:
        return False
    if options.max_price is not None and listing.price > options.max_price:
        return False

    if options.tlds:
        wanted = {t.lower().lstrip(".") for t in options.tlds}
        if listing.domain.rsplit(".", 1)[-1] not in wanted:
            return False

    return True


class NamecheapAuctionsProvider(AftermarketProvider):
    """
    Namecheap marketplace auctions.

    Usage:
        provider = NamecheapAuctionsProvider(token)
        result = await provider.search_listings("crypto", AftermarketSearchOptions(max_results=25))
        listing = await provider.get_domain_listing("crypto.io")
    """

    name = "namecheap-auctions"

    def __init__(
        self,
        token: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        cache_ttl: float = 300,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token or ""
        self._timeout = timeout
        self._client = client
        self._cache = TtlCache(cache_ttl)

    def is_configured(self) -> bool:
        return bool(self._token)

    async def _fetch_sales(self, client: httpx.AsyncClient, params: dict) -> dict:
        query = {k: v for k, v in params.items() if v is not None and v != ""}
        response = await client.get(
            f"{NAMECHEAP_AUCTIONS_API_URL}/sales",
            params=query,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/json",
            },
            timeout=self._timeout,
        )

        if response.status_code != 200:
            raise UpstreamError(self.name, f"HTTP {response.status_code} - {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(self.name, f"Invalid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
            raise UpstreamError(self.name, "Unexpected response shape")
        return data

    async def search_listings(
        self,
        query: str,
        options: AftermarketSearchOptions | None = None,
    ) -> AftermarketSearchResult:
        options = options or AftermarketSearchOptions()

        if not self.is_configured():
            return AftermarketSearchResult(
                query=query,
                listings=[],
                source=SOURCE_NAME,
                error="Namecheap Auctions API not configured. Set NAMECHEAP_AUCTIONS_TOKEN.",
            )

        params = {"keywords": query, "page": 1}
        # The API only understands price ordering; anything else uses its default.
        if options.sort_by == "price":
            params["orderBy"] = "price"
            params["direction"] = "asc"

        listings: list[AuctionListing] = []
        try:
            async with client_scope(self._client, self._timeout) as client:
                has_more = True
                while has_more and len(listings) < options.max_results:
                    data = await self._fetch_sales(client, params)

                    for listing in _convert_items(data):
                        if not matches_filters(listing, options):
                            continue
                        listings.append(listing)
                        if len(listings) >= options.max_results:
                            break

                    cursor = data.get("cursor")
                    has_more = bool(data.get("hasMore")) and bool(cursor)
                    params["cursor"] = cursor
        except (httpx.HTTPError, UpstreamError) as e:
            logger.warning("Namecheap Auctions search for %r failed: %s", query, e)
            return AftermarketSearchResult(query=query, listings=[], source=SOURCE_NAME, error=str(e))

        if options.sort_by == "ending_soon":
            listings.sort(key=lambda listing: (listing.end_time is None, listing.end_time or ""))

        return AftermarketSearchResult(query=query, listings=listings, source=SOURCE_NAME)

    async def get_domain_listing(self, domain: str) -> AuctionListing | None:
        if not self.is_configured():
            return None

        domain = domain.lower()
        cached = self._cache.get(domain)
        if cached is not None:
            return cached

        try:
            async with client_scope(self._client, self._timeout) as client:
                data = await self._fetch_sales(client, {"name": domain})
        except (httpx.HTTPError, UpstreamError) as e:
            logger.warning("Namecheap Auctions lookup for %s failed: %s", domain, e)
            return None

        # The API may return partial matches.
        for listing in _convert_items(data):
            if listing.domain == domain:
                self._cache.set(domain, listing)
                return listing

        return None

    def clear_cache(self) -> None:
        self._cache.clear()
