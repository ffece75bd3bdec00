"""
Domain Status MCP Server

An MCP server that reports one canonical status per domain
(available / taken / parked / for_sale / premium / unknown) by merging:
- RDAP registry data (authoritative registration state)
- Registrar pricing (Porkbun, or TLD-List.com with an API key)
- Aftermarket auction listings (Namecheap Auctions, with a token)
- Registrar availability (NameSilo, with an API key)
- A live, SSRF-safe HTTP probe that spots parking and for-sale pages
"""

import json
import logging
import os

from mcp.server.fastmcp import FastMCP

from . import __version__
from .config import ServerConfig, load_config
from .errors import ValidationError
from .models import AftermarketSearchOptions, VerificationStatus
from .providers import (
    NamecheapAuctionsProvider,
    NameSiloProvider,
    PorkbunProvider,
    ProviderRegistry,
    TldListProvider,
)
from .rdap_bootstrap import RdapBootstrap
from .rdap_client import RdapClient
from .resolution import StatusResolutionEngine, merge_pricing
from .validation import normalize_tld
from .verification import HttpVerificationService

# Suppress httpx request logging by default (shows API keys in URLs)
# Set DOMAIN_STATUS_DEBUG=1 to enable verbose HTTP logging
if not os.environ.get("DOMAIN_STATUS_DEBUG"):
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Server version
VERSION = __version__

# Initialize the MCP server
mcp = FastMCP("domain-status")
mcp._mcp_server.version = VERSION

# =============================================================================
# Constants
# =============================================================================

MAX_AUCTION_RESULTS = 100
SEARCH_SORT_OPTIONS = ("price", "ending_soon", "relevance")
BROWSE_SORT_OPTIONS = ("price", "ending_soon")

NO_AUCTION_PROVIDER = (
    "No auction provider configured. "
    "Set NAMECHEAP_AUCTIONS_TOKEN environment variable to enable auction search."
)


# =============================================================================
# Engine wiring
# =============================================================================

_engine: StatusResolutionEngine | None = None


def build_engine(config: ServerConfig) -> StatusResolutionEngine:
    """Create the resolution engine and register every configured provider."""
    providers = ProviderRegistry()

    # TLD-List covers 50+ registrars; Porkbun is the free fallback.
    if config.tld_list_api_key:
        providers.register_pricing_provider(TldListProvider(
            config.tld_list_api_key, timeout=config.pricing_timeout, cache_ttl=config.cache_ttl,
        ))
    else:
        providers.register_pricing_provider(PorkbunProvider(
            timeout=config.pricing_timeout, cache_ttl=config.cache_ttl,
        ))

    providers.register_aftermarket_provider(NamecheapAuctionsProvider(
        config.namecheap_auctions_token,
        timeout=config.aftermarket_timeout,
        cache_ttl=config.auction_cache_ttl,
    ))
    providers.register_availability_provider(NameSiloProvider(
        config.namesilo_api_key, timeout=config.aftermarket_timeout,
    ))

    logger.info("Providers: %s", providers.summary())

    return StatusResolutionEngine(
        registry_client=RdapClient(
            timeout=config.registry_timeout,
            bootstrap=RdapBootstrap(cache_path=config.rdap_bootstrap_cache),
        ),
        providers=providers,
        verifier=HttpVerificationService(timeout=config.http_timeout),
        enable_http_verification=config.enable_http_verification,
        http_bulk_limit=config.http_bulk_limit,
    )


def get_engine() -> StatusResolutionEngine:
    """The process-wide engine, built from the environment on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine(load_config())
    return _engine


def set_engine(engine: StatusResolutionEngine | None) -> None:
    """Replace the process-wide engine (None rebuilds it on next use)."""
    global _engine
    _engine = engine


def _validation_error(e: ValidationError) -> str:
    return json.dumps({"error": str(e), "errorType": "validation"})


# =============================================================================
# Tools
# =============================================================================

@mcp.tool()
def version() -> str:
    """
    Get the version of the Domain Status MCP server.

    Returns:
        Version string including server name and version number.
    """
    return f"Domain Status MCP Server version {VERSION}"


@mcp.tool()
async def lookup_domain(
    domain: str,
    include_pricing: bool = True,
    include_aftermarket: bool = True,
    include_parking: bool = True,
) -> str:
    """
    Comprehensive lookup for one domain: availability, pricing, aftermarket
    listings and parking detection.

    Args:
        domain: The domain to look up (e.g., "example.com")
        include_pricing: Include registrar pricing comparison (default: true)
        include_aftermarket: Include aftermarket/auction listings (default: true)
        include_parking: Probe the live site for parking/for-sale pages (default: true)

    Returns:
        JSON with status (available, taken, parked, for_sale, premium, unknown),
        verificationMethod, registrar, pricing, aftermarket and parking details.
    """
    try:
        resolution = await get_engine().resolve_domain(
            domain,
            include_pricing=include_pricing,
            include_aftermarket=include_aftermarket,
            include_parking=include_parking,
        )
    except ValidationError as e:
        return _validation_error(e)

    return json.dumps(resolution.to_dict())


@mcp.tool()
async def search_domains(
    keyword: str,
    tlds: list[str] | None = None,
    include_aftermarket: bool = True,
    include_parking: bool = False,
) -> str:
    """
    Check a keyword across many TLDs with pricing.

    Args:
        keyword: The name to search, without TLD (e.g., "mybrand")
        tlds: TLDs to check (default: com, net, org, io, co, ai, dev, app,
              xyz, info, biz, me, tv, cc, us, uk)
        include_aftermarket: Include aftermarket listings (default: true)
        include_parking: Probe each domain's live site (default: false)

    Returns:
        JSON with per-domain results and counts per status.
    """
    try:
        batch = await get_engine().search_keyword(
            keyword,
            tlds=tlds,
            include_aftermarket=include_aftermarket,
            include_parking=include_parking,
        )
    except ValidationError as e:
        return _validation_error(e)

    return json.dumps(batch.to_dict())


@mcp.tool()
async def check_bulk(domains: list[str], verify_http: bool = True) -> str:
    """
    Check up to 50 domains for availability.

    Args:
        domains: Full domain names to check (max 50)
        verify_http: Probe live sites for parking (only for 20 domains or fewer)

    Returns:
        JSON with per-domain results and counts per status.
    """
    try:
        batch = await get_engine().check_bulk(domains, verify_http=verify_http)
    except ValidationError as e:
        return _validation_error(e)

    return json.dumps(batch.to_dict())


@mcp.tool()
async def get_tld_pricing(tld: str | None = None) -> str:
    """
    Get registration and renewal pricing for a TLD.

    Args:
        tld: The TLD to price (e.g., "com", ".io"). Omit for all TLDs.

    Returns:
        JSON with prices per registrar and the cheapest registration.
    """
    engine = get_engine()
    if not engine.providers.has_pricing_providers():
        return json.dumps({"error": "No pricing provider configured"})

    if tld is None:
        pricings = await engine.all_tld_pricing()
        return json.dumps({
            "tlds": [p.to_dict() for p in pricings],
            "totalTlds": len(pricings),
        })

    try:
        normalized, pricings = await engine.tld_pricing(tld)
    except ValidationError as e:
        return _validation_error(e)

    summary = merge_pricing(pricings)
    if summary is None:
        return json.dumps({"error": f'TLD "{normalized}" not found or pricing unavailable'})

    return json.dumps({
        "tld": normalized,
        "pricing": [p.to_dict() for p in pricings],
        "cheapest": summary.cheapest.to_dict(),
    })


@mcp.tool()
async def detect_parking(domain: str) -> str:
    """
    Detect whether a domain shows a parking or for-sale page.

    Args:
        domain: The domain to probe over HTTPS/HTTP

    Returns:
        JSON with isParked, status, parking evidence (broker, indicators,
        estimated price, confidence), HTTP status and redirect URL.
    """
    try:
        normalized, outcome = await get_engine().detect_parking(domain)
    except ValidationError as e:
        return _validation_error(e)

    return json.dumps({
        "domain": normalized,
        "isParked": outcome.status in (VerificationStatus.PARKED, VerificationStatus.FOR_SALE),
        **outcome.to_dict(),
    })


async def _auctions(
    query: str,
    tlds: list[str] | None,
    min_price: float | None,
    max_price: float | None,
    sort_by: str,
    max_results: int,
) -> dict:
    engine = get_engine()
    if not engine.providers.has_aftermarket_providers():
        return {"error": NO_AUCTION_PROVIDER}

    options = AftermarketSearchOptions(
        max_results=max(1, min(max_results, MAX_AUCTION_RESULTS)),
        min_price=min_price,
        max_price=max_price,
        tlds=[normalize_tld(t) for t in tlds] if tlds else None,
        sort_by=sort_by,
    )
    result = await engine.search_auctions(query, options)

    response = {"query": query} if query else {}
    if result.error:
        response.update({"error": result.error, "source": result.source, "searchedAt": result.searched_at})
        return response

    response.update({
        "filters": {
            "tlds": options.tlds or "all",
            "minPrice": min_price,
            "maxPrice": max_price,
            "sortBy": sort_by,
        },
        "totalResults": len(result.listings),
        "listings": [listing.to_dict() for listing in result.listings],
        "searchedAt": result.searched_at,
    })
    return response


@mcp.tool()
async def search_auctions(
    query: str,
    tlds: list[str] | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    sort_by: str = "relevance",
    max_results: int = 25,
) -> str:
    """
    Search domain auctions by keyword. Only auction listings are returned
    (Buy Now listings have no public API).

    Args:
        query: Search keywords (e.g., "crypto"); matches domain names containing them
        tlds: Only include these TLDs (e.g., ["com", "io"])
        min_price: Minimum price in USD
        max_price: Maximum price in USD
        sort_by: "price", "ending_soon", or "relevance" (default)
        max_results: Maximum results (default: 25, max: 100)

    Returns:
        JSON with matching listings: price, bid count, end time and domain metrics.
    """
    query = (query or "").strip()
    if not query:
        return _validation_error(ValidationError("query is required"))
    if sort_by not in SEARCH_SORT_OPTIONS:
        return _validation_error(ValidationError(f"Invalid sort_by '{sort_by}'. Use {', '.join(SEARCH_SORT_OPTIONS)}"))

    try:
        response = await _auctions(query, tlds, min_price, max_price, sort_by, max_results)
    except ValidationError as e:
        return _validation_error(e)
    return json.dumps(response)


@mcp.tool()
async def browse_auctions(
    tlds: list[str] | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    sort_by: str = "ending_soon",
    max_results: int = 50,
) -> str:
    """
    Browse all domain auctions without a keyword.

    Args:
        tlds: Only include these TLDs (e.g., ["com", "io"])
        min_price: Minimum price in USD
        max_price: Maximum price in USD
        sort_by: "price" or "ending_soon" (default)
        max_results: Maximum results (default: 50, max: 100)

    Returns:
        JSON with listings: price, bid count, end time and domain metrics.
    """
    if sort_by not in BROWSE_SORT_OPTIONS:
        return _validation_error(ValidationError(f"Invalid sort_by '{sort_by}'. Use {', '.join(BROWSE_SORT_OPTIONS)}"))

    try:
        response = await _auctions("", tlds, min_price, max_price, sort_by, max_results)
    except ValidationError as e:
        return _validation_error(e)
    return json.dumps(response)
