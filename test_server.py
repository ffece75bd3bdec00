"""
Tests for the MCP tool layer.

Tools are called directly (FastMCP's decorator returns the plain
function) against an engine wired with in-memory fakes, plus one pass
through the MCP protocol itself.

Usage:
    pytest test_server.py
"""

import asyncio
import json

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

from domain_status_mcp import server
from domain_status_mcp.config import ServerConfig
from domain_status_mcp.models import (
    AftermarketSearchResult,
    AuctionListing,
    Broker,
    ParkingEvidence,
    RegistrarPrice,
    RegistryResult,
    TldPricing,
    VerificationOutcome,
    VerificationStatus,
)
from domain_status_mcp.providers import AftermarketProvider, PricingProvider, ProviderRegistry
from domain_status_mcp.resolution import StatusResolutionEngine


def run_sync(coro):
    """Helper to run async coroutines synchronously for tests."""
    return asyncio.run(coro)


def call(tool, *args, **kwargs) -> dict:
    return json.loads(run_sync(tool(*args, **kwargs)))


# =============================================================================
# Fakes
# =============================================================================

class FakeRegistry:
    def __init__(self, taken: set[str] = frozenset()):
        self.taken = taken

    def _answer(self, domain):
        if domain in self.taken:
            return RegistryResult(domain=domain, registered=True, registrar="Example Registrar")
        return RegistryResult(domain=domain, available=True)

    async def check_domain(self, domain):
        return self._answer(domain)

    async def check_bulk(self, domains):
        return {d: self._answer(d) for d in domains}


class FakeVerifier:
    def __init__(self, parked: set[str] = frozenset()):
        self.parked = parked

    async def verify_domain(self, domain):
        if domain in self.parked:
            return VerificationOutcome(
                status=VerificationStatus.FOR_SALE,
                parking_evidence=ParkingEvidence(indicators=('Found "Buy this domain"',), broker=Broker.DAN),
                http_status=200,
            )
        return VerificationOutcome(status=VerificationStatus.TAKEN, http_status=200)

    async def verify_bulk(self, domains):
        return {d: await self.verify_domain(d) for d in domains}


class FakePricing(PricingProvider):
    name = "porkbun"

    async def get_tld_pricing(self, tld):
        if tld != "com":
            return None
        return TldPricing.from_prices("com", [RegistrarPrice("Porkbun", 11.08, 11.08)])

    async def get_all_tld_pricing(self):
        return [await self.get_tld_pricing("com")]


class FakeAuctions(AftermarketProvider):
    name = "namecheap-auctions"

    def __init__(self, error: str | None = None):
        self.error = error
        self.options = []

    async def search_listings(self, query, options=None):
        self.options.append(options)
        if self.error:
            return AftermarketSearchResult(query=query, listings=[], source="Namecheap", error=self.error)
        listings = [
            AuctionListing(domain="crypto.io", price=120.0, source="Namecheap", bid_count=4),
            AuctionListing(domain="cryptox.com", price=60.0, source="Namecheap"),
        ]
        return AftermarketSearchResult(query=query, listings=listings, source="Namecheap")

    async def get_domain_listing(self, domain):
        return None


@pytest.fixture
def install_engine():
    """Install an engine built from fakes; restores lazy construction afterwards."""

    def install(pricing=True, auctions=None, taken=frozenset(), parked=frozenset(), **kwargs):
        providers = ProviderRegistry()
        if pricing:
            providers.register_pricing_provider(FakePricing())
        if auctions is not None:
            providers.register_aftermarket_provider(auctions)
        engine = StatusResolutionEngine(
            registry_client=FakeRegistry(set(taken)),
            providers=providers,
            verifier=FakeVerifier(set(parked)),
            **kwargs,
        )
        server.set_engine(engine)
        return engine

    yield install
    server.set_engine(None)


# =============================================================================
# Lookup tools
# =============================================================================

def test_version():
    assert server.version() == f"Domain Status MCP Server version {server.VERSION}"


def test_lookup_domain(install_engine):
    install_engine(taken={"brand.com"}, parked={"brand.com"})
    data = call(server.lookup_domain, "Brand.com")

    assert data["domain"] == "brand.com"
    assert data["status"] == "for_sale"
    assert data["verificationMethod"] == "http_probe"
    assert data["parking"]["broker"] == "dan"
    assert data["pricing"]["cheapest"]["registrar"] == "Porkbun"
    assert data["verifiedAt"].endswith("Z")


def test_lookup_domain_validation_error(install_engine):
    install_engine()
    data = call(server.lookup_domain, "not a domain")

    assert data["errorType"] == "validation"
    assert "Invalid domain format" in data["error"]


def test_search_domains(install_engine):
    install_engine(taken={"acme.com"})
    data = call(server.search_domains, "acme", tlds=["com", "io"])

    assert data["query"] == "acme"
    assert data["tlds"] == ["com", "io"]
    assert [r["status"] for r in data["results"]] == ["taken", "available"]
    assert data["totalChecked"] == 2
    assert data["taken"] == 1 and data["available"] == 1


def test_check_bulk_tool(install_engine):
    install_engine(taken={"a.com"})
    data = call(server.check_bulk, ["a.com", "b.com"], verify_http=False)

    assert data["totalChecked"] == 2
    assert data["taken"] == 1

    too_many = call(server.check_bulk, [f"d{i}.com" for i in range(51)])
    assert too_many["errorType"] == "validation"


def test_detect_parking_tool(install_engine):
    install_engine(parked={"parked.com"})

    parked = call(server.detect_parking, "parked.com")
    assert parked["isParked"] is True
    assert parked["status"] == "for_sale"
    assert parked["parkingDetection"]["broker"] == "dan"

    live = call(server.detect_parking, "live.com")
    assert live["isParked"] is False
    assert live["httpStatus"] == 200


# =============================================================================
# Pricing
# =============================================================================

def test_tld_pricing(install_engine):
    install_engine()
    data = call(server.get_tld_pricing, ".COM")

    assert data["tld"] == "com"
    assert data["cheapest"]["registrationPrice"] == 11.08
    assert len(data["pricing"]) == 1


def test_tld_pricing_unknown_and_all(install_engine):
    install_engine()

    assert "not found" in call(server.get_tld_pricing, "zzz")["error"]
    everything = call(server.get_tld_pricing)
    assert everything["totalTlds"] == 1


def test_tld_pricing_without_providers(install_engine):
    install_engine(pricing=False)
    assert call(server.get_tld_pricing, "com") == {"error": "No pricing provider configured"}


# =============================================================================
# Auctions
# =============================================================================

def test_auctions_without_provider(install_engine):
    install_engine()
    assert call(server.search_auctions, "crypto")["error"] == server.NO_AUCTION_PROVIDER
    assert call(server.browse_auctions)["error"] == server.NO_AUCTION_PROVIDER


def test_search_auctions(install_engine):
    auctions = FakeAuctions()
    install_engine(auctions=auctions)

    data = call(server.search_auctions, "crypto", tlds=[".IO"], max_price=500, sort_by="price", max_results=500)

    assert data["query"] == "crypto"
    assert data["totalResults"] == 2
    assert data["listings"][0]["bidCount"] == 4
    assert data["filters"] == {"tlds": ["io"], "minPrice": None, "maxPrice": 500, "sortBy": "price"}
    assert auctions.options[0].max_results == server.MAX_AUCTION_RESULTS


def test_search_auctions_rejects_bad_input(install_engine):
    install_engine(auctions=FakeAuctions())

    assert call(server.search_auctions, "  ")["errorType"] == "validation"
    assert call(server.search_auctions, "x", sort_by="newest")["errorType"] == "validation"
    assert call(server.browse_auctions, sort_by="relevance")["errorType"] == "validation"


def test_browse_auctions(install_engine):
    install_engine(auctions=FakeAuctions())
    data = call(server.browse_auctions, min_price=10)

    assert "query" not in data
    assert data["filters"]["tlds"] == "all"
    assert data["filters"]["sortBy"] == "ending_soon"


def test_auction_error_is_reported(install_engine):
    install_engine(auctions=FakeAuctions(error="namecheap-auctions: HTTP 500"))
    data = call(server.browse_auctions)

    assert data["error"] == "namecheap-auctions: HTTP 500"
    assert "listings" not in data


# =============================================================================
# Wiring
# =============================================================================

def test_build_engine_without_credentials():
    engine = server.build_engine(ServerConfig())
    assert engine.providers.summary() == {"pricing": ["porkbun"], "aftermarket": [], "availability": []}
    assert engine.enable_http_verification


def test_build_engine_with_credentials():
    engine = server.build_engine(ServerConfig(
        tld_list_api_key="tl",
        namecheap_auctions_token="nc",
        namesilo_api_key="ns",
        enable_http_verification=False,
    ))
    assert engine.providers.summary() == {
        "pricing": ["tld-list"],
        "aftermarket": ["namecheap-auctions"],
        "availability": ["namesilo"],
    }
    assert not engine.enable_http_verification


def test_tools_over_mcp_protocol(install_engine):
    install_engine()

    async def session():
        async with create_connected_server_and_client_session(server.mcp._mcp_server) as client:
            tools = await client.list_tools()
            result = await client.call_tool("version", {})
            return {tool.name for tool in tools.tools}, result.content[0].text

    names, text = run_sync(session())

    assert names == {
        "version", "lookup_domain", "search_domains", "check_bulk", "get_tld_pricing",
        "detect_parking", "search_auctions", "browse_auctions",
    }
    assert text == f"Domain Status MCP Server version {server.VERSION}"
