"""
Tests for the HTTP verification service.

Usage:
    pytest test_verification.py
"""

import asyncio

import httpx

from domain_status_mcp.fetcher import MAX_REDIRECTS, MAX_RESPONSE_SIZE
from domain_status_mcp.models import Broker, VerificationStatus
from domain_status_mcp.verification import HttpVerificationService

FILLER = " ".join(["content"] * 80)
NORMAL_PAGE = f"<html><body><h1>Welcome</h1><p>{FILLER}</p></body></html>".encode()
PARKED_PAGE = b"<html><body><h1>Buy this domain</h1><p>Make an offer on this domain</p></body></html>"


def run_sync(coro):
    return asyncio.run(coro)


def html(body: bytes, status: int = 200) -> httpx.Response:
    return httpx.Response(status, headers={"content-type": "text/html"}, content=body)


async def verify(handler, domain: str, **kwargs):
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = HttpVerificationService(client=client, group_pause=0, **kwargs)
        return await service.verify_domain(domain)


async def verify_many(handler, domains: list[str], **kwargs):
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = HttpVerificationService(client=client, group_pause=0, **kwargs)
        return await service.verify_bulk(domains)


# =============================================================================
# Single domain
# =============================================================================

def test_live_site_is_taken():
    outcome = run_sync(verify(lambda request: html(NORMAL_PAGE), "example.com"))

    assert outcome.status is VerificationStatus.TAKEN
    assert outcome.http_status == 200
    assert outcome.parking_evidence is None
    assert outcome.final_url is None


def test_parked_page_without_broker():
    outcome = run_sync(verify(lambda request: html(PARKED_PAGE), "example.com"))

    assert outcome.status is VerificationStatus.PARKED
    assert outcome.parking_evidence.is_parked
    assert outcome.parking_evidence.broker is None


def test_parked_page_with_broker_is_for_sale():
    body = b'<html><body>Buy this domain <a href="https://dan.com/buy-domain/example.com">Dan.com domain</a></body></html>'
    outcome = run_sync(verify(lambda request: html(body), "example.com"))

    assert outcome.status is VerificationStatus.FOR_SALE
    assert outcome.parking_evidence.broker is Broker.DAN


def test_https_failure_falls_back_to_http():
    seen = []

    def handler(request):
        seen.append(request.url.scheme)
        if request.url.scheme == "https":
            raise httpx.ConnectError("tls handshake failed", request=request)
        return html(NORMAL_PAGE)

    outcome = run_sync(verify(handler, "example.com"))

    assert outcome.status is VerificationStatus.TAKEN
    assert seen == ["https", "http"]


def test_both_schemes_failing_is_unknown_not_available():
    def handler(request):
        raise httpx.ConnectError("no route", request=request)

    outcome = run_sync(verify(handler, "example.com"))
    assert outcome.status is VerificationStatus.UNKNOWN


def test_timeout_is_unknown():
    async def handler(request):
        await asyncio.sleep(1)
        return html(NORMAL_PAGE)

    outcome = run_sync(verify(handler, "example.com", timeout=0.05))
    assert outcome.status is VerificationStatus.UNKNOWN


def test_error_status_is_taken():
    outcome = run_sync(verify(lambda request: html(b"<html>Forbidden</html>", status=403), "example.com"))
    assert outcome.status is VerificationStatus.TAKEN
    assert outcome.http_status == 403


def test_non_html_is_taken():
    outcome = run_sync(verify(
        lambda request: httpx.Response(200, headers={"content-type": "application/json"}, content=b"{}"),
        "example.com",
    ))
    assert outcome.status is VerificationStatus.TAKEN


def test_oversized_parked_page_is_classified_from_its_prefix():
    head = b"<html><body><h1>Buy this domain</h1><p>Make an offer on this domain</p><p>"
    # The cap falls inside a three-byte character.
    padding = b"a" * (MAX_RESPONSE_SIZE - len(head) - 1)
    body = head + padding + "\u20ac".encode() * 4096 + b"</p></body></html>"
    assert len(body) > MAX_RESPONSE_SIZE

    outcome = run_sync(verify(lambda request: html(body), "example.com"))

    assert outcome.status is VerificationStatus.PARKED
    assert 'Found "Buy this domain"' in outcome.parking_evidence.indicators
    assert 'Found "Make an offer on this domain"' in outcome.parking_evidence.indicators


# =============================================================================
# Redirects
# =============================================================================

def test_relative_redirect_is_followed():
    def handler(request):
        if request.url.path == "/":
            return httpx.Response(301, headers={"location": "/landing"})
        return html(NORMAL_PAGE)

    outcome = run_sync(verify(handler, "example.com"))

    assert outcome.status is VerificationStatus.TAKEN
    assert outcome.final_url == "https://example.com/landing"


def test_redirect_to_broker_short_circuits():
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        return httpx.Response(302, headers={"location": "https://sedo.com/search/details/?domain=example.com"})

    outcome = run_sync(verify(handler, "example.com"))

    assert outcome.status is VerificationStatus.FOR_SALE
    assert outcome.parking_evidence.broker is Broker.SEDO
    assert outcome.final_url.startswith("https://sedo.com/")
    assert outcome.http_status == 302
    # The broker page itself is never fetched.
    assert hosts == ["example.com"]


def test_redirect_to_www_of_lookalike_host_is_followed():
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        if request.url.host == "jordan.com":
            return httpx.Response(301, headers={"location": "https://www.jordan.com/"})
        return html(NORMAL_PAGE)

    outcome = run_sync(verify(handler, "jordan.com"))

    assert outcome.status is VerificationStatus.TAKEN
    assert outcome.parking_evidence is None
    assert outcome.final_url == "https://www.jordan.com/"
    assert hosts == ["jordan.com", "www.jordan.com"]


def test_redirect_to_blocked_target_is_never_requested():
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        return httpx.Response(302, headers={"location": "http://169.254.169.254/latest/meta-data/"})

    outcome = run_sync(verify(handler, "example.com"))

    assert outcome.status is VerificationStatus.UNKNOWN
    assert "169.254.169.254" not in hosts
    assert set(hosts) == {"example.com"}


def test_redirect_without_location_is_unknown():
    outcome = run_sync(verify(lambda request: httpx.Response(302), "example.com"))
    assert outcome.status is VerificationStatus.UNKNOWN


def test_too_many_redirects_is_unknown():
    requests = []

    def handler(request):
        requests.append(str(request.url))
        hop = len(requests)
        return httpx.Response(302, headers={"location": f"/hop{hop}"})

    outcome = run_sync(verify(handler, "example.com"))

    assert outcome.status is VerificationStatus.UNKNOWN
    # One initial request plus MAX_REDIRECTS followed hops, for each scheme.
    assert len(requests) == 2 * (MAX_REDIRECTS + 1)


# =============================================================================
# Blocked hosts
# =============================================================================

def test_blocked_domain_makes_no_request():
    calls = []

    def handler(request):
        calls.append(request)
        return html(NORMAL_PAGE)

    for host in ("localhost", "127.0.0.1", "10.0.0.8", "192.168.0.1", "169.254.169.254", "db.internal"):
        outcome = run_sync(verify(handler, host))
        assert outcome.status is VerificationStatus.UNKNOWN

    assert calls == []


# =============================================================================
# Bulk
# =============================================================================

def test_bulk_respects_group_size():
    in_flight = 0
    peak = 0

    async def handler(request):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return html(NORMAL_PAGE)

    domains = [f"site{i}.com" for i in range(12)]
    results = run_sync(verify_many(handler, domains))

    assert len(results) == 12
    assert set(results) == set(domains)
    assert all(outcome.status is VerificationStatus.TAKEN for outcome in results.values())
    assert 1 < peak <= 5


def test_bulk_mixes_outcomes_and_blocked_hosts():
    def handler(request):
        if request.url.host == "parked.com":
            return html(PARKED_PAGE)
        return html(NORMAL_PAGE)

    results = run_sync(verify_many(handler, ["parked.com", "live.com", "10.0.0.1", "live.com"]))

    assert set(results) == {"parked.com", "live.com", "10.0.0.1"}
    assert results["parked.com"].status is VerificationStatus.PARKED
    assert results["live.com"].status is VerificationStatus.TAKEN
    assert results["10.0.0.1"].status is VerificationStatus.UNKNOWN
