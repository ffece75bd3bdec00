"""
Tests for the bounded, SSRF-safe fetcher.

Usage:
    pytest test_fetcher.py
"""

import asyncio

import httpx
import pytest

from domain_status_mcp.errors import BlockedTarget, NetworkFailure, RedirectPolicyViolation
from domain_status_mcp.fetcher import (
    MAX_RESPONSE_SIZE,
    BoundedFetcher,
    RawProbeResult,
    check_target,
    is_blocked_host,
)


def run_sync(coro):
    return asyncio.run(coro)


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class CountingHandler:
    """MockTransport handler that records every request it sees."""

    def __init__(self, response: httpx.Response | None = None):
        self.requests: list[httpx.Request] = []
        self.response = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.response is not None:
            return self.response
        return httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html>ok</html>")


async def fetch_with(handler, url: str, **kwargs) -> RawProbeResult:
    async with make_client(handler) as client:
        return await BoundedFetcher(client, **kwargs).fetch(url)


# =============================================================================
# Host policy
# =============================================================================

BLOCKED_HOSTS = [
    "localhost",
    "LOCALHOST",
    "api.localhost",
    "127.0.0.1",
    "127.8.9.10",
    "10.0.0.5",
    "172.16.4.1",
    "172.31.255.255",
    "192.168.1.1",
    "169.254.169.254",
    "0.0.0.0",
    "::1",
    "[::1]",
    "fe80::1",
    "fd00::1",
    "fc00::abcd",
    "::ffff:127.0.0.1",
    "metadata.google.internal",
    "db.corp.internal",
    "metadata",
    "2130706433",
    "0x7f.1",
    "",
]

ALLOWED_HOSTS = [
    "example.com",
    "8.8.8.8",
    "172.32.0.1",
    "192.169.0.1",
    "internal.example.com",
    "2606:4700::1111",
]


@pytest.mark.parametrize("host", BLOCKED_HOSTS)
def test_blocked_hosts(host):
    assert is_blocked_host(host)


@pytest.mark.parametrize("host", ALLOWED_HOSTS)
def test_allowed_hosts(host):
    assert not is_blocked_host(host)


def test_check_target_rejects_non_http_schemes():
    with pytest.raises(BlockedTarget):
        check_target("ftp://example.com/file")
    with pytest.raises(BlockedTarget):
        check_target("file:///etc/passwd")


def test_check_target_accepts_public_url():
    assert check_target("https://example.com/path").host == "example.com"


# =============================================================================
# Fetching
# =============================================================================

@pytest.mark.parametrize("url", [
    "http://127.0.0.1/",
    "http://10.1.2.3:8080/admin",
    "http://169.254.169.254/latest/meta-data/",
    "http://[::1]/",
    "https://metadata.google.internal/computeMetadata/v1/",
])
def test_blocked_target_sends_no_request(url):
    handler = CountingHandler()
    with pytest.raises(BlockedTarget):
        run_sync(fetch_with(handler, url))
    assert handler.requests == []


def test_fetch_html_body():
    handler = CountingHandler(httpx.Response(
        200,
        headers={"content-type": "text/html; charset=utf-8"},
        content="<html><body>Hello €</body></html>".encode(),
    ))
    raw = run_sync(fetch_with(handler, "https://example.com"))

    assert raw.status_code == 200
    assert raw.is_success and raw.is_html
    assert raw.truncated is False
    assert "Hello €" in raw.text()
    assert len(handler.requests) == 1


def test_redirect_is_not_followed_by_transport():
    handler = CountingHandler(httpx.Response(302, headers={"location": "https://www.example.com/"}))
    raw = run_sync(fetch_with(handler, "https://example.com"))

    assert raw.is_redirect
    assert raw.location == "https://www.example.com/"
    assert raw.body is None
    assert len(handler.requests) == 1


def test_non_html_body_is_not_read():
    handler = CountingHandler(httpx.Response(
        200, headers={"content-type": "application/json"}, content=b'{"ok": true}',
    ))
    raw = run_sync(fetch_with(handler, "https://example.com"))

    assert raw.is_success
    assert not raw.is_html
    assert raw.body is None


def test_body_over_cap_is_truncated():
    body = b"<html><body>Buy this domain " + b"a" * (2 * MAX_RESPONSE_SIZE)
    handler = CountingHandler(httpx.Response(200, headers={"content-type": "text/html"}, content=body))
    raw = run_sync(fetch_with(handler, "https://example.com"))

    assert raw.truncated is True
    assert len(raw.body) == MAX_RESPONSE_SIZE
    assert raw.body == body[:MAX_RESPONSE_SIZE]


def test_custom_cap():
    handler = CountingHandler(httpx.Response(200, headers={"content-type": "text/html"}, content=b"x" * 500))
    raw = run_sync(fetch_with(handler, "https://example.com", max_bytes=100))

    assert raw.truncated is True
    assert raw.body == b"x" * 100


def test_connect_error_becomes_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkFailure):
        run_sync(fetch_with(handler, "https://example.com"))


def test_hop_timeout_becomes_network_failure():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, headers={"content-type": "text/html"}, content=b"late")

    with pytest.raises(NetworkFailure):
        run_sync(fetch_with(handler, "https://example.com", timeout=0.05))


# =============================================================================
# Redirect resolution
# =============================================================================

def test_resolve_relative_redirect():
    fetcher = BoundedFetcher(client=None)
    raw = RawProbeResult(url="https://example.com/a/b", status_code=301, location="/landing?x=1")
    assert fetcher.resolve_redirect(raw) == "https://example.com/landing?x=1"


def test_resolve_redirect_without_location():
    fetcher = BoundedFetcher(client=None)
    raw = RawProbeResult(url="https://example.com/", status_code=302)
    with pytest.raises(RedirectPolicyViolation):
        fetcher.resolve_redirect(raw)


def test_resolve_redirect_to_blocked_target():
    fetcher = BoundedFetcher(client=None)
    raw = RawProbeResult(url="https://example.com/", status_code=302, location="http://169.254.169.254/latest")
    with pytest.raises(BlockedTarget):
        fetcher.resolve_redirect(raw)


def test_resolve_redirect_to_other_scheme():
    fetcher = BoundedFetcher(client=None)
    raw = RawProbeResult(url="https://example.com/", status_code=302, location="gopher://example.com/")
    with pytest.raises(BlockedTarget):
        fetcher.resolve_redirect(raw)
