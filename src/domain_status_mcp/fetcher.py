"""
Bounded, SSRF-safe HTTP fetching.

A single GET per call. Redirects are never followed by the transport:
the caller gets the 3xx back and must pass it through `resolve_redirect`,
which validates the destination with the same host policy as the first
request before anything is sent to it.
"""

import asyncio
import ipaddress
import logging
import re
import socket
from dataclasses import dataclass

import httpx

from .errors import BlockedTarget, NetworkFailure, RedirectPolicyViolation

logger = logging.getLogger(__name__)

MAX_RESPONSE_SIZE = 1024 * 1024  # 1 MiB
MAX_REDIRECTS = 5
DEFAULT_TIMEOUT = 10.0

ALLOWED_SCHEMES = ("http", "https")

BLOCKED_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),  # link-local, cloud metadata
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("fc00::/7"),
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "metadata",
    "metadata.google.internal",
    "metadata.goog",
    "instance-data",
    "instance-data.ec2.internal",
}

BLOCKED_SUFFIXES = (".internal", ".localhost")

# Hosts made only of digits, hex letters, "x" and dots may be shorthand
# IPv4 ("127.1", "0x7f.1", "2130706433") that resolvers still accept.
_NUMERIC_HOST_RE = re.compile(r"^[0-9a-fx.]+$")


def _parse_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Interpret a host as an IP address, including legacy IPv4 notations."""
    candidate = host.strip("[]")
    try:
        return ipaddress.ip_address(candidate.split("%", 1)[0])
    except ValueError:
        pass

    if _NUMERIC_HOST_RE.match(candidate) and any(ch.isdigit() for ch in candidate):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(candidate))
        except OSError:
            return None
    return None


def is_blocked_host(host: str) -> bool:
    """
    Return True if a hostname or IP literal must never be contacted.

    Covers loopback, RFC 1918, link-local (including the cloud metadata
    range), unique-local IPv6, `localhost`, known metadata hostnames and
    anything under `.internal`.
    """
    normalized = host.strip().lower().rstrip(".")
    if not normalized:
        return True

    if normalized in BLOCKED_HOSTNAMES or normalized.endswith(BLOCKED_SUFFIXES):
        return True
    if "metadata.google" in normalized:
        return True

    ip = _parse_ip(normalized)
    if ip is None:
        return False

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    return any(ip in network for network in BLOCKED_NETWORKS if network.version == ip.version)


def check_target(url: str | httpx.URL) -> httpx.URL:
    """Parse `url` and raise BlockedTarget unless it is safe to request."""
    try:
        parsed = httpx.URL(str(url))
    except httpx.InvalidURL as e:
        raise RedirectPolicyViolation(f"Invalid URL: {e}") from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise BlockedTarget(parsed.host or str(url))
    if is_blocked_host(parsed.host):
        raise BlockedTarget(parsed.host)

    return parsed


@dataclass
class RawProbeResult:
    """One hop's response, with the body already capped and buffered."""

    url: str
    status_code: int
    content_type: str = ""
    location: str | None = None
    body: bytes | None = None
    encoding: str | None = None
    truncated: bool = False

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()

    def text(self) -> str:
        """Decode the (possibly truncated) body; undecodable bytes are replaced."""
        if not self.body:
            return ""
        try:
            return self.body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class BoundedFetcher:
    """
    Performs single GET requests with SSRF checks, a per-hop deadline and
    a response size cap.

    Usage:
        fetcher = BoundedFetcher(client, timeout=10.0)
        raw = await fetcher.fetch("https://example.com")
        if raw.is_redirect:
            next_url = fetcher.resolve_redirect(raw)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: int = MAX_RESPONSE_SIZE,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._max_bytes = max_bytes

    async def fetch(self, url: str) -> RawProbeResult:
        """
        Issue one GET to `url`.

        Raises:
            BlockedTarget: the host is on the blocklist (no request is sent).
            NetworkFailure: DNS, connect, TLS, protocol error or timeout.
            RedirectPolicyViolation: the URL cannot be parsed.
        """
        target = check_target(url)

        try:
            return await asyncio.wait_for(self._get(target), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise NetworkFailure(f"Timed out after {self._timeout}s fetching {target.host}") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"{type(e).__name__} fetching {target.host}: {e}") from e

    def resolve_redirect(self, raw: RawProbeResult) -> str:
        """
        Resolve the Location of a 3xx response against the URL that produced
        it and validate the destination.

        Raises:
            RedirectPolicyViolation: no Location header or an unusable one.
            BlockedTarget: the destination host is on the blocklist.
        """
        if not raw.location:
            raise RedirectPolicyViolation(f"Redirect without Location header from {raw.url}")

        try:
            destination = httpx.URL(raw.url).join(raw.location)
        except httpx.InvalidURL as e:
            raise RedirectPolicyViolation(f"Invalid redirect location: {e}") from e

        return str(check_target(destination))

    async def _get(self, url: httpx.URL) -> RawProbeResult:
        headers = {"Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"}

        async with self._client.stream("GET", url, headers=headers, follow_redirects=False) as response:
            content_type = response.headers.get("content-type", "")
            raw = RawProbeResult(
                url=str(url),
                status_code=response.status_code,
                content_type=content_type,
                location=response.headers.get("location"),
                encoding=response.charset_encoding,
            )

            if raw.is_redirect or not raw.is_html:
                return raw

            raw.body, raw.truncated = await self._read_capped(response)
            return raw

    async def _read_capped(self, response: httpx.Response) -> tuple[bytes, bool]:
        """Read at most `max_bytes`; anything past the cap is never buffered."""
        chunks: list[bytes] = []
        total = 0

        async for chunk in response.aiter_bytes():
            remaining = self._max_bytes - total
            if len(chunk) > remaining:
                chunks.append(chunk[:remaining])
                logger.debug("Response from %s truncated at %d bytes", response.url.host, self._max_bytes)
                return b"".join(chunks), True
            chunks.append(chunk)
            total += len(chunk)

        return b"".join(chunks), False
