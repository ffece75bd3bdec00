"""
Parked / for-sale page detection.

Best-effort heuristics: broker signatures, generic parking phrases, a
visible asking price and sparse page content each add an indicator. The
verdict and confidence are derived from the indicators (see
ParkingEvidence), never set on their own.
"""

import re
from urllib.parse import urlsplit

from .models import Broker, ParkingEvidence

# Price detection thresholds
MIN_DOMAIN_PRICE = 50  # smaller numbers are usually unrelated ("$3 shipping")
MAX_DOMAIN_PRICE = 1_000_000

MINIMAL_CONTENT_WORDS = 50

BROKER_SIGNATURES: dict[Broker, list[str]] = {
    Broker.SEDO: ["sedo.com/", 'href="https://sedo.com', "Sedo.com", "powered by sedo"],
    Broker.DAN: ["dan.com/", 'href="https://dan.com', "Dan.com domain"],
    Broker.AFTERNIC: ["afternic.com/", "Afternic.com"],
    Broker.GODADDY: ["godaddy.com/", "GoDaddy Auctions", "Get this domain at GoDaddy"],
    Broker.NAMECHEAP: ["namecheap.com/market", "Namecheap Marketplace"],
    Broker.HUGEDOMAINS: ["hugedomains.com/", "HugeDomains.com"],
    Broker.PARKINGCREW: ["parkingcrew.com", "Powered by ParkingCrew"],
    Broker.BODIS: ["bodis.com/", "Bodis.com"],
}

# Hosts (and subdomains) that only serve broker or parking pages, with the
# path prefix the page must be under.
BROKER_HOSTS: dict[Broker, list[tuple[str, str]]] = {
    Broker.SEDO: [("sedo.com", "/")],
    Broker.DAN: [("dan.com", "/")],
    Broker.AFTERNIC: [("afternic.com", "/")],
    Broker.GODADDY: [("godaddy.com", "/")],
    Broker.NAMECHEAP: [("namecheap.com", "/market")],
    Broker.HUGEDOMAINS: [("hugedomains.com", "/")],
    Broker.PARKINGCREW: [("parkingcrew.com", "/"), ("parkingcrew.net", "/")],
    Broker.BODIS: [("bodis.com", "/")],
}

PARKING_PHRASES = [
    "This domain is for sale",
    "Buy this domain",
    "Make an offer on this domain",
    "Domain parking",
    "Premium domain for sale",
    "Get this domain",
    "Domain is for sale",
    "Inquire about this domain",
    "This domain may be for sale",
    "domain has been registered",
    "parked free",
    "Buy Now for",
]

# Matched against the original-case body so currency symbols survive.
PRICE_PATTERNS = [
    re.compile(r"\$[\d,]+(?:\.\d{2})?"),
    re.compile(r"USD\s*[\d,]+(?:\.\d{2})?", re.IGNORECASE),
    re.compile(r"€[\d,]+(?:\.\d{2})?"),
    re.compile(r"EUR\s*[\d,]+(?:\.\d{2})?", re.IGNORECASE),
]

# A signature must not continue a longer word or host label ("jordan.com/" is not "dan.com/").
_SIGNATURE_PATTERNS = {
    broker: [(signature, re.compile(r"(?<![\w-])" + re.escape(signature.lower()))) for signature in signatures]
    for broker, signatures in BROKER_SIGNATURES.items()
}

_TAG_RE = re.compile(r"<[^>]*>")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")


def _match_brokers(lowered: str) -> tuple[Broker | None, list[str]]:
    """Return the last broker whose signature appears in a page, plus one indicator per hit."""
    broker = None
    indicators = []
    for name, patterns in _SIGNATURE_PATTERNS.items():
        for signature, pattern in patterns:
            if pattern.search(lowered):
                broker = name
                indicators.append(f'Found "{signature}" in page')
    return broker, indicators


def _match_url_broker(url: str) -> tuple[Broker | None, list[str]]:
    """Match a URL by host, so lookalikes such as jordan.com or sedo.com.example.net do not count."""
    try:
        parts = urlsplit(url.strip())
        host = (parts.hostname or "").rstrip(".")
    except ValueError:
        return None, []

    for broker, hosts in BROKER_HOSTS.items():
        for domain, path_prefix in hosts:
            if host != domain and not host.endswith("." + domain):
                continue
            if (parts.path or "/").startswith(path_prefix):
                return broker, [f"URL host {host} belongs to {domain}"]
    return None, []


def _price_value(text: str) -> float | None:
    try:
        return float(_NON_NUMERIC_RE.sub("", text))
    except ValueError:
        return None


def extract_prices(html: str) -> list[str]:
    """
    First plausible domain price per pattern family, in pattern order.

    A match counts only if its value lies in [MIN_DOMAIN_PRICE, MAX_DOMAIN_PRICE].
    """
    found = []
    for pattern in PRICE_PATTERNS:
        for match in pattern.finditer(html):
            value = _price_value(match.group(0))
            if value is not None and MIN_DOMAIN_PRICE <= value <= MAX_DOMAIN_PRICE:
                found.append(match.group(0))
                break
    return found


def word_count(html: str) -> int:
    """Number of whitespace-separated words once all tags are stripped."""
    return len(_TAG_RE.sub("", html).split())


def classify(html: bytes | str, final_url: str | None = None) -> ParkingEvidence:
    """
    Classify a page body.

    Args:
        html: Response body, possibly a truncated prefix. Bytes are decoded
              as UTF-8 with replacement.
        final_url: URL the body was served from; broker hosts in it count
                   as evidence too.

    Returns:
        ParkingEvidence with indicators in the order they were found.
    """
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")

    lowered = html.lower()
    broker, indicators = _match_brokers(lowered)

    if final_url:
        url_broker, url_indicators = _match_url_broker(final_url)
        broker = broker or url_broker
        indicators.extend(url_indicators)

    for phrase in PARKING_PHRASES:
        if phrase.lower() in lowered:
            indicators.append(f'Found "{phrase}"')

    prices = extract_prices(html)
    for price in prices:
        indicators.append(f"Price detected: {price}")

    if indicators and word_count(html) < MINIMAL_CONTENT_WORDS:
        indicators.append("Minimal page content")

    return ParkingEvidence(
        indicators=tuple(indicators),
        broker=broker,
        estimated_price=prices[0] if prices else None,
    )


def classify_url(url: str) -> ParkingEvidence:
    """Broker-signature check on a URL alone, used on redirect destinations."""
    broker, indicators = _match_url_broker(url)
    return ParkingEvidence(indicators=tuple(indicators), broker=broker)
