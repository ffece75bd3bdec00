"""
Porkbun pricing provider.

Porkbun publishes its full price list (~900 TLDs) through a free,
unauthenticated endpoint. One POST returns every TLD, so the whole
response is cached and individual lookups are served from it.

API docs: https://porkbun.com/api/json/v3/documentation
"""

import logging

import httpx

from ..errors import UpstreamError
from ..httpclient import client_scope
from ..models import RegistrarPrice, TldPricing
from ..validation import normalize_tld
from .base import PricingProvider, TtlCache

logger = logging.getLogger(__name__)

PORKBUN_PRICING_URL = "https://api.porkbun.com/api/json/v3/pricing/get"
DEFAULT_TIMEOUT = 60.0  # the pricing endpoint is slow
REGISTRAR_NAME = "Porkbun"

_ALL_KEY = "all"


def _promo_price(registration: float, coupons) -> float | None:
    """Apply the first coupon, if any, to the registration price."""
    if not isinstance(coupons, list) or not coupons:
        return None
    coupon = coupons[0]
    if not isinstance(coupon, dict):
        return None

    try:
        amount = float(coupon.get("amount", 0))
    except (TypeError, ValueError):
        return None

    if coupon.get("type") == "amount":
        return max(0.0, registration - amount)
    if coupon.get("type") == "percent":
        return registration * (1 - amount / 100)
    return None


def parse_pricing_response(data: dict) -> dict[str, TldPricing]:
    """
    Convert Porkbun's pricing payload into TldPricing keyed by TLD.

    Entries whose prices are not numbers are skipped.
    """
    pricing = data.get("pricing") if isinstance(data, dict) else None
    if not isinstance(pricing, dict):
        return {}

    pricing_map = {}
    for tld, entry in pricing.items():
        if not isinstance(entry, dict):
            continue
        try:
            registration = float(entry["registration"])
            renewal = float(entry["renewal"])
        except (KeyError, TypeError, ValueError):
            continue

        try:
            transfer = float(entry["transfer"]) if entry.get("transfer") is not None else None
        except (TypeError, ValueError):
            transfer = None

        price = RegistrarPrice(
            registrar=REGISTRAR_NAME,
            registration_price=registration,
            renewal_price=renewal,
            transfer_price=transfer,
            promo_price=_promo_price(registration, entry.get("coupons")),
        )
        tld = tld.lower()
        pricing_map[tld] = TldPricing.from_prices(tld, [price])

    return pricing_map


class PorkbunProvider(PricingProvider):
    """Single-registrar pricing. Always configured: no API key needed."""

    name = "porkbun"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        cache_ttl: float = 3600,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client
        self._cache = TtlCache(cache_ttl)

    async def _fetch_all(self) -> dict[str, TldPricing]:
        cached = self._cache.get(_ALL_KEY)
        if cached is not None:
            return cached

        async with client_scope(self._client, self._timeout) as client:
            response = await client.post(
                PORKBUN_PRICING_URL,
                json={},
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )

        if response.status_code != 200:
            raise UpstreamError(self.name, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(self.name, f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamError(self.name, "Unexpected response shape")
        if data.get("status") != "SUCCESS":
            raise UpstreamError(self.name, f"API returned status: {data.get('status')}")

        pricing_map = parse_pricing_response(data)
        self._cache.set(_ALL_KEY, pricing_map)
        return pricing_map

    async def _fetch_all_safe(self) -> dict[str, TldPricing]:
        try:
            return await self._fetch_all()
        except httpx.TimeoutException:
            logger.warning("Porkbun pricing request timed out")
        except httpx.HTTPError as e:
            logger.warning("Porkbun pricing request failed: %s", e)
        except UpstreamError as e:
            logger.warning("%s", e)
        return {}

    async def get_tld_pricing(self, tld: str) -> TldPricing | None:
        return (await self._fetch_all_safe()).get(normalize_tld(tld))

    async def get_all_tld_pricing(self) -> list[TldPricing]:
        return list((await self._fetch_all_safe()).values())

    async def get_supported_registrars(self) -> list[str]:
        return [REGISTRAR_NAME]
