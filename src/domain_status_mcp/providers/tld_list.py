"""
TLD-List.com pricing provider.

Aggregates registration/renewal pricing from 50+ registrars per TLD.
Requires an API key (TLD_LIST_API_KEY); the free tier allows
100 requests/day, so responses are cached per TLD.

API docs: https://tld-list.com/api
"""

import logging

import httpx

from ..errors import UpstreamError
from ..httpclient import client_scope
from ..models import RegistrarPrice, TldPricing
from ..validation import normalize_tld
from .base import PricingProvider, TtlCache

logger = logging.getLogger(__name__)

TLD_LIST_API_URL = "https://tld-list.com/api"
DEFAULT_TIMEOUT = 30.0

_ALL_KEY = "*all*"
_REGISTRARS_KEY = "*registrars*"


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_valid_registrar(entry) -> bool:
    return (
        isinstance(entry, dict)
        and isinstance(entry.get("registrar"), str)
        and _is_number(entry.get("register"))
        and _is_number(entry.get("renew"))
        and isinstance(entry.get("currency"), str)
    )


def convert_tld_response(data) -> TldPricing | None:
    """
    Convert one `/tld/{tld}` payload, dropping malformed registrar rows.

    Returns None if the payload is malformed or has no usable registrars.
    """
    if not isinstance(data, dict) or not isinstance(data.get("tld"), str):
        return None
    if not isinstance(data.get("registrars"), list):
        return None

    prices = [
        RegistrarPrice(
            registrar=entry["registrar"],
            registration_price=float(entry["register"]),
            renewal_price=float(entry["renew"]),
            currency=entry["currency"],
            transfer_price=float(entry["transfer"]) if _is_number(entry.get("transfer")) else None,
            promo_price=float(entry["promo_price"]) if _is_number(entry.get("promo_price")) else None,
        )
        for entry in data["registrars"]
        if _is_valid_registrar(entry)
    ]
    if not prices:
        return None

    return TldPricing.from_prices(data["tld"].lower().lstrip("."), prices)


class TldListProvider(PricingProvider):
    """Multi-registrar pricing from TLD-List.com."""

    name = "tld-list"

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        cache_ttl: float = 3600,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key or ""
        self._timeout = timeout
        self._client = client
        self._cache = TtlCache(cache_ttl)

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def _fetch(self, endpoint: str):
        async with client_scope(self._client, self._timeout) as client:
            response = await client.get(
                f"{TLD_LIST_API_URL}{endpoint}",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
            )

        if response.status_code == 401:
            raise UpstreamError(self.name, "Invalid API key")
        if response.status_code == 429:
            raise UpstreamError(self.name, "Rate limit exceeded")
        if response.status_code != 200:
            raise UpstreamError(self.name, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(self.name, f"Invalid JSON: {e}") from e

    async def _fetch_cached(self, key: str, endpoint: str):
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            data = await self._fetch(endpoint)
        except httpx.HTTPError as e:
            logger.warning("TLD-List request for %s failed: %s", endpoint, e)
            return None
        except UpstreamError as e:
            logger.warning("%s (%s)", e, endpoint)
            return None

        self._cache.set(key, data)
        return data

    async def get_tld_pricing(self, tld: str) -> TldPricing | None:
        tld = normalize_tld(tld)
        data = await self._fetch_cached(tld, f"/tld/{tld}")
        if data is None:
            return None

        pricing = convert_tld_response(data)
        if pricing is None:
            logger.warning("Unusable TLD-List response for .%s", tld)
        return pricing

    async def get_all_tld_pricing(self) -> list[TldPricing]:
        data = await self._fetch_cached(_ALL_KEY, "/tlds")
        if not isinstance(data, list):
            return []
        return [pricing for pricing in map(convert_tld_response, data) if pricing is not None]

    async def get_supported_registrars(self) -> list[str]:
        data = await self._fetch_cached(_REGISTRARS_KEY, "/registrars")
        if not isinstance(data, dict):
            return []
        names = data.get("registrars")
        if not isinstance(names, list):
            return []
        return [name for name in names if isinstance(name, str)]
