"""
NameSilo registrar availability provider.

NameSilo's checkRegisterAvailability endpoint answers for many domains
in one request and flags premium (registry-priced) names, which the
registry protocol cannot see.
"""

import logging

import httpx

from ..httpclient import client_scope
from ..models import RegistrarAvailability
from .base import RegistrarAvailabilityProvider

logger = logging.getLogger(__name__)

NAMESILO_API_URL = "https://www.namesilo.com/api/checkRegisterAvailability"
NAMESILO_OK_CODE = 300
DEFAULT_TIMEOUT = 30.0


def _as_list(section, key: str = "domain") -> list:
    """
    Normalize a reply section to a list.

    The API returns different formats:
    - Multiple: {"available": [{"domain": "foo.com", "price": 17.29}, ...]}
    - Single: {"available": {"domain": {"domain": "foo.com", "price": 17.29}}}
    - Single (unavailable/invalid): {"unavailable": {"domain": "foo.com"}}
    """
    if isinstance(section, list):
        return section
    if isinstance(section, dict) and key in section:
        inner = section[key]
        return inner if isinstance(inner, list) else [inner]
    return []


def _item_domain(item) -> str:
    if isinstance(item, str):
        return item.lower()
    if isinstance(item, dict):
        return str(item.get("domain", "")).lower()
    return ""


def _is_premium(item: dict) -> bool:
    return str(item.get("premium", "0")).lower() in ("1", "true", "yes")


def parse_availability_reply(reply: dict) -> dict[str, RegistrarAvailability]:
    """Convert a successful NameSilo reply into per-domain results."""
    results = {}

    for item in _as_list(reply.get("available")):
        if not isinstance(item, dict):
            continue
        domain = _item_domain(item)
        if not domain:
            continue
        price = item.get("price")
        try:
            price = float(price) if price else None
        except (TypeError, ValueError):
            price = None
        results[domain] = RegistrarAvailability(
            domain=domain,
            available=True,
            premium=_is_premium(item),
            price=price,
        )

    for item in _as_list(reply.get("unavailable")):
        domain = _item_domain(item)
        if domain:
            results[domain] = RegistrarAvailability(domain=domain, available=False)

    for item in _as_list(reply.get("invalid")):
        domain = _item_domain(item)
        if domain:
            results[domain] = RegistrarAvailability(domain=domain, available=False, error="Invalid domain name")

    return results


class NameSiloProvider(RegistrarAvailabilityProvider):
    name = "namesilo"

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key or ""
        self._timeout = timeout
        self._client = client

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def check_availability(self, domains: list[str]) -> dict[str, RegistrarAvailability]:
        """
        Check registrar availability for `domains` in one request.

        Every input gets an entry; failures are reported per domain in
        `error` rather than raised.
        """
        if not domains:
            return {}

        params = {
            "version": "1",
            "type": "json",
            "key": self._api_key,
            "domains": ",".join(domains),
        }

        def failed(message: str) -> dict[str, RegistrarAvailability]:
            return {d: RegistrarAvailability(domain=d, available=False, error=message) for d in domains}

        try:
            async with client_scope(self._client, self._timeout) as client:
                response = await client.get(NAMESILO_API_URL, params=params, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            # The request URL carries the API key; log the exception type only.
            logger.warning("NameSilo request failed: %s", type(e).__name__)
            return failed(f"NameSilo request failed: {type(e).__name__}")
        except ValueError as e:
            logger.warning("NameSilo returned invalid JSON: %s", e)
            return failed(f"Invalid JSON: {e}")

        reply = data.get("reply") if isinstance(data, dict) else None
        if not isinstance(reply, dict):
            reply = {}
        code = reply.get("code")
        try:
            code_ok = int(code) == NAMESILO_OK_CODE
        except (TypeError, ValueError):
            code_ok = False
        if not code_ok:
            detail = reply.get("detail", "Unknown error")
            logger.warning("NameSilo API error %s: %s", code, detail)
            return failed(f"API Error {code}: {detail}")

        results = parse_availability_reply(reply)
        for domain in domains:
            results.setdefault(domain, RegistrarAvailability(
                domain=domain, available=False, error="Not in NameSilo response",
            ))
        return results
