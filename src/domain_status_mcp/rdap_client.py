"""
RDAP Registry Lookup Client

Answers "is this domain registered?" from the registry itself:
404 means available, 200 means registered (with registrar and dates
pulled from the response), anything else means no answer.

Lookups are never retried. Bulk lookups run one at a time with a short
pause between them, since RDAP has no bulk endpoint.
"""

import asyncio
import logging

import httpx

from .httpclient import client_scope
from .models import RegistryResult
from .rdap_bootstrap import RdapBootstrap
from .validation import split_tld

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
BULK_DELAY = 0.1  # seconds between sequential bulk lookups


def _dicts(value) -> list[dict]:
    """The dict members of a JSON array; anything else in it is ignored."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _vcard_name(vcard_array) -> str | None:
    """Pull the `fn` (formatted name) out of a jCard array."""
    if not isinstance(vcard_array, list) or len(vcard_array) < 2 or not isinstance(vcard_array[1], list):
        return None
    for prop in vcard_array[1]:
        if isinstance(prop, list) and len(prop) >= 4 and prop[0] == "fn":
            return str(prop[3]) or None
    return None


def parse_rdap_response(domain: str, data) -> RegistryResult:
    """
    Build a RegistryResult for a registered domain from an RDAP JSON body.

    Malformed members (non-list arrays, non-object items) are skipped; the
    domain is still reported as registered.
    """
    result = RegistryResult(domain=domain, available=False, registered=True)
    if not isinstance(data, dict):
        return result

    statuses = data.get("status")
    if isinstance(statuses, list):
        result.statuses = [str(s) for s in statuses]

    for event in _dicts(data.get("events")):
        action = event.get("eventAction")
        if action == "registration":
            result.created_date = event.get("eventDate")
        elif action == "expiration":
            result.expiration_date = event.get("eventDate")

    for entity in _dicts(data.get("entities")):
        roles = entity.get("roles")
        if not isinstance(roles, list) or "registrar" not in roles:
            continue
        name = _vcard_name(entity.get("vcardArray"))
        if name:
            result.registrar = name
            break
        for public_id in _dicts(entity.get("publicIds")):
            if public_id.get("type") == "IANA Registrar ID":
                result.registrar = f"IANA ID: {public_id.get('identifier')}"

    return result


class RdapClient:
    """
    Async RDAP client.

    Usage:
        client = RdapClient(timeout=10.0)
        result = await client.check_domain("example.com")
        results = await client.check_bulk(["example.com", "example.net"])
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        bootstrap: RdapBootstrap | None = None,
        client: httpx.AsyncClient | None = None,
        bulk_delay: float = BULK_DELAY,
    ) -> None:
        self._timeout = timeout
        self._bootstrap = bootstrap or RdapBootstrap()
        self._client = client
        self._bulk_delay = bulk_delay

    async def check_domain(self, domain: str) -> RegistryResult:
        """Look up a single domain."""
        async with client_scope(self._client, self._timeout) as client:
            await self._bootstrap.load(client)
            return await self._check(client, domain)

    async def check_bulk(self, domains: list[str]) -> dict[str, RegistryResult]:
        """Look up many domains sequentially. Every input gets an entry."""
        results: dict[str, RegistryResult] = {}

        async with client_scope(self._client, self._timeout) as client:
            await self._bootstrap.load(client)

            for index, domain in enumerate(domains):
                if index > 0:
                    await asyncio.sleep(self._bulk_delay)
                results[domain] = await self._check(client, domain)

        return results

    async def _check(self, client: httpx.AsyncClient, domain: str) -> RegistryResult:
        domain = domain.strip().lower()
        tld = split_tld(domain)

        server = self._bootstrap.get_server(tld)
        if not server:
            return RegistryResult(domain=domain, error=f"No RDAP server found for TLD: .{tld}")

        try:
            response = await client.get(
                f"{server}/domain/{domain}",
                headers={"Accept": "application/rdap+json, application/json"},
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException:
            return RegistryResult(domain=domain, error="RDAP query timed out")
        except httpx.HTTPError as e:
            return RegistryResult(domain=domain, error=f"RDAP query failed: {str(e)[:100]}")

        if response.status_code == 404:
            return RegistryResult(domain=domain, available=True, registered=False)

        if response.status_code == 200:
            try:
                data = response.json()
            except ValueError:
                logger.warning("RDAP server %s returned invalid JSON for %s", server, domain)
                return RegistryResult(domain=domain, registered=True)
            return parse_rdap_response(domain, data)

        return RegistryResult(domain=domain, error=f"RDAP returned status {response.status_code}")
