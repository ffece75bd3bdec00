"""
RDAP Bootstrap

Maps TLDs to their authoritative RDAP servers using the IANA bootstrap
file, so registry lookups go straight to the registry instead of through
a proxy.

The bootstrap is loaded once per process. If a cache path is configured
it is persisted there and refreshed with a conditional GET once its
Cache-Control max-age has passed. When IANA cannot be reached, a small
built-in table covers the common TLDs.
"""

import json
import logging
import time
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

# IANA bootstrap URL
IANA_BOOTSTRAP_URL = "https://data.iana.org/rdap/dns.json"

# Default cache expiry if no Cache-Control header (24 hours)
DEFAULT_CACHE_TTL = 86400

# How long to keep using the fallback table after a failed load before asking IANA again
RETRY_AFTER = 300

FALLBACK_SERVERS = {
    # Generic TLDs
    "com": "https://rdap.verisign.com/com/v1",
    "net": "https://rdap.verisign.com/net/v1",
    "org": "https://rdap.publicinterestregistry.org/rdap",
    "info": "https://rdap.afilias.net/rdap/info",
    "biz": "https://rdap.nic.biz",
    # Tech TLDs
    "io": "https://rdap.nic.io",
    "dev": "https://rdap.nic.google",
    "app": "https://rdap.nic.google",
    "ai": "https://rdap.nic.ai",
    "sh": "https://rdap.nic.sh",
    "co": "https://rdap.nic.co",
    "me": "https://rdap.nic.me",
    "xyz": "https://rdap.nic.xyz",
    "tech": "https://rdap.nic.tech",
    "run": "https://rdap.nic.run",
    # Country codes
    "uk": "https://rdap.nominet.uk/uk",
    "de": "https://rdap.denic.de",
    "nl": "https://rdap.sidn.nl",
    "eu": "https://rdap.eurid.eu",
    "au": "https://rdap.auda.org.au",
    "ca": "https://rdap.ca.fury.ca/rdap",
    "us": "https://rdap.nic.us",
    # Other popular
    "gg": "https://rdap.ci.gg",
    "tv": "https://rdap.nic.tv",
    "fm": "https://rdap.nic.fm",
}


def _parse_max_age(cache_control: str) -> int | None:
    """Parse max-age from Cache-Control header."""
    for directive in cache_control.split(","):
        directive = directive.strip().lower()
        if directive.startswith("max-age="):
            try:
                return int(directive[8:])
            except ValueError:
                pass
    return None


def parse_bootstrap_services(data: dict) -> dict[str, str]:
    """
    Parse IANA bootstrap format into a TLD -> server URL mapping.

    Bootstrap format:
    {
        "services": [
            [["com", "net"], ["https://rdap.verisign.com/com/v1/"]],
            [["org"], ["https://rdap.publicinterestregistry.org/rdap/"]],
            ...
        ]
    }

    Only the first URL of each service is kept, without a trailing slash.
    """
    services = {}
    entries = data.get("services") if isinstance(data, dict) else None
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, list) or len(entry) < 2:
            continue
        tlds, urls = entry[0], entry[1]
        if not isinstance(tlds, list) or not isinstance(urls, list) or not urls or not isinstance(urls[0], str):
            continue
        server = urls[0].rstrip("/")
        for tld in tlds:
            if isinstance(tld, str):
                services[tld.lower()] = server
    return services


class RdapBootstrap:
    """
    TLD -> RDAP server lookup backed by the IANA bootstrap file.

    After a failed load the fallback table is used, and IANA is not asked
    again until `retry_after` seconds have passed.
    """

    def __init__(
        self,
        cache_path: Path | None = None,
        url: str = IANA_BOOTSTRAP_URL,
        retry_after: float = RETRY_AFTER,
        clock=time.monotonic,
    ) -> None:
        self._cache_path = cache_path
        self._url = url
        self._retry_after = retry_after
        self._clock = clock
        self._services: dict[str, str] = {}
        self._loaded = False
        self._next_attempt: float | None = None

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _load_cache(self) -> dict | None:
        """Load cache from disk, returning None if not found or invalid."""
        if self._cache_path is None:
            return None
        try:
            if not self._cache_path.exists():
                return None
            cache = json.loads(self._cache_path.read_text())
        except (json.JSONDecodeError, OSError):
            return None

        if not isinstance(cache, dict) or not isinstance(cache.get("services"), dict):
            return None
        if not isinstance(cache.get("expires", 0), (int, float)):
            cache["expires"] = 0
        return cache

    def _fail(self, cache: dict | None) -> None:
        if cache:
            self._services = cache["services"]
        self._next_attempt = self._clock() + self._retry_after

    def _save_cache(self, cache: dict) -> None:
        if self._cache_path is None:
            return
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._cache_path.with_suffix(".tmp")
            tmp.write_text(json.dumps(cache, indent=2))
            tmp.replace(self._cache_path)
        except OSError as e:
            logger.warning("Could not write RDAP bootstrap cache %s: %s", self._cache_path, e)

    async def load(self, client: httpx.AsyncClient) -> None:
        """
        Populate the TLD table once. Uses a fresh disk cache when available,
        otherwise fetches from IANA (conditionally, if a stale cache exists).
        Never raises: on failure the fallback table is used.
        """
        if self._loaded:
            return
        if self._next_attempt is not None and self._clock() < self._next_attempt:
            return

        cache = self._load_cache()
        if cache and time.time() < cache.get("expires", 0):
            self._services = cache["services"]
            self._loaded = True
            return

        headers = {"Accept": "application/json"}
        if cache:
            if cache.get("last_modified"):
                headers["If-Modified-Since"] = cache["last_modified"]
            if cache.get("etag"):
                headers["If-None-Match"] = cache["etag"]

        try:
            response = await client.get(self._url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Failed to load RDAP bootstrap, using fallback servers: %s", e)
            self._fail(cache)
            return

        max_age = _parse_max_age(response.headers.get("Cache-Control", "")) or DEFAULT_CACHE_TTL

        if response.status_code == 304 and cache:
            cache["expires"] = time.time() + max_age
            self._save_cache(cache)
            self._services = cache["services"]
            self._loaded = True
            return

        if response.status_code == 200:
            try:
                services = parse_bootstrap_services(response.json())
            except ValueError:
                services = {}
            if services:
                self._services = services
                self._loaded = True
                self._save_cache({
                    "last_modified": response.headers.get("Last-Modified", ""),
                    "etag": response.headers.get("ETag", ""),
                    "expires": time.time() + max_age,
                    "services": services,
                })
                return

        logger.warning("RDAP bootstrap returned status %s, using fallback servers", response.status_code)
        self._fail(cache)

    def get_server(self, tld: str) -> str | None:
        """RDAP base URL for `tld` (no trailing slash), or None if unknown."""
        tld = tld.lower().lstrip(".")
        return self._services.get(tld) or FALLBACK_SERVERS.get(tld)
