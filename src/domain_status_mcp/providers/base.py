"""
Provider interfaces.

A provider is a thin request/response wrapper around one vendor API.
Each capability is its own abstract base so the resolution engine can
ask the registry for "every pricing provider" without caring which
vendors are behind it.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from ..models import (
    AftermarketSearchOptions,
    AftermarketSearchResult,
    AuctionListing,
    RegistrarAvailability,
    TldPricing,
)


class TtlCache:
    """Tiny in-memory cache whose entries expire `ttl` seconds after being set."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        if self._ttl <= 0:
            return
        now = self._clock()
        # Expired entries are dropped on every write.
        self._entries = {k: entry for k, entry in self._entries.items() if entry[0] > now}
        self._entries[key] = (now + self._ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class Provider(ABC):
    """Common surface of every provider."""

    name: str = ""

    def is_configured(self) -> bool:
        return True


class PricingProvider(Provider):
    @abstractmethod
    async def get_tld_pricing(self, tld: str) -> TldPricing | None:
        """Prices for one TLD, or None if the TLD is unknown or the API failed."""

    @abstractmethod
    async def get_all_tld_pricing(self) -> list[TldPricing]:
        """Prices for every TLD the provider knows about."""

    async def get_supported_registrars(self) -> list[str]:
        return []


class AftermarketProvider(Provider):
    @abstractmethod
    async def search_listings(
        self,
        query: str,
        options: AftermarketSearchOptions | None = None,
    ) -> AftermarketSearchResult:
        """Listings matching `query`. Failures are reported in `error`, not raised."""

    @abstractmethod
    async def get_domain_listing(self, domain: str) -> AuctionListing | None:
        """The listing for exactly `domain`, if there is one."""


class RegistrarAvailabilityProvider(Provider):
    @abstractmethod
    async def check_availability(self, domains: list[str]) -> dict[str, RegistrarAvailability]:
        """Registrar-side availability keyed by domain."""
