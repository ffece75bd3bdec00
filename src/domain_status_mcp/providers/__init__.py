"""
Pluggable data providers: pricing, aftermarket listings and registrar
availability.
"""

from .base import (
    AftermarketProvider,
    PricingProvider,
    Provider,
    RegistrarAvailabilityProvider,
    TtlCache,
)
from .namecheap_auctions import NamecheapAuctionsProvider
from .namesilo import NameSiloProvider
from .porkbun import PorkbunProvider
from .registry import ProviderRegistry
from .tld_list import TldListProvider

__all__ = [
    "AftermarketProvider",
    "NameSiloProvider",
    "NamecheapAuctionsProvider",
    "PorkbunProvider",
    "PricingProvider",
    "Provider",
    "ProviderRegistry",
    "RegistrarAvailabilityProvider",
    "TldListProvider",
    "TtlCache",
]
