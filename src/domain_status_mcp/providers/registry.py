"""
Provider registry: the configured providers, grouped by capability.
"""

import logging

from .base import AftermarketProvider, PricingProvider, Provider, RegistrarAvailabilityProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Holds configured provider instances in registration order.

    Registration order matters: when pricing providers tie on price, the
    one registered first wins.
    """

    def __init__(self) -> None:
        self._pricing: dict[str, PricingProvider] = {}
        self._aftermarket: dict[str, AftermarketProvider] = {}
        self._availability: dict[str, RegistrarAvailabilityProvider] = {}

    def _register(self, bucket: dict, kind: str, provider: Provider) -> bool:
        if not provider.is_configured():
            logger.info("%s provider %s is not configured, skipping registration", kind, provider.name)
            return False
        bucket[provider.name] = provider
        logger.info("Registered %s provider: %s", kind.lower(), provider.name)
        return True

    def register_pricing_provider(self, provider: PricingProvider) -> bool:
        return self._register(self._pricing, "Pricing", provider)

    def register_aftermarket_provider(self, provider: AftermarketProvider) -> bool:
        return self._register(self._aftermarket, "Aftermarket", provider)

    def register_availability_provider(self, provider: RegistrarAvailabilityProvider) -> bool:
        return self._register(self._availability, "Availability", provider)

    def get_pricing_providers(self) -> list[PricingProvider]:
        return list(self._pricing.values())

    def get_aftermarket_providers(self) -> list[AftermarketProvider]:
        return list(self._aftermarket.values())

    def get_availability_providers(self) -> list[RegistrarAvailabilityProvider]:
        return list(self._availability.values())

    def has_pricing_providers(self) -> bool:
        return bool(self._pricing)

    def has_aftermarket_providers(self) -> bool:
        return bool(self._aftermarket)

    def summary(self) -> dict[str, list[str]]:
        """Provider names per capability, for the startup log and --show-config."""
        return {
            "pricing": list(self._pricing),
            "aftermarket": list(self._aftermarket),
            "availability": list(self._availability),
        }
