"""
Error taxonomy for domain status resolution.

Only ValidationError ever reaches a caller. Everything else is absorbed
below the tool layer and expressed as an `unknown` status.
"""


class DomainStatusError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(DomainStatusError, ValueError):
    """Malformed domain, keyword or TLD. Raised before any network call."""


class BlockedTarget(DomainStatusError):
    """Target host violates the SSRF policy."""

    def __init__(self, host: str):
        super().__init__(f"Blocked target host: {host}")
        self.host = host


class NetworkFailure(DomainStatusError):
    """DNS, connect, TLS or timeout failure on a single hop."""


class RedirectPolicyViolation(DomainStatusError):
    """Too many redirect hops, or a redirect without a usable Location."""


class UpstreamError(DomainStatusError):
    """A provider API answered with an unexpected status or payload."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
