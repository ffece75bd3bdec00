"""
Input validation for domains, keywords and TLDs.

All checks run before any network call and raise ValidationError with a
message that is safe to show to the caller.
"""

import re

from .errors import ValidationError

MAX_DOMAIN_LENGTH = 253
MAX_LABEL_LENGTH = 63

DOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)+$")
KEYWORD_RE = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$")
TLD_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


def validate_domain(domain) -> str:
    """Normalize a domain name (lowercase, trimmed) or raise ValidationError."""
    if not isinstance(domain, str):
        raise ValidationError("Domain must be a string")

    normalized = domain.strip().lower().rstrip(".")
    if not normalized:
        raise ValidationError("Domain cannot be empty")
    if len(normalized) > MAX_DOMAIN_LENGTH:
        raise ValidationError(f"Domain exceeds maximum length of {MAX_DOMAIN_LENGTH} characters")
    if not DOMAIN_RE.match(normalized):
        raise ValidationError("Invalid domain format. Expected format: example.com")
    if any(len(label) > MAX_LABEL_LENGTH for label in normalized.split(".")):
        raise ValidationError(f"Domain labels cannot exceed {MAX_LABEL_LENGTH} characters")

    return normalized


def validate_keyword(keyword) -> str:
    """Normalize a search keyword (a single label) or raise ValidationError."""
    if not isinstance(keyword, str):
        raise ValidationError("Keyword must be a string")

    normalized = keyword.strip().lower()
    if not normalized:
        raise ValidationError("Keyword cannot be empty")
    if len(normalized) > MAX_LABEL_LENGTH:
        raise ValidationError(f"Keyword exceeds maximum length of {MAX_LABEL_LENGTH} characters")
    if not KEYWORD_RE.match(normalized):
        raise ValidationError("Invalid keyword format. Use only letters, numbers, and hyphens")

    return normalized


def normalize_tld(tld) -> str:
    """Strip a leading dot and lowercase a TLD, e.g. ".COM" -> "com"."""
    if not isinstance(tld, str):
        raise ValidationError("TLD must be a string")

    normalized = tld.strip().lower().lstrip(".")
    if not normalized or not TLD_RE.match(normalized):
        raise ValidationError(f"Invalid TLD: {tld!r}")

    return normalized


def split_tld(domain: str) -> str:
    """Return the last label of a domain."""
    return domain.rsplit(".", 1)[-1] if "." in domain else ""
