"""URL validation, resolution and identifier helpers."""

import re
from typing import Optional, Set
from urllib.parse import urlparse

from gsmscrape.config import BASE_URL

__all__ = [
    "URLValidationError",
    "ALLOWED_DOMAINS",
    "sanitize_url",
    "validate_url",
    "resolve_site_url",
    "strip_extension",
    "detail_url_for",
]


class URLValidationError(Exception):
    """Raised when URL validation fails."""
    pass


# Domains we fetch from directly
ALLOWED_DOMAINS: Set[str] = frozenset({
    "www.gsmarena.com",
    "gsmarena.com",
    "m.gsmarena.com",
})

DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}

# Trailing ".php" / ".php3" style extension on the last path segment
_EXTENSION_RE = re.compile(r"\.[A-Za-z][A-Za-z0-9]{0,4}$")


def sanitize_url(url: str) -> str:
    """Strip whitespace and control characters from a URL."""
    if not url:
        return ""
    url = url.strip()
    url = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", url)
    return url.replace("%00", "")


def validate_url(url: str, allowed_domains: Optional[Set[str]] = None) -> str:
    """Validate a URL before fetching it.

    Args:
        url: URL to validate
        allowed_domains: Allowed hosts (default: ALLOWED_DOMAINS); empty set allows any

    Returns:
        Sanitized URL

    Raises:
        URLValidationError: If the URL is malformed or points elsewhere
    """
    if not url:
        raise URLValidationError("URL is empty")

    url = sanitize_url(url)
    parsed = urlparse(url)

    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Dangerous URL scheme: {scheme}")
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid URL scheme: {scheme or '(none)'}")

    host = (parsed.hostname or "").lower()
    if not host:
        raise URLValidationError("URL has no domain")

    domains = ALLOWED_DOMAINS if allowed_domains is None else allowed_domains
    if domains and host not in domains:
        raise URLValidationError(f"URL domain '{host}' not in allowed domains")

    if re.search(r"\.\./|%2e%2e", url.lower()):
        raise URLValidationError("URL contains path traversal")

    return url


def resolve_site_url(src: str, base_url: str = BASE_URL) -> str:
    """Make a site-relative link absolute by prefixing the base URL."""
    src = sanitize_url(src)
    if src.startswith(("http://", "https://")):
        return src
    if src.startswith("//"):
        return "https:" + src
    return f"{base_url.rstrip('/')}/{src.lstrip('/')}"


def strip_extension(href: str) -> str:
    """Derive a stable identifier from a link target.

    "apple-phones-48.php" -> "apple-phones-48"
    "/apple_iphone_15-12559.php" -> "apple_iphone_15-12559"
    """
    path = urlparse(sanitize_url(href)).path or sanitize_url(href)
    path = path.lstrip("/")
    return _EXTENSION_RE.sub("", path)


def detail_url_for(detail_id: str, base_url: str = BASE_URL) -> str:
    """Specification page URL for a detail ID."""
    return f"{base_url.rstrip('/')}/{detail_id}.php"
