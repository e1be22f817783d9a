"""URL validation, trusted-domain checks and the base64 URL id codec.

The generic structured-data provider addresses parts by ``base64(url)``. Ids
are decoded and checked against the configured domain pattern before any
request is made, so the provider can't be used as an open fetch proxy.
"""

import base64
import binascii
import re
from typing import Optional
from urllib.parse import urlparse

from infoprovider.errors import DomainNotTrustedError, ParseError

__all__ = [
    "URLValidationError",
    "sanitize_url",
    "validate_url",
    "is_valid_url",
    "url_host",
    "check_trusted_domain",
    "is_trusted_domain",
    "encode_url_id",
    "decode_url_id",
]


class URLValidationError(ParseError):
    """Raised when a URL is malformed or uses a non-HTTP scheme."""
    pass


DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}


def sanitize_url(url: str) -> str:
    """Strip whitespace, control characters and encoded NUL bytes."""
    if not url:
        return ""
    url = url.strip()
    url = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", url)
    return url.replace("%00", "")


def validate_url(url: str) -> str:
    """Validate an absolute http(s) URL.

    Args:
        url: URL to validate

    Returns:
        The sanitized URL

    Raises:
        URLValidationError: If the URL is empty, unparseable, not http(s) or has no host
    """
    if not url:
        raise URLValidationError("URL is empty")

    url = sanitize_url(url)
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError as e:
        raise URLValidationError(f"Failed to parse URL: {e}") from e

    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Dangerous URL scheme: {scheme}")
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid URL scheme: {scheme or '(none)'}")
    if not host:
        raise URLValidationError("URL has no host")

    return url


def is_valid_url(url: str) -> bool:
    """Check if a string is an absolute http(s) URL without raising."""
    try:
        validate_url(url)
        return True
    except URLValidationError:
        return False


def url_host(url: str) -> Optional[str]:
    """Lower-cased host name of a URL, without port."""
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def check_trusted_domain(url: str, trusted_domains: Optional[str]) -> str:
    """Make sure a URL's host matches the trusted-domains pattern.

    A ``None`` pattern trusts every host.

    Raises:
        DomainNotTrustedError: If the host doesn't match
    """
    if trusted_domains is None:
        return url
    host = url_host(url) or ""
    try:
        matched = re.search(trusted_domains, host) is not None
    except re.error:
        # A broken pattern trusts nothing
        matched = False
    if not matched:
        raise DomainNotTrustedError(url, host)
    return url


def is_trusted_domain(url: str, trusted_domains: Optional[str]) -> bool:
    try:
        check_trusted_domain(url, trusted_domains)
        return True
    except DomainNotTrustedError:
        return False


def encode_url_id(url: str) -> str:
    """Encode a URL as a provider id."""
    return base64.b64encode(url.encode("utf-8")).decode("ascii")


def decode_url_id(provider_id: str) -> str:
    """Decode a provider id back into a validated URL.

    Accepts standard and URL-safe alphabets and missing padding.

    Raises:
        ParseError: If the id isn't valid base64 or doesn't decode to an http(s) URL
    """
    if not provider_id or not provider_id.strip():
        raise ParseError("Provider id is empty")

    value = provider_id.strip()
    value += "=" * (-len(value) % 4)
    try:
        if "-" in value or "_" in value:
            raw = base64.urlsafe_b64decode(value)
        else:
            raw = base64.b64decode(value, validate=True)
        url = raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise ParseError(f"Provider id is not a base64 encoded URL: {provider_id!r}") from e

    return validate_url(url)
