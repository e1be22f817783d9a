"""Exception types raised by info providers.

``get_details`` always raises one of these instead of returning a partial
record. ``search_by_keyword`` swallows ``ParseError`` and
``DomainNotTrustedError`` and returns an empty list, but lets ``FetchError``
through.
"""

from typing import Optional

__all__ = [
    "InfoProviderError",
    "ParseError",
    "DomainNotTrustedError",
    "FetchError",
]


class InfoProviderError(Exception):
    """Base class for all provider errors."""
    pass


class ParseError(InfoProviderError):
    """Raised when a page or id lacks the expected structure."""
    pass


class DomainNotTrustedError(InfoProviderError):
    """Raised when a URL points outside the configured trusted domains."""

    def __init__(self, url: str, host: Optional[str] = None):
        self.url = url
        self.host = host
        super().__init__(f"Domain '{host or url}' is not in the trusted domains")


class FetchError(InfoProviderError):
    """Raised on transport failures, timeouts and HTTP error responses."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)
