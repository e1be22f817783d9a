"""Info providers: generic structured data and shop-specific adapters."""

from infoprovider.providers.base import InfoProvider, PageData, prefer, read_page
from infoprovider.providers.pollin import PollinProvider
from infoprovider.providers.reichelt import ReicheltProvider
from infoprovider.providers.structured_data import StructuredDataProvider

__all__ = [
    "InfoProvider",
    "PageData",
    "prefer",
    "read_page",
    "StructuredDataProvider",
    "ReicheltProvider",
    "PollinProvider",
]
