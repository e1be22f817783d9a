"""Shared fixtures for provider tests."""

import json
from typing import Dict, List, Optional

import pytest

from infoprovider.errors import FetchError
from infoprovider.fetcher import FetchedPage


class FakeFetcher:
    """Serves canned HTML by URL and records every request."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, default: Optional[str] = None):
        self.pages = dict(pages or {})
        self.default = default
        self.requested: List[str] = []

    def get(self, url: str, check_url=None) -> FetchedPage:
        self.requested.append(url)
        if url in self.pages:
            return FetchedPage(url=url, html=self.pages[url])
        if self.default is not None:
            return FetchedPage(url=url, html=self.default)
        raise FetchError(f"HTTP Error 404 fetching {url}", url, 404)


def _json_ld(*objects) -> str:
    return "\n".join(
        f'<script type="application/ld+json">{json.dumps(obj)}</script>' for obj in objects
    )


def _html_page(head: str = "", body: str = "") -> str:
    return f"<!DOCTYPE html><html><head><title>Test</title>{head}</head><body>{body}</body></html>"


@pytest.fixture
def json_ld():
    """Wrap objects in JSON-LD script tags."""
    return _json_ld


@pytest.fixture
def html_page():
    """Build a minimal HTML document."""
    return _html_page


@pytest.fixture
def fake_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture
def product_json():
    """A typical shop Product with one offer."""
    return {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": "NE555 Timer IC",
        "description": "Precision timer, DIP-8",
        "sku": "NE555P",
        "mpn": "NE555P",
        "gtin13": "4016138123456",
        "brand": {"@type": "Brand", "name": "Texas Instruments"},
        "image": ["https://shop.example.com/img/ne555.jpg"],
        "category": "Semiconductors/Timers",
        "offers": {
            "@type": "Offer",
            "price": "0.36",
            "priceCurrency": "EUR",
            "seller": {"@type": "Organization", "name": "Example Shop GmbH"},
        },
    }
