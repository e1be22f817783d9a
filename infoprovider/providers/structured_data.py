"""Generic provider that imports schema.org Product data from any product page.

The "search keyword" is a page URL and the part id is ``base64(url)``: the id
*is* the address, no lookup table is involved. Only hosts matching the
configured ``trusted_domains`` pattern are fetched.
"""

import logging
from typing import Any, Dict, FrozenSet, List, Optional

from infoprovider.config import ProviderSettings
from infoprovider.errors import DomainNotTrustedError, ParseError
from infoprovider.fetcher import Fetcher
from infoprovider.logging_config import get_logger, log_provider_event
from infoprovider.models import Capability, PartDetail, PartSummary
from infoprovider.normalizer import ProductNormalizer, ProviderIdMode
from infoprovider.providers.base import read_page
from infoprovider.schema_reader import SchemaReader
from infoprovider.url_validation import (
    check_trusted_domain,
    decode_url_id,
    is_trusted_domain,
    is_valid_url,
    sanitize_url,
    url_host,
)

__all__ = ["StructuredDataProvider"]

logger = get_logger("providers.structured_data")


class StructuredDataProvider:
    """Structured data (by URL) provider."""

    PROVIDER_KEY = "strucdata"

    def __init__(
        self,
        settings: ProviderSettings,
        fetcher: Optional[Fetcher] = None,
        reader: Optional[SchemaReader] = None,
    ):
        self.settings = settings
        self.fetcher = fetcher or Fetcher()
        self.reader = reader or SchemaReader()
        self.normalizer = ProductNormalizer(self.PROVIDER_KEY, settings.add_gtin_to_orderno)

    def get_provider_key(self) -> str:
        return self.PROVIDER_KEY

    def get_provider_info(self) -> Dict[str, Any]:
        return {
            "name": "Structured Data (by URL)",
            "description": "Imports the machine-readable product data embedded in a product page given by URL.",
            "url": "https://schema.org/",
            "disabled_help": "Set the PROVIDER_STRUCDATA_ENABLE env option.",
        }

    def is_active(self) -> bool:
        return self.settings.enable

    def get_capabilities(self) -> FrozenSet[Capability]:
        return frozenset({Capability.BASIC, Capability.PICTURE, Capability.PRICE})

    def search_by_keyword(self, keyword: str) -> List[PartSummary]:
        """Treat the keyword as a product page URL.

        Anything that isn't an http(s) URL on a trusted host, or a page without
        products, gives an empty list.
        """
        url = sanitize_url(keyword)
        if not is_valid_url(url):
            logger.info(f"Search keyword is not a URL: {keyword!r}")
            return []
        if not is_trusted_domain(url, self.settings.trusted_domains):
            log_provider_event("domain_rejected", {
                "message": f"Untrusted search URL host: {url_host(url)}",
                "url": url,
                "provider": self.PROVIDER_KEY,
            }, level=logging.WARNING)
            return []

        try:
            page = self.fetcher.get(url, check_url=lambda target: self._check_trusted(target, logging.WARNING))
        except DomainNotTrustedError:
            return []
        data = read_page(self.reader, page.html, url)
        log_provider_event("products_found", {
            "url": url,
            "provider": self.PROVIDER_KEY,
            "count": len(data.products),
        }, level=logging.DEBUG)

        return [
            self.normalizer.normalize(
                product,
                url=url,
                provider_id=ProviderIdMode.URL_BASE64,
                seller_fallback=data.site_owner,
                category_fallback=data.breadcrumbs,
            ).to_summary()
            for product in data.products
        ]

    def _check_trusted(self, url: str, level: int = logging.ERROR) -> str:
        try:
            return check_trusted_domain(url, self.settings.trusted_domains)
        except DomainNotTrustedError as e:
            log_provider_event("domain_rejected", {
                "message": str(e),
                "url": url,
                "provider": self.PROVIDER_KEY,
            }, level=level)
            raise

    def get_details(self, provider_id: str) -> PartDetail:
        """Fetch the page a base64 URL id points to.

        Raises:
            ParseError: If the id isn't a base64 URL or the page has no Product
            DomainNotTrustedError: If the URL's host, or a host it redirects to,
                isn't trusted (the untrusted host is not contacted)
            FetchError: If the page can't be fetched
        """
        url = decode_url_id(provider_id)
        self._check_trusted(url)

        page = self.fetcher.get(url, check_url=self._check_trusted)
        data = read_page(self.reader, page.html, url)
        if not data.products:
            log_provider_event("parse_error", {
                "message": f"No schema.org Product found on {url}",
                "url": url,
                "provider": self.PROVIDER_KEY,
            }, level=logging.ERROR)
            raise ParseError(f"Product page {url} doesn't contain a https://schema.org/Product")

        return self.normalizer.normalize(
            data.products[0],
            url=url,
            provider_id=ProviderIdMode.URL_BASE64,
            seller_fallback=data.site_owner,
            category_fallback=data.breadcrumbs,
        )
