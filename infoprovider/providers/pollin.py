"""Pollin.de shop provider.

Product pages live at ``https://www.pollin.de/p/<slug>``; the slug is the
provider id. Structured data gives the baseline, the HTML adds datasheets,
the og:image and the EAN row of the attribute table.
"""

import dataclasses
import logging
import re
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import quote, quote_plus, urljoin

from bs4 import BeautifulSoup

from infoprovider.config import POLLIN_BASE_URL, POLLIN_SELLER, ProviderSettings
from infoprovider.errors import ParseError
from infoprovider.fetcher import Fetcher
from infoprovider.html_utils import (
    decode_obfuscated_link,
    extract_attribute_table,
    extract_ean,
    extract_og_image,
    make_soup,
)
from infoprovider.logging_config import get_logger, log_provider_event
from infoprovider.models import Capability, FileDTO, PartDetail, PartSummary, PurchaseInfoDTO
from infoprovider.normalizer import ProductNormalizer
from infoprovider.offers import format_order_number
from infoprovider.providers.base import PageData, prefer, read_page
from infoprovider.schema_reader import SchemaReader, SchemaThing
from infoprovider.text_utils import repair_text

__all__ = ["PollinProvider"]

logger = get_logger("providers.pollin")

PRODUCT_SLUG_RE = re.compile(r"/p/([^/?#]+)")


class PollinProvider:
    """pollin.de shop provider."""

    PROVIDER_KEY = "pollin"

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
            "name": "Pollin.de",
            "description": "Scrapes the Pollin.de online shop to search for parts.",
            "url": POLLIN_BASE_URL + "/",
            "disabled_help": "Set the PROVIDER_POLLIN_ENABLE env option.",
        }

    def is_active(self) -> bool:
        return self.settings.enable

    def get_capabilities(self) -> FrozenSet[Capability]:
        return frozenset({
            Capability.BASIC,
            Capability.PICTURE,
            Capability.DATASHEET,
            Capability.PRICE,
        })

    def search_url(self, keyword: str) -> str:
        return f"{POLLIN_BASE_URL}/search?query={quote_plus(keyword)}"

    def details_url(self, provider_id: str) -> str:
        return f"{POLLIN_BASE_URL}/p/{quote(provider_id, safe='')}"

    @staticmethod
    def product_slug(url: Optional[str]) -> Optional[str]:
        """The /p/<slug> part of a product URL."""
        if not url:
            return None
        match = PRODUCT_SLUG_RE.search(url)
        return match.group(1) if match else None

    def search_by_keyword(self, keyword: str) -> List[PartSummary]:
        if not keyword or not keyword.strip():
            return []

        url = self.search_url(keyword.strip())
        page = self.fetcher.get(url)
        data = read_page(self.reader, page.html, url)
        log_provider_event("products_found", {
            "url": url,
            "provider": self.PROVIDER_KEY,
            "count": len(data.products),
        }, level=logging.DEBUG)

        results: List[PartSummary] = []
        for product in data.products:
            summary = self.normalizer.normalize(
                product,
                url=url,
                seller_fallback=data.site_owner or POLLIN_SELLER,
                category_fallback=data.breadcrumbs,
            ).to_summary()
            results.append(dataclasses.replace(
                summary,
                provider_id=prefer(self.product_slug(summary.provider_url), summary.provider_id),
            ))
        return results

    def get_details(self, provider_id: str) -> PartDetail:
        """Fetch a product by its page slug.

        Raises:
            ParseError: If the id is empty or the page has no Product
            FetchError: If the page can't be fetched
        """
        if not provider_id or not provider_id.strip():
            log_provider_event("parse_error", {
                "message": "Empty Pollin product id",
                "provider": self.PROVIDER_KEY,
            }, level=logging.ERROR)
            raise ParseError("Empty Pollin product id")

        url = self.details_url(provider_id.strip())
        page = self.fetcher.get(url)
        data = read_page(self.reader, page.html, url)
        if not data.products:
            log_provider_event("parse_error", {
                "message": f"No schema.org Product found for {provider_id}",
                "url": url,
                "provider": self.PROVIDER_KEY,
            }, level=logging.ERROR)
            raise ParseError(f"Product page {url} doesn't contain a https://schema.org/Product")

        return self.product_and_html_to_detail(data.products[0], page.html, url, provider_id.strip(), data)

    def product_and_html_to_detail(
        self,
        product: SchemaThing,
        html: str,
        url: str,
        provider_id: str,
        data: Optional[PageData] = None,
    ) -> PartDetail:
        data = data or PageData()
        baseline = self.normalizer.normalize(
            product,
            url=url,
            provider_id=provider_id,
            seller_fallback=data.site_owner or POLLIN_SELLER,
            category_fallback=data.breadcrumbs,
        )

        soup = make_soup(html)
        datasheets = self._parse_datasheets(soup, url)
        og_image = extract_og_image(soup)
        images: Tuple[FileDTO, ...] = ()
        if og_image:
            og_image = urljoin(url, og_image)
            if og_image not in [i.url for i in baseline.images]:
                images = (FileDTO(url=og_image),) + baseline.images
        ean = extract_ean(extract_attribute_table(soup))

        log_provider_event("html_supplement", {
            "url": url,
            "provider": self.PROVIDER_KEY,
            "datasheets": len(datasheets),
            "og_image": og_image,
            "ean": ean,
        }, level=logging.DEBUG)

        return dataclasses.replace(
            baseline,
            preview_image_url=prefer(baseline.preview_image_url, og_image),
            images=prefer(images, baseline.images),
            datasheets=prefer(datasheets, baseline.datasheets),
            vendor_infos=prefer(self._with_ean(baseline.vendor_infos, ean), baseline.vendor_infos),
        )

    def _with_ean(self, vendor_infos: Tuple[PurchaseInfoDTO, ...], ean: Optional[str]) -> Tuple[PurchaseInfoDTO, ...]:
        """Append the HTML EAN to order numbers that don't carry a GTIN yet."""
        if not ean or not self.settings.add_gtin_to_orderno:
            return ()
        if not vendor_infos:
            return (PurchaseInfoDTO(
                distributor_name=POLLIN_SELLER,
                order_number=format_order_number(None, ean, True),
                prices=(),
            ),)
        return tuple(
            info if ean in info.order_number else dataclasses.replace(
                info, order_number=format_order_number(info.order_number or None, ean, True)
            )
            for info in vendor_infos
        )

    @staticmethod
    def _parse_datasheets(soup: BeautifulSoup, base_url: str) -> Tuple[FileDTO, ...]:
        datasheets: List[FileDTO] = []
        seen = set()
        for link in soup.find_all("a"):
            href = decode_obfuscated_link(link.get("href")) or decode_obfuscated_link(link.get("data-href"))
            if not href or not href.lower().split("?")[0].endswith(".pdf"):
                continue
            href = urljoin(base_url, href)
            if href in seen:
                continue
            seen.add(href)
            datasheets.append(FileDTO(url=href, name=repair_text(link.get_text(strip=True)) or None))
        return tuple(datasheets)
