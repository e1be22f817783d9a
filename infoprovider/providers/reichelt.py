"""Reichelt shop provider.

Relies on the page's structured data wherever possible, including fields
Reichelt doesn't fill today, and reads the HTML only for what the structured
data lacks: the property table, tiered prices, zoom images and datasheets.
HTML values only replace structured values when they are non-empty.
"""

import dataclasses
import logging
import re
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import quote_plus, urlencode, urljoin

from bs4 import BeautifulSoup, Tag

from infoprovider.config import REICHELT_BASE_URL, REICHELT_SELLER, ProviderSettings
from infoprovider.errors import ParseError
from infoprovider.fetcher import Fetcher
from infoprovider.html_utils import (
    decode_obfuscated_link,
    elements_by_class,
    extract_price_tiers,
    make_soup,
    parse_parameter_value,
)
from infoprovider.logging_config import get_logger, log_provider_event
from infoprovider.models import Capability, FileDTO, ParameterDTO, PartDetail, PartSummary, PurchaseInfoDTO
from infoprovider.normalizer import ProductNormalizer
from infoprovider.offers import format_order_number
from infoprovider.providers.base import PageData, prefer, read_page
from infoprovider.schema_reader import SchemaReader, SchemaThing
from infoprovider.text_utils import repair_text

__all__ = ["ReicheltProvider"]

logger = get_logger("providers.reichelt")

ARTICLE_ID_RE = re.compile(r"p([0-9]{4,})\.html")

# Property 'name' attribute Reichelt uses for the mounting form
FOOTPRINT_PROPERTY = "207"

EAN_PROPERTY_RE = re.compile(r"^\s*(EAN|GTIN)\b", re.IGNORECASE)


class ReicheltProvider:
    """reichelt.com shop provider."""

    PROVIDER_KEY = "reichelt"

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
            "name": "Reichelt",
            "description": "Scrapes the Reichelt online shop to search for parts.",
            "url": REICHELT_BASE_URL,
            "disabled_help": "Set the PROVIDER_REICHELT_ENABLE env option to 1 (or true).",
        }

    def is_active(self) -> bool:
        return self.settings.enable

    def get_capabilities(self) -> FrozenSet[Capability]:
        return frozenset({
            Capability.BASIC,
            Capability.FOOTPRINT,
            Capability.PICTURE,
            Capability.DATASHEET,
            Capability.PRICE,
        })

    @property
    def includes_tax(self) -> bool:
        return not self.settings.net_prices

    def _url_params(self) -> str:
        """Language, country, currency and tax parameters, without leading '&'."""
        params = {"LANGUAGE": self.settings.lang}
        if self.settings.country:
            params["CCOUNTRY"] = self.settings.country
        if self.settings.currency:
            params["CURRENCY"] = self.settings.currency
        if self.settings.net_prices:
            params["MWSTFREE"] = "1"
        return urlencode(params)

    def search_url(self, keyword: str) -> str:
        return (
            f"{REICHELT_BASE_URL}/index.html?ACTION=446&LA=3&nbc=1&q={quote_plus(keyword)}"
            f"&{self._url_params()}"
        )

    def details_url(self, provider_id: str) -> str:
        return f"{REICHELT_BASE_URL}/index.html?ARTICLE={quote_plus(provider_id)}&{self._url_params()}"

    @staticmethod
    def article_id(url: Optional[str]) -> Optional[str]:
        """Reichelt's article number from a product URL."""
        if not url:
            return None
        match = ARTICLE_ID_RE.search(url)
        return match.group(1) if match else None

    @staticmethod
    def _strip_mpn(value: Optional[str]) -> Optional[str]:
        return value.replace("mpn:", "").strip() if value else value

    def search_by_keyword(self, keyword: str) -> List[PartSummary]:
        if not keyword or not keyword.strip():
            return []

        url = self.search_url(keyword.strip())
        page = self.fetcher.get(url)
        data = read_page(self.reader, page.html, url)
        if not data.products:
            logger.info(f"No products found for {keyword!r}")
            return []

        # Structured data only has a lazy-loading placeholder image
        soup = make_soup(page.html)
        images = [
            node.get("data-original")
            for node in soup.find_all(attrs={"itemprop": "image"})
            if node.get("data-original")
        ]
        if len(images) != len(data.products):
            logger.warning(
                f"Found {len(data.products)} products but {len(images)} images for {keyword!r}, "
                f"using structured data images"
            )
            images = []

        results: List[PartSummary] = []
        for i, product in enumerate(data.products):
            baseline = self.normalizer.normalize(
                product,
                url=url,
                seller_fallback=data.site_owner or REICHELT_SELLER,
                category_fallback=data.breadcrumbs,
                includes_tax=self.includes_tax,
            )
            results.append(dataclasses.replace(
                baseline.to_summary(),
                provider_id=prefer(self.article_id(baseline.provider_url), baseline.provider_id),
                name=prefer(self._strip_mpn(baseline.provider_id), baseline.name) or "",
                preview_image_url=prefer(urljoin(REICHELT_BASE_URL, images[i]) if images else None,
                                         baseline.preview_image_url),
            ))
        return results

    def get_details(self, provider_id: str) -> PartDetail:
        """Fetch a product by Reichelt article number.

        Raises:
            ParseError: If the page has no Product or its tables are inconsistent
            FetchError: If the page can't be fetched
        """
        url = self.details_url(provider_id)
        page = self.fetcher.get(url)
        data = read_page(self.reader, page.html, url)
        if not data.products:
            log_provider_event("parse_error", {
                "message": f"No schema.org Product found for article {provider_id}",
                "url": url,
                "provider": self.PROVIDER_KEY,
            }, level=logging.ERROR)
            raise ParseError(f"Product page for {provider_id} doesn't contain a https://schema.org/Product")

        try:
            detail = self.product_and_html_to_detail(data.products[0], page.html, url, data)
        except ParseError as e:
            log_provider_event("parse_error", {
                "message": str(e),
                "url": url,
                "provider": self.PROVIDER_KEY,
            }, level=logging.ERROR)
            raise
        if detail.provider_id is None:
            detail = dataclasses.replace(detail, provider_id=provider_id)
        return detail

    def product_and_html_to_detail(
        self,
        product: SchemaThing,
        html: str,
        url: str,
        data: Optional[PageData] = None,
    ) -> PartDetail:
        """Build the baseline from structured data and patch it from the HTML."""
        data = data or PageData()
        baseline = self.normalizer.normalize(
            product,
            url=url,
            seller_fallback=data.site_owner or REICHELT_SELLER,
            category_fallback=data.breadcrumbs,
            includes_tax=self.includes_tax,
        )

        soup = make_soup(html)
        parameters, footprint, ean = self._parse_properties(soup)
        vendor_infos = self._parse_order_info(soup, baseline, ean)
        images = self._parse_images(soup)
        datasheets = self._parse_datasheets(soup)

        log_provider_event("html_supplement", {
            "url": url,
            "provider": self.PROVIDER_KEY,
            "parameters": len(parameters),
            "images": len(images),
            "datasheets": len(datasheets),
            "footprint": footprint,
        }, level=logging.DEBUG)

        return dataclasses.replace(
            baseline,
            provider_id=self.article_id(baseline.provider_url),
            name=prefer(self._strip_mpn(baseline.provider_id), baseline.name) or "",
            preview_image_url=prefer(images[0].url if images else None, baseline.preview_image_url),
            footprint=prefer(footprint, baseline.footprint),
            parameters=prefer(parameters, baseline.parameters),
            images=prefer(images, baseline.images),
            datasheets=prefer(datasheets, baseline.datasheets),
            vendor_infos=prefer(vendor_infos, baseline.vendor_infos),
        )

    def _parse_properties(self, soup: BeautifulSoup) -> Tuple[Tuple[ParameterDTO, ...], Optional[str], Optional[str]]:
        """Parameters, footprint and EAN from the property table.

        Raises:
            ParseError: If property names and values don't pair up
        """
        keys = elements_by_class(soup, "av_propname")
        values = elements_by_class(soup, "av_propvalue")
        if len(keys) != len(values):
            raise ParseError(
                f"Number of property names ({len(keys)}) and values ({len(values)}) doesn't match"
            )

        # The property list is rendered twice, only read the second copy
        start = 0
        half = len(keys) // 2
        if len(keys) % 2 == 0 and half > 0:
            first = [k.get_text(strip=True) for k in keys[:half]]
            second = [k.get_text(strip=True) for k in keys[half:]]
            if first == second:
                start = half

        parameters: List[ParameterDTO] = []
        footprint: Optional[str] = None
        ean: Optional[str] = None
        for key, value in zip(keys[start:], values[start:]):
            name = repair_text(key.get_text(strip=True)) or ""
            text = repair_text(value.get_text(" ", strip=True)) or ""
            if not name or not text:
                continue
            if key.get("name") == FOOTPRINT_PROPERTY:
                footprint = text
                continue
            if EAN_PROPERTY_RE.match(name):
                digits = re.sub(r"\D", "", text)
                if digits:
                    ean = digits
                continue
            parameters.append(parse_parameter_value(name, text, self._property_group(key)))

        return tuple(parameters), footprint, ean

    @staticmethod
    def _property_group(key: Tag) -> Optional[str]:
        # <li class="av_propview_headline">Group</li><li><ul><li class="av_propname">
        container = key.parent.parent if key.parent is not None else None
        if container is None:
            return None
        headline = container.find_previous_sibling()
        if headline is None:
            return None
        return repair_text(headline.get_text(strip=True)) or None

    def _parse_order_info(
        self,
        soup: BeautifulSoup,
        baseline: PartDetail,
        ean: Optional[str],
    ) -> Tuple[PurchaseInfoDTO, ...]:
        schema_info = baseline.vendor_infos[0] if baseline.vendor_infos else None
        seller = schema_info.distributor_name if schema_info else REICHELT_SELLER
        order_number = self._strip_mpn(schema_info.order_number) if schema_info else None
        product_url = schema_info.product_url if schema_info else baseline.provider_url
        schema_prices = schema_info.prices if schema_info else ()

        currency = self.settings.currency or "EUR"
        if schema_prices and schema_prices[0].currency_iso_code:
            currency = schema_prices[0].currency_iso_code

        if ean and self.settings.add_gtin_to_orderno and ean not in (order_number or ""):
            order_number = format_order_number(order_number or None, ean, True)

        prices: Tuple = ()
        tables = elements_by_class(soup, "discounttable")
        if tables:
            prices = tuple(extract_price_tiers(tables[0], currency, self.includes_tax))

        if not order_number and not prices and not schema_prices:
            return ()

        return (PurchaseInfoDTO(
            distributor_name=seller,
            order_number=order_number or "",
            prices=prefer(prices, schema_prices) or (),
            product_url=product_url,
        ),)

    @staticmethod
    def _parse_images(soup: BeautifulSoup) -> Tuple[FileDTO, ...]:
        images: List[FileDTO] = []
        for node in elements_by_class(soup, "zoom"):
            src = node.get("data-large")
            if src:
                images.append(FileDTO(url=urljoin(REICHELT_BASE_URL, src.strip())))
        return tuple(images)

    @staticmethod
    def _parse_datasheets(soup: BeautifulSoup) -> Tuple[FileDTO, ...]:
        datasheets: List[FileDTO] = []
        for node in elements_by_class(soup, "av_datasheet_description"):
            link = node.find("a")
            if link is None:
                continue
            href = decode_obfuscated_link(link.get("href")) or decode_obfuscated_link(
                link.get("data-href") or link.get("data-url")
            )
            if href is None:
                continue
            datasheets.append(FileDTO(
                url=urljoin(REICHELT_BASE_URL, href),
                name=repair_text(link.get_text(strip=True)) or None,
            ))
        return tuple(datasheets)
