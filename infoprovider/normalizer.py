"""Turns a schema.org Product into a PartDetail.

Every step degrades to None / empty on missing data; nothing here touches
the network. Providers may patch the returned record afterwards.
"""

from enum import Enum
from typing import List, Optional, Sequence, Union
from urllib.parse import urljoin

from infoprovider.config import MASS_UNIT_FACTORS
from infoprovider.entity_names import resolve_first_name
from infoprovider.logging_config import get_logger
from infoprovider.models import FileDTO, ParameterDTO, PartDetail
from infoprovider.offers import (
    OfferKey,
    build_purchase_infos,
    get_gtin,
    get_sku,
    group_offers,
)
from infoprovider.schema_reader import PropertyValues, SchemaKind, SchemaThing
from infoprovider.text_utils import join_category, normalize_category, parse_number, repair_text
from infoprovider.url_validation import encode_url_id

__all__ = [
    "ProviderIdMode",
    "ProductNormalizer",
    "convert_mass",
]

logger = get_logger("normalizer")


class ProviderIdMode(Enum):
    """Special provider id overrides."""

    # provider_id = base64(product url)
    URL_BASE64 = "url_base64"


ProviderIdOverride = Union[str, ProviderIdMode, None]


def convert_mass(weight: Optional[SchemaThing]) -> Optional[float]:
    """Mass in grams from a QuantitativeValue, None for unknown units."""
    if weight is None or weight.kind is not SchemaKind.QUANTITATIVE_VALUE:
        return None
    value = parse_number(weight.get("value").first_non_empty_string())
    if value is None:
        return None
    unit = weight.get("unitCode").first_non_empty_string()
    factor = MASS_UNIT_FACTORS.get(unit.upper()) if unit else None
    if factor is None:
        logger.debug(f"Unknown mass unit code: {unit!r}")
        return None
    return value * factor


def _urls(values: PropertyValues, base_url: Optional[str]) -> List[str]:
    """URLs from string values or ImageObject-like objects."""
    urls: List[str] = []
    for value in values:
        if isinstance(value, SchemaThing):
            url = value.get("contentUrl").first_non_empty_string() or value.get("url").first_non_empty_string()
        elif isinstance(value, str):
            url = value.strip()
        else:
            url = None
        if not url:
            continue
        url = repair_text(urljoin(base_url, url) if base_url else url)
        if url not in urls:
            urls.append(url)
    return urls


def _parameter(prop: SchemaThing) -> Optional[ParameterDTO]:
    name = repair_text(prop.get("name").first_non_empty_string())
    if not name:
        return None

    raw_value = prop.get("value").first_non_empty_string()
    typ = parse_number(raw_value)
    value_min = parse_number(prop.get("minValue").first_non_empty_string())
    value_max = parse_number(prop.get("maxValue").first_non_empty_string())
    unit = prop.get("unitText").first_non_empty_string() or prop.get("unitCode").first_non_empty_string()

    if typ is None and value_min is None and value_max is None:
        if raw_value is None:
            return None
        return ParameterDTO(name=name, value_text=repair_text(raw_value), unit=repair_text(unit))

    return ParameterDTO(
        name=name,
        value_min=value_min,
        value_typ=typ,
        value_max=value_max,
        unit=repair_text(unit),
    )


def _manufacturing_status(offers: PropertyValues) -> Optional[str]:
    for offer in offers.things():
        availability = offer.get("availability").first_non_empty_string()
        if availability and availability.rstrip("/").endswith("Discontinued"):
            return "discontinued"
        for sub_offer in offer.get("offers").things():
            availability = sub_offer.get("availability").first_non_empty_string()
            if availability and availability.rstrip("/").endswith("Discontinued"):
                return "discontinued"
    return None


class ProductNormalizer:
    """Builds baseline PartDetail records for one provider.

    Holds only configuration; ``normalize`` is safe to call concurrently.
    """

    def __init__(self, provider_key: str, add_gtin_to_orderno: bool = False):
        self.provider_key = provider_key
        self.add_gtin_to_orderno = add_gtin_to_orderno

    def normalize(
        self,
        product: SchemaThing,
        url: Optional[str] = None,
        provider_id: ProviderIdOverride = None,
        seller_fallback: Optional[str] = None,
        category_fallback: Optional[Sequence[str]] = None,
        includes_tax: bool = True,
    ) -> PartDetail:
        """Convert a Product into a PartDetail.

        Args:
            product: The schema.org Product
            url: Page URL, used when the product doesn't declare its own
            provider_id: Explicit id, ``ProviderIdMode.URL_BASE64`` or None for the sku
            seller_fallback: Distributor name for offers without a seller
            category_fallback: Breadcrumb segments, used when the product has no category
            includes_tax: Whether prices include tax

        Returns:
            The baseline PartDetail
        """
        page_url = url
        url = product.get("url").first_non_empty_string() or page_url
        if url and page_url:
            url = urljoin(page_url, url)

        gtin = get_gtin(product)
        sku = get_sku(product, gtin)

        if provider_id is ProviderIdMode.URL_BASE64:
            resolved_id = encode_url_id(url) if url else None
        elif provider_id is not None:
            resolved_id = provider_id
        else:
            resolved_id = sku

        offers = product.get("offers")
        groups = group_offers(offers.things(), OfferKey(seller=None, sku=sku, gtin=gtin, url=url))
        vendor_infos = build_purchase_infos(
            groups,
            seller_fallback=seller_fallback,
            includes_tax=includes_tax,
            add_gtin_to_orderno=self.add_gtin_to_orderno,
        )

        manufacturer = resolve_first_name(product.get("manufacturer"), product.get("brand"))
        mass = convert_mass(product.get("weight").first_thing(SchemaKind.QUANTITATIVE_VALUE))

        category = repair_text(product.get("category").first_non_empty_string())
        if category is not None:
            category = normalize_category(category)
        if category is None and category_fallback:
            category = join_category(repair_text(c) for c in category_fallback)

        image_urls = _urls(product.get("image"), url)
        images = tuple(FileDTO(url=u) for u in image_urls)
        preview = image_urls[0] if image_urls else None
        if preview is None:
            logos = _urls(product.get("logo"), url)
            preview = logos[0] if logos else None

        parameters = tuple(
            p for p in (_parameter(prop) for prop in product.get("additionalProperty").things())
            if p is not None
        )

        return PartDetail(
            provider_key=self.provider_key,
            provider_id=repair_text(resolved_id),
            name=repair_text(product.get("name").first_non_empty_string()) or "",
            description=repair_text(product.get("description").first_non_empty_string()) or "",
            category=category,
            manufacturer=repair_text(manufacturer),
            mpn=repair_text(product.get("mpn").first_non_empty_string()),
            preview_image_url=preview,
            manufacturing_status=_manufacturing_status(offers),
            provider_url=repair_text(url),
            parameters=parameters,
            images=images,
            vendor_infos=tuple(vendor_infos),
            mass=mass,
        )
