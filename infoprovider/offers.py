"""Grouping of schema.org offers into purchase infos.

Offers are bucketed by ``OfferKey(seller, sku, gtin, url)``. Missing key
parts are inherited from the enclosing context: the product for plain
offers, the AggregateOffer (itself filled from the product) for its
sub-offers. Offers in one bucket differ only by price tier and end up as the
price list of a single ``PurchaseInfoDTO``.
"""

from typing import Dict, Iterable, List, NamedTuple, Optional

from infoprovider.config import DISTRIBUTOR_PLACEHOLDER
from infoprovider.entity_names import resolve_first_name
from infoprovider.logging_config import get_logger
from infoprovider.models import PriceDTO, PurchaseInfoDTO
from infoprovider.schema_reader import SchemaKind, SchemaThing
from infoprovider.text_utils import normalize_currency, normalize_price, parse_number, repair_text

__all__ = [
    "OfferKey",
    "get_gtin",
    "get_sku",
    "offer_key",
    "group_offers",
    "offer_price",
    "format_order_number",
    "build_purchase_infos",
]

logger = get_logger("offers")

GTIN_PROPERTIES = ("gtin14", "gtin13", "gtin12", "gtin8")


class OfferKey(NamedTuple):
    """Identity of a purchase info. Compared by value."""

    seller: Optional[str] = None
    sku: Optional[str] = None
    gtin: Optional[str] = None
    url: Optional[str] = None


OfferGroups = Dict[OfferKey, List[SchemaThing]]


def get_gtin(thing: SchemaThing) -> Optional[str]:
    """First GTIN, longer codes preferred."""
    for prop in GTIN_PROPERTIES:
        value = thing.get(prop).first_non_empty_string()
        if value is not None:
            return value
    return None


def get_sku(thing: SchemaThing, gtin: Optional[str]) -> Optional[str]:
    """sku, then productID (products only), then identifier, then the GTIN."""
    sku = thing.get("sku").first_non_empty_string()
    if sku is None and thing.kind is SchemaKind.PRODUCT:
        sku = thing.get("productID").first_non_empty_string()
    if sku is None:
        sku = thing.get("identifier").first_non_empty_string()
    return sku if sku is not None else gtin


def offer_key(offer: SchemaThing, parent: OfferKey) -> OfferKey:
    """Compute an offer's key, inheriting missing parts from ``parent``."""
    gtin = get_gtin(offer)
    sku = get_sku(offer, gtin)
    seller = resolve_first_name(offer.get("seller"), offer.get("offeredBy"))
    url = offer.get("url").first_non_empty_string()
    return OfferKey(
        seller=seller if seller is not None else parent.seller,
        sku=sku if sku is not None else parent.sku,
        gtin=gtin if gtin is not None else parent.gtin,
        url=url if url is not None else parent.url,
    )


def _is_offer(thing: SchemaThing) -> bool:
    if thing.kind is SchemaKind.OFFER:
        return True
    # Untyped offer objects still carry a price
    return thing.kind is SchemaKind.OTHER and bool(thing.get("price"))


def _push_offers(groups: OfferGroups, offers: Iterable[SchemaThing], parent: OfferKey) -> None:
    for offer in offers:
        if offer.kind is SchemaKind.AGGREGATE_OFFER:
            key = offer_key(offer, parent)
            sub_offers = offer.get("offers").things()
            if sub_offers:
                _push_offers(groups, sub_offers, key)
            else:
                # Only lowPrice/highPrice given, the aggregate is the offer
                groups.setdefault(key, []).append(offer)
        elif _is_offer(offer):
            groups.setdefault(offer_key(offer, parent), []).append(offer)
        else:
            logger.debug(f"Ignoring non-offer object in offers: {offer!r}")


def group_offers(offers: Iterable[SchemaThing], parent: OfferKey) -> OfferGroups:
    """Bucket offers by key.

    Buckets keep first-seen order; offers inside a bucket keep document order.
    """
    groups: OfferGroups = {}
    _push_offers(groups, offers, parent)
    return groups


def _eligible_quantity(*sources: SchemaThing) -> float:
    for source in sources:
        quantity = source.get("eligibleQuantity").first_thing()
        if quantity is None:
            continue
        for prop in ("minValue", "value"):
            amount = parse_number(quantity.get(prop).first_non_empty_string())
            if amount is not None:
                return amount
    return 1.0


def offer_price(offer: SchemaThing, includes_tax: bool = True) -> Optional[PriceDTO]:
    """Price tier of one offer, None if it has no usable price."""
    specs = offer.get("priceSpecification").things()

    raw_price = offer.get("price").first_non_empty_string()
    if raw_price is None and offer.kind is SchemaKind.AGGREGATE_OFFER:
        raw_price = offer.get("lowPrice").first_non_empty_string()
    price_source = offer
    if raw_price is None:
        for spec in specs:
            raw_price = spec.get("price").first_non_empty_string()
            if raw_price is not None:
                price_source = spec
                break

    price = normalize_price(repair_text(raw_price))
    if price is None:
        logger.debug(f"Dropping offer without usable price: {offer!r}")
        return None

    currency = price_source.get("priceCurrency").first_non_empty_string()
    if currency is None:
        currency = offer.get("priceCurrency").first_non_empty_string()

    return PriceDTO(
        price=price,
        minimum_discount_amount=_eligible_quantity(price_source, offer),
        currency_iso_code=normalize_currency(currency),
        includes_tax=includes_tax,
    )


def format_order_number(sku: Optional[str], gtin: Optional[str], add_gtin: bool) -> str:
    """Order number from sku, optionally suffixed with ', GTIN: <gtin>'."""
    order_number = sku or ""
    if add_gtin and gtin and sku != gtin:
        order_number = f"{order_number}, GTIN: {gtin}" if order_number else gtin
    return order_number


def build_purchase_infos(
    groups: OfferGroups,
    seller_fallback: Optional[str] = None,
    includes_tax: bool = True,
    add_gtin_to_orderno: bool = False,
) -> List[PurchaseInfoDTO]:
    """One purchase info per offer group."""
    infos: List[PurchaseInfoDTO] = []
    for key, offers in groups.items():
        prices = tuple(p for p in (offer_price(o, includes_tax) for o in offers) if p is not None)
        infos.append(PurchaseInfoDTO(
            distributor_name=repair_text(key.seller or seller_fallback) or DISTRIBUTOR_PLACEHOLDER,
            order_number=repair_text(format_order_number(key.sku, key.gtin, add_gtin_to_orderno)) or "",
            prices=prices,
            product_url=repair_text(key.url),
        ))
    return infos
