"""Data models for part records returned by providers.

All records are frozen. Providers that patch a baseline record build a new
one with ``dataclasses.replace``.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

__all__ = [
    "Capability",
    "FileDTO",
    "ParameterDTO",
    "PriceDTO",
    "PurchaseInfoDTO",
    "PartSummary",
    "PartDetail",
]


class Capability(str, Enum):
    """Optional record sections a provider is able to fill."""

    BASIC = "basic"
    FOOTPRINT = "footprint"
    PICTURE = "picture"
    DATASHEET = "datasheet"
    PRICE = "price"


@dataclass(frozen=True)
class FileDTO:
    """A downloadable file (image or datasheet)."""

    url: str
    name: Optional[str] = None


@dataclass(frozen=True)
class ParameterDTO:
    """A single part parameter.

    Either ``value_text`` is set or at least one of the numeric values.
    """

    name: str
    value_text: Optional[str] = None
    value_min: Optional[float] = None
    value_typ: Optional[float] = None
    value_max: Optional[float] = None
    unit: Optional[str] = None
    group: Optional[str] = None


@dataclass(frozen=True)
class PriceDTO:
    """One price tier of a purchase info."""

    price: str
    minimum_discount_amount: float = 1.0
    currency_iso_code: Optional[str] = None
    includes_tax: bool = True


@dataclass(frozen=True)
class PurchaseInfoDTO:
    """Where and for how much a part can be bought."""

    distributor_name: str
    order_number: str
    prices: Tuple[PriceDTO, ...] = ()
    product_url: Optional[str] = None


@dataclass(frozen=True)
class PartSummary:
    """Search result record."""

    provider_key: str
    provider_id: Optional[str]
    name: str
    description: str
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    mpn: Optional[str] = None
    preview_image_url: Optional[str] = None
    manufacturing_status: Optional[str] = None
    provider_url: Optional[str] = None
    footprint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PartDetail(PartSummary):
    """Full part record returned by ``get_details``."""

    notes: Optional[str] = None
    manufacturer_product_url: Optional[str] = None
    parameters: Tuple[ParameterDTO, ...] = ()
    images: Tuple[FileDTO, ...] = ()
    datasheets: Tuple[FileDTO, ...] = ()
    vendor_infos: Tuple[PurchaseInfoDTO, ...] = ()
    # Mass in grams
    mass: Optional[float] = None

    def to_summary(self) -> PartSummary:
        """Drop the detail-only fields."""
        return PartSummary(
            provider_key=self.provider_key,
            provider_id=self.provider_id,
            name=self.name,
            description=self.description,
            category=self.category,
            manufacturer=self.manufacturer,
            mpn=self.mpn,
            preview_image_url=self.preview_image_url,
            manufacturing_status=self.manufacturing_status,
            provider_url=self.provider_url,
            footprint=self.footprint,
        )
