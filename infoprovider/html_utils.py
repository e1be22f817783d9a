"""HTML helpers for the shop-specific supplement passes.

Structured data is the baseline; these helpers pull what it lacks straight
out of the page (tiered price tables, attribute tables, datasheet links).
"""

import base64
import binascii
import re
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from infoprovider.errors import ParseError
from infoprovider.models import ParameterDTO, PriceDTO
from infoprovider.text_utils import normalize_price, parse_number

__all__ = [
    "make_soup",
    "elements_by_class",
    "cell_lines",
    "parse_tier_quantity",
    "parse_tier_price",
    "extract_price_tiers",
    "extract_attribute_table",
    "pick_spec",
    "extract_ean",
    "parse_parameter_value",
    "decode_obfuscated_link",
    "extract_og_image",
]

TIER_QUANTITY_RE = re.compile(r"\d+(?:[.,]\d{3})*")
TIER_PRICE_RE = re.compile(r"\d+(?:[.,]\d+)*")

# '+8.0 ... +18.0 VDC'
RANGE_RE = re.compile(r"^([-+]?[0-9,.]+) ?(?:\.\.\.|…) ?([-+]?[0-9,.]+) ?(\S*)\s*$")
# '+350 / -500 / -1500'
TRIPLE_RE = re.compile(r"^([-+]?[0-9,.]+) ?/ ?([-+]?[0-9,.]+) ?/ ?([-+]?[0-9,.]+) ?(\S*)\s*$")
# '2.0E-4 kg'
SINGLE_RE = re.compile(r"^([-+]?[0-9,.]+)(?:E([-+]?[0-9]+))? (\S*)\s*$")
# '±200 ppm'
TOLERANCE_RE = re.compile(r"^±([0-9,.]+)(?:E([-+]?[0-9]+))? (\S*)\s*$")

EAN_LABELS = ["EAN", "GTIN", "EAN/GTIN", "EAN-Code", "EAN Code", "GTIN/EAN"]


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def elements_by_class(soup: BeautifulSoup, class_name: str) -> List[Tag]:
    """All elements carrying a CSS class, in document order."""
    return soup.find_all(class_=class_name)


def cell_lines(cell: Tag) -> List[str]:
    """Non-empty text lines of an element."""
    return [s for s in cell.stripped_strings]


def parse_tier_quantity(label: str, index: int) -> float:
    """Minimum quantity of a price tier.

    The first tier always means 1; later tiers take the first integer in the
    label ('ab 1.000 St.' -> 1000). Unmatchable labels give 0.
    """
    if index == 0:
        return 1.0
    match = TIER_QUANTITY_RE.search(label or "")
    if not match:
        return 0.0
    return float(re.sub(r"[.,]", "", match.group(0)))


def parse_tier_price(text: str) -> str:
    """Price of a tier as decimal string, '0' if none can be read."""
    match = TIER_PRICE_RE.search(text or "")
    if not match:
        return "0"
    return normalize_price(match.group(0)) or "0"


def _data_cells(row: Tag) -> List[Tag]:
    cells = row.find_all(["td", "th"], recursive=False) or row.find_all(["td", "th"])
    has_data = any(c.name == "td" for c in cells)
    # A leading <th> next to <td>s is a row caption ('Quantity', 'Price')
    return [c for c in cells if not (has_data and c.name == "th")]


def extract_price_tiers(
    table: Tag,
    currency: Optional[str],
    includes_tax: bool = True,
) -> List[PriceDTO]:
    """Read a tiered price table.

    Two layouts are understood: a label row followed by a price row, or a
    single row whose cells hold 'label' and 'price' as two lines. Bad cells
    become placeholders; differing label and price counts raise.

    Raises:
        ParseError: If the number of tier labels and prices differ
    """
    rows = table.find_all("tr")
    labels: List[str] = []
    prices: List[str] = []

    if len(rows) >= 2:
        labels = [" ".join(cell_lines(c)) for c in _data_cells(rows[0])]
        prices = [" ".join(cell_lines(c)) for c in _data_cells(rows[1])]
    else:
        cells = _data_cells(rows[0]) if rows else table.find_all(["td", "div"], recursive=False)
        for cell in cells:
            lines = cell_lines(cell)
            if not lines:
                continue
            labels.append(lines[0])
            if len(lines) > 1:
                prices.append(" ".join(lines[1:]))

    if len(labels) != len(prices):
        raise ParseError(
            f"Price table has {len(labels)} quantity tiers but {len(prices)} prices"
        )

    return [
        PriceDTO(
            price=parse_tier_price(price),
            minimum_discount_amount=parse_tier_quantity(label, i),
            currency_iso_code=currency,
            includes_tax=includes_tax,
        )
        for i, (label, price) in enumerate(zip(labels, prices))
    ]


def extract_attribute_table(soup: BeautifulSoup) -> Dict[str, str]:
    """Label -> value pairs from <dl> and two-column <table> attribute lists."""
    specs: Dict[str, str] = {}
    for dl in soup.find_all("dl"):
        for dt, dd in zip(dl.find_all("dt"), dl.find_all("dd")):
            key = dt.get_text(strip=True).rstrip(":")
            value = " ".join(dd.stripped_strings)
            if key and value:
                specs.setdefault(key, value)
    for row in soup.find_all("tr"):
        cells = row.find_all(["th", "td"])
        if len(cells) != 2:
            continue
        key = cells[0].get_text(strip=True).rstrip(":")
        value = " ".join(cells[1].stripped_strings)
        if key and value:
            specs.setdefault(key, value)
    return specs


def pick_spec(specs: Dict[str, str], keys: Sequence[str]) -> Optional[str]:
    """Pick a spec value by trying a list of possible labels (case-insensitive)."""
    for k in keys:
        if k in specs:
            return specs[k]

    lower_map = {kk.lower(): vv for kk, vv in specs.items()}
    for k in keys:
        if k.lower() in lower_map:
            return lower_map[k.lower()]
    return None


def extract_ean(specs: Dict[str, str]) -> Optional[str]:
    """EAN/GTIN digits from an attribute table, None if absent or malformed."""
    value = pick_spec(specs, EAN_LABELS)
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    return digits if len(digits) in (8, 12, 13, 14) else None


def _exponent_unit(exponent: Optional[str], unit: str) -> str:
    # 0.0002 would be shown as 0, so the power of ten goes into the unit
    prefix = f"E^{{{exponent}}} " if exponent else ""
    return prefix + unit


def parse_parameter_value(name: str, value: str, group: Optional[str] = None) -> ParameterDTO:
    """Build a parameter from a shop property value.

    Recognized: 'min ... max unit', 'min / typ / max unit', 'value[E±n] unit'
    and '±value unit'; anything else is kept as text.
    """
    value_min = value_typ = value_max = None
    unit = ""

    range_match = RANGE_RE.match(value)
    triple_match = TRIPLE_RE.match(value)
    single_match = SINGLE_RE.match(value)
    tolerance_match = TOLERANCE_RE.match(value)

    if range_match:
        value_min = parse_number(range_match.group(1))
        value_max = parse_number(range_match.group(2))
        unit = range_match.group(3)
    elif triple_match:
        value_min = parse_number(triple_match.group(1))
        value_typ = parse_number(triple_match.group(2))
        value_max = parse_number(triple_match.group(3))
        unit = triple_match.group(4)
    elif single_match:
        value_typ = parse_number(single_match.group(1))
        unit = _exponent_unit(single_match.group(2), single_match.group(3))
    elif tolerance_match:
        value_max = parse_number(tolerance_match.group(1))
        value_min = -value_max if value_max is not None else None
        unit = _exponent_unit(tolerance_match.group(2), tolerance_match.group(3))

    if value_min is None and value_typ is None and value_max is None:
        return ParameterDTO(name=name, value_text=value.strip(), group=group)

    return ParameterDTO(
        name=name,
        value_min=value_min,
        value_typ=value_typ,
        value_max=value_max,
        unit=unit or None,
        group=group,
    )


def _looks_like_link(value: str) -> bool:
    return value.startswith(("http://", "https://", "/", "./", "../"))


def decode_obfuscated_link(value: Optional[str]) -> Optional[str]:
    """Return a link as-is, or base64-decoded if the shop obfuscated it."""
    if not value or not value.strip():
        return None
    value = value.strip()
    if _looks_like_link(value):
        return value

    padded = value + "=" * (-len(value) % 4)
    try:
        decoded = base64.b64decode(padded, altchars=b"-_" if ("-" in value or "_" in value) else None)
        text = decoded.decode("utf-8").strip()
    except (binascii.Error, ValueError):
        return None
    return text if _looks_like_link(text) else None


def extract_og_image(soup: BeautifulSoup) -> Optional[str]:
    """The og:image meta tag, the most reliable product image on most shops."""
    og_image = soup.find("meta", property="og:image")
    if og_image and og_image.get("content"):
        return og_image["content"].strip() or None
    return None
