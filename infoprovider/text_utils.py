"""Text, encoding and number normalization helpers."""

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

import pycountry
from bs4 import UnicodeDammit

from infoprovider.config import CATEGORY_SEPARATOR, CURRENCY_ALIASES

__all__ = [
    "decode_document",
    "repair_text",
    "normalize_price",
    "parse_number",
    "normalize_currency",
    "normalize_category",
    "join_category",
]

CATEGORY_SPLIT_RE = re.compile(r"\s*(?:->|/|>)\s*")
NUMBER_RE = re.compile(r"[-+]?\d[\d.,]*")
STRICT_NUMBER_RE = re.compile(r"[-+]?(?:\d+(?:[.,]\d*)?|[.,]\d+)(?:[eE][-+]?\d+)?")
UTF8_NAMES = {"utf-8", "utf8"}


def decode_document(content: bytes, declared_encoding: Optional[str] = None) -> str:
    """Decode a fetched document to text.

    The HTTP header charset wins, then the in-document declaration, then
    detection. Windows-1252 fragments embedded in a UTF-8 document are fixed
    first.
    """
    if not content:
        return ""
    if declared_encoding and declared_encoding.strip().lower().replace("_", "-") in UTF8_NAMES:
        content = UnicodeDammit.detwingle(content)
    known = [declared_encoding] if declared_encoding else []
    dammit = UnicodeDammit(content, known_definite_encodings=known, is_html=True)
    if dammit.unicode_markup is None:
        return content.decode("utf-8", errors="replace")
    return dammit.unicode_markup


def repair_text(value: Optional[str]) -> Optional[str]:
    """Return valid UTF-8 text, undoing UTF-8-read-as-Latin-1 mojibake.

    ``"WiderstÃ¤nde"`` becomes ``"Widerstände"``; text that isn't
    mis-decoded is returned unchanged.
    """
    if value is None:
        return None
    text = str(value)
    try:
        repaired = text.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        repaired = text
    # Lone surrogates (e.g. from JSON "\ud800" escapes) are not valid UTF-8
    return repaired.encode("utf-8", errors="replace").decode("utf-8")


def normalize_price(value: Optional[str]) -> Optional[str]:
    """Turn a price string into a plain decimal string with a dot separator.

    ``"1.234,50 €"`` -> ``"1234.50"``, ``"0,05"`` -> ``"0.05"``,
    ``"1,234.50"`` -> ``"1234.50"``. Returns None if no number is found.
    """
    if value is None:
        return None
    match = NUMBER_RE.search(str(value).replace("\xa0", "").replace(" ", ""))
    if not match:
        return None
    number = match.group(0).rstrip(".,")

    last_comma = number.rfind(",")
    last_dot = number.rfind(".")
    if last_comma >= 0 and last_dot >= 0:
        if last_comma > last_dot:
            number = number.replace(".", "").replace(",", ".")
        else:
            number = number.replace(",", "")
    elif last_comma >= 0:
        if number.count(",") > 1:
            number = number.replace(",", "")
        else:
            number = number.replace(",", ".")
    elif number.count(".") > 1:
        number = number.replace(".", "")

    try:
        Decimal(number)
    except InvalidOperation:
        return None
    return number


def parse_number(value: Optional[str]) -> Optional[float]:
    """Parse a number that may use a decimal comma. None if not numeric."""
    if value is None:
        return None
    text = str(value).strip()
    if not STRICT_NUMBER_RE.fullmatch(text):
        return None
    result = float(text.replace(",", "."))
    # "1e999" overflows to inf
    return result if math.isfinite(result) else None


def normalize_currency(value: Optional[str]) -> Optional[str]:
    """Map a currency string to its ISO 4217 code, None if unknown."""
    if not value:
        return None
    code = value.strip()
    code = CURRENCY_ALIASES.get(code, code).upper()
    if len(code) != 3:
        return None
    if pycountry.currencies.get(alpha_3=code) is None:
        return None
    return code


def join_category(segments: Iterable[Optional[str]]) -> Optional[str]:
    """Join category segments, dropping empty ones. None if nothing is left."""
    parts = [s.strip() for s in segments if s and s.strip()]
    return CATEGORY_SEPARATOR.join(parts) if parts else None


def normalize_category(category: Optional[str]) -> Optional[str]:
    """Normalize '/' and '>' separated category paths to the canonical joiner.

    ``"Resistors/Fixed>THT"`` -> ``"Resistors -> Fixed -> THT"``
    """
    if category is None:
        return None
    return join_category(CATEGORY_SPLIT_RE.split(category))
