"""Reader for schema.org structured data embedded in HTML.

JSON-LD blocks are parsed one by one so a single broken block doesn't hide
the others. Microdata and RDFa are extracted with extruct. Every syntax ends
up as ``SchemaThing`` records whose properties are multi-valued.

Shops regularly declare a property twice (e.g. a broken ``"price": ""`` next
to the real one), so lookups go through ``PropertyValues`` and callers
normally ask for the first non-empty string rather than the first value.
Duplicate JSON keys are kept for the same reason.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import extruct
from bs4 import BeautifulSoup
from w3lib.html import get_base_url

from infoprovider.logging_config import get_logger
from infoprovider.text_utils import parse_number

__all__ = [
    "SchemaKind",
    "PropertyValues",
    "SchemaThing",
    "SchemaReader",
    "iter_things",
    "find_things",
    "find_products",
    "read_breadcrumbs",
]

logger = get_logger("schema_reader")


class SchemaKind(str, Enum):
    """Schema.org types the reader distinguishes. Everything else is OTHER."""

    PRODUCT = "Product"
    OFFER = "Offer"
    AGGREGATE_OFFER = "AggregateOffer"
    ORGANIZATION = "Organization"
    BRAND = "Brand"
    PERSON = "Person"
    WEBSITE = "WebSite"
    WEBPAGE = "WebPage"
    BREADCRUMB_LIST = "BreadcrumbList"
    LIST_ITEM = "ListItem"
    QUANTITATIVE_VALUE = "QuantitativeValue"
    PROPERTY_VALUE = "PropertyValue"
    PRICE_SPECIFICATION = "PriceSpecification"
    IMAGE_OBJECT = "ImageObject"
    OTHER = "Thing"


# Lower-cased type name -> kind, subtypes folded into their parent
_KIND_BY_TYPE: Dict[str, SchemaKind] = {
    "product": SchemaKind.PRODUCT,
    "productmodel": SchemaKind.PRODUCT,
    "individualproduct": SchemaKind.PRODUCT,
    "someproducts": SchemaKind.PRODUCT,
    "offer": SchemaKind.OFFER,
    "aggregateoffer": SchemaKind.AGGREGATE_OFFER,
    "organization": SchemaKind.ORGANIZATION,
    "corporation": SchemaKind.ORGANIZATION,
    "localbusiness": SchemaKind.ORGANIZATION,
    "onlinebusiness": SchemaKind.ORGANIZATION,
    "onlinestore": SchemaKind.ORGANIZATION,
    "store": SchemaKind.ORGANIZATION,
    "electronicsstore": SchemaKind.ORGANIZATION,
    "brand": SchemaKind.BRAND,
    "person": SchemaKind.PERSON,
    "website": SchemaKind.WEBSITE,
    "webpage": SchemaKind.WEBPAGE,
    "itempage": SchemaKind.WEBPAGE,
    "collectionpage": SchemaKind.WEBPAGE,
    "searchresultspage": SchemaKind.WEBPAGE,
    "breadcrumblist": SchemaKind.BREADCRUMB_LIST,
    "listitem": SchemaKind.LIST_ITEM,
    "quantitativevalue": SchemaKind.QUANTITATIVE_VALUE,
    "propertyvalue": SchemaKind.PROPERTY_VALUE,
    "pricespecification": SchemaKind.PRICE_SPECIFICATION,
    "unitpricespecification": SchemaKind.PRICE_SPECIFICATION,
    "compoundpricespecification": SchemaKind.PRICE_SPECIFICATION,
    "imageobject": SchemaKind.IMAGE_OBJECT,
}

_SCHEMA_PREFIX_RE = re.compile(r"^(?:https?://schema\.org/|schema:)", re.IGNORECASE)
_HTML_COMMENT_RE = re.compile(r"^\s*(?:<!--|<!\[CDATA\[)|(?:-->|\]\]>)\s*$")

# Guards against reference cycles between JSON-LD / RDFa nodes
_MAX_DEPTH = 12


class PropertyValues:
    """All values declared for one property, in document order."""

    __slots__ = ("_values",)

    def __init__(self, values: Iterable[Any] = ()):
        self._values: Tuple[Any, ...] = tuple(values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)

    def __repr__(self) -> str:
        return f"PropertyValues({list(self._values)!r})"

    def first_value(self) -> Any:
        """The first declared value, whatever its type."""
        return self._values[0] if self._values else None

    def first_non_empty_string(self) -> Optional[str]:
        """The first string value that isn't blank, stripped."""
        for value in self._values:
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    def strings(self) -> List[str]:
        """All non-blank string values, stripped."""
        return [v.strip() for v in self._values if isinstance(v, str) and v.strip()]

    def things(self, *kinds: SchemaKind) -> List["SchemaThing"]:
        """Nested objects, optionally restricted to the given kinds."""
        return [
            v for v in self._values
            if isinstance(v, SchemaThing) and (not kinds or v.kind in kinds)
        ]

    def first_thing(self, *kinds: SchemaKind) -> Optional["SchemaThing"]:
        found = self.things(*kinds)
        return found[0] if found else None


@dataclass(frozen=True, eq=False)
class SchemaThing:
    """One typed structured-data object."""

    kind: SchemaKind
    types: Tuple[str, ...] = ()
    properties: Dict[str, Tuple[Any, ...]] = field(default_factory=dict)
    source: str = "json-ld"
    id: Optional[str] = None

    def get(self, name: str) -> PropertyValues:
        return PropertyValues(self.properties.get(name, ()))

    def first_non_empty_string(self) -> Optional[str]:
        """Text-like fallback for objects used where a string was expected."""
        for key in ("name", "value", "url", "@value"):
            value = self.get(key).first_non_empty_string()
            if value is not None:
                return value
        return None

    def __repr__(self) -> str:
        return f"SchemaThing({self.kind.value}, {sorted(self.properties)})"


def _short_type(raw: Any) -> Optional[str]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    return raw.strip().replace("#", "/").rsplit("/", 1)[-1].split(":")[-1]


def _normalize_types(raw: Any) -> Tuple[str, ...]:
    return tuple(t for t in (_short_type(v) for v in _flatten(raw)) if t)


def _kind_for(types: Sequence[str]) -> SchemaKind:
    for type_name in types:
        kind = _KIND_BY_TYPE.get(type_name.lower())
        if kind is not None:
            return kind
    return SchemaKind.OTHER


def _property_name(key: str) -> str:
    return _SCHEMA_PREFIX_RE.sub("", key)


def _flatten(value: Any) -> Iterator[Any]:
    if isinstance(value, list):
        for item in value:
            yield from _flatten(item)
    else:
        yield value


def _scalar(value: Any) -> Any:
    """Numbers become strings so all syntaxes agree; bools and None stay as-is."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _keep_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    """json object hook that collects repeated keys into a list."""
    result: Dict[str, Any] = {}
    repeated: Set[str] = set()
    for key, value in pairs:
        if key not in result:
            result[key] = value
        elif key in repeated:
            result[key].append(value)
        else:
            result[key] = [result[key], value]
            repeated.add(key)
    return result


class _LinkedDataConverter:
    """Converts JSON-LD style dicts (JSON-LD and extruct's RDFa) to SchemaThings."""

    def __init__(self, source: str, nodes: Iterable[Any]):
        self.source = source
        self.index: Dict[str, Dict[str, Any]] = {}
        self._converted: Dict[str, SchemaThing] = {}
        self._expanding: Set[str] = set()
        for node in nodes:
            self._index_node(node, 0)

    def _index_node(self, node: Any, depth: int) -> None:
        if depth > _MAX_DEPTH:
            return
        if isinstance(node, list):
            for item in node:
                self._index_node(item, depth + 1)
        elif isinstance(node, dict):
            node_id = node.get("@id")
            if isinstance(node_id, str) and len([k for k in node if k != "@id"]) > 0:
                self.index.setdefault(node_id, node)
            for value in node.values():
                self._index_node(value, depth + 1)

    def convert_value(self, value: Any, depth: int = 0) -> Any:
        if isinstance(value, dict):
            if "@value" in value:
                return _scalar(value.get("@value"))
            node_id = value.get("@id")
            if isinstance(node_id, str) and set(value) <= {"@id", "@type"}:
                if node_id in self._converted:
                    return self._converted[node_id]
                if node_id in self._expanding:
                    # Reference back to a node still being expanded
                    return node_id
                target = self.index.get(node_id)
                if target is not None and depth <= _MAX_DEPTH:
                    value = target
                elif "@type" not in value:
                    # Unresolvable untyped reference, keep the IRI as text
                    return node_id
            return self.convert_node(value, depth + 1)
        return _scalar(value)

    def convert_node(self, node: Dict[str, Any], depth: int = 0) -> SchemaThing:
        node_id = node.get("@id")
        if not isinstance(node_id, str):
            node_id = None
        indexed = node_id is not None and self.index.get(node_id) is node
        if indexed and node_id in self._converted:
            return self._converted[node_id]

        types = _normalize_types(node.get("@type") or node.get("type"))
        properties: Dict[str, Tuple[Any, ...]] = {}
        if depth <= _MAX_DEPTH:
            if node_id is not None:
                self._expanding.add(node_id)
            try:
                for key, raw in node.items():
                    if not isinstance(key, str) or key.startswith("@"):
                        continue
                    values = tuple(
                        v for v in (self.convert_value(item, depth) for item in _flatten(raw))
                        if v is not None
                    )
                    name = _property_name(key)
                    properties[name] = properties.get(name, ()) + values
            finally:
                if node_id is not None:
                    self._expanding.discard(node_id)

        thing = SchemaThing(
            kind=_kind_for(types),
            types=types,
            properties=properties,
            source=self.source,
            id=node_id,
        )
        if indexed and depth <= _MAX_DEPTH:
            # Every reference to this node shares one converted object
            self._converted[node_id] = thing
        return thing


def _convert_microdata(item: Dict[str, Any]) -> SchemaThing:
    types = _normalize_types(item.get("type"))
    properties: Dict[str, Tuple[Any, ...]] = {}
    for key, raw in (item.get("properties") or {}).items():
        values: List[Any] = []
        for value in _flatten(raw):
            if isinstance(value, dict):
                values.append(_convert_microdata(value))
            elif value is not None:
                values.append(_scalar(value))
        properties[_property_name(key)] = tuple(values)
    item_id = item.get("id")
    return SchemaThing(
        kind=_kind_for(types),
        types=types,
        properties=properties,
        source="microdata",
        id=item_id if isinstance(item_id, str) else None,
    )


class SchemaReader:
    """Extracts structured-data objects from an HTML document.

    ``read`` never raises: markup that can't be parsed is treated as absent.
    """

    def __init__(self, syntaxes: Sequence[str] = ("json-ld", "microdata", "rdfa")):
        self.syntaxes = tuple(syntaxes)

    def read(self, html: str, base_url: str) -> List[SchemaThing]:
        """Parse a document and return its top-level typed objects.

        Args:
            html: The HTML document
            base_url: URL the document was fetched from

        Returns:
            Objects in document order: JSON-LD first, then microdata, then RDFa
        """
        if not html or not html.strip():
            return []

        things: List[SchemaThing] = []
        if "json-ld" in self.syntaxes:
            things.extend(self._read_json_ld(html))

        other_syntaxes = [s for s in self.syntaxes if s in ("microdata", "rdfa")]
        if other_syntaxes:
            things.extend(self._read_with_extruct(html, base_url, other_syntaxes))

        return things

    def _read_json_ld(self, html: str) -> List[SchemaThing]:
        soup = BeautifulSoup(html, "html.parser")
        things: List[SchemaThing] = []

        for script in soup.find_all("script"):
            script_type = (script.get("type") or "").split(";")[0].strip().lower()
            if script_type != "application/ld+json":
                continue
            text = _HTML_COMMENT_RE.sub("", script.string or script.get_text() or "").strip()
            if not text:
                continue
            try:
                data = json.loads(text, strict=False, object_pairs_hook=_keep_duplicate_keys)
            except ValueError as e:
                logger.debug(f"Skipping unparseable JSON-LD block: {e}")
                continue

            nodes: List[Any] = []
            for node in _flatten(data):
                if not isinstance(node, dict):
                    continue
                graph = node.get("@graph")
                if graph is not None:
                    nodes.extend(n for n in _flatten(graph) if isinstance(n, dict))
                if node.get("@type"):
                    nodes.append(node)

            converter = _LinkedDataConverter("json-ld", list(_flatten(data)))
            for node in nodes:
                thing = converter.convert_node(node)
                if thing.types:
                    things.append(thing)

        return things

    def _read_with_extruct(self, html: str, base_url: str, syntaxes: List[str]) -> List[SchemaThing]:
        try:
            data = extruct.extract(
                html,
                base_url=get_base_url(html, base_url),
                syntaxes=syntaxes,
                errors="ignore",
            )
        except Exception as e:
            # lxml refuses some documents outright (e.g. only comments)
            logger.debug(f"Structured data extraction failed for {base_url}: {e}")
            return []

        things: List[SchemaThing] = []
        for item in data.get("microdata") or []:
            if isinstance(item, dict) and item.get("type"):
                things.append(_convert_microdata(item))

        rdfa_nodes = [n for n in data.get("rdfa") or [] if isinstance(n, dict)]
        if rdfa_nodes:
            converter = _LinkedDataConverter("rdfa", rdfa_nodes)
            referenced = _referenced_ids(rdfa_nodes)
            for node in rdfa_nodes:
                if node.get("@id") in referenced:
                    continue
                thing = converter.convert_node(node)
                if thing.kind is not SchemaKind.OTHER:
                    things.append(thing)

        return things


def _referenced_ids(nodes: List[Dict[str, Any]]) -> Set[str]:
    referenced: Set[str] = set()
    for node in nodes:
        for key, raw in node.items():
            if key.startswith("@"):
                continue
            for value in _flatten(raw):
                if isinstance(value, dict) and isinstance(value.get("@id"), str):
                    referenced.add(value["@id"])
    return referenced


def iter_things(
    things: Iterable[SchemaThing],
    _depth: int = 0,
    _seen: Optional[Set[int]] = None,
) -> Iterator[SchemaThing]:
    """Walk objects and all objects nested in their properties.

    Objects shared through @id references are yielded once.
    """
    if _depth > _MAX_DEPTH:
        return
    if _seen is None:
        _seen = set()
    for thing in things:
        if id(thing) in _seen:
            continue
        _seen.add(id(thing))
        yield thing
        for values in thing.properties.values():
            nested = [v for v in values if isinstance(v, SchemaThing)]
            if nested:
                yield from iter_things(nested, _depth + 1, _seen)


def find_things(things: Iterable[SchemaThing], *kinds: SchemaKind) -> List[SchemaThing]:
    """Top-level objects of the given kinds."""
    return [t for t in things if t.kind in kinds]


def find_products(things: Sequence[SchemaThing]) -> List[SchemaThing]:
    """Products on the page.

    Top-level products win; otherwise products nested in other objects
    (``mainEntity`` of a page, ``ItemList`` entries) are used.
    """
    products = find_things(things, SchemaKind.PRODUCT)
    if products:
        return products

    nested: List[SchemaThing] = []
    seen: Set[int] = set()
    for thing in iter_things(things):
        if thing.kind is SchemaKind.PRODUCT and id(thing) not in seen:
            seen.add(id(thing))
            nested.append(thing)
    return nested


def _position(item: SchemaThing) -> Optional[float]:
    return parse_number(item.get("position").first_non_empty_string())


def read_breadcrumbs(breadcrumb_list: SchemaThing) -> List[str]:
    """Names of a BreadcrumbList's entries, ordered by position."""
    items = breadcrumb_list.get("itemListElement").things()
    indexed = list(enumerate(items))
    # Entries without a position keep their document order after the numbered ones
    indexed.sort(key=lambda pair: (_position(pair[1]) is None, _position(pair[1]) or 0, pair[0]))

    names: List[str] = []
    for _, item in indexed:
        name = item.get("name").first_non_empty_string()
        if name is None:
            target = item.get("item").first_thing()
            name = target.get("name").first_non_empty_string() if target else None
        if name:
            names.append(name)
    return names
