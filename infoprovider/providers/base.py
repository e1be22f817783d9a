"""Provider contract and the pieces shared by all providers.

Providers don't inherit from each other. Each one composes a ``Fetcher``, a
``SchemaReader`` and a ``ProductNormalizer`` and adds its own HTML pass on
top where the shop needs it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, TypeVar, runtime_checkable

from infoprovider.entity_names import resolve_first_name
from infoprovider.models import Capability, PartDetail, PartSummary
from infoprovider.schema_reader import (
    SchemaKind,
    SchemaReader,
    SchemaThing,
    find_products,
    find_things,
    read_breadcrumbs,
)

__all__ = [
    "InfoProvider",
    "PageData",
    "read_page",
    "prefer",
]

T = TypeVar("T")


@runtime_checkable
class InfoProvider(Protocol):
    """What the surrounding application calls on a provider."""

    def get_provider_key(self) -> str:
        ...

    def get_provider_info(self) -> Dict[str, Any]:
        ...

    def is_active(self) -> bool:
        ...

    def get_capabilities(self) -> FrozenSet[Capability]:
        ...

    def search_by_keyword(self, keyword: str) -> List[PartSummary]:
        ...

    def get_details(self, provider_id: str) -> PartDetail:
        ...


@dataclass(frozen=True)
class PageData:
    """Structured data found on one page."""

    products: List[SchemaThing] = field(default_factory=list)
    site_owner: Optional[str] = None
    breadcrumbs: List[str] = field(default_factory=list)


def read_page(reader: SchemaReader, html: str, url: str) -> PageData:
    """Collect products, the site owner and breadcrumbs from a page."""
    things = reader.read(html, url)

    site_owner: Optional[str] = None
    for page in find_things(things, SchemaKind.WEBSITE, SchemaKind.WEBPAGE):
        owner = resolve_first_name(
            page.get("author"), page.get("creator"), page.get("copyrightHolder")
        )
        if owner is not None:
            site_owner = owner

    breadcrumbs: List[str] = []
    for crumb_list in find_things(things, SchemaKind.BREADCRUMB_LIST):
        breadcrumbs = read_breadcrumbs(crumb_list)
        if breadcrumbs:
            break

    return PageData(products=find_products(things), site_owner=site_owner, breadcrumbs=breadcrumbs)


def prefer(replacement: Optional[T], baseline: Optional[T]) -> Optional[T]:
    """Take the HTML-derived value only if it is non-empty."""
    if replacement is None:
        return baseline
    if isinstance(replacement, str) and not replacement.strip():
        return baseline
    if isinstance(replacement, (tuple, list)) and len(replacement) == 0:
        return baseline
    return replacement
