"""
Tests for structured data extraction.
Covers JSON-LD quirks seen on shop pages (duplicate keys, @graph,
references, broken blocks), microdata via extruct and the lookup helpers.
"""
import pytest

from infoprovider.schema_reader import (
    PropertyValues,
    SchemaKind,
    SchemaReader,
    find_products,
    find_things,
    iter_things,
    read_breadcrumbs,
)

PAGE_URL = "https://shop.example.com/p/ne555"


@pytest.fixture
def reader():
    return SchemaReader()


@pytest.fixture
def json_ld_reader():
    """Reader restricted to JSON-LD, no extruct involved."""
    return SchemaReader(syntaxes=("json-ld",))


class TestJsonLd:
    """JSON-LD parsing."""

    def test_reads_product(self, json_ld_reader, json_ld, html_page, product_json):
        """A plain Product block becomes a PRODUCT thing with its properties."""
        html = html_page(head=json_ld(product_json))

        things = json_ld_reader.read(html, PAGE_URL)

        assert len(things) == 1
        product = things[0]
        assert product.kind is SchemaKind.PRODUCT
        assert product.get("name").first_non_empty_string() == "NE555 Timer IC"
        assert product.get("brand").first_thing(SchemaKind.BRAND) is not None

    def test_duplicate_keys_are_kept(self, json_ld_reader, html_page):
        """A blank duplicate property must not hide the real value."""
        block = (
            '<script type="application/ld+json">'
            '{"@type": "Offer", "price": "", "price": "1.50", "priceCurrency": "EUR"}'
            "</script>"
        )

        things = json_ld_reader.read(html_page(head=block), PAGE_URL)

        assert things[0].get("price").first_value() == ""
        assert things[0].get("price").first_non_empty_string() == "1.50"

    def test_numbers_become_strings(self, json_ld_reader, json_ld, html_page):
        """Numeric JSON values are read as strings like the other syntaxes."""
        html = html_page(head=json_ld({"@type": "Offer", "price": 1.5}))

        things = json_ld_reader.read(html, PAGE_URL)

        assert things[0].get("price").first_non_empty_string() == "1.5"

    def test_broken_block_does_not_hide_others(self, json_ld_reader, json_ld, html_page, product_json):
        """One unparseable block is skipped, the rest is still read."""
        broken = '<script type="application/ld+json">{"@type": "Product", "name": </script>'
        html = html_page(head=broken + json_ld(product_json))

        things = json_ld_reader.read(html, PAGE_URL)

        assert [t.kind for t in things] == [SchemaKind.PRODUCT]

    def test_graph_with_references(self, json_ld_reader, json_ld, html_page):
        """@graph nodes are read and @id references are resolved."""
        data = {
            "@context": "https://schema.org",
            "@graph": [
                {"@type": "Organization", "@id": "#shop", "name": "Example Shop GmbH"},
                {
                    "@type": "Product",
                    "name": "Resistor",
                    "offers": {"@type": "Offer", "price": "0.10", "seller": {"@id": "#shop"}},
                },
            ],
        }

        things = json_ld_reader.read(html_page(head=json_ld(data)), PAGE_URL)
        product = find_products(things)[0]
        offer = product.get("offers").first_thing(SchemaKind.OFFER)
        seller = offer.get("seller").first_thing()

        assert seller.kind is SchemaKind.ORGANIZATION
        assert seller.get("name").first_non_empty_string() == "Example Shop GmbH"

    def test_unresolved_untyped_reference_becomes_text(self, json_ld_reader, json_ld, html_page):
        """An @id pointing nowhere is kept as its IRI."""
        data = {"@type": "Product", "name": "X", "image": {"@id": "https://shop.example.com/x.jpg"}}

        things = json_ld_reader.read(html_page(head=json_ld(data)), PAGE_URL)

        assert things[0].get("image").first_non_empty_string() == "https://shop.example.com/x.jpg"

    def test_self_reference_is_not_expanded(self, json_ld_reader, json_ld, html_page):
        """A node pointing back at itself keeps the IRI instead of recursing."""
        data = {
            "@id": "#ne555",
            "@type": "Product",
            "name": "NE555",
            "isRelatedTo": [{"@id": "#ne555"}] * 5,
        }

        things = json_ld_reader.read(html_page(head=json_ld(data)), PAGE_URL)

        assert len(things) == 1
        assert things[0].get("isRelatedTo").strings() == ["#ne555"] * 5

    def test_shared_references_are_converted_once(self, json_ld_reader, json_ld, html_page):
        """A chain of nodes each referenced several times stays linear."""
        graph = [
            {
                "@id": f"#n{i}",
                "@type": "Product",
                "name": f"Part {i}",
                "isRelatedTo": [{"@id": f"#n{i + 1}"}] * 4,
            }
            for i in range(30)
        ]
        graph.append({"@id": "#n30", "@type": "Product", "name": "Part 30"})

        things = json_ld_reader.read(html_page(head=json_ld({"@graph": graph})), PAGE_URL)

        assert len(things) == 31
        related = things[0].get("isRelatedTo").things()
        assert len(related) == 4
        assert all(r is related[0] for r in related)
        assert related[0].get("name").first_non_empty_string() == "Part 1"
        assert len(list(iter_things(things))) == 31

    def test_html_comment_wrapper_is_stripped(self, json_ld_reader, html_page):
        """Some CMS wrap JSON-LD in HTML comments."""
        block = '<script type="application/ld+json"><!-- {"@type": "Product", "name": "X"} --></script>'

        things = json_ld_reader.read(html_page(head=block), PAGE_URL)

        assert things[0].kind is SchemaKind.PRODUCT

    def test_schema_prefixed_type(self, json_ld_reader, json_ld, html_page):
        """Full schema.org IRIs as @type are understood."""
        html = html_page(head=json_ld({"@type": "http://schema.org/Product", "name": "X"}))

        things = json_ld_reader.read(html, PAGE_URL)

        assert things[0].kind is SchemaKind.PRODUCT

    def test_empty_document(self, reader):
        """Empty input gives no things and doesn't raise."""
        assert reader.read("", PAGE_URL) == []
        assert reader.read("   ", PAGE_URL) == []


class TestMicrodata:
    """Microdata via extruct."""

    def test_reads_microdata_product(self, reader, html_page):
        """itemscope/itemprop markup becomes a Product thing."""
        body = (
            '<div itemscope itemtype="https://schema.org/Product">'
            '<span itemprop="name">BC547 Transistor</span>'
            '<span itemprop="sku">BC547</span>'
            '<div itemprop="offers" itemscope itemtype="https://schema.org/Offer">'
            '<meta itemprop="price" content="0.05"><meta itemprop="priceCurrency" content="EUR">'
            "</div></div>"
        )

        things = reader.read(html_page(body=body), PAGE_URL)
        products = find_products(things)

        assert len(products) == 1
        assert products[0].source == "microdata"
        assert products[0].get("sku").first_non_empty_string() == "BC547"
        offer = products[0].get("offers").first_thing(SchemaKind.OFFER)
        assert offer.get("price").first_non_empty_string() == "0.05"


class TestLookupHelpers:
    """find_products, find_things, read_breadcrumbs and PropertyValues."""

    def test_nested_products_found(self, json_ld_reader, json_ld, html_page):
        """Products under a page's mainEntity are found when none is top level."""
        data = {"@type": "WebPage", "mainEntity": {"@type": "Product", "name": "Nested"}}

        things = json_ld_reader.read(html_page(head=json_ld(data)), PAGE_URL)
        products = find_products(things)

        assert [p.get("name").first_non_empty_string() for p in products] == ["Nested"]

    def test_breadcrumbs_sorted_by_position(self, json_ld_reader, json_ld, html_page):
        """Entries are ordered by position; item names are used as fallback."""
        data = {
            "@type": "BreadcrumbList",
            "itemListElement": [
                {"@type": "ListItem", "position": 3, "name": "Timers"},
                {"@type": "ListItem", "position": 1, "name": "Components"},
                {"@type": "ListItem", "position": 2, "item": {"@type": "Thing", "name": "Semiconductors"}},
            ],
        }

        things = json_ld_reader.read(html_page(head=json_ld(data)), PAGE_URL)
        crumbs = read_breadcrumbs(find_things(things, SchemaKind.BREADCRUMB_LIST)[0])

        assert crumbs == ["Components", "Semiconductors", "Timers"]

    def test_property_values_helpers(self):
        values = PropertyValues(["", "  ", " first ", "second", 3])

        assert values.first_value() == ""
        assert values.first_non_empty_string() == "first"
        assert values.strings() == ["first", "second"]
        assert values.things() == []
        assert len(values) == 5

    def test_missing_property_is_empty(self, json_ld_reader, json_ld, html_page):
        things = json_ld_reader.read(html_page(head=json_ld({"@type": "Product"})), PAGE_URL)

        assert not things[0].get("gtin13")
        assert things[0].get("gtin13").first_non_empty_string() is None
