"""
Tests for the Reichelt provider: structured data baseline patched with the
property table, tiered prices, zoom images and datasheet links.
"""
import logging

import pytest

from infoprovider.config import ProviderSettings
from infoprovider.errors import ParseError
from infoprovider.models import Capability
from infoprovider.providers.reichelt import ReicheltProvider

PRODUCT_URL = "https://www.reichelt.com/de/en/timer-ic-ne-555-dip-p10447.html"
DETAILS_URL = "https://www.reichelt.com/index.html?ARTICLE=10447&LANGUAGE=en&CCOUNTRY=DE&CURRENCY=EUR"
SEARCH_URL = (
    "https://www.reichelt.com/index.html?ACTION=446&LA=3&nbc=1&q=NE555"
    "&LANGUAGE=en&CCOUNTRY=DE&CURRENCY=EUR"
)

PROPERTIES = """
<ul>
  <li class="av_propview_headline">{headline}</li>
  <li><ul class="clearfix">
    <li class="av_propname" name="207">Mounting form</li><li class="av_propvalue">DIP-8</li>
    <li class="av_propname">Supply voltage</li><li class="av_propvalue">4.5 ... 16 V</li>
    <li class="av_propname">EAN</li><li class="av_propvalue">4016138123456</li>
  </ul></li>
</ul>
"""

DISCOUNT_TABLE = """
<table class="discounttable">
  <tr><td>from 1 pc(s)</td><td>from 25 pc(s)</td><td>from 100 pc(s)</td></tr>
  <tr><td>0,36 &euro;</td><td>0,29 &euro;</td><td>0,24 &euro;</td></tr>
</table>
"""

IMAGES = """
<a class="zoom" data-large="https://cdn-reichelt.de/bilder/web/xxl/A200/NE555.jpg"></a>
<a class="zoom" data-large="/bilder/web/xxl/A200/NE555_2.jpg"></a>
"""

DATASHEETS = """
<div class="av_datasheet_description"><a href="/index.html?ACTION=7&amp;FILENAME=A200/NE555.pdf">Datasheet NE555</a></div>
<div class="av_datasheet_description"><a href="#" data-url="aHR0cHM6Ly93d3cucmVpY2hlbHQuY29tL2luZGV4Lmh0bWw/QUNUSU9OPTcmRklMRU5BTUU9QTIwMC9ORTU1NV9USS5wZGY=">Datasheet TI</a></div>
"""


@pytest.fixture
def reichelt_product():
    return {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": "Timer IC, 4.5 ... 16 V, DIP-8",
        "description": "NE 555 precision timer",
        "sku": "mpn:NE 555 DIP",
        "url": PRODUCT_URL,
        "brand": {"@type": "Brand", "name": "Texas Instruments"},
        "image": "https://cdn-reichelt.de/bilder/web/artikel_ws/A200/NE555_small.jpg",
        "offers": {
            "@type": "Offer",
            "price": "0.36",
            "priceCurrency": "EUR",
            "seller": {"@type": "Organization", "name": "reichelt elektronik GmbH & Co. KG"},
        },
    }


@pytest.fixture
def details_page(json_ld, html_page, reichelt_product):
    # The property list appears twice, as summary and as full section
    body = (
        PROPERTIES.format(headline="Overview")
        + PROPERTIES.format(headline="General")
        + DISCOUNT_TABLE
        + IMAGES
        + DATASHEETS
    )
    return html_page(head=json_ld(reichelt_product), body=body)


def make_provider(fetcher, **settings):
    return ReicheltProvider(ProviderSettings(enable=True, **settings), fetcher=fetcher)


def parse_error_events(caplog):
    return [
        r for r in caplog.records
        if getattr(r, "event_type", None) == "parse_error" and r.levelno == logging.ERROR
    ]


class TestUrls:
    def test_details_url(self, fake_fetcher):
        assert make_provider(fake_fetcher()).details_url("10447") == DETAILS_URL

    def test_net_prices_and_locale(self, fake_fetcher):
        provider = make_provider(fake_fetcher(), lang="de", country="AT", currency="CHF", net_prices=True)

        url = provider.details_url("10447")

        assert url.endswith("ARTICLE=10447&LANGUAGE=de&CCOUNTRY=AT&CURRENCY=CHF&MWSTFREE=1")

    def test_article_id(self):
        assert ReicheltProvider.article_id(PRODUCT_URL) == "10447"
        assert ReicheltProvider.article_id("https://www.reichelt.com/p12.html") is None
        assert ReicheltProvider.article_id(None) is None

    def test_capabilities(self, fake_fetcher):
        assert make_provider(fake_fetcher()).get_capabilities() == {
            Capability.BASIC,
            Capability.FOOTPRINT,
            Capability.PICTURE,
            Capability.DATASHEET,
            Capability.PRICE,
        }


class TestDetails:
    """get_details with the HTML supplement."""

    def test_identity_fields(self, fake_fetcher, details_page):
        fetcher = fake_fetcher({DETAILS_URL: details_page})

        part = make_provider(fetcher).get_details("10447")

        assert fetcher.requested == [DETAILS_URL]
        assert part.provider_key == "reichelt"
        assert part.provider_id == "10447"
        assert part.name == "NE 555 DIP"
        assert part.description == "NE 555 precision timer"
        assert part.manufacturer == "Texas Instruments"
        assert part.provider_url == PRODUCT_URL

    def test_footprint_and_parameters(self, fake_fetcher, details_page):
        """Only the second copy of the property list is read; EAN isn't a parameter."""
        part = make_provider(fake_fetcher(default=details_page)).get_details("10447")

        assert part.footprint == "DIP-8"
        assert len(part.parameters) == 1
        voltage = part.parameters[0]
        assert voltage.name == "Supply voltage"
        assert (voltage.value_min, voltage.value_max, voltage.unit) == (4.5, 16.0, "V")
        assert voltage.group == "General"

    def test_tiered_prices(self, fake_fetcher, details_page):
        part = make_provider(fake_fetcher(default=details_page)).get_details("10447")

        assert len(part.vendor_infos) == 1
        info = part.vendor_infos[0]
        assert info.distributor_name == "reichelt elektronik GmbH & Co. KG"
        assert info.order_number == "NE 555 DIP"
        assert [(p.minimum_discount_amount, p.price) for p in info.prices] == [
            (1.0, "0.36"),
            (25.0, "0.29"),
            (100.0, "0.24"),
        ]
        assert all(p.currency_iso_code == "EUR" and p.includes_tax for p in info.prices)

    def test_ean_added_to_order_number(self, fake_fetcher, details_page):
        part = make_provider(fake_fetcher(default=details_page), add_gtin_to_orderno=True).get_details("10447")

        assert part.vendor_infos[0].order_number == "NE 555 DIP, GTIN: 4016138123456"

    def test_net_prices(self, fake_fetcher, details_page):
        part = make_provider(fake_fetcher(default=details_page), net_prices=True).get_details("10447")

        assert not any(p.includes_tax for p in part.vendor_infos[0].prices)

    def test_images_and_datasheets(self, fake_fetcher, details_page):
        part = make_provider(fake_fetcher(default=details_page)).get_details("10447")

        assert [i.url for i in part.images] == [
            "https://cdn-reichelt.de/bilder/web/xxl/A200/NE555.jpg",
            "https://www.reichelt.com/bilder/web/xxl/A200/NE555_2.jpg",
        ]
        assert part.preview_image_url == "https://cdn-reichelt.de/bilder/web/xxl/A200/NE555.jpg"
        assert [(d.url, d.name) for d in part.datasheets] == [
            ("https://www.reichelt.com/index.html?ACTION=7&FILENAME=A200/NE555.pdf", "Datasheet NE555"),
            ("https://www.reichelt.com/index.html?ACTION=7&FILENAME=A200/NE555_TI.pdf", "Datasheet TI"),
        ]

    def test_baseline_kept_without_html_extras(self, fake_fetcher, json_ld, html_page, reichelt_product):
        """Without HTML extras the structured data values stay."""
        page = html_page(head=json_ld(reichelt_product))

        part = make_provider(fake_fetcher(default=page)).get_details("10447")

        assert part.footprint is None
        assert part.parameters == ()
        assert [i.url for i in part.images] == ["https://cdn-reichelt.de/bilder/web/artikel_ws/A200/NE555_small.jpg"]
        assert part.vendor_infos[0].prices[0].price == "0.36"

    def test_requested_id_used_when_url_has_none(self, fake_fetcher, json_ld, html_page, reichelt_product):
        del reichelt_product["url"]
        page = html_page(head=json_ld(reichelt_product))

        part = make_provider(fake_fetcher(default=page)).get_details("10447")

        assert part.provider_id == "10447"

    def test_property_count_mismatch(self, fake_fetcher, json_ld, html_page, reichelt_product, caplog):
        body = '<ul><li class="av_propname">Orphan</li></ul>'
        page = html_page(head=json_ld(reichelt_product), body=body)

        with caplog.at_level(logging.ERROR, logger="infoprovider"), pytest.raises(ParseError):
            make_provider(fake_fetcher(default=page)).get_details("10447")

        assert len(parse_error_events(caplog)) == 1

    def test_price_table_mismatch(self, fake_fetcher, json_ld, html_page, reichelt_product, caplog):
        body = (
            '<table class="discounttable"><tr><td>1</td><td>10</td><td>100</td></tr>'
            "<tr><td>1,00</td><td>0,90</td><td>0,80</td><td>0,70</td><td>0,60</td></tr></table>"
        )
        page = html_page(head=json_ld(reichelt_product), body=body)

        with caplog.at_level(logging.ERROR, logger="infoprovider"), pytest.raises(ParseError):
            make_provider(fake_fetcher(default=page)).get_details("10447")

        events = parse_error_events(caplog)
        assert len(events) == 1
        assert events[0].extra_data["provider"] == "reichelt"

    def test_no_product(self, fake_fetcher, html_page):
        with pytest.raises(ParseError):
            make_provider(fake_fetcher(default=html_page(body="<p>404</p>"))).get_details("10447")


class TestSearch:
    @pytest.fixture
    def search_page(self, json_ld, html_page):
        products = [
            {
                "@type": "Product",
                "name": "Timer IC, DIP-8",
                "sku": "mpn:NE 555 DIP",
                "url": "https://www.reichelt.com/de/en/ne-555-dip-p10447.html",
                "image": "https://www.reichelt.com/placeholder.gif",
            },
            {
                "@type": "Product",
                "name": "Dual timer IC, DIP-14",
                "sku": "mpn:NE 556 DIP",
                "url": "https://www.reichelt.com/de/en/ne-556-dip-p10448.html",
                "image": "https://www.reichelt.com/placeholder.gif",
            },
        ]
        images = (
            '<img itemprop="image" src="/placeholder.gif" data-original="https://cdn-reichelt.de/a/NE555.jpg">'
            '<img itemprop="image" src="/placeholder.gif" data-original="https://cdn-reichelt.de/a/NE556.jpg">'
        )

        def _page(with_images=True):
            return html_page(head=json_ld(*products), body=images if with_images else images[:images.index(">") + 1])

        return _page

    def test_search(self, fake_fetcher, search_page):
        fetcher = fake_fetcher({SEARCH_URL: search_page()})

        results = make_provider(fetcher).search_by_keyword("NE555")

        assert fetcher.requested == [SEARCH_URL]
        assert [r.provider_id for r in results] == ["10447", "10448"]
        assert [r.name for r in results] == ["NE 555 DIP", "NE 556 DIP"]
        assert [r.preview_image_url for r in results] == [
            "https://cdn-reichelt.de/a/NE555.jpg",
            "https://cdn-reichelt.de/a/NE556.jpg",
        ]

    def test_image_count_mismatch_keeps_schema_images(self, fake_fetcher, search_page):
        """One image for two products: the HTML images are dropped, no error."""
        results = make_provider(fake_fetcher(default=search_page(with_images=False))).search_by_keyword("NE555")

        assert len(results) == 2
        assert all(r.preview_image_url == "https://www.reichelt.com/placeholder.gif" for r in results)

    def test_empty_keyword(self, fake_fetcher):
        fetcher = fake_fetcher()

        assert make_provider(fetcher).search_by_keyword("  ") == []
        assert fetcher.requested == []

    def test_no_results(self, fake_fetcher, html_page):
        assert make_provider(fake_fetcher(default=html_page())).search_by_keyword("nothing") == []
