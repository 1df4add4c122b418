"""Tests for brand index parsing and quick search."""

import pytest

from gsmscrape.catalog import (
    fetch_brands,
    parse_brand_text,
    parse_brands,
    search_devices,
    search_url,
)
from gsmscrape.config import BRANDS_URL
from gsmscrape.errors import HttpStatusError
from gsmscrape.models import Brand

from fakes import FakeChannel, brands_page, listing_page


class TestParseBrandText:
    """Tests for the name/count heuristic."""

    def test_name_with_device_count(self):
        """'Acme 42 devices' splits into name and count."""
        assert parse_brand_text("Acme 42 devices") == ("Acme", 42)

    def test_name_without_count(self):
        """A bare name gets a count of 0."""
        assert parse_brand_text("Acme") == ("Acme", 0)

    def test_multi_word_name(self):
        """Leading tokens are joined with single spaces."""
        assert parse_brand_text("  Sony   Ericsson 95 devices ") == ("Sony Ericsson", 95)

    def test_non_numeric_second_to_last_token(self):
        """Without a numeric second-to-last token the whole text is the name."""
        assert parse_brand_text("Acme Mobile") == ("Acme Mobile", 0)

    def test_name_ending_in_number_is_misread(self):
        """A trailing number in the name is taken as the count."""
        assert parse_brand_text("Moto 360 watches") == ("Moto", 360)

    def test_signed_number_is_not_a_count(self):
        """Only unsigned integers count."""
        assert parse_brand_text("Acme -5 devices") == ("Acme -5 devices", 0)


class TestParseBrands:
    """Tests for parsing the brand index page."""

    def test_brands_in_document_order(self):
        """Anchors become brands in page order with slugs from their hrefs."""
        html = brands_page([
            ("zeta-phones-2.php", "Zeta<br><span>7 devices</span>"),
            ("acme-phones-1.php", "Acme<br><span>42 devices</span>"),
            ("acme-phones-1.php", "Acme<br><span>42 devices</span>"),
        ])

        brands = parse_brands(html)

        assert brands == [
            Brand(name="Zeta", slug="zeta-phones-2", device_count=7),
            Brand(name="Acme", slug="acme-phones-1", device_count=42),
            Brand(name="Acme", slug="acme-phones-1", device_count=42),
        ]

    def test_anchor_without_count(self):
        """Brands without a count get 0."""
        brands = parse_brands(brands_page([("nocount-phones-9.php", "NoCount")]))
        assert brands == [Brand(name="NoCount", slug="nocount-phones-9", device_count=0)]

    def test_anchors_outside_table_are_ignored(self):
        """Only links inside the brand table are brands."""
        html = (
            '<div class="st-text"><a href="news.php3">News</a>'
            '<table><tr><td><a href="acme-phones-1.php">Acme 3 devices</a></td></tr></table></div>'
        )
        assert [b.slug for b in parse_brands(html)] == ["acme-phones-1"]

    def test_missing_structure_returns_empty(self):
        """A page without the brand table parses to an empty list."""
        assert parse_brands("<html><body><p>Access denied</p></body></html>") == []

    def test_brand_url(self):
        """Brand.url points at the first listing page."""
        brand = Brand(name="Acme", slug="acme-phones-1", device_count=1)
        assert brand.url == "https://www.gsmarena.com/acme-phones-1.php"


class TestFetchBrands:
    """Tests for fetch_brands over a channel."""

    def test_fetches_index_url(self):
        """The brand index URL is fetched once and parsed."""
        channel = FakeChannel({BRANDS_URL: brands_page([("acme-phones-1.php", "Acme 3 devices")])})

        brands = fetch_brands(channel)

        assert channel.calls == [BRANDS_URL]
        assert brands == [Brand(name="Acme", slug="acme-phones-1", device_count=3)]

    def test_zero_brands_is_not_an_error(self):
        """An empty index returns an empty list."""
        channel = FakeChannel({BRANDS_URL: "<html></html>"})
        assert fetch_brands(channel) == []

    def test_fetch_error_propagates(self):
        """Transport errors are not swallowed."""
        channel = FakeChannel({BRANDS_URL: HttpStatusError(503, BRANDS_URL)})
        with pytest.raises(HttpStatusError):
            fetch_brands(channel)


class TestSearch:
    """Tests for quick search."""

    def test_search_url_encodes_query(self):
        """The query is URL-encoded into the quick-search URL."""
        url = search_url("galaxy s24")
        assert url == "https://www.gsmarena.com/results.php3?sQuickSearch=yes&sName=galaxy+s24"

    def test_search_devices_parses_results(self):
        """Results use the listing item layout."""
        url = search_url("x1")
        channel = FakeChannel({url: listing_page([("acme_x1-100", "Acme X1")])})

        items = search_devices(channel, "x1")

        assert [(i.detail_id, i.name) for i in items] == [("acme_x1-100", "Acme X1")]
