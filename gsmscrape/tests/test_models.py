"""Tests for data models."""

import pytest

from gsmscrape.errors import ParseError
from gsmscrape.models import (
    SECTION_NAMES,
    Brand,
    NormalizedSpec,
    PhoneRecord,
    RawCategory,
)


class TestBrand:
    def test_url_from_slug(self):
        assert Brand(name="Apple", slug="apple-phones-48").url == "https://www.gsmarena.com/apple-phones-48.php"


class TestRawCategory:
    """Tests for raw category (de)serialization."""

    def test_from_dict(self):
        category = RawCategory.from_dict({"title": "Display", "pairs": [["Size", "6.1 inches"]]})
        assert category == RawCategory("Display", [("Size", "6.1 inches")])

    def test_missing_pairs_is_empty(self):
        assert RawCategory.from_dict({"title": "Tests"}).pairs == []

    @pytest.mark.parametrize("data", [
        "Display",
        {"pairs": []},
        {"title": "Display", "pairs": "Size"},
        {"title": "Display", "pairs": [["Size"]]},
    ])
    def test_malformed(self, data):
        with pytest.raises(ParseError):
            RawCategory.from_dict(data)


class TestPhoneRecord:
    """Tests for the stored document shape."""

    @pytest.fixture
    def record(self):
        return PhoneRecord(
            detail_id="acme_x1-100",
            name="Acme X1",
            brand="Acme",
            url="https://www.gsmarena.com/acme_x1-100.php",
            spec=NormalizedSpec(display={"display_type": "OLED", "size": None,
                                         "resolution": None, "protection": None}),
            raw_categories=[RawCategory("Display", [("Type", "OLED")])],
        )

    def test_sections_are_top_level(self, record):
        doc = record.to_document()

        for name in SECTION_NAMES:
            assert name in doc
        assert doc["display"]["display_type"] == "OLED"
        assert doc["battery"] is None
        assert doc["specifications_raw"] == [{"title": "Display", "pairs": [["Type", "OLED"]]}]
        assert doc["source"] == "gsmarena"

    def test_from_document_restores_record(self, record):
        doc = record.to_document()
        doc.update(version=3, first_seen_at="2024-01-01T00:00:00+00:00")

        restored = PhoneRecord.from_document(doc)

        assert restored.spec == record.spec
        assert restored.raw_categories == record.raw_categories
        assert restored.version == 3

    def test_from_document_rejects_bad_raw(self, record):
        doc = record.to_document()
        doc["specifications_raw"] = {"title": "Display"}

        with pytest.raises(ParseError):
            PhoneRecord.from_document(doc)
