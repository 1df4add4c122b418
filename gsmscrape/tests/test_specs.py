"""Tests for specification page parsing and normalization."""

import pytest

from gsmscrape.config import SPEC_SECTIONS
from gsmscrape.errors import HttpStatusError
from gsmscrape.models import RawCategory
from gsmscrape.specs import (
    fetch_specification,
    map_section,
    normalize,
    parse_spec_page,
    pick_spec,
)

from fakes import FakeChannel, site, spec_page


class TestParseSpecPage:
    """Tests for turning the specs tables into raw categories."""

    def test_categories_and_pairs_in_page_order(self):
        """Each titled table becomes a category with its rows in order."""
        html = spec_page([
            ("Network", [("Technology", "GSM / LTE / 5G")]),
            ("Display", [("Type", "IPS LCD"), ("Size", "6.1 inches")]),
        ])

        categories = parse_spec_page(html)

        assert [c.title for c in categories] == ["Network", "Display"]
        assert categories[1].pairs == [("Type", "IPS LCD"), ("Size", "6.1 inches")]

    def test_line_breaks_and_whitespace(self):
        """<br> becomes a newline and runs of whitespace collapse."""
        html = spec_page([("Body", [("SIM", "Nano-SIM<br>  eSIM  "), ("Weight", "  174 g \n (6.14 oz) ")])])

        pairs = parse_spec_page(html)[0].pairs

        assert pairs == [("SIM", "Nano-SIM\neSIM"), ("Weight", "174 g (6.14 oz)")]

    def test_empty_key_continues_previous_value(self):
        """Rows with an empty key extend the previous value."""
        html = spec_page([("Comms", [("Positioning", "GPS"), ("", "GLONASS"), ("NFC", "Yes")])])

        pairs = parse_spec_page(html)[0].pairs

        assert pairs == [("Positioning", "GPS\nGLONASS"), ("NFC", "Yes")]

    def test_table_without_header_is_ignored(self):
        """Tables without a th cell are not categories."""
        html = (
            '<div id="specs-list"><table><tr><td class="ttl">Note</td><td class="nfo">x</td></tr></table>'
            '<table><tr><th>Launch</th><td class="ttl">Status</td><td class="nfo">Available</td></tr></table></div>'
        )

        categories = parse_spec_page(html)

        assert [c.title for c in categories] == ["Launch"]

    def test_page_without_specs_block(self):
        """Missing structure yields an empty list, not an error."""
        assert parse_spec_page("<html><body>Blocked</body></html>") == []


class TestNormalize:
    """Tests for mapping raw categories onto the fixed sections."""

    def test_display_section(self):
        """Display pairs map onto display fields; absent keys are None."""
        spec = normalize([
            RawCategory("Display", [("Type", "IPS LCD"), ("Size", "6.1 inches"), ("Resolution", "1170x2532")]),
        ])

        assert spec.display == {
            "display_type": "IPS LCD",
            "size": "6.1 inches",
            "resolution": "1170x2532",
            "protection": None,
        }

    def test_missing_category_is_none(self):
        """No Battery category means battery is None, not an empty record."""
        spec = normalize([RawCategory("Display", [("Type", "OLED")])])

        assert spec.battery is None
        assert spec.network is None

    def test_titles_and_keys_case_insensitive(self):
        """Category titles and keys match regardless of case."""
        spec = normalize([RawCategory("MAIN CAMERA", [("VIDEO", "4K@30fps")])])

        assert spec.main_camera is not None
        assert spec.main_camera["video"] == "4K@30fps"

    def test_duplicate_key_last_wins(self):
        """The last occurrence of a repeated key is used."""
        spec = normalize([RawCategory("Memory", [("Internal", "64GB"), ("Internal", "128GB 6GB RAM")])])

        assert spec.memory == {"card_slot": None, "internal": "128GB 6GB RAM"}

    def test_camera_modules_priority(self):
        """modules takes the first of single/dual/triple/quad/penta present."""
        spec = normalize([
            RawCategory("Main Camera", [("Triple", "50 MP wide"), ("Dual", "12 MP wide")]),
            RawCategory("Selfie camera", [("Single", "12 MP")]),
        ])

        assert spec.main_camera["modules"] == "12 MP wide"
        assert spec.selfie_camera["modules"] == "12 MP"

    def test_unknown_category_does_not_create_section(self):
        """Unrecognized titles leave every section untouched."""
        spec = normalize([RawCategory("Tests", [("Performance", "AnTuTu: 1000")])])

        assert all(values is None for values in spec.sections().values())

    def test_present_category_without_known_keys(self):
        """A present category always produces a record with every field."""
        spec = normalize([RawCategory("Battery", [("Standby", "Up to 300 h")])])

        assert spec.battery == {"battery_type": None, "charging": None}

    def test_empty_input(self):
        """Normalizing nothing gives an all-None spec."""
        spec = normalize([])
        assert set(spec.sections()) == set(SPEC_SECTIONS)
        assert all(values is None for values in spec.sections().values())


class TestHelpers:
    """Tests for pick_spec and map_section."""

    def test_pick_spec_first_label_wins(self):
        assert pick_spec({"dual": "b", "single": "a"}, ["single", "dual"]) == "a"

    def test_pick_spec_missing(self):
        assert pick_spec({"other": "x"}, ["single"]) is None

    def test_map_section_unknown(self):
        """Unknown sections map to an empty dict."""
        assert map_section("holograms", {"type": "x"}) == {}


class TestFetchSpecification:
    """Tests for fetching raw categories from a channel or lookup."""

    def test_fetches_detail_page(self):
        """The detail URL is derived from the detail ID."""
        channel = FakeChannel({
            site("acme_x1-100.php"): spec_page([("Launch", [("Status", "Available")])]),
        })

        categories = fetch_specification(channel, "acme_x1-100")

        assert channel.calls == [site("acme_x1-100.php")]
        assert categories == [RawCategory("Launch", [("Status", "Available")])]

    def test_lookup_collaborator(self):
        """A callable source returns categories directly."""
        expected = [RawCategory("Misc", [("Price", "$ 799")])]

        categories = fetch_specification(lambda detail_id: expected, "acme_x1-100")

        assert categories == expected

    def test_fetch_failure_propagates(self):
        """A failed detail fetch raises FetchError."""
        channel = FakeChannel()
        with pytest.raises(HttpStatusError):
            fetch_specification(channel, "acme_x1-100")
