"""Specification page parsing and normalization into fixed sections."""

from typing import Callable, Dict, List, Optional, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from gsmscrape.config import BASE_URL, SPEC_SECTIONS, get_section_config
from gsmscrape.logging_config import get_logger
from gsmscrape.models import NormalizedSpec, RawCategory
from gsmscrape.transport import Channel
from gsmscrape.url_validation import detail_url_for

__all__ = [
    "SpecLookup",
    "parse_spec_page",
    "fetch_specification",
    "pick_spec",
    "map_section",
    "normalize",
]

logger = get_logger("specs")

# External source of raw categories, keyed by detail ID
SpecLookup = Callable[[str], List[RawCategory]]


def _clean(text: str) -> str:
    return " ".join(text.split())


_BR_MARK = "\x1e"


def _cell_text(cell: Tag) -> str:
    """Cell text with <br> kept as line breaks; other whitespace collapsed."""
    for br in cell.find_all("br"):
        br.replace_with(_BR_MARK)
    lines = [_clean(line) for line in cell.get_text().split(_BR_MARK)]
    return "\n".join(line for line in lines if line)


def parse_spec_page(html: str) -> List[RawCategory]:
    """Parse the specification tables of a detail page.

    Each table inside div#specs-list with a header cell becomes one
    category. Rows with an empty key cell continue the previous value.
    A page without the specs block yields [].
    """
    soup = BeautifulSoup(html, "html.parser")
    container = soup.select_one("div#specs-list")
    if container is None:
        return []

    categories: List[RawCategory] = []
    for table in container.find_all("table"):
        th = table.find("th")
        if th is None:
            continue

        category = RawCategory(title=_clean(th.get_text(" ")))
        for row in table.find_all("tr"):
            value_cell = row.find("td", class_="nfo")
            if value_cell is None:
                continue
            key_cell = row.find("td", class_="ttl")
            key = _clean(key_cell.get_text(" ")) if key_cell is not None else ""
            value = _cell_text(value_cell)

            if not key:
                if category.pairs and value:
                    prev_key, prev_value = category.pairs[-1]
                    joined = f"{prev_value}\n{value}" if prev_value else value
                    category.pairs[-1] = (prev_key, joined)
                continue
            category.pairs.append((key, value))

        categories.append(category)

    return categories


def fetch_specification(
    source: Union[Channel, SpecLookup],
    detail_id: str,
    base_url: str = BASE_URL,
) -> List[RawCategory]:
    """Raw categories for one device.

    `source` is either a Channel (the detail page is fetched and parsed)
    or a lookup callable returning categories directly.

    Raises:
        FetchError: If the detail page cannot be fetched
    """
    if isinstance(source, Channel):
        html = source.fetch(detail_url_for(detail_id, base_url))
        categories = parse_spec_page(html)
    else:
        categories = list(source(detail_id))

    if not categories:
        logger.warning(f"No specification categories found for {detail_id}")
    return categories


def pick_spec(specs: Dict[str, str], keys: List[str]) -> Optional[str]:
    """First value found for a list of possible labels (case-insensitive)."""
    lower_map = {k.lower(): v for k, v in specs.items()}
    for k in keys:
        if k.lower() in lower_map:
            return lower_map[k.lower()]
    return None


def map_section(section: str, specs: Dict[str, str]) -> Dict[str, Optional[str]]:
    """Map one category's key/value map onto a section's named fields."""
    config = get_section_config(section)
    if not config:
        return {}
    return {
        field_name: pick_spec(specs, labels)
        for field_name, labels in config["field_mappings"].items()
    }


def normalize(categories: List[RawCategory]) -> NormalizedSpec:
    """Build the fixed-schema view of a raw category list.

    Category titles match case-insensitively; within a category the last
    occurrence of a duplicate key wins. Absent categories leave their
    section None. Never raises on missing data.
    """
    by_title: Dict[str, Dict[str, str]] = {}
    for category in categories:
        values = by_title.setdefault(category.title.strip().lower(), {})
        for key, value in category.pairs:
            values[key.strip().lower()] = value

    spec = NormalizedSpec()
    for section, config in SPEC_SECTIONS.items():
        values = by_title.get(config["category"])
        if values is None:
            continue
        setattr(spec, section, map_section(section, values))
    return spec
