"""Brand index and quick search."""

import re
from typing import List, Tuple
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from gsmscrape.config import BASE_URL, BRANDS_URL, SEARCH_URL
from gsmscrape.listing import parse_listing_page
from gsmscrape.logging_config import get_logger
from gsmscrape.models import Brand, ListingItem
from gsmscrape.transport import Channel
from gsmscrape.url_validation import strip_extension

__all__ = [
    "parse_brand_text",
    "parse_brands",
    "fetch_brands",
    "search_url",
    "search_devices",
]

logger = get_logger("catalog")

_COUNT_RE = re.compile(r"[0-9]+")


def parse_brand_text(text: str) -> Tuple[str, int]:
    """Split "Apple 123 devices" into ("Apple", 123).

    The count is the second-to-last token. Text without one is returned
    whole with a count of 0. A brand whose name ends in a number
    ("Moto 360") is misread the same way the site's own layout would be.
    """
    full_text = " ".join(text.split())
    parts = full_text.split(" ")
    if len(parts) >= 2 and _COUNT_RE.fullmatch(parts[-2]):
        return " ".join(parts[:-2]), int(parts[-2])
    return full_text, 0


def parse_brands(html: str) -> List[Brand]:
    """Brands from the index page, in document order."""
    soup = BeautifulSoup(html, "html.parser")
    brands: List[Brand] = []

    for a in soup.select("div.st-text table td a"):
        href = a.get("href")
        if not href:
            continue
        name, count = parse_brand_text(a.get_text(" "))
        brands.append(Brand(name=name, slug=strip_extension(href), device_count=count))

    return brands


def fetch_brands(channel: Channel, url: str = BRANDS_URL) -> List[Brand]:
    """Fetch and parse the brand index.

    Raises:
        FetchError: If the index page cannot be fetched
    """
    brands = parse_brands(channel.fetch(url))
    if not brands:
        logger.warning(f"No brands found at {url}; the page layout may have changed or we were blocked")
    else:
        logger.info(f"Found {len(brands)} brands")
    return brands


def search_url(query: str) -> str:
    return f"{SEARCH_URL}?{urlencode({'sQuickSearch': 'yes', 'sName': query})}"


def search_devices(channel: Channel, query: str, base_url: str = BASE_URL) -> List[ListingItem]:
    """Run a quick search and return matching device stubs."""
    items = parse_listing_page(channel.fetch(search_url(query)), base_url)
    logger.info(f"Search '{query}' returned {len(items)} devices")
    return items
