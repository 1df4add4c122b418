"""Brand listing pagination."""

from typing import Callable, List, Optional, Set

from bs4 import BeautifulSoup

from gsmscrape.config import BASE_URL, DELAY_BETWEEN_PAGES_MS, LISTING_PAGE_PATTERN
from gsmscrape.errors import CredentialsExhausted, FetchError
from gsmscrape.logging_config import get_logger
from gsmscrape.models import ListingItem
from gsmscrape.shutdown import ShutdownHandler, pause
from gsmscrape.transport import Channel
from gsmscrape.url_validation import resolve_site_url, strip_extension

__all__ = [
    "listing_page_url",
    "parse_listing_page",
    "fetch_listing",
]

logger = get_logger("listing")


def listing_page_url(brand_slug: str, page: int, base_url: str = BASE_URL) -> str:
    """URL of one page of a brand listing (1-based)."""
    if page <= 1:
        path = f"{brand_slug}.php"
    else:
        path = LISTING_PAGE_PATTERN.format(slug=brand_slug, page=page)
    return f"{base_url.rstrip('/')}/{path}"


def parse_listing_page(html: str, base_url: str = BASE_URL) -> List[ListingItem]:
    """Extract device stubs from a listing or search results page.

    Anchors without an href are skipped; a page with no list returns [].
    """
    soup = BeautifulSoup(html, "html.parser")
    items: List[ListingItem] = []

    for a in soup.select("div.makers ul li a"):
        href = a.get("href")
        if not href:
            continue

        thumbnail_url: Optional[str] = None
        img = a.find("img")
        if img is not None and img.get("src"):
            thumbnail_url = resolve_site_url(img["src"], base_url)

        items.append(ListingItem(
            name=" ".join(a.get_text(" ").split()),
            detail_id=strip_extension(href),
            detail_url=resolve_site_url(href, base_url),
            thumbnail_url=thumbnail_url,
        ))

    return items


def fetch_listing(
    channel: Channel,
    brand_slug: str,
    page_limit: Optional[int] = None,
    page_delay: float = DELAY_BETWEEN_PAGES_MS / 1000,
    base_url: str = BASE_URL,
    sleep: Optional[Callable[[float], None]] = None,
    shutdown: Optional[ShutdownHandler] = None,
) -> List[ListingItem]:
    """Walk a brand's listing pages until one adds nothing new.

    Args:
        channel: Channel to fetch pages with
        brand_slug: Brand identifier, e.g. "apple-phones-48"
        page_limit: Stop once this many items are collected (None = all)
        page_delay: Pause between page fetches, in seconds

    Returns:
        Unique items in page order, at most page_limit of them

    Raises:
        FetchError: If page 1 cannot be fetched
        CredentialsExhausted: If the render API ran out of keys on any page
    """
    items: List[ListingItem] = []
    seen: Set[str] = set()
    page = 1

    while page_limit is None or len(items) < page_limit:
        if page > 1:
            pause(page_delay, shutdown, sleep)
        if shutdown is not None:
            shutdown.check_shutdown()

        url = listing_page_url(brand_slug, page, base_url)
        try:
            html = channel.fetch(url)
        except CredentialsExhausted:
            raise
        except FetchError as e:
            if page == 1:
                raise
            logger.debug(f"{brand_slug}: page {page} unavailable ({e}), end of listing")
            break

        new_on_page = 0
        for item in parse_listing_page(html, base_url):
            if item.detail_id in seen:
                continue
            seen.add(item.detail_id)
            items.append(item)
            new_on_page += 1

        logger.debug(f"{brand_slug}: page {page} added {new_on_page} items ({len(items)} total)")
        if new_on_page == 0:
            break
        page += 1

    if page_limit is not None:
        return items[:page_limit]
    return items
