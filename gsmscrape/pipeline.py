"""Ingestion orchestrator: brands -> listings -> details -> store.

One run walks the brand index sequentially. Items within a brand run
either one at a time or on a bounded thread pool that is joined before
the next brand starts.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from gsmscrape.catalog import fetch_brands
from gsmscrape.config import BASE_URL, Settings
from gsmscrape.db import DocumentStore
from gsmscrape.errors import CredentialsExhausted, FetchError
from gsmscrape.listing import fetch_listing
from gsmscrape.logging_config import get_logger, log_scrape_event
from gsmscrape.models import Brand, ListingItem, PhoneRecord, RawCategory
from gsmscrape.shutdown import ShutdownHandler, pause
from gsmscrape.specs import SpecLookup, fetch_specification, normalize
from gsmscrape.transport import Channel

__all__ = [
    "RunPhase",
    "RunStats",
    "CompletionIndex",
    "build_record",
    "IngestionOrchestrator",
]

logger = get_logger("pipeline")

KEY_FIELD = "detail_id"


class RunPhase(str, Enum):
    INIT = "init"
    FETCHING_BRANDS = "fetching_brands"
    PROCESSING_BRANDS = "processing_brands"
    RUN_COMPLETE = "run_complete"


@dataclass
class RunStats:
    """Counters for one run, safe to update from worker threads."""

    brands_processed: int = 0
    brands_failed: int = 0
    items_found: int = 0
    items_inserted: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    aborted: bool = False
    interrupted: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "brands_processed": self.brands_processed,
                "brands_failed": self.brands_failed,
                "items_found": self.items_found,
                "items_inserted": self.items_inserted,
                "items_skipped": self.items_skipped,
                "items_failed": self.items_failed,
                "aborted": self.aborted,
                "interrupted": self.interrupted,
            }


class CompletionIndex:
    """Detail IDs already fully ingested, plus the ones being worked on.

    claim() is the atomic check-and-insert used by skip-existing runs:
    a worker only processes an item it managed to claim.
    """

    def __init__(self, detail_ids: Iterable[str] = ()):
        self._completed: Set[str] = set(detail_ids)
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, store: DocumentStore, collection: str) -> "CompletionIndex":
        """Build the index from phone-list entries marked complete."""
        docs = store.find(collection, {"is_complete": True})
        return cls(doc[KEY_FIELD] for doc in docs if doc.get(KEY_FIELD))

    def __contains__(self, detail_id: str) -> bool:
        with self._lock:
            return detail_id in self._completed

    def __len__(self) -> int:
        with self._lock:
            return len(self._completed)

    def claim(self, detail_id: str) -> bool:
        """Reserve an item. False if it is complete or already claimed."""
        with self._lock:
            if detail_id in self._completed or detail_id in self._in_flight:
                return False
            self._in_flight.add(detail_id)
            return True

    def release(self, detail_id: str) -> None:
        with self._lock:
            self._in_flight.discard(detail_id)

    def mark_complete(self, detail_id: str) -> None:
        with self._lock:
            self._in_flight.discard(detail_id)
            self._completed.add(detail_id)


def build_record(brand: Brand, item: ListingItem, categories: List[RawCategory]) -> PhoneRecord:
    """Assemble the persisted record for one device."""
    return PhoneRecord(
        detail_id=item.detail_id,
        name=item.name,
        brand=brand.name,
        url=item.detail_url,
        thumbnail_url=item.thumbnail_url,
        spec=normalize(categories),
        raw_categories=list(categories),
    )


class IngestionOrchestrator:
    """Drives one harvest run and keeps its statistics.

    Args:
        channel: Channel for brand index, listing and detail pages
        store: Persistence collaborator
        settings: Limits, delays, parallelism and collection names
        spec_source: Alternative source of raw categories (default: channel)
        completion: Preloaded completion index (default: loaded from store)
        brands: Brand list to use instead of fetching the index
        shutdown: Cancellation signal checked at fetch/delay boundaries
        sleep: Sleep function for delays (default: real waits that end early on shutdown)
    """

    def __init__(
        self,
        channel: Channel,
        store: DocumentStore,
        settings: Optional[Settings] = None,
        spec_source: Optional[Union[Channel, SpecLookup]] = None,
        completion: Optional[CompletionIndex] = None,
        brands: Optional[List[Brand]] = None,
        shutdown: Optional[ShutdownHandler] = None,
        sleep: Optional[Callable[[float], None]] = None,
        base_url: str = BASE_URL,
    ):
        self.channel = channel
        self.store = store
        self.settings = settings or Settings()
        self.spec_source = spec_source if spec_source is not None else channel
        self.completion = completion
        self.brands = brands
        self.shutdown = shutdown
        self._sleep = sleep
        self.base_url = base_url
        self.phase = RunPhase.INIT
        self.stats = RunStats()

    def _set_phase(self, phase: RunPhase) -> None:
        logger.debug(f"Phase {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _pause(self, seconds: float) -> None:
        pause(seconds, self.shutdown, self._sleep)

    def _completion_index(self) -> CompletionIndex:
        if self.completion is None:
            self.completion = CompletionIndex.load(self.store, self.settings.phone_list_collection_name)
        return self.completion

    def _check_shutdown(self) -> None:
        if self.shutdown is not None:
            self.shutdown.check_shutdown()

    def run(self) -> RunStats:
        """Execute the run and return its statistics.

        Per-item and per-brand failures are counted, not raised. Key
        exhaustion during a listing aborts the remaining brands. A Ctrl+C
        ends the run early with partial statistics.

        Raises:
            FetchError: If the brand index cannot be fetched
            PersistenceError: If the store cannot be prepared
        """
        s = self.settings
        self.stats = RunStats()
        stats = self.stats

        log_scrape_event("run_start", {
            "message": "Starting harvest run",
            "max_brands": s.max_brands,
            "max_items_per_brand": s.max_items_per_brand,
            "parallel_threads": s.parallel_threads,
            "skip_existing": s.skip_existing,
        }, logger_name="pipeline")

        self.store.ensure_index(s.collection_name, KEY_FIELD)
        self.store.ensure_index(s.phone_list_collection_name, KEY_FIELD)
        logger.info(f"Completion index holds {len(self._completion_index())} devices")

        try:
            self._set_phase(RunPhase.FETCHING_BRANDS)
            brands = self.brands if self.brands is not None else fetch_brands(self.channel)
            if s.max_brands is not None:
                brands = brands[:s.max_brands]

            self._set_phase(RunPhase.PROCESSING_BRANDS)
            for index, brand in enumerate(brands, start=1):
                if index > 1:
                    self._pause(s.brand_delay)
                self._check_shutdown()

                logger.info(f"[{index}/{len(brands)}] {brand.name} ({brand.device_count} devices)")
                try:
                    self.process_brand(brand)
                except CredentialsExhausted as e:
                    stats.aborted = True
                    logger.error(f"All API keys exhausted while listing {brand.name}; aborting run: {e}")
                    break
        except KeyboardInterrupt:
            stats.interrupted = True
            logger.info("Run interrupted; reporting partial statistics")

        self._set_phase(RunPhase.RUN_COMPLETE)
        summary = stats.to_dict()
        summary["message"] = "Harvest run complete"
        log_scrape_event("run_complete", summary, logger_name="pipeline")
        return stats

    def process_brand(self, brand: Brand) -> None:
        """List one brand and ingest its items.

        Raises:
            CredentialsExhausted: If the listing ran out of API keys
        """
        s = self.settings
        stats = self.stats
        log_scrape_event("brand_start", {
            "message": f"Brand {brand.name}: fetching listing",
            "brand": brand.name,
            "slug": brand.slug,
        }, logger_name="pipeline")

        try:
            items = fetch_listing(
                self.channel,
                brand.slug,
                page_limit=s.max_items_per_brand,
                page_delay=s.page_delay,
                base_url=self.base_url,
                sleep=self._sleep,
                shutdown=self.shutdown,
            )
        except FetchError as e:
            stats.increment("brands_failed")
            log_scrape_event("brand_failed", {
                "message": f"Brand {brand.name}: listing failed: {e}",
                "brand": brand.name,
                "slug": brand.slug,
                "error": str(e),
            }, level=logging.ERROR, logger_name="pipeline")
            if isinstance(e, CredentialsExhausted):
                raise
            return

        stats.increment("items_found", len(items))
        logger.info(f"  {brand.name}: {len(items)} devices listed")

        if s.parallel_threads > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=s.parallel_threads) as pool:
                futures = [pool.submit(self._process_item_then_pause, brand, item) for item in items]
                for future in futures:
                    future.result()
        else:
            for index, item in enumerate(items):
                if index > 0:
                    self._pause(s.item_delay)
                self.process_item(brand, item)

        stats.increment("brands_processed")
        log_scrape_event("brand_complete", {
            "message": f"Brand {brand.name} complete",
            "brand": brand.name,
            "items": len(items),
        }, logger_name="pipeline")

    def _process_item_then_pause(self, brand: Brand, item: ListingItem) -> str:
        outcome = self.process_item(brand, item)
        if outcome != "skipped":
            self._pause(self.settings.item_delay)
        return outcome

    def process_item(self, brand: Brand, item: ListingItem) -> str:
        """Fetch, normalize and persist one device.

        Returns:
            "inserted", "skipped" or "failed"
        """
        s = self.settings
        stats = self.stats
        completion = self._completion_index()

        self._check_shutdown()

        if s.skip_existing:
            if not completion.claim(item.detail_id):
                stats.increment("items_skipped")
                logger.debug(f"    SKIP (already ingested): {item.detail_id}")
                return "skipped"

        try:
            self.store.upsert(s.phone_list_collection_name, KEY_FIELD, item.detail_id, {
                "name": item.name,
                "brand": brand.name,
                "url": item.detail_url,
                "thumbnail_url": item.thumbnail_url,
                "is_complete": False,
            })
            categories = fetch_specification(self.spec_source, item.detail_id, self.base_url)
            record = build_record(brand, item, categories)
            stored = self.store.upsert(
                s.collection_name, KEY_FIELD, item.detail_id, record.to_document()
            )
            self.store.set_fields(s.phone_list_collection_name, item.detail_id, {"is_complete": True})
        except KeyboardInterrupt:
            completion.release(item.detail_id)
            raise
        except Exception as e:
            completion.release(item.detail_id)
            stats.increment("items_failed")
            logger.error(f"    [{brand.name}] ERROR {item.name} ({item.detail_id}): {e}")
            log_scrape_event("item_failed", {
                "message": f"Item {item.detail_id} failed",
                "brand": brand.name,
                "item": item.name,
                "detail_id": item.detail_id,
                "error": str(e),
            }, level=logging.ERROR, logger_name="pipeline")
            return "failed"

        completion.mark_complete(item.detail_id)
        stats.increment("items_inserted")
        logger.info(f"    ✓ {item.name} ({item.detail_id}) v{stored['version']}")
        return "inserted"
