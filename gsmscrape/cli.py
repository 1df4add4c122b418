"""Command-line interface for the harvester."""

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from gsmscrape.catalog import fetch_brands, search_devices
from gsmscrape.config import Settings
from gsmscrape.db import DocumentStore
from gsmscrape.errors import ConfigurationError, FetchError, ParseError, PersistenceError
from gsmscrape.export import export_brands, export_collection, export_listing
from gsmscrape.listing import fetch_listing
from gsmscrape.logging_config import new_run_id, setup_logging
from gsmscrape.models import PhoneRecord
from gsmscrape.pipeline import IngestionOrchestrator, RunStats
from gsmscrape.proxies import load_proxy_pool
from gsmscrape.renormalize import renormalize_collection
from gsmscrape.report import compare_records, format_record
from gsmscrape.retry import ResilientChannel
from gsmscrape.shutdown import ShutdownHandler
from gsmscrape.transport import Channel, ChannelKind, TransportSelector

__all__ = [
    "main",
    "parse_args",
    "resolve_settings",
    "build_channel",
    "show_stats",
    "load_record",
]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="GSMArena harvester: brands, listings and specifications into SQLite",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Harvest everything (settings from .env / environment)
  python -m gsmscrape.cli

  # First 2 brands, at most 10 devices each
  python -m gsmscrape.cli 2 10

  # Go through the render API, 4 worker threads per brand
  python -m gsmscrape.cli --transport render --threads 4

  # Show database statistics
  python -m gsmscrape.cli --stats

  # Snapshot the brand list / one brand's listing to JSON
  python -m gsmscrape.cli --brands-json data/brands.json
  python -m gsmscrape.cli --listing-json apple-phones-48 data/apple.json

  # Export stored devices to JSON
  python -m gsmscrape.cli --export-json data/phones.json

  # Show one stored device, or compare two
  python -m gsmscrape.cli --show apple_iphone_16-13317 --raw
  python -m gsmscrape.cli --compare apple_iphone_16-13317 samsung_galaxy_s25-13610
        """,
    )

    parser.add_argument("max_brands", nargs="?", type=int, help="Maximum brands to process")
    parser.add_argument("max_items", nargs="?", type=int, help="Maximum devices per brand")

    parser.add_argument("--db", help="SQLite database path (default: DB_PATH or data/phones.db)")
    parser.add_argument(
        "--transport",
        choices=[k.value for k in ChannelKind],
        help="Retrieval channel (default: TRANSPORT or direct)",
    )
    parser.add_argument("--threads", type=int, help="Worker threads per brand (default: PARALLEL_THREADS or 1)")
    parser.add_argument(
        "--no-skip-existing",
        action="store_true",
        help="Re-fetch devices that are already marked complete",
    )

    # Info and export commands
    parser.add_argument("--stats", action="store_true", help="Show database statistics and exit")
    parser.add_argument("--export-json", metavar="PATH", help="Export the phones collection to JSON")
    parser.add_argument("--collection", help="Collection for --export-json, --show and --compare (default: COLLECTION_NAME)")
    parser.add_argument("--show", metavar="DETAIL_ID", help="Print one stored device and exit")
    parser.add_argument("--raw", action="store_true", help="Include raw spec categories with --show")
    parser.add_argument(
        "--compare",
        nargs=2,
        metavar=("DETAIL_ID", "DETAIL_ID"),
        help="Compare two stored devices side by side and exit",
    )
    parser.add_argument("--brands-json", metavar="PATH", help="Fetch the brand list and write it to JSON")
    parser.add_argument(
        "--listing-json",
        nargs=2,
        metavar=("SLUG", "PATH"),
        help="Fetch one brand's listing and write it to JSON",
    )
    parser.add_argument("--search", metavar="QUERY", help="Quick-search devices by name and exit")
    parser.add_argument(
        "--renormalize",
        action="store_true",
        help="Rebuild normalized sections from stored raw specifications and exit",
    )

    # Logging
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on the console")
    parser.add_argument("--no-log-file", action="store_true", help="Don't write the JSONL event log")

    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line overrides applied."""
    settings = Settings.from_env()
    if args.max_brands is not None:
        settings.max_brands = args.max_brands
    if args.max_items is not None:
        settings.max_items_per_brand = args.max_items
    if args.db:
        settings.db_path = args.db
    if args.transport:
        settings.transport = args.transport
    if args.threads is not None:
        settings.parallel_threads = max(1, args.threads)
    if args.no_skip_existing:
        settings.skip_existing = False
    return settings


def build_channel(settings: Settings, shutdown: Optional[ShutdownHandler] = None) -> Channel:
    """Channel for the configured transport, each leg wrapped with retries.

    Raises:
        ConfigurationError: Unknown transport or missing credentials
        FetchError: If the proxy list cannot be loaded
    """
    try:
        kind = ChannelKind(settings.transport)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown TRANSPORT '{settings.transport}' (use direct, proxy or render)"
        ) from e

    proxies = []
    if kind is ChannelKind.PROXY:
        proxies = load_proxy_pool(
            settings.appwrite_endpoint,
            settings.appwrite_project_id,
            settings.appwrite_api_key,
            settings.appwrite_database_id,
            settings.appwrite_collection_id,
        )

    def with_retries(channel: Channel) -> Channel:
        return ResilientChannel(
            channel,
            max_attempts=settings.max_retries,
            base_delay=settings.retry_base_delay,
            shutdown=shutdown,
        )

    selector = TransportSelector(proxies=proxies, api_keys=settings.api_keys)
    return selector.build(kind, fallback_to_direct=settings.fallback_to_direct, wrap=with_retries)


def show_stats(store: DocumentStore, settings: Settings) -> None:
    """Display database statistics."""
    print(f"\n{'='*50}")
    print(f"Database: {store.db_path}")
    print(f"{'='*50}")

    print("\nCollections:")
    names = store.collections()
    if not names:
        print("  (empty)")
    for name in names:
        print(f"  {name}: {store.count(name)}")

    phone_list = settings.phone_list_collection_name
    if phone_list in names:
        complete = len(store.find(phone_list, {"is_complete": True}))
        total = store.count(phone_list)
        print(f"\nPhone list: {complete} complete, {total - complete} incomplete")

    print()


def load_record(store: DocumentStore, collection: str, detail_id: str) -> Optional[PhoneRecord]:
    """Stored device by detail ID, or None if it was never harvested.

    Raises:
        ParseError: If the stored raw specifications are malformed
    """
    doc = store.get(collection, detail_id)
    if doc is None:
        return None
    return PhoneRecord.from_document(doc)


def print_summary(stats: RunStats, reason: Optional[str] = None) -> None:
    print(f"\n{'='*50}")
    if stats.aborted:
        print("Run ABORTED: all API keys exhausted")
    elif stats.interrupted:
        print(f"Run INTERRUPTED ({reason or 'interrupted'})")
    else:
        print("Run complete")
    print(f"{'='*50}")
    print(f"  Brands processed: {stats.brands_processed}")
    print(f"  Brands failed:    {stats.brands_failed}")
    print(f"  Devices found:    {stats.items_found}")
    print(f"  Devices inserted: {stats.items_inserted}")
    print(f"  Devices skipped:  {stats.items_skipped}")
    print(f"  Devices failed:   {stats.items_failed}")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI. Returns the process exit code."""
    load_dotenv()
    args = parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_to_file=not args.no_log_file,
        run_id=new_run_id(),
    )

    settings = resolve_settings(args)
    store = DocumentStore(settings.db_path)
    shutdown = ShutdownHandler()

    try:
        if args.stats:
            show_stats(store, settings)
            return 0

        if args.export_json:
            collection = args.collection or settings.collection_name
            count = export_collection(store, collection, args.export_json)
            print(f"Exported {count} documents from {collection} to {args.export_json}")
            return 0

        if args.show or args.compare:
            collection = args.collection or settings.collection_name
            records = []
            for detail_id in args.compare or [args.show]:
                record = load_record(store, collection, detail_id)
                if record is None:
                    print(f"Error: no device '{detail_id}' in {collection}", file=sys.stderr)
                    return 1
                records.append(record)

            if args.compare:
                print(compare_records(records[0], records[1]))
            else:
                print(format_record(records[0], include_raw=args.raw))
            return 0

        if args.renormalize:
            counts = renormalize_collection(store, settings.collection_name)
            print(f"Renormalized {counts['updated']} documents ({counts['malformed']} malformed)")
            return 0

        channel = build_channel(settings, shutdown)

        if args.brands_json:
            count = export_brands(fetch_brands(channel), args.brands_json)
            print(f"Wrote {count} brands to {args.brands_json}")
            return 0

        if args.listing_json:
            slug, path = args.listing_json
            items = fetch_listing(
                channel,
                slug,
                page_limit=settings.max_items_per_brand,
                page_delay=settings.page_delay,
            )
            count = export_listing(items, path)
            print(f"Wrote {count} devices for {slug} to {path}")
            return 0

        if args.search:
            items = search_devices(channel, args.search)
            for item in items:
                print(f"  {item.detail_id}: {item.name}")
            print(f"\n{len(items)} results")
            return 0

        shutdown.install()
        orchestrator = IngestionOrchestrator(channel, store, settings=settings, shutdown=shutdown)
        stats = orchestrator.run()
        print_summary(stats, shutdown.reason)
        print(f"Devices in database: {store.count(settings.collection_name)}")
        return 0

    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except (FetchError, ParseError, PersistenceError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    finally:
        shutdown.uninstall()


if __name__ == "__main__":
    sys.exit(main())
