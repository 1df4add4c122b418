"""Re-derive normalized sections from stored raw categories.

Useful after SPEC_SECTIONS changes: every stored device is normalized
again from its specifications_raw without refetching any page.
"""

import argparse
from dataclasses import asdict
from typing import Dict

from gsmscrape.config import COLLECTION_NAME, DB_PATH
from gsmscrape.db import DocumentStore
from gsmscrape.errors import ParseError
from gsmscrape.logging_config import get_logger, setup_logging
from gsmscrape.models import RawCategory
from gsmscrape.specs import normalize

__all__ = ["renormalize_collection"]

logger = get_logger("renormalize")


def renormalize_collection(store: DocumentStore, collection: str = COLLECTION_NAME) -> Dict[str, int]:
    """Rebuild normalized sections for every document in a collection.

    Returns:
        Counts: {"processed", "updated", "malformed"}
    """
    counts = {"processed": 0, "updated": 0, "malformed": 0}

    for doc in store.find(collection):
        counts["processed"] += 1
        detail_id = doc.get("detail_id")
        try:
            raw = doc.get("specifications_raw")
            if not isinstance(raw, list) or not detail_id:
                raise ParseError(f"No usable specifications_raw for {detail_id!r}")
            categories = [RawCategory.from_dict(c) for c in raw]
        except ParseError as e:
            counts["malformed"] += 1
            logger.warning(f"Skipping {detail_id}: {e}")
            continue

        store.upsert(collection, "detail_id", detail_id, asdict(normalize(categories)))
        counts["updated"] += 1

    logger.info(
        f"Renormalized {counts['updated']}/{counts['processed']} documents "
        f"({counts['malformed']} malformed)"
    )
    return counts


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Rebuild normalized sections from stored raw specifications"
    )
    parser.add_argument("--db", default=DB_PATH, help=f"SQLite database path (default: {DB_PATH})")
    parser.add_argument(
        "--collection",
        default=COLLECTION_NAME,
        help=f"Collection to renormalize (default: {COLLECTION_NAME})",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging(log_to_file=False)
    counts = renormalize_collection(DocumentStore(args.db), args.collection)

    print("\nRenormalization complete:")
    print(f"  Documents processed: {counts['processed']}")
    print(f"  Documents updated: {counts['updated']}")
    print(f"  Malformed: {counts['malformed']}")


if __name__ == "__main__":
    main()
