"""JSON snapshot export."""

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Iterable, List

from gsmscrape.db import DocumentStore
from gsmscrape.models import Brand, ListingItem

__all__ = [
    "to_json_data",
    "write_json",
    "export_brands",
    "export_listing",
    "export_collection",
]


def to_json_data(obj: Any) -> Any:
    """Convert models (or lists of them) into JSON-ready data."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (list, tuple)):
        return [to_json_data(o) for o in obj]
    return obj


def write_json(data: Any, path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_json_data(data), f, ensure_ascii=False, indent=2)


def export_brands(brands: Iterable[Brand], path: str) -> int:
    rows: List[Brand] = list(brands)
    write_json(rows, path)
    return len(rows)


def export_listing(items: Iterable[ListingItem], path: str) -> int:
    rows: List[ListingItem] = list(items)
    write_json(rows, path)
    return len(rows)


def export_collection(store: DocumentStore, collection: str, path: str) -> int:
    """Dump every document in a collection. Returns the count written."""
    documents = store.find(collection)
    write_json(documents, path)
    return len(documents)
