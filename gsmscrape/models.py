"""Data models for brands, listings and device specifications."""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

from gsmscrape.config import BASE_URL, SOURCE_TAG
from gsmscrape.errors import ParseError

__all__ = [
    "Brand",
    "ListingItem",
    "RawCategory",
    "NormalizedSpec",
    "PhoneRecord",
    "SECTION_NAMES",
]

Section = Optional[Dict[str, Optional[str]]]


@dataclass(frozen=True)
class Brand:
    """A manufacturer entry from the brand index."""

    name: str
    slug: str
    device_count: int = 0

    @property
    def url(self) -> str:
        return f"{BASE_URL}/{self.slug}.php"


@dataclass(frozen=True)
class ListingItem:
    """One device stub from a brand listing page.

    detail_id is derived from detail_url and is the persistence key.
    """

    name: str
    detail_id: str
    detail_url: str
    thumbnail_url: Optional[str] = None


@dataclass
class RawCategory:
    """One titled block of key/value pairs, in page order."""

    title: str
    pairs: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "pairs": [[k, v] for k, v in self.pairs]}

    @classmethod
    def from_dict(cls, data: Any) -> "RawCategory":
        """Rebuild from to_dict() output.

        Raises:
            ParseError: If the data is not a {title, pairs} mapping
        """
        if not isinstance(data, dict) or not isinstance(data.get("title"), str):
            raise ParseError(f"Invalid raw category: {data!r}")
        pairs = data.get("pairs") or []
        if not isinstance(pairs, list):
            raise ParseError(f"Invalid pairs in category {data['title']!r}")

        parsed: List[Tuple[str, str]] = []
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise ParseError(f"Invalid pair in category {data['title']!r}: {pair!r}")
            parsed.append((str(pair[0]), str(pair[1])))
        return cls(title=data["title"], pairs=parsed)


@dataclass
class NormalizedSpec:
    """Fixed-schema view of a device's specification.

    A section is None when its source category was absent; a present
    section maps every configured field name to a value or None.
    """

    network: Section = None
    launch: Section = None
    body: Section = None
    display: Section = None
    platform: Section = None
    memory: Section = None
    main_camera: Section = None
    selfie_camera: Section = None
    sound: Section = None
    comms: Section = None
    features: Section = None
    battery: Section = None
    misc: Section = None

    def sections(self) -> Dict[str, Section]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


SECTION_NAMES = tuple(f.name for f in fields(NormalizedSpec))


@dataclass
class PhoneRecord:
    """A device as persisted in the phones collection."""

    detail_id: str
    name: str
    brand: str
    url: str
    thumbnail_url: Optional[str] = None
    source: str = SOURCE_TAG
    spec: NormalizedSpec = field(default_factory=NormalizedSpec)
    raw_categories: List[RawCategory] = field(default_factory=list)

    # Set by the store on upsert
    first_seen_at: Optional[str] = None
    last_updated_at: Optional[str] = None
    version: int = 0

    def to_document(self) -> Dict[str, Any]:
        """Flatten into the stored document shape (sections at top level)."""
        doc: Dict[str, Any] = {
            "detail_id": self.detail_id,
            "name": self.name,
            "brand": self.brand,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "source": self.source,
        }
        doc.update(asdict(self.spec))
        doc["specifications_raw"] = [c.to_dict() for c in self.raw_categories]
        doc["first_seen_at"] = self.first_seen_at
        doc["last_updated_at"] = self.last_updated_at
        doc["version"] = self.version
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PhoneRecord":
        """Inverse of to_document().

        Raises:
            ParseError: If the raw specification list is malformed
        """
        raw = doc.get("specifications_raw") or []
        if not isinstance(raw, list):
            raise ParseError(f"specifications_raw for {doc.get('detail_id')} is not a list")

        return cls(
            detail_id=doc["detail_id"],
            name=doc.get("name", ""),
            brand=doc.get("brand", ""),
            url=doc.get("url", ""),
            thumbnail_url=doc.get("thumbnail_url"),
            source=doc.get("source", SOURCE_TAG),
            spec=NormalizedSpec(**{name: doc.get(name) for name in SECTION_NAMES}),
            raw_categories=[RawCategory.from_dict(c) for c in raw],
            first_seen_at=doc.get("first_seen_at"),
            last_updated_at=doc.get("last_updated_at"),
            version=int(doc.get("version") or 0),
        )
