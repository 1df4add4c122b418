"""GSMArena device specification harvester."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from gsmscrape.catalog import fetch_brands, search_devices
from gsmscrape.config import BASE_URL, SPEC_SECTIONS, Settings, get_section_config
from gsmscrape.db import DocumentStore
from gsmscrape.errors import (
    ConfigurationError,
    CredentialsExhausted,
    FetchError,
    HttpStatusError,
    NetworkError,
    ParseError,
    PersistenceError,
    RetriesExhausted,
    ScrapeError,
)
from gsmscrape.listing import fetch_listing
from gsmscrape.models import Brand, ListingItem, NormalizedSpec, PhoneRecord, RawCategory
from gsmscrape.pipeline import CompletionIndex, IngestionOrchestrator, RunStats
from gsmscrape.retry import ResilientChannel, with_retry
from gsmscrape.specs import fetch_specification, normalize
from gsmscrape.transport import ChannelKind, TransportSelector

__all__ = [
    # Version
    "__version__",
    # Config
    "BASE_URL",
    "SPEC_SECTIONS",
    "Settings",
    "get_section_config",
    # Models
    "Brand",
    "ListingItem",
    "RawCategory",
    "NormalizedSpec",
    "PhoneRecord",
    # Errors
    "ScrapeError",
    "FetchError",
    "NetworkError",
    "HttpStatusError",
    "CredentialsExhausted",
    "RetriesExhausted",
    "ParseError",
    "PersistenceError",
    "ConfigurationError",
    # Retrieval
    "ChannelKind",
    "TransportSelector",
    "with_retry",
    "ResilientChannel",
    # Core functions
    "fetch_brands",
    "search_devices",
    "fetch_listing",
    "fetch_specification",
    "normalize",
    # Orchestration and storage
    "DocumentStore",
    "CompletionIndex",
    "IngestionOrchestrator",
    "RunStats",
]
