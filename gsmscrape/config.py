"""Configuration and constants for the scraper."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

__all__ = [
    "BASE_URL",
    "BRANDS_URL",
    "SEARCH_URL",
    "LISTING_PAGE_PATTERN",
    "RENDER_API_URL",
    "HEADERS",
    "REQUEST_TIMEOUT",
    "PROXY_TIMEOUT",
    "RENDER_TIMEOUT",
    "SOURCE_TAG",
    "DELAY_BETWEEN_PHONES_MS",
    "DELAY_BETWEEN_BRANDS_MS",
    "DELAY_BETWEEN_PAGES_MS",
    "MAX_RETRIES",
    "RETRY_BASE_DELAY_MS",
    "BLOCKING_STATUS_CODES",
    "DB_PATH",
    "COLLECTION_NAME",
    "PHONE_LIST_COLLECTION_NAME",
    "SPEC_SECTIONS",
    "Settings",
    "get_section_config",
]

BASE_URL = "https://www.gsmarena.com"

# Brand index and quick search
BRANDS_URL = f"{BASE_URL}/makers.php3"
SEARCH_URL = f"{BASE_URL}/results.php3"

# Page 1 is "{slug}.php"; later pages use this pattern.
# The "-f-{id}-0-p{page}.php" filter layout is a historical variant and is not used.
LISTING_PAGE_PATTERN = "{slug}-p{page}.php"

# Third-party fetch/render API
RENDER_API_URL = "https://app.scrapingbee.com/api/v1/"

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

# Request timeouts (seconds)
REQUEST_TIMEOUT = 30
PROXY_TIMEOUT = 15  # Shorter for proxies, dead ones are common
RENDER_TIMEOUT = 60

SOURCE_TAG = "gsmarena"

# Politeness delays (milliseconds)
DELAY_BETWEEN_PHONES_MS = 500
DELAY_BETWEEN_BRANDS_MS = 2000
DELAY_BETWEEN_PAGES_MS = 200

# Retry settings (linear backoff: base_delay * attempt)
MAX_RETRIES = 3
RETRY_BASE_DELAY_MS = 1000
BLOCKING_STATUS_CODES = frozenset({403, 429})

# Storage
DB_PATH = "data/phones.db"
COLLECTION_NAME = "gsmarena_phones"
PHONE_LIST_COLLECTION_NAME = "gsmarena_phone_list"


# =============================================================================
# Normalized Section Definitions
# =============================================================================
# Each section maps to:
#   - category: The detail page category title it is built from (case-insensitive)
#   - field_mappings: Dict mapping record field -> list of source keys, first present wins

SectionConfig = Dict[str, Any]

SPEC_SECTIONS: Dict[str, SectionConfig] = {
    "network": {
        "category": "network",
        "field_mappings": {
            "technology": ["technology"],
            "bands_2g": ["2g bands"],
            "bands_3g": ["3g bands"],
            "bands_4g": ["4g bands"],
            "bands_5g": ["5g bands"],
            "speed": ["speed"],
        },
    },
    "launch": {
        "category": "launch",
        "field_mappings": {
            "announced": ["announced"],
            "status": ["status"],
        },
    },
    "body": {
        "category": "body",
        "field_mappings": {
            "dimensions": ["dimensions"],
            "weight": ["weight"],
            "build": ["build"],
            "sim": ["sim"],
        },
    },
    "display": {
        "category": "display",
        "field_mappings": {
            "display_type": ["type"],
            "size": ["size"],
            "resolution": ["resolution"],
            "protection": ["protection"],
        },
    },
    "platform": {
        "category": "platform",
        "field_mappings": {
            "os": ["os"],
            "chipset": ["chipset"],
            "cpu": ["cpu"],
            "gpu": ["gpu"],
        },
    },
    "memory": {
        "category": "memory",
        "field_mappings": {
            "card_slot": ["card slot"],
            "internal": ["internal"],
        },
    },
    "main_camera": {
        "category": "main camera",
        "field_mappings": {
            # Devices with more modules get richer labels upstream
            "modules": ["single", "dual", "triple", "quad", "penta"],
            "features": ["features"],
            "video": ["video"],
        },
    },
    "selfie_camera": {
        "category": "selfie camera",
        "field_mappings": {
            "modules": ["single", "dual", "triple", "quad", "penta"],
            "features": ["features"],
            "video": ["video"],
        },
    },
    "sound": {
        "category": "sound",
        "field_mappings": {
            "loudspeaker": ["loudspeaker"],
            "jack_3_5mm": ["3.5mm jack"],
        },
    },
    "comms": {
        "category": "comms",
        "field_mappings": {
            "wlan": ["wlan"],
            "bluetooth": ["bluetooth"],
            "positioning": ["positioning"],
            "nfc": ["nfc"],
            "radio": ["radio"],
            "usb": ["usb"],
        },
    },
    "features": {
        "category": "features",
        "field_mappings": {
            "sensors": ["sensors"],
        },
    },
    "battery": {
        "category": "battery",
        "field_mappings": {
            "battery_type": ["type"],
            "charging": ["charging"],
        },
    },
    "misc": {
        "category": "misc",
        "field_mappings": {
            "colors": ["colors"],
            "models": ["models"],
            "sar": ["sar"],
            "sar_eu": ["sar eu"],
            "price": ["price"],
        },
    },
}


def get_section_config(section: str) -> Optional[SectionConfig]:
    """Get the field configuration for a normalized section."""
    return SPEC_SECTIONS.get(section)


# =============================================================================
# Environment Settings
# =============================================================================

def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class Settings:
    """Run settings resolved from the environment.

    Limits of None mean "no limit". Delays are in seconds.
    """

    db_path: str = DB_PATH
    collection_name: str = COLLECTION_NAME
    phone_list_collection_name: str = PHONE_LIST_COLLECTION_NAME
    skip_existing: bool = True
    max_brands: Optional[int] = None
    max_items_per_brand: Optional[int] = None
    parallel_threads: int = 1
    item_delay: float = DELAY_BETWEEN_PHONES_MS / 1000
    brand_delay: float = DELAY_BETWEEN_BRANDS_MS / 1000
    page_delay: float = DELAY_BETWEEN_PAGES_MS / 1000
    max_retries: int = MAX_RETRIES
    retry_base_delay: float = RETRY_BASE_DELAY_MS / 1000
    transport: str = "direct"
    fallback_to_direct: bool = True
    api_keys: List[str] = field(default_factory=list)
    appwrite_endpoint: str = "https://cloud.appwrite.io/v1"
    appwrite_project_id: Optional[str] = None
    appwrite_api_key: Optional[str] = None
    appwrite_database_id: Optional[str] = None
    appwrite_collection_id: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (load .env first if wanted)."""
        defaults = cls()
        return cls(
            db_path=os.getenv("DB_PATH", defaults.db_path),
            collection_name=os.getenv("COLLECTION_NAME", defaults.collection_name),
            phone_list_collection_name=os.getenv(
                "PHONE_LIST_COLLECTION_NAME", defaults.phone_list_collection_name
            ),
            skip_existing=_env_bool("SKIP_EXISTING", defaults.skip_existing),
            max_brands=_env_int("MAX_BRANDS", None),
            max_items_per_brand=_env_int("PHONES_PER_BRAND", None),
            parallel_threads=max(1, _env_int("PARALLEL_THREADS", 1) or 1),
            item_delay=_env_int("DELAY_BETWEEN_PHONES_MS", DELAY_BETWEEN_PHONES_MS) / 1000,
            brand_delay=_env_int("DELAY_BETWEEN_BRANDS_MS", DELAY_BETWEEN_BRANDS_MS) / 1000,
            page_delay=_env_int("DELAY_BETWEEN_PAGES_MS", DELAY_BETWEEN_PAGES_MS) / 1000,
            max_retries=max(1, _env_int("MAX_RETRIES", MAX_RETRIES) or 1),
            retry_base_delay=_env_int("RETRY_BASE_DELAY_MS", RETRY_BASE_DELAY_MS) / 1000,
            transport=os.getenv("TRANSPORT", defaults.transport).strip().lower(),
            fallback_to_direct=_env_bool("FALLBACK_TO_DIRECT", defaults.fallback_to_direct),
            api_keys=_env_list("SCRAPINGBEE_API_KEYS"),
            appwrite_endpoint=os.getenv("APPWRITE_ENDPOINT", defaults.appwrite_endpoint),
            appwrite_project_id=os.getenv("APPWRITE_PROJECT_ID"),
            appwrite_api_key=os.getenv("APPWRITE_API_KEY"),
            appwrite_database_id=os.getenv("APPWRITE_DATABASE_ID"),
            appwrite_collection_id=os.getenv("APPWRITE_COLLECTION_ID"),
        )
