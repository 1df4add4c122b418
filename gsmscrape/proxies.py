"""Proxy pool loading from a remote document collection (Appwrite)."""

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests  # type: ignore[import-untyped]

from gsmscrape.config import REQUEST_TIMEOUT
from gsmscrape.errors import ConfigurationError, FetchError, HttpStatusError, NetworkError
from gsmscrape.logging_config import get_logger

__all__ = ["ProxyConfig", "parse_proxy_documents", "load_proxy_pool"]

logger = get_logger("proxies")

ACTIVE_STATUSES = frozenset({"active", "working"})


@dataclass(frozen=True)
class ProxyConfig:
    """One candidate proxy endpoint."""

    id: str
    endpoint: str
    proxy_type: str = "http"
    response_time: Optional[float] = None
    status: str = "active"

    @property
    def proxy_url(self) -> str:
        """Endpoint with a scheme matching its transport type."""
        kind = self.proxy_type.lower()
        if kind in ("http", "https"):
            if self.endpoint.startswith(("http://", "https://")):
                return self.endpoint
            return f"http://{self.endpoint}"
        if kind in ("socks4", "socks5"):
            if self.endpoint.startswith(f"{kind}://"):
                return self.endpoint
            return f"{kind}://{self.endpoint}"
        return self.endpoint

    def as_requests_proxies(self) -> Dict[str, str]:
        return {"http": self.proxy_url, "https": self.proxy_url}


def parse_proxy_documents(documents: List[Dict[str, Any]]) -> List[ProxyConfig]:
    """Keep documents whose status is active/working, in input order."""
    proxies: List[ProxyConfig] = []
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        status = str(doc.get("status", "")).strip().lower()
        endpoint = doc.get("proxy") or doc.get("endpoint")
        if status not in ACTIVE_STATUSES or not endpoint:
            continue
        response_time = doc.get("response_time")
        proxies.append(ProxyConfig(
            id=str(doc.get("$id") or doc.get("id") or endpoint),
            endpoint=str(endpoint).strip(),
            proxy_type=str(doc.get("type") or doc.get("transport_type") or "http"),
            response_time=float(response_time) if response_time is not None else None,
            status=status,
        ))
    return proxies


def load_proxy_pool(
    endpoint: str,
    project_id: Optional[str],
    api_key: Optional[str],
    database_id: Optional[str],
    collection_id: Optional[str],
    session: Optional[requests.Session] = None,
    rng: Optional[random.Random] = None,
) -> List[ProxyConfig]:
    """Fetch the proxy collection and return the active entries, shuffled.

    Raises:
        ConfigurationError: If any Appwrite setting is missing
        FetchError: If the collection could not be read
    """
    if not all([project_id, api_key, database_id, collection_id]):
        raise ConfigurationError(
            "Proxy transport needs APPWRITE_PROJECT_ID, APPWRITE_API_KEY, "
            "APPWRITE_DATABASE_ID and APPWRITE_COLLECTION_ID"
        )

    url = f"{endpoint.rstrip('/')}/databases/{database_id}/collections/{collection_id}/documents"
    sess = session or requests.Session()
    try:
        resp = sess.get(
            url,
            headers={
                "X-Appwrite-Project": project_id,
                "X-Appwrite-Key": api_key,
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Failed to fetch proxy list: {e}", url) from e

    if not 200 <= resp.status_code < 300:
        raise HttpStatusError(resp.status_code, url)

    try:
        payload = resp.json()
    except ValueError as e:
        raise FetchError(f"Proxy list is not valid JSON: {e}", url) from e

    documents = payload.get("documents", []) if isinstance(payload, dict) else None
    if not isinstance(documents, list):
        raise FetchError("Proxy list response has no documents array", url)

    proxies = parse_proxy_documents(documents)
    (rng or random.Random()).shuffle(proxies)

    logger.info(f"Loaded {len(proxies)} active proxies ({len(documents)} listed)")
    return proxies
