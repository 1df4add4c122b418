"""Retrieval channels: direct HTTP, rotating proxy, and render-proxy API.

A channel turns a URL into page text or raises a FetchError subclass.
Channels do not retry; retry and rotation policy live in retry.py.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, Generic, List, Optional, Sequence, Set, TypeVar

import requests  # type: ignore[import-untyped]

from gsmscrape.config import (
    BLOCKING_STATUS_CODES,
    HEADERS,
    PROXY_TIMEOUT,
    RENDER_API_URL,
    RENDER_TIMEOUT,
    REQUEST_TIMEOUT,
)
from gsmscrape.errors import (
    ConfigurationError,
    CredentialsExhausted,
    FetchError,
    HttpStatusError,
    NetworkError,
)
from gsmscrape.logging_config import get_logger, log_scrape_event
from gsmscrape.proxies import ProxyConfig
from gsmscrape.url_validation import URLValidationError, validate_url

__all__ = [
    "ChannelKind",
    "RotationState",
    "Channel",
    "DirectChannel",
    "ProxyChannel",
    "RenderProxyChannel",
    "FailoverChannel",
    "TransportSelector",
    "create_session",
]

logger = get_logger("transport")

T = TypeVar("T")


class ChannelKind(str, Enum):
    DIRECT = "direct"
    PROXY = "proxy"
    RENDER_PROXY = "render"


class RotationState(Generic[T]):
    """Round-robin cursor over a fixed pool.

    The lock only protects the cursor; several callers may hold the
    same item at once.
    """

    def __init__(self, items: Sequence[T]):
        self._items: List[T] = list(items)
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def next(self) -> Optional[T]:
        """Return the item under the cursor and advance it."""
        with self._lock:
            if not self._items:
                return None
            item = self._items[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._items)
            return item

    def cycle(self) -> List[T]:
        """Every item once, starting at the cursor, which advances by one.

        The snapshot is taken under the lock, so other callers moving the
        cursor afterwards cannot make the caller repeat or skip an item.
        """
        with self._lock:
            if not self._items:
                return []
            start = self._cursor
            self._cursor = (start + 1) % len(self._items)
            return self._items[start:] + self._items[:start]

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor


def create_session() -> requests.Session:
    """requests Session with browser-like headers and compression."""
    session = requests.Session()
    session.headers.update(HEADERS)
    session.headers.setdefault("Accept-Encoding", "gzip, deflate")
    return session


def _mask(key: str) -> str:
    return f"{key[:4]}…{key[-2:]}" if len(key) > 8 else "****"


class Channel:
    """One way of issuing an outbound fetch."""

    kind: ChannelKind = ChannelKind.DIRECT

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        allowed_domains: Optional[Set[str]] = None,
    ):
        self.session = session or create_session()
        self.timeout = timeout
        self.allowed_domains = allowed_domains

    def fetch(self, url: str) -> str:
        raise NotImplementedError

    def rotate(self) -> bool:
        """Switch to a fresh proxy/credential. Returns False if unsupported."""
        return False

    def describe(self) -> str:
        return self.kind.value

    def _validated(self, url: str) -> str:
        try:
            return validate_url(url, self.allowed_domains)
        except URLValidationError as e:
            raise FetchError(f"Invalid URL: {e}", url) from e

    def _get(self, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.get(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"{self.describe()} request failed: {e}", url) from e


class DirectChannel(Channel):
    """Plain request with no intermediary."""

    kind = ChannelKind.DIRECT

    def fetch(self, url: str) -> str:
        url = self._validated(url)
        resp = self._get(url)
        if not 200 <= resp.status_code < 300:
            raise HttpStatusError(resp.status_code, url)
        return str(resp.text)


class ProxyChannel(Channel):
    """Request routed through the current proxy of a shared pool."""

    kind = ChannelKind.PROXY

    def __init__(self, pool: RotationState[ProxyConfig], **kwargs):
        kwargs.setdefault("timeout", PROXY_TIMEOUT)
        super().__init__(**kwargs)
        self.pool = pool
        self.proxy = pool.next()

    def describe(self) -> str:
        return f"proxy {self.proxy.proxy_url}" if self.proxy else "proxy (none)"

    def fetch(self, url: str) -> str:
        url = self._validated(url)
        proxy = self.proxy
        if proxy is None:
            raise NetworkError("Proxy pool is empty", url)

        resp = self._get(url, proxies=proxy.as_requests_proxies())
        if not 200 <= resp.status_code < 300:
            # 403/429 surface as blocking errors; the retry layer rotates
            raise HttpStatusError(resp.status_code, url)
        return str(resp.text)

    def rotate(self) -> bool:
        if not len(self.pool):
            return False
        previous = self.proxy
        self.proxy = self.pool.next()
        log_scrape_event("proxy_rotated", {
            "message": f"Rotated proxy -> {self.describe()}",
            "previous": previous.id if previous else None,
            "current": self.proxy.id if self.proxy else None,
        }, logger_name="transport")
        return True


class RenderProxyChannel(Channel):
    """Fetch through a third-party render/fetch API with rotating keys.

    Each call tries every key at most once, starting at the shared cursor.
    403/429 from the API means the key is exhausted or blocked.
    """

    kind = ChannelKind.RENDER_PROXY

    def __init__(
        self,
        keys: RotationState[str],
        api_url: str = RENDER_API_URL,
        render_js: bool = False,
        key_switch_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        **kwargs,
    ):
        kwargs.setdefault("timeout", RENDER_TIMEOUT)
        super().__init__(**kwargs)
        self.keys = keys
        self.api_url = api_url
        self.render_js = render_js
        self.key_switch_delay = key_switch_delay
        self._sleep = sleep

    def describe(self) -> str:
        return f"render API ({len(self.keys)} keys)"

    def fetch(self, url: str) -> str:
        url = self._validated(url)
        keys = self.keys.cycle()
        key_count = len(keys)
        if key_count == 0:
            raise CredentialsExhausted(0, url)

        blocked = 0
        last_error: Optional[FetchError] = None

        for attempt, key in enumerate(keys, start=1):
            params = {
                "api_key": key,
                "url": url,
                "render_js": "true" if self.render_js else "false",
            }
            try:
                resp = self._get(self.api_url, params=params)
            except NetworkError as e:
                logger.warning(f"Render API request failed with key {attempt}/{key_count}: {e}")
                last_error = e
            else:
                if 200 <= resp.status_code < 300:
                    return str(resp.text)
                if resp.status_code not in BLOCKING_STATUS_CODES:
                    raise HttpStatusError(resp.status_code, url)

                blocked += 1
                last_error = HttpStatusError(resp.status_code, url)
                log_scrape_event("key_exhausted", {
                    "message": (
                        f"API key {_mask(key)} exhausted/blocked (status {resp.status_code}), "
                        f"switching ({attempt}/{key_count})"
                    ),
                    "status": resp.status_code,
                    "url": url,
                }, level=logging.WARNING, logger_name="transport")

            if attempt < key_count:
                self._sleep(self.key_switch_delay)

        if blocked == 0 and last_error is not None:
            # Every key hit a network failure: the API is unreachable, not exhausted
            raise last_error
        raise CredentialsExhausted(key_count, url)

    def rotate(self) -> bool:
        if not len(self.keys):
            return False
        self.keys.next()
        return True


class FailoverChannel(Channel):
    """Tries channels in order; a failure moves the call to the next one."""

    def __init__(self, channels: Sequence[Channel]):
        if not channels:
            raise ValueError("FailoverChannel needs at least one channel")
        self.channels = list(channels)

    @property
    def kind(self) -> ChannelKind:  # type: ignore[override]
        return self.channels[0].kind

    def describe(self) -> str:
        return " -> ".join(c.describe() for c in self.channels)

    def fetch(self, url: str) -> str:
        # The last channel's error propagates as is
        *leading, last = self.channels
        for index, channel in enumerate(leading):
            try:
                return channel.fetch(url)
            except FetchError as e:
                logger.warning(
                    f"{channel.describe()} failed ({e}); "
                    f"falling back to {self.channels[index + 1].describe()}"
                )
        return last.fetch(url)

    def rotate(self) -> bool:
        rotated = [c.rotate() for c in self.channels]
        return any(rotated)


class TransportSelector:
    """Builds channels over rotation state owned by this selector.

    Independent selectors never share cursors, so separate runs (and
    tests) do not interfere.
    """

    def __init__(
        self,
        proxies: Sequence[ProxyConfig] = (),
        api_keys: Sequence[str] = (),
        session_factory: Callable[[], requests.Session] = create_session,
        allowed_domains: Optional[Set[str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.proxy_state: RotationState[ProxyConfig] = RotationState(proxies)
        self.key_state: RotationState[str] = RotationState(api_keys)
        self.session_factory = session_factory
        self.allowed_domains = allowed_domains
        self._sleep = sleep
        self._builders: Dict[ChannelKind, Callable[[], Channel]] = {
            ChannelKind.DIRECT: self._direct,
            ChannelKind.PROXY: self._proxy,
            ChannelKind.RENDER_PROXY: self._render,
        }

    def acquire_channel(self, preferred: ChannelKind) -> Channel:
        """Return a channel of the preferred kind.

        Raises:
            ConfigurationError: If the render API is requested without keys
        """
        return self._builders[ChannelKind(preferred)]()

    def build(
        self,
        preferred: ChannelKind,
        fallback_to_direct: bool = True,
        wrap: Optional[Callable[[Channel], Channel]] = None,
    ) -> Channel:
        """Preferred channel, optionally backed by a direct connection.

        `wrap` (e.g. a retry wrapper) is applied to each leg separately,
        never around the failover, so a leg that gave up is not re-run
        when a later leg fails.
        """
        wrap = wrap or (lambda channel: channel)
        channel = self.acquire_channel(preferred)
        if fallback_to_direct and channel.kind is not ChannelKind.DIRECT:
            return FailoverChannel([wrap(channel), wrap(self._direct())])
        return wrap(channel)

    def _direct(self) -> Channel:
        return DirectChannel(session=self.session_factory(), allowed_domains=self.allowed_domains)

    def _proxy(self) -> Channel:
        if not len(self.proxy_state):
            logger.warning("No proxies available, using a direct connection")
            return self._direct()
        return ProxyChannel(
            self.proxy_state,
            session=self.session_factory(),
            allowed_domains=self.allowed_domains,
        )

    def _render(self) -> Channel:
        if not len(self.key_state):
            raise ConfigurationError("Render transport needs SCRAPINGBEE_API_KEYS")
        return RenderProxyChannel(
            self.key_state,
            session=self.session_factory(),
            allowed_domains=self.allowed_domains,
            sleep=self._sleep,
        )
