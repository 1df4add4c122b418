"""Retry with linear backoff and rotation on blocking responses."""

from typing import Callable, Optional, TypeVar

from gsmscrape.config import MAX_RETRIES, RETRY_BASE_DELAY_MS
from gsmscrape.errors import CredentialsExhausted, FetchError, RetriesExhausted
from gsmscrape.logging_config import get_logger
from gsmscrape.shutdown import ShutdownHandler, pause
from gsmscrape.transport import Channel

__all__ = ["with_retry", "ResilientChannel"]

logger = get_logger("retry")

T = TypeVar("T")


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY_MS / 1000,
    rotate: Optional[Callable[[], bool]] = None,
    sleep: Optional[Callable[[float], None]] = None,
    shutdown: Optional[ShutdownHandler] = None,
    description: str = "operation",
) -> T:
    """Run `operation`, retrying FetchErrors up to `max_attempts` times.

    Sleeps base_delay * attempt between attempts. On 403/429-class errors
    `rotate` is called first so the next attempt goes out on a fresh
    proxy/credential.

    Raises:
        CredentialsExhausted: Immediately, never retried
        RetriesExhausted: After the last attempt fails, wrapping its error
        KeyboardInterrupt: If shutdown is requested between attempts
    """
    attempts = max(1, max_attempts)
    attempt = 0

    while True:
        attempt += 1
        if shutdown is not None:
            shutdown.check_shutdown()

        try:
            return operation()
        except CredentialsExhausted:
            raise
        except FetchError as e:
            if attempt >= attempts:
                raise RetriesExhausted(attempts, e) from e

            if e.is_blocking and rotate is not None:
                if rotate():
                    logger.debug(f"Rotated channel after blocking response for {description}")

            delay = base_delay * attempt
            logger.warning(
                f"{description} failed ({e}), retrying in {delay:.1f}s "
                f"(attempt {attempt}/{attempts})"
            )
            pause(delay, shutdown, sleep)


class ResilientChannel(Channel):
    """Channel wrapper that applies with_retry to every fetch."""

    def __init__(
        self,
        channel: Channel,
        max_attempts: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY_MS / 1000,
        sleep: Optional[Callable[[float], None]] = None,
        shutdown: Optional[ShutdownHandler] = None,
    ):
        self.inner = channel
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self.shutdown = shutdown

    @property
    def kind(self):  # type: ignore[override]
        return self.inner.kind

    def describe(self) -> str:
        return self.inner.describe()

    def fetch(self, url: str) -> str:
        return with_retry(
            lambda: self.inner.fetch(url),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            rotate=self.inner.rotate,
            sleep=self._sleep,
            shutdown=self.shutdown,
            description=f"fetch {url}",
        )

    def rotate(self) -> bool:
        return self.inner.rotate()
