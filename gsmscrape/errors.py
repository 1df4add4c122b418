"""Exception types shared across the scraper."""

from typing import Optional

__all__ = [
    "ScrapeError",
    "FetchError",
    "NetworkError",
    "HttpStatusError",
    "CredentialsExhausted",
    "RetriesExhausted",
    "ParseError",
    "PersistenceError",
    "ConfigurationError",
]


class ScrapeError(Exception):
    """Base class for all scraper errors."""
    pass


class FetchError(ScrapeError):
    """Raised when a page could not be retrieved."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url

    @property
    def is_blocking(self) -> bool:
        """True for rate-limit/forbidden responses that call for rotation."""
        return False


class NetworkError(FetchError):
    """Connection failure, timeout or proxy failure."""
    pass


class HttpStatusError(FetchError):
    """Non-2xx response from the origin or an intermediary."""

    def __init__(self, status_code: int, url: Optional[str] = None):
        super().__init__(f"HTTP Error {status_code} fetching {url}", url)
        self.status_code = status_code

    @property
    def is_blocking(self) -> bool:
        return self.status_code in (403, 429)


class CredentialsExhausted(FetchError):
    """Every API key in the pool was rejected within a single call."""

    def __init__(self, key_count: int, url: Optional[str] = None):
        super().__init__(f"All {key_count} API keys exhausted", url)
        self.key_count = key_count


class RetriesExhausted(FetchError):
    """Every retry attempt failed; wraps the last underlying error."""

    def __init__(self, attempts: int, last_error: FetchError):
        super().__init__(
            f"Failed after {attempts} attempts: {last_error}", getattr(last_error, "url", None)
        )
        self.attempts = attempts
        self.last_error = last_error

    @property
    def is_blocking(self) -> bool:
        return self.last_error.is_blocking


class ParseError(ScrapeError):
    """Stored or collaborator-supplied data does not have the expected shape."""
    pass


class PersistenceError(ScrapeError):
    """Raised by the document store."""
    pass


class ConfigurationError(ScrapeError):
    """Missing or invalid settings."""
    pass
