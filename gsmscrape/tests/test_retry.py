"""Tests for the retry policy."""

from unittest.mock import MagicMock

import pytest

from gsmscrape.errors import (
    CredentialsExhausted,
    HttpStatusError,
    NetworkError,
    RetriesExhausted,
)
from gsmscrape.retry import ResilientChannel, with_retry
from gsmscrape.shutdown import ShutdownHandler

from fakes import FakeChannel

URL = "https://www.gsmarena.com/acme_x1-100.php"


class TestWithRetry:
    """Tests for with_retry."""

    def test_returns_first_success(self, no_sleep):
        operation = MagicMock(return_value="ok")

        assert with_retry(operation, max_attempts=3, base_delay=1.0, sleep=no_sleep) == "ok"
        assert operation.call_count == 1
        assert no_sleep.delays == []

    def test_linear_backoff(self, no_sleep):
        """Delays grow as base_delay * attempt."""
        operation = MagicMock(side_effect=[NetworkError("a"), NetworkError("b"), "ok"])

        assert with_retry(operation, max_attempts=3, base_delay=1.5, sleep=no_sleep) == "ok"
        assert no_sleep.delays == [1.5, 3.0]

    def test_exhausted_retries_wrap_last_error(self, no_sleep):
        """After the last attempt the final error is wrapped."""
        last = HttpStatusError(503, URL)
        operation = MagicMock(side_effect=[NetworkError("a"), NetworkError("b"), last])

        with pytest.raises(RetriesExhausted) as exc_info:
            with_retry(operation, max_attempts=3, base_delay=0, sleep=no_sleep)

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is last
        assert operation.call_count == 3
        assert not isinstance(exc_info.value, CredentialsExhausted)

    def test_rotates_on_blocking_errors_only(self, no_sleep):
        """403/429 trigger rotation; other errors just back off."""
        rotate = MagicMock(return_value=True)
        operation = MagicMock(side_effect=[
            HttpStatusError(429, URL),
            HttpStatusError(500, URL),
            HttpStatusError(403, URL),
            "ok",
        ])

        assert with_retry(operation, max_attempts=4, base_delay=0, rotate=rotate, sleep=no_sleep) == "ok"
        assert rotate.call_count == 2

    def test_no_rotation_after_last_attempt(self, no_sleep):
        rotate = MagicMock(return_value=True)
        operation = MagicMock(side_effect=HttpStatusError(429, URL))

        with pytest.raises(RetriesExhausted) as exc_info:
            with_retry(operation, max_attempts=2, base_delay=0, rotate=rotate, sleep=no_sleep)

        assert rotate.call_count == 1
        assert exc_info.value.is_blocking

    def test_credentials_exhausted_not_retried(self, no_sleep):
        operation = MagicMock(side_effect=CredentialsExhausted(3, URL))

        with pytest.raises(CredentialsExhausted):
            with_retry(operation, max_attempts=5, base_delay=1.0, sleep=no_sleep)

        assert operation.call_count == 1
        assert no_sleep.delays == []

    def test_non_fetch_errors_propagate(self, no_sleep):
        """Only FetchErrors are retried."""
        operation = MagicMock(side_effect=ValueError("bug"))

        with pytest.raises(ValueError):
            with_retry(operation, max_attempts=3, base_delay=0, sleep=no_sleep)
        assert operation.call_count == 1

    def test_shutdown_stops_retrying(self):
        handler = ShutdownHandler()
        handler.request()
        operation = MagicMock(return_value="ok")

        with pytest.raises(KeyboardInterrupt):
            with_retry(operation, max_attempts=3, base_delay=0, shutdown=handler)
        operation.assert_not_called()


class TestResilientChannel:
    """Tests for the retrying channel wrapper."""

    def test_retries_then_succeeds(self, no_sleep):
        inner = FakeChannel({URL: [HttpStatusError(429, URL), "page"]})
        channel = ResilientChannel(inner, max_attempts=3, base_delay=0, sleep=no_sleep)

        assert channel.fetch(URL) == "page"
        assert inner.calls == [URL, URL]
        assert inner.rotations == 1

    def test_reports_inner_kind(self):
        inner = FakeChannel()
        assert ResilientChannel(inner).kind is inner.kind
