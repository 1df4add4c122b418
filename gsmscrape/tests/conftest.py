"""Shared test fixtures."""

from typing import List

import pytest

from gsmscrape.config import Settings
from gsmscrape.db import DocumentStore


@pytest.fixture
def store(tmp_path):
    """Document store in a temporary SQLite file."""
    return DocumentStore(str(tmp_path / "phones.db"))


@pytest.fixture
def settings(tmp_path):
    """Run settings with no delays and sequential processing."""
    return Settings(
        db_path=str(tmp_path / "phones.db"),
        item_delay=0,
        brand_delay=0,
        page_delay=0,
        retry_base_delay=0,
    )


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: List[float] = []

    def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep
