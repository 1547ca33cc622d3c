"""Shared test fixtures."""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from tweetbird.query_ids import QueryIdStore

CREDENTIAL_ENV_VARS = ("AUTH_TOKEN", "CT0", "TWITTER_AUTH_TOKEN", "TWITTER_CT0")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep real credentials and the real query ID cache out of every test."""
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TWEETBIRD_QUERY_IDS_CACHE", str(tmp_path / "query-ids-cache.json"))
    yield
    # CliRunner closes the stream the CLI handler was bound to
    logger = logging.getLogger("tweetbird")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "query-ids-cache.json"


@pytest.fixture
def store(cache_path) -> QueryIdStore:
    return QueryIdStore(cache_path=cache_path)


@pytest.fixture
def no_sleep():
    """Make page delays, backoff and media polling instant."""
    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep
