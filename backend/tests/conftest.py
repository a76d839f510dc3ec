"""Shared pytest fixtures for all tests."""

import os
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from app import create_app
from bazarr_client import BazarrClient
from cache.memory_cache import MemoryCacheBackend
from config import reload_settings
from models import BazarrEpisode, BazarrLanguage, BazarrMovie, BazarrSeries, ConnectionTestResult
from search_coordinator import SearchCoordinator
from tests.fixtures.bazarr_responses import (
    EPISODES_BY_SERIES,
    LANGUAGES_RESPONSE,
    MIXED_CANDIDATES,
    MOVIES_RESPONSE,
    SERIES_RESPONSE,
)
from tests.fixtures.concurrency import FakeClock, GatedUpstream


@pytest.fixture(autouse=True)
def clean_settings():
    """Start every test from default settings with auth disabled."""
    saved = {k: v for k, v in os.environ.items() if k.startswith("SUBRELAY_")}
    for key in saved:
        del os.environ[key]
    os.environ["SUBRELAY_LOG_LEVEL"] = "ERROR"
    reload_settings()
    yield
    for key in [k for k in os.environ if k.startswith("SUBRELAY_")]:
        del os.environ[key]
    os.environ.update(saved)
    reload_settings()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    return MemoryCacheBackend(clock=fake_clock)


@pytest.fixture
def upstream():
    """Gated upstream returning a mix of languages. Call upstream.release.set() to let it finish."""
    return GatedUpstream(results=MIXED_CANDIDATES)


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="test-search")
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def coordinator(upstream, cache, executor):
    coord = SearchCoordinator(upstream, cache, search_ttl_seconds=3600, executor=executor)
    yield coord
    # Never leave a worker blocked on the gate.
    upstream.release.set()


@pytest.fixture
def mock_bazarr_client():
    """BazarrClient double serving the canned catalog and search payloads."""
    client = MagicMock(spec=BazarrClient)
    client.url = "http://bazarr:6767"
    client.api_key = "test-key"
    client.get_movies.return_value = tuple(BazarrMovie.from_api(m) for m in MOVIES_RESPONSE["data"])
    client.get_series.return_value = tuple(BazarrSeries.from_api(s) for s in SERIES_RESPONSE["data"])
    client.get_episodes.side_effect = lambda series_id: tuple(
        BazarrEpisode.from_api(e) for e in EPISODES_BY_SERIES.get(series_id, {"data": []})["data"]
    )
    client.get_languages.return_value = tuple(BazarrLanguage.from_api(lang) for lang in LANGUAGES_RESPONSE)
    client.search.return_value = MIXED_CANDIDATES
    client.download_movie_subtitle.return_value = True
    client.download_episode_subtitle.return_value = True
    client.test_connection.return_value = ConnectionTestResult(
        True, "Connected successfully. 3 languages available.",
    )
    return client


@pytest.fixture
def app(mock_bazarr_client, executor):
    """Flask app wired to the mocked Bazarr client."""
    return create_app(
        testing=True,
        bazarr_client=mock_bazarr_client,
        cache_backend=MemoryCacheBackend(),
        search_executor=executor,
    )


@pytest.fixture
def client(app):
    """Create a test client for Flask app."""
    with app.test_client() as client:
        yield client
