"""Tests for subtitle_search.py: resolution, shaping, ID encoding and downloads."""

from unittest.mock import MagicMock

import pytest

from catalog import CatalogService
from config import get_settings, reload_settings
from error_handler import DownloadError, InvalidSubtitleIdError, ItemNotFoundError
from models import ItemKind, SearchKey, SearchResult, SubtitleCandidate
from search_coordinator import SearchCoordinator
from subtitle_search import (
    PLACEHOLDER_ID,
    SubtitleSearchService,
    decode_subtitle_id,
    encode_subtitle_id,
)
from tests.fixtures.bazarr_responses import SEARCH_RESPONSE, make_candidate
from tests.fixtures.concurrency import GatedUpstream


@pytest.fixture
def service(mock_bazarr_client, cache, executor):
    mock_bazarr_client.search.return_value = tuple(
        SubtitleCandidate.from_api(s) for s in SEARCH_RESPONSE["data"]
    )
    catalog = CatalogService(mock_bazarr_client, cache)
    coordinator = SearchCoordinator(mock_bazarr_client.search, cache, executor=executor)
    return SubtitleSearchService(catalog, coordinator, mock_bazarr_client, get_settings())


class TestSubtitleIds:

    def test_encode_movie_id(self):
        candidate = make_candidate(
            provider="podnapisi", subtitle="a|b/c d", hearing_impaired="True", forced=None,
        )
        assert encode_subtitle_id(ItemKind.MOVIE, 1, candidate) == "movie|1|podnapisi|True|False|a%7Cb%2Fc%20d"

    def test_decode_restores_download_request(self):
        kind, req = decode_subtitle_id("episode|101|podnapisi|False|True|a%7Cb%2Fc%20d")

        assert kind == ItemKind.EPISODE
        assert req.sonarr_episode_id == 101
        assert req.radarr_id == 0
        assert req.provider == "podnapisi"
        assert req.hi == "False"
        assert req.forced == "True"
        assert req.subtitle == "a|b/c d"
        assert req.original_format == "False"

    def test_decode_tolerates_unescaped_separator_in_token(self):
        _, req = decode_subtitle_id("movie|1|p|False|False|left|right")
        assert req.subtitle == "left|right"

    @pytest.mark.parametrize(
        "subtitle_id",
        ["", "movie|1|p|False|False", "series|1|p|False|False|t", "movie|x|p|False|False|t"],
    )
    def test_decode_rejects_malformed(self, subtitle_id):
        with pytest.raises(InvalidSubtitleIdError):
            decode_subtitle_id(subtitle_id)


class TestMovieSearch:

    def test_resolves_by_tmdb_and_shapes_results(self, service, mock_bazarr_client):
        results = service.search_movie({"Tmdb": "27205"}, name="Inception", language="eng", two_letter_code="en")

        mock_bazarr_client.search.assert_called_once_with(SearchKey.movie(1))
        assert len(results) == 1
        info = results[0]
        assert info.id.startswith("movie|1|opensubtitlescom|False|False|")
        assert info.name == "Inception.2010.1080p.BluRay.x264"
        assert info.provider_name == "Bazarr"
        assert info.format == "SRT"
        assert info.language == "en"
        assert info.comment == "opensubtitlescom - Score: 92% - by subuser"
        assert info.is_hash_match is True

    def test_falls_back_to_imdb(self, service, mock_bazarr_client):
        service.search_movie({"Tmdb": "999", "Imdb": "tt2543164"}, language="de")
        mock_bazarr_client.search.assert_called_once_with(SearchKey.movie(2))

    def test_language_filter_applies(self, service):
        results = service.search_movie({"tmdb": "27205"}, two_letter_code="de")
        assert [r.language for r in results] == ["de"]
        assert results[0].format == "SRT"
        assert results[0].name == "podnapisi"

    def test_unknown_movie_returns_empty(self, service, mock_bazarr_client):
        assert service.search_movie({"Tmdb": "1"}, name="Unknown") == []
        assert service.search_movie({}) == []
        mock_bazarr_client.search.assert_not_called()

    def test_disabled_for_movies(self, monkeypatch, mock_bazarr_client, cache, executor):
        monkeypatch.setenv("SUBRELAY_ENABLE_FOR_MOVIES", "false")
        settings = reload_settings()
        svc = SubtitleSearchService(
            CatalogService(mock_bazarr_client, cache),
            SearchCoordinator(mock_bazarr_client.search, cache, executor=executor),
            mock_bazarr_client,
            settings,
        )

        assert svc.search_movie({"Tmdb": "27205"}) == []
        mock_bazarr_client.get_movies.assert_not_called()

    def test_placeholder_on_timeout(self, mock_bazarr_client, cache, executor):
        upstream = GatedUpstream(results=())
        svc = SubtitleSearchService(
            CatalogService(mock_bazarr_client, cache),
            SearchCoordinator(upstream, cache, executor=executor),
            mock_bazarr_client,
            get_settings(),
        )
        try:
            results = svc.search_movie({"Tmdb": "27205"}, timeout_seconds=0.05)
        finally:
            upstream.release.set()

        assert len(results) == 1
        assert results[0].id == PLACEHOLDER_ID
        assert results[0].name.startswith("Search in progress")

    def test_default_timeout_comes_from_settings(self, mock_bazarr_client):
        coordinator = MagicMock()
        coordinator.search.return_value = SearchResult()
        catalog = MagicMock()
        catalog.find_radarr_id_by_tmdb.return_value = 7
        svc = SubtitleSearchService(catalog, coordinator, mock_bazarr_client, get_settings())

        svc.search_movie({"tmdb": "1"})
        svc.search_movie({"tmdb": "1"}, timeout_seconds=0)

        assert coordinator.search.call_args_list[0].args == (SearchKey.movie(7), "en", 25)
        assert coordinator.search.call_args_list[1].args == (SearchKey.movie(7), "en", 0)


class TestEpisodeSearch:

    def test_resolves_by_tvdb(self, service, mock_bazarr_client):
        service.search_episode({"Tvdb": "81189"}, series_name="Breaking Bad", season=1, episode=2)
        mock_bazarr_client.search.assert_called_once_with(SearchKey.episode(102))

    def test_falls_back_to_imdb_then_title(self, service, mock_bazarr_client):
        service.search_episode({"Imdb": "tt0903747"}, season=1, episode=1)
        service.search_episode({"Tvdb": "1"}, series_name="Landman", season=1, episode=1)

        assert [c.args[0] for c in mock_bazarr_client.search.call_args_list] == [
            SearchKey.episode(101),
            SearchKey.episode(201),
        ]

    def test_episode_ids_encode_episode_kind(self, service):
        results = service.search_episode({"Tvdb": "81189"}, season=1, episode=1, two_letter_code="en")
        assert results[0].id.startswith("episode|101|")

    def test_missing_season_or_episode_returns_empty(self, service, mock_bazarr_client):
        assert service.search_episode({"Tvdb": "81189"}, season=1) == []
        mock_bazarr_client.search.assert_not_called()

    def test_unknown_episode_returns_empty(self, service):
        assert service.search_episode({"Tvdb": "81189"}, season=9, episode=9) == []

    def test_disabled_for_episodes(self, monkeypatch, mock_bazarr_client, cache, executor):
        monkeypatch.setenv("SUBRELAY_ENABLE_FOR_EPISODES", "0")
        svc = SubtitleSearchService(
            CatalogService(mock_bazarr_client, cache),
            SearchCoordinator(mock_bazarr_client.search, cache, executor=executor),
            mock_bazarr_client,
            reload_settings(),
        )
        assert svc.search_episode({"Tvdb": "81189"}, season=1, episode=1) == []


class TestDownload:

    def test_movie_download(self, service, mock_bazarr_client):
        req = service.download("movie|1|podnapisi|True|False|tok%7C1")

        sent = mock_bazarr_client.download_movie_subtitle.call_args.args[0]
        assert sent is req
        assert sent.radarr_id == 1
        assert sent.subtitle == "tok|1"
        assert sent.hi == "True"

    def test_episode_download_looks_up_series(self, service, mock_bazarr_client):
        service.download("episode|201|p|False|False|tok")

        sent = mock_bazarr_client.download_episode_subtitle.call_args.args[0]
        assert sent.sonarr_series_id == 20
        assert sent.sonarr_episode_id == 201

    def test_episode_download_unknown_series(self, service, mock_bazarr_client):
        with pytest.raises(ItemNotFoundError):
            service.download("episode|999|p|False|False|tok")
        mock_bazarr_client.download_episode_subtitle.assert_not_called()

    def test_rejected_download_raises(self, service, mock_bazarr_client):
        mock_bazarr_client.download_movie_subtitle.return_value = False
        with pytest.raises(DownloadError):
            service.download("movie|1|p|False|False|tok")

    def test_placeholder_cannot_be_downloaded(self, service):
        with pytest.raises(InvalidSubtitleIdError):
            service.download(PLACEHOLDER_ID)

    def test_search_result_round_trips_to_download(self, service, mock_bazarr_client):
        info = service.search_movie({"tmdb": "27205"}, two_letter_code="de")[0]

        service.download(info.id)

        sent = mock_bazarr_client.download_movie_subtitle.call_args.args[0]
        assert sent.provider == "podnapisi"
        assert sent.subtitle == "token|with/special chars"
        assert sent.hi == "True"
