"""Integration tests for the /api/v1 endpoints."""

import os

from config import reload_settings
from error_handler import BazarrConnectionError
from models import ConnectionTestResult, SearchKey


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["searches"]["in_flight"] == 0
        assert data["cache"]["backend"] == "memory"

    def test_health_is_exempt_from_auth(self, client):
        os.environ["SUBRELAY_API_KEY"] = "secret"
        reload_settings()
        assert client.get("/api/v1/health").status_code == 200


class TestAuth:

    def test_key_required_when_configured(self, client):
        os.environ["SUBRELAY_API_KEY"] = "secret"
        reload_settings()

        assert client.get("/api/v1/languages").status_code == 401
        assert client.get("/api/v1/languages", headers={"X-Api-Key": "wrong"}).status_code == 401
        assert client.get("/api/v1/languages", headers={"X-Api-Key": "secret"}).status_code == 200
        assert client.get("/api/v1/languages?apikey=secret").status_code == 200

    def test_open_when_no_key(self, client):
        assert client.get("/api/v1/languages").status_code == 200


class TestSearchRoutes:

    def test_raw_search_by_bazarr_id(self, client, mock_bazarr_client):
        response = client.get("/api/v1/subtitles/search/movie/1?language=de")

        assert response.status_code == 200
        data = response.get_json()
        assert [s["language"] for s in data["subtitles"]] == ["de", "ger"]
        assert data["from_cache"] is False
        assert data["search_in_progress"] is False
        mock_bazarr_client.search.assert_called_once_with(SearchKey.movie(1))

    def test_raw_search_second_call_is_cached(self, client, mock_bazarr_client):
        client.get("/api/v1/subtitles/search/episode/101?language=en")
        data = client.get("/api/v1/subtitles/search/episode/101?language=en").get_json()

        assert data["from_cache"] is True
        mock_bazarr_client.search.assert_called_once()

    def test_raw_search_unknown_kind(self, client):
        response = client.get("/api/v1/subtitles/search/album/1")
        assert response.status_code == 400

    def test_raw_search_bad_timeout(self, client):
        assert client.get("/api/v1/subtitles/search/movie/1?timeout=soon").status_code == 400
        assert client.get("/api/v1/subtitles/search/movie/1?timeout=-1").status_code == 400

    def test_movie_search(self, client):
        response = client.get("/api/v1/subtitles/movie?tmdb=27205&language=eng&two_letter=en")

        assert response.status_code == 200
        subtitles = response.get_json()["subtitles"]
        assert len(subtitles) == 2
        assert all(s["id"].startswith("movie|1|") for s in subtitles)
        assert subtitles[0]["provider_name"] == "Bazarr"

    def test_movie_not_found(self, client):
        response = client.get("/api/v1/subtitles/movie?tmdb=1")
        assert response.status_code == 200
        assert response.get_json() == {"subtitles": []}

    def test_episode_search(self, client, mock_bazarr_client):
        response = client.get("/api/v1/subtitles/episode?tvdb=81189&season=1&episode=2&two_letter=en")

        assert response.status_code == 200
        mock_bazarr_client.search.assert_called_once_with(SearchKey.episode(102))

    def test_episode_search_requires_season_and_episode(self, client):
        assert client.get("/api/v1/subtitles/episode?tvdb=81189").status_code == 400
        assert client.get("/api/v1/subtitles/episode?tvdb=81189&season=x&episode=1").status_code == 400

    def test_upstream_failure_is_structured_error(self, client, mock_bazarr_client):
        mock_bazarr_client.search.side_effect = BazarrConnectionError()

        response = client.get("/api/v1/subtitles/search/movie/1?timeout=0")

        assert response.status_code == 503
        data = response.get_json()
        assert data["code"] == "BAZARR_002"
        assert "request_id" in data


class TestDownloadRoute:

    def test_download(self, client, mock_bazarr_client):
        response = client.post("/api/v1/subtitles/download", json={"id": "movie|1|p|False|False|tok"})

        assert response.status_code == 200
        assert response.get_json()["status"] == "downloaded"
        mock_bazarr_client.download_movie_subtitle.assert_called_once()

    def test_download_missing_id(self, client):
        assert client.post("/api/v1/subtitles/download", json={}).status_code == 400

    def test_download_invalid_id(self, client):
        response = client.post("/api/v1/subtitles/download", json={"id": "garbage"})
        assert response.status_code == 400
        assert response.get_json()["code"] == "SUB_001"

    def test_download_rejected(self, client, mock_bazarr_client):
        mock_bazarr_client.download_movie_subtitle.return_value = False
        response = client.post("/api/v1/subtitles/download", json={"id": "movie|1|p|False|False|tok"})
        assert response.status_code == 502
        assert response.get_json()["code"] == "SUB_002"


class TestSystemRoutes:

    def test_languages(self, client):
        data = client.get("/api/v1/languages").get_json()
        assert [lang["code2"] for lang in data["languages"]] == ["en", "de", "fr"]

    def test_test_connection(self, client, mock_bazarr_client):
        mock_bazarr_client.test_connection.return_value = ConnectionTestResult(False, "Connection failed: refused")

        data = client.post("/api/v1/test-connection").get_json()

        assert data["success"] is False
        assert data["message"] == "Connection failed: refused"

    def test_config_masks_keys(self, client):
        os.environ["SUBRELAY_BAZARR_API_KEY"] = "abc"
        reload_settings()

        data = client.get("/api/v1/config").get_json()

        assert data["bazarr_api_key"] == "***configured***"
        assert data["search_timeout_seconds"] == 25

    def test_metrics(self, client):
        client.get("/api/v1/subtitles/search/movie/1")

        response = client.get("/api/v1/metrics")

        assert response.status_code == 200
        assert b"subrelay_search_requests_total" in response.data
