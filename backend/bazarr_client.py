"""Bazarr REST API client.

Thin transport over requests: builds authenticated requests, validates
that Bazarr actually answered with JSON, and parses payloads into models.
Failures are raised as BazarrError subtypes; nothing here caches or
retries searches. Catalog caching lives in catalog.py, search coalescing
in search_coordinator.py.
"""

import logging
from typing import Optional

import requests

from error_handler import (
    BazarrConnectionError,
    BazarrError,
    BazarrHTTPError,
    BazarrRedirectError,
    BazarrResponseError,
)
from http_session import create_session
from models import (
    BazarrEpisode,
    BazarrLanguage,
    BazarrMovie,
    BazarrSeries,
    ConnectionTestResult,
    DownloadRequest,
    ItemKind,
    SearchKey,
    SubtitleCandidate,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
SEARCH_TIMEOUT = 1800
MAX_RETRIES = 3
PREVIEW_CHARS = 300


def create_bazarr_client(settings) -> "BazarrClient":
    """Build a client from Settings."""
    return BazarrClient(
        settings.bazarr_url,
        settings.bazarr_api_key,
        request_timeout=settings.request_timeout,
        search_timeout=settings.search_request_timeout or None,
        max_retries=settings.max_retries,
    )


def _preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _unwrap(payload) -> list:
    """Bazarr wraps most listings as {"data": [...]}; data may be null."""
    if isinstance(payload, dict):
        return payload.get("data") or []
    if isinstance(payload, list):
        return payload
    return []


class BazarrClient:
    """Bazarr REST API Client."""

    def __init__(
        self,
        url: str,
        api_key: str,
        request_timeout: float = REQUEST_TIMEOUT,
        search_timeout: Optional[float] = SEARCH_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        session: Optional[requests.Session] = None,
        search_session: Optional[requests.Session] = None,
    ):
        self.url = (url or "").rstrip("/")
        self.api_key = api_key or ""
        self.session = session or create_session(
            self.api_key, max_retries=max_retries, timeout=request_timeout,
        )
        # Searches are never retried: one call per search, however slow.
        self.search_session = search_session or create_session(
            self.api_key, max_retries=0, timeout=search_timeout,
        )

    # ─── Transport ──────────────────────────────────────────────────────────

    def _request(self, method: str, path: str, session=None, **kwargs) -> requests.Response:
        session = session or self.session
        url = f"{self.url}{path}"
        logger.debug("Bazarr %s %s (api key length %d)", method, url, len(self.api_key))
        try:
            return session.request(method, url, **kwargs)
        except requests.Timeout as e:
            raise BazarrConnectionError(
                f"Bazarr {method} {path} timed out", context={"url": url},
            ) from e
        except requests.ConnectionError as e:
            raise BazarrConnectionError(
                f"Cannot connect to Bazarr at {self.url}: {e}", context={"url": url},
            ) from e
        except requests.RequestException as e:
            raise BazarrError(f"Bazarr {method} {path} failed: {e}") from e

    def _validate_response(self, resp: requests.Response, path: str) -> None:
        """Make sure Bazarr itself answered, with JSON and a success status."""
        status = resp.status_code
        if 300 <= status < 400:
            logger.error("Bazarr returned redirect status %d for %s", status, path)
            raise BazarrRedirectError(
                f"Bazarr returned a redirect ({status}) for {path}. "
                "Check your Bazarr URL configuration.",
                context={"status_code": status, "location": resp.headers.get("Location", "")},
            )

        content_type = (resp.headers.get("Content-Type") or "").split(";")[0].strip().lower()
        if "html" in content_type:
            preview = _preview(resp.text or "")
            logger.error(
                "Bazarr returned HTML instead of JSON for %s. Content-Type: %s. Preview: %s",
                path, content_type, preview,
            )
            raise BazarrResponseError(
                "Bazarr returned HTML instead of JSON. "
                f"Response preview: {_preview(resp.text or '', 100)}",
                context={"endpoint": path, "content_type": content_type},
            )

        if content_type and "json" not in content_type and "text" not in content_type:
            logger.warning("Unexpected content type %s for %s", content_type, path)

        if status >= 400:
            raise BazarrHTTPError(
                f"Bazarr HTTP error {status} on {path}",
                status_code=status,
                context={"endpoint": path},
            )

    def _get_json(self, path: str, params=None, session=None, timeout=None):
        kwargs = {"params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        resp = self._request("GET", path, session=session, **kwargs)
        self._validate_response(resp, path)
        try:
            return resp.json()
        except ValueError as e:
            raise BazarrResponseError(
                f"Bazarr returned invalid JSON for {path}",
                context={"endpoint": path},
            ) from e

    # ─── Catalog ────────────────────────────────────────────────────────────

    def get_movies(self) -> tuple[BazarrMovie, ...]:
        return tuple(BazarrMovie.from_api(m) for m in _unwrap(self._get_json("/api/movies")))

    def get_series(self) -> tuple[BazarrSeries, ...]:
        return tuple(BazarrSeries.from_api(s) for s in _unwrap(self._get_json("/api/series")))

    def get_episodes(self, series_id: int) -> tuple[BazarrEpisode, ...]:
        data = self._get_json("/api/episodes", params={"seriesid[]": series_id})
        return tuple(BazarrEpisode.from_api(e) for e in _unwrap(data))

    def get_languages(self) -> tuple[BazarrLanguage, ...]:
        # Unlike the listings, this endpoint returns a bare array.
        return tuple(BazarrLanguage.from_api(lang) for lang in _unwrap(self._get_json("/api/system/languages")))

    # ─── Provider search ────────────────────────────────────────────────────

    def _search(self, path: str, params: dict, label: str) -> tuple[SubtitleCandidate, ...]:
        logger.info("Searching subtitles for %s. This may take a while...", label)
        data = self._get_json(path, params=params, session=self.search_session)
        results = tuple(SubtitleCandidate.from_api(s) for s in _unwrap(data))
        logger.info("Found %d subtitles for %s", len(results), label)
        return results

    def search_movie_subtitles(self, radarr_id: int) -> tuple[SubtitleCandidate, ...]:
        """Ask Bazarr to query every provider for a movie (slow: minutes)."""
        return self._search("/api/providers/movies", {"radarrid": radarr_id}, f"movie {radarr_id}")

    def search_episode_subtitles(self, sonarr_episode_id: int) -> tuple[SubtitleCandidate, ...]:
        """Ask Bazarr to query every provider for an episode (slow: minutes)."""
        return self._search(
            "/api/providers/episodes", {"episodeid": sonarr_episode_id}, f"episode {sonarr_episode_id}",
        )

    def search(self, key: SearchKey) -> tuple[SubtitleCandidate, ...]:
        """Run the upstream search for a SearchKey."""
        if key.kind == ItemKind.MOVIE:
            return self.search_movie_subtitles(key.item_id)
        return self.search_episode_subtitles(key.item_id)

    # ─── Downloads ──────────────────────────────────────────────────────────

    def _post_download(self, path: str, payload: dict, label: str) -> bool:
        resp = self._request("POST", path, json=payload, session=self.search_session)
        if 200 <= resp.status_code < 300:
            logger.info("Successfully downloaded subtitle for %s", label)
            return True
        logger.warning(
            "Failed to download subtitle for %s: %d - %s",
            label, resp.status_code, _preview(resp.text or ""),
        )
        return False

    def download_movie_subtitle(self, request: DownloadRequest) -> bool:
        logger.info("Downloading subtitle for movie %d from %s", request.radarr_id, request.provider)
        return self._post_download(
            "/api/providers/movies",
            {
                "radarrid": request.radarr_id,
                "provider": request.provider,
                "subtitle": request.subtitle,
                "hi": request.hi,
                "forced": request.forced,
                "original_format": request.original_format,
            },
            f"movie {request.radarr_id}",
        )

    def download_episode_subtitle(self, request: DownloadRequest) -> bool:
        logger.info(
            "Downloading subtitle for episode %d from %s",
            request.sonarr_episode_id, request.provider,
        )
        return self._post_download(
            "/api/providers/episodes",
            {
                "seriesid": request.sonarr_series_id,
                "episodeid": request.sonarr_episode_id,
                "provider": request.provider,
                "subtitle": request.subtitle,
                "hi": request.hi,
                "forced": request.forced,
                "original_format": request.original_format,
            },
            f"episode {request.sonarr_episode_id}",
        )

    # ─── Health ─────────────────────────────────────────────────────────────

    def test_connection(self) -> ConnectionTestResult:
        """Check that Bazarr is reachable and answers API calls. Never raises."""
        logger.info("Testing Bazarr connection - URL: %s, API key length: %d", self.url, len(self.api_key))
        try:
            languages = self.get_languages()
        except (BazarrConnectionError, BazarrHTTPError) as e:
            logger.error("Failed to connect to Bazarr at %s: %s", self.url, e)
            return ConnectionTestResult(False, f"Connection failed: {e}", {"code": e.code})
        except BazarrError as e:
            logger.error("Bazarr at %s answered unexpectedly: %s", self.url, e)
            return ConnectionTestResult(False, f"Unexpected error: {e}", {"code": e.code})
        except Exception as e:
            logger.error(
                "Unexpected error testing Bazarr connection at %s: %s - %s",
                self.url, type(e).__name__, e,
            )
            return ConnectionTestResult(False, f"Unexpected error: {e}")

        logger.info("Bazarr connection test succeeded with %d languages", len(languages))
        return ConnectionTestResult(
            True, f"Connected successfully. {len(languages)} languages available.",
        )
