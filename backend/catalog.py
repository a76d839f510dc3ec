"""Cached Bazarr catalog and ID resolution.

Media servers identify items by TMDB / IMDB / TVDB IDs or titles; Bazarr
searches by Radarr movie IDs and Sonarr episode IDs. CatalogService fetches
Bazarr's movie, series and episode listings (cached for the catalog TTL,
5 minutes by default, replaced wholesale on expiry) and maps one to the
other. Lookups that find nothing return None.
"""

import logging
from typing import Callable, Optional, TypeVar

from cache import CacheBackend
from error_handler import ItemNotFoundError
from models import BazarrEpisode, BazarrMovie, BazarrSeries

logger = logging.getLogger(__name__)

CATALOG_TTL = 300  # seconds
MOVIES_CACHE_KEY = "catalog:movies"
SERIES_CACHE_KEY = "catalog:series"
EPISODES_CACHE_KEY_PREFIX = "catalog:episodes:"

T = TypeVar("T")


def _same_id(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class CatalogService:
    """Bazarr movie/series/episode listings with read-through caching."""

    def __init__(self, client, cache: CacheBackend, ttl_seconds: float = CATALOG_TTL):
        self.client = client
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def _cached(self, key: str, fetch: Callable[[], tuple[T, ...]], label: str) -> tuple[T, ...]:
        try:
            cached = self.cache.get(key)
        except Exception as e:
            logger.warning("Catalog cache lookup failed for %s, refetching: %s", key, e)
            cached = None
        if cached is not None:
            logger.debug("Returning cached %s", label)
            return cached

        logger.info("Fetching %s from Bazarr", label)
        items = tuple(fetch())
        try:
            self.cache.set(key, items, self.ttl_seconds)
        except Exception as e:
            logger.warning("Could not cache %s: %s", label, e)
        logger.info("Cached %d %s from Bazarr", len(items), label)
        return items

    # ─── Listings ───────────────────────────────────────────────────────────

    def get_movies(self) -> tuple[BazarrMovie, ...]:
        return self._cached(MOVIES_CACHE_KEY, self.client.get_movies, "movies")

    def get_series(self) -> tuple[BazarrSeries, ...]:
        return self._cached(SERIES_CACHE_KEY, self.client.get_series, "series")

    def get_episodes(self, series_id: int) -> tuple[BazarrEpisode, ...]:
        return self._cached(
            f"{EPISODES_CACHE_KEY_PREFIX}{series_id}",
            lambda: self.client.get_episodes(series_id),
            f"episodes for series {series_id}",
        )

    # ─── Movies ─────────────────────────────────────────────────────────────

    def find_radarr_id_by_tmdb(self, tmdb_id: int) -> Optional[int]:
        movie = next((m for m in self.get_movies() if m.tmdb_id == tmdb_id), None)
        if movie is None:
            logger.debug("No movie found in Bazarr for TMDB ID %s", tmdb_id)
            return None
        logger.debug("Found Radarr ID %d for TMDB ID %s", movie.radarr_id, tmdb_id)
        return movie.radarr_id

    def find_radarr_id_by_imdb(self, imdb_id: str) -> Optional[int]:
        movie = next((m for m in self.get_movies() if _same_id(m.imdb_id, imdb_id)), None)
        if movie is None:
            logger.debug("No movie found in Bazarr for IMDB ID %s", imdb_id)
            return None
        logger.debug("Found Radarr ID %d for IMDB ID %s", movie.radarr_id, imdb_id)
        return movie.radarr_id

    def get_movie_by_radarr_id(self, radarr_id: int) -> Optional[BazarrMovie]:
        return next((m for m in self.get_movies() if m.radarr_id == radarr_id), None)

    # ─── Episodes ───────────────────────────────────────────────────────────

    def _find_episode_in_series(self, show: BazarrSeries, season: int, episode: int) -> Optional[int]:
        episodes = self.get_episodes(show.sonarr_series_id)
        ep = next((e for e in episodes if e.season == season and e.episode == episode), None)
        if ep is None:
            logger.warning(
                "No episode found in Bazarr for %s S%02dE%02d (%d episodes known)",
                show.title, season, episode, len(episodes),
            )
            return None
        logger.debug("Found Sonarr Episode ID %d for S%02dE%02d", ep.sonarr_episode_id, season, episode)
        return ep.sonarr_episode_id

    def find_sonarr_episode_id(self, tvdb_id: int, season: int, episode: int) -> Optional[int]:
        series = self.get_series()
        show = next((s for s in series if s.tvdb_id == tvdb_id), None)
        if show is None:
            logger.warning(
                "No series found in Bazarr for TVDB ID %s among %d series", tvdb_id, len(series),
            )
            return None
        logger.debug(
            "Found series %s (SonarrSeriesId=%d) for TVDB ID %s",
            show.title, show.sonarr_series_id, tvdb_id,
        )
        return self._find_episode_in_series(show, season, episode)

    def find_sonarr_episode_id_by_imdb(self, imdb_id: str, season: int, episode: int) -> Optional[int]:
        show = next((s for s in self.get_series() if _same_id(s.imdb_id, imdb_id)), None)
        if show is None:
            logger.debug("No series found in Bazarr for IMDB ID %s", imdb_id)
            return None
        logger.debug(
            "Found series '%s' (SonarrSeriesId=%d) for IMDB ID %s",
            show.title, show.sonarr_series_id, imdb_id,
        )
        return self._find_episode_in_series(show, season, episode)

    def find_sonarr_episode_id_by_title(self, series_title: str, season: int, episode: int) -> Optional[int]:
        """Match a series by title: exact (case-insensitive) first, then containment.

        Containment handles "Landman" vs "Landman (2024)" in either direction.
        """
        if not series_title:
            return None
        series = self.get_series()
        wanted = series_title.lower()

        show = next((s for s in series if s.title.lower() == wanted), None)
        if show is None:
            show = next(
                (s for s in series if s.title and (wanted in s.title.lower() or s.title.lower() in wanted)),
                None,
            )
        if show is None:
            logger.warning(
                "No series found in Bazarr matching title '%s'. Available series: %s",
                series_title, ", ".join(s.title for s in series),
            )
            return None

        logger.info(
            "Found series '%s' (SonarrSeriesId=%d) matching '%s'",
            show.title, show.sonarr_series_id, series_title,
        )
        return self._find_episode_in_series(show, season, episode)

    def _locate_episode(self, sonarr_episode_id: int):
        # Bazarr has no episode-by-id endpoint: walk every series.
        for show in self.get_series():
            for ep in self.get_episodes(show.sonarr_series_id):
                if ep.sonarr_episode_id == sonarr_episode_id:
                    return show, ep
        return None, None

    def get_episode_by_sonarr_id(self, sonarr_episode_id: int) -> Optional[BazarrEpisode]:
        return self._locate_episode(sonarr_episode_id)[1]

    def get_series_id_by_episode_id(self, sonarr_episode_id: int) -> int:
        """Find the Sonarr series owning an episode.

        Raises:
            ItemNotFoundError: No known series contains the episode.
        """
        show, _ = self._locate_episode(sonarr_episode_id)
        if show is None:
            logger.warning("Could not find series for episode ID %d", sonarr_episode_id)
            raise ItemNotFoundError(
                f"Could not find series for episode ID {sonarr_episode_id}",
                context={"sonarr_episode_id": sonarr_episode_id},
            )
        logger.debug("Found Series ID %d for Episode ID %d", show.sonarr_series_id, sonarr_episode_id)
        return show.sonarr_series_id

    def invalidate(self) -> int:
        """Drop every cached listing. Returns the number of entries removed."""
        return self.cache.clear(prefix="catalog:")
