"""Movie and episode subtitle search as seen by a media server.

Resolves external IDs to Bazarr IDs, runs the coordinated search, and turns
the candidates into RemoteSubtitleInfo entries whose IDs carry everything
needed to download the subtitle later:

    <kind>|<bazarr id>|<provider>|<hi>|<forced>|<url-quoted subtitle token>
"""

import logging
from typing import Optional
from urllib.parse import quote, unquote

from error_handler import DownloadError, InvalidSubtitleIdError
from language import format_subtitle_comment, get_subtitle_format, resolve_language_code
from models import DownloadRequest, ItemKind, RemoteSubtitleInfo, SearchKey, SearchResult

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = "search_in_progress"
ID_SEPARATOR = "|"


def placeholder_result() -> RemoteSubtitleInfo:
    return RemoteSubtitleInfo(
        id=PLACEHOLDER_ID,
        name="Search in progress - results typically ready in 5-15 minutes",
        comment=(
            "Bazarr is searching multiple providers in the background. "
            "Search again later to see cached results."
        ),
    )


def encode_subtitle_id(kind: ItemKind, item_id: int, candidate) -> str:
    return ID_SEPARATOR.join([
        ItemKind(kind).value,
        str(item_id),
        candidate.provider,
        candidate.hearing_impaired or "False",
        candidate.forced or "False",
        quote(candidate.subtitle, safe=""),
    ])


def decode_subtitle_id(subtitle_id: str) -> tuple[ItemKind, DownloadRequest]:
    """Parse an encoded subtitle ID back into a download request.

    Raises:
        InvalidSubtitleIdError: Wrong shape, unknown kind or non-numeric ID.
    """
    parts = (subtitle_id or "").split(ID_SEPARATOR)
    if len(parts) < 6:
        raise InvalidSubtitleIdError(f"Invalid subtitle ID format: {subtitle_id}")

    try:
        kind = ItemKind(parts[0])
    except ValueError:
        raise InvalidSubtitleIdError(f"Unknown item type: {parts[0]}") from None
    try:
        item_id = int(parts[1])
    except ValueError:
        raise InvalidSubtitleIdError(f"Invalid Bazarr ID in subtitle ID: {parts[1]}") from None

    request = DownloadRequest(
        provider=parts[2],
        hi=parts[3],
        forced=parts[4],
        subtitle=unquote(ID_SEPARATOR.join(parts[5:])),
    )
    if kind == ItemKind.MOVIE:
        request.radarr_id = item_id
    else:
        request.sonarr_episode_id = item_id
    return kind, request


def _provider_id(provider_ids: dict, name: str) -> Optional[str]:
    """Case-insensitive provider ID lookup ("Tmdb", "tmdb", "TMDB")."""
    for key, value in (provider_ids or {}).items():
        if key.lower() == name and value:
            return str(value)
    return None


def _as_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class SubtitleSearchService:
    """Resolve, search, filter and shape subtitles for movies and episodes."""

    def __init__(self, catalog, coordinator, client, settings):
        self.catalog = catalog
        self.coordinator = coordinator
        self.client = client
        self.settings = settings

    def _timeout(self, timeout_seconds: Optional[int]) -> int:
        return self.settings.search_timeout_seconds if timeout_seconds is None else timeout_seconds

    def _shape(
        self, kind: ItemKind, item_id: int, result: SearchResult, language_code: str,
    ) -> list[RemoteSubtitleInfo]:
        if result.search_in_progress:
            logger.info("%s search in progress - returning placeholder", kind.value.capitalize())
            return [placeholder_result()]

        logger.info(
            "%s subtitle search: %d subtitles for language '%s'%s",
            kind.value.capitalize(), len(result.subtitles), language_code,
            " (from cache)" if result.from_cache else "",
        )
        return [
            RemoteSubtitleInfo(
                id=encode_subtitle_id(kind, item_id, s),
                name=s.release,
                format=get_subtitle_format(s.original_format),
                language=s.language,
                comment=format_subtitle_comment(s),
                is_hash_match=s.is_hash_match,
            )
            for s in result.subtitles
        ]

    # ─── Movies ─────────────────────────────────────────────────────────────

    def resolve_movie(self, provider_ids: dict) -> Optional[int]:
        """TMDB first, then IMDB."""
        radarr_id = None
        tmdb_id = _as_int(_provider_id(provider_ids, "tmdb"))
        if tmdb_id is not None:
            radarr_id = self.catalog.find_radarr_id_by_tmdb(tmdb_id)

        imdb_id = _provider_id(provider_ids, "imdb")
        if radarr_id is None and imdb_id:
            radarr_id = self.catalog.find_radarr_id_by_imdb(imdb_id)
        return radarr_id

    def search_movie(
        self,
        provider_ids: dict,
        name: Optional[str] = None,
        language: Optional[str] = None,
        two_letter_code: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> list[RemoteSubtitleInfo]:
        if not self.settings.enable_for_movies:
            logger.debug("Movie subtitle search disabled in settings")
            return []

        radarr_id = self.resolve_movie(provider_ids)
        if radarr_id is None:
            logger.warning("Movie not found in Bazarr: %s", name)
            return []

        language_code = resolve_language_code(language, two_letter_code)
        result = self.coordinator.search(
            SearchKey.movie(radarr_id), language_code, self._timeout(timeout_seconds),
        )
        return self._shape(ItemKind.MOVIE, radarr_id, result, language_code)

    # ─── Episodes ───────────────────────────────────────────────────────────

    def resolve_episode(
        self,
        provider_ids: dict,
        series_name: Optional[str],
        season: Optional[int],
        episode: Optional[int],
    ) -> Optional[int]:
        """TVDB, then IMDB, then series title. All need season and episode."""
        if season is None or episode is None:
            return None

        episode_id = None
        tvdb_id = _as_int(_provider_id(provider_ids, "tvdb"))
        if tvdb_id is not None:
            logger.debug("Trying TVDB ID %d, S%02dE%02d", tvdb_id, season, episode)
            episode_id = self.catalog.find_sonarr_episode_id(tvdb_id, season, episode)

        # IMDB IDs on episodes are series-level
        imdb_id = _provider_id(provider_ids, "imdb")
        if episode_id is None and imdb_id:
            logger.debug("Trying IMDB ID %s, S%02dE%02d", imdb_id, season, episode)
            episode_id = self.catalog.find_sonarr_episode_id_by_imdb(imdb_id, season, episode)

        if episode_id is None and series_name:
            logger.info(
                "ID lookups failed, trying title match for '%s' S%02dE%02d", series_name, season, episode,
            )
            episode_id = self.catalog.find_sonarr_episode_id_by_title(series_name, season, episode)
        return episode_id

    def search_episode(
        self,
        provider_ids: dict,
        series_name: Optional[str] = None,
        season: Optional[int] = None,
        episode: Optional[int] = None,
        language: Optional[str] = None,
        two_letter_code: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> list[RemoteSubtitleInfo]:
        if not self.settings.enable_for_episodes:
            logger.debug("Episode subtitle search disabled in settings")
            return []

        episode_id = self.resolve_episode(provider_ids, series_name, season, episode)
        if episode_id is None:
            logger.warning("Episode not found in Bazarr: %s S%sE%s", series_name, season, episode)
            return []

        language_code = resolve_language_code(language, two_letter_code)
        result = self.coordinator.search(
            SearchKey.episode(episode_id), language_code, self._timeout(timeout_seconds),
        )
        return self._shape(ItemKind.EPISODE, episode_id, result, language_code)

    # ─── Download ───────────────────────────────────────────────────────────

    def download(self, subtitle_id: str) -> DownloadRequest:
        """Ask Bazarr to download the subtitle behind an encoded ID.

        Bazarr writes the file next to the media itself.

        Raises:
            InvalidSubtitleIdError: subtitle_id cannot be decoded.
            ItemNotFoundError: The episode's series is unknown.
            DownloadError: Bazarr rejected the download.
        """
        if subtitle_id == PLACEHOLDER_ID:
            raise InvalidSubtitleIdError("The search is still in progress; nothing to download yet")

        kind, request = decode_subtitle_id(subtitle_id)
        logger.info("Downloading subtitle from Bazarr: %s %s via %s", kind.value, subtitle_id, request.provider)

        if kind == ItemKind.MOVIE:
            success = self.client.download_movie_subtitle(request)
        else:
            request.sonarr_series_id = self.catalog.get_series_id_by_episode_id(request.sonarr_episode_id)
            success = self.client.download_episode_subtitle(request)

        if not success:
            raise DownloadError(
                "Failed to download subtitle from Bazarr",
                context={"kind": kind.value, "provider": request.provider},
            )
        return request
