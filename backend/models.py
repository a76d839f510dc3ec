"""Data models shared by the Bazarr client, catalog and search coordinator.

Bazarr speaks camelCase JSON for catalog entries and snake_case for
provider search results; the from_api() constructors accept the raw dicts
and tolerate missing or null fields.
"""

from dataclasses import asdict, dataclass, field
from enum import StrEnum


class ItemKind(StrEnum):
    MOVIE = "movie"
    EPISODE = "episode"


@dataclass(frozen=True)
class SearchKey:
    """Logical identity of a subtitle search.

    item_id is Bazarr's internal id: the Radarr id for movies, the Sonarr
    episode id for episodes.
    """

    kind: ItemKind
    item_id: int

    def __post_init__(self):
        object.__setattr__(self, "kind", ItemKind(self.kind))
        object.__setattr__(self, "item_id", int(self.item_id))

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.item_id}"

    @classmethod
    def movie(cls, radarr_id: int) -> "SearchKey":
        return cls(ItemKind.MOVIE, radarr_id)

    @classmethod
    def episode(cls, sonarr_episode_id: int) -> "SearchKey":
        return cls(ItemKind.EPISODE, sonarr_episode_id)


def _opt_int(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _flag(value) -> str | None:
    """Bazarr reports hi/forced as "True"/"False" strings; keep that shape."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


# ─── Catalog ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BazarrMovie:
    radarr_id: int
    title: str = ""
    tmdb_id: int | None = None
    imdb_id: str | None = None
    path: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "BazarrMovie":
        return cls(
            radarr_id=int(data.get("radarrId") or 0),
            title=data.get("title") or "",
            tmdb_id=_opt_int(data.get("tmdbId")),
            imdb_id=data.get("imdbId"),
            path=data.get("path"),
        )


@dataclass(frozen=True)
class BazarrSeries:
    sonarr_series_id: int
    title: str = ""
    tvdb_id: int | None = None
    imdb_id: str | None = None
    path: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "BazarrSeries":
        return cls(
            sonarr_series_id=int(data.get("sonarrSeriesId") or 0),
            title=data.get("title") or "",
            tvdb_id=_opt_int(data.get("tvdbId")),
            imdb_id=data.get("imdbId"),
            path=data.get("path"),
        )


@dataclass(frozen=True)
class BazarrEpisode:
    sonarr_episode_id: int
    sonarr_series_id: int
    season: int = 0
    episode: int = 0
    title: str = ""
    path: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "BazarrEpisode":
        return cls(
            sonarr_episode_id=int(data.get("sonarrEpisodeId") or 0),
            sonarr_series_id=int(data.get("sonarrSeriesId") or 0),
            season=int(data.get("season") or 0),
            episode=int(data.get("episode") or 0),
            title=data.get("title") or "",
            path=data.get("path"),
        )


@dataclass(frozen=True)
class BazarrLanguage:
    code2: str
    code3: str = ""
    name: str = ""
    enabled: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "BazarrLanguage":
        return cls(
            code2=data.get("code2") or "",
            code3=data.get("code3") or "",
            name=data.get("name") or "",
            enabled=bool(data.get("enabled", False)),
        )


# ─── Search ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SubtitleCandidate:
    """One subtitle offered by a Bazarr provider search."""

    provider: str
    subtitle: str  # Opaque provider token, sent back to download
    language: str
    score: int = 0
    orig_score: int = 0
    uploader: str | None = None
    hearing_impaired: str | None = None
    forced: str | None = None
    original_format: str | None = None
    release_info: tuple[str, ...] = ()
    matches: tuple[str, ...] = ()
    dont_matches: tuple[str, ...] = ()
    url: str | None = None

    @property
    def release(self) -> str:
        return ", ".join(self.release_info) if self.release_info else self.provider

    @property
    def is_hash_match(self) -> bool:
        return "hash" in self.matches

    @classmethod
    def from_api(cls, data: dict) -> "SubtitleCandidate":
        return cls(
            provider=data.get("provider") or "",
            subtitle=str(data.get("subtitle") or ""),
            language=data.get("language") or "",
            score=_opt_int(data.get("score")) or 0,
            orig_score=_opt_int(data.get("orig_score")) or 0,
            uploader=data.get("uploader"),
            hearing_impaired=_flag(data.get("hearing_impaired")),
            forced=_flag(data.get("forced")),
            original_format=_flag(data.get("original_format")),
            release_info=tuple(data.get("release_info") or ()),
            matches=tuple(data.get("matches") or ()),
            dont_matches=tuple(data.get("dont_matches") or ()),
            url=data.get("url"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("release_info", "matches", "dont_matches"):
            data[key] = list(data[key])
        return data


@dataclass(frozen=True)
class SearchResult:
    """Outcome of SearchCoordinator.search().

    At most one of from_cache / search_in_progress is set. An in-progress
    result always carries an empty candidate list.
    """

    subtitles: tuple[SubtitleCandidate, ...] = ()
    from_cache: bool = False
    search_in_progress: bool = False

    @classmethod
    def in_progress(cls) -> "SearchResult":
        return cls(search_in_progress=True)

    def to_dict(self) -> dict:
        return {
            "subtitles": [s.to_dict() for s in self.subtitles],
            "from_cache": self.from_cache,
            "search_in_progress": self.search_in_progress,
        }


@dataclass
class RemoteSubtitleInfo:
    """A search hit shaped for display by a media server client."""

    id: str
    name: str
    provider_name: str = "Bazarr"
    format: str | None = None
    language: str | None = None
    comment: str = ""
    is_hash_match: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DownloadRequest:
    provider: str
    subtitle: str
    hi: str = "False"
    forced: str = "False"
    original_format: str = "False"
    radarr_id: int = 0
    sonarr_series_id: int = 0
    sonarr_episode_id: int = 0


@dataclass
class ConnectionTestResult:
    success: bool
    message: str = ""
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)
