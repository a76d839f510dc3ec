"""Subtitle search routes: coordinated Bazarr search and downloads.

Endpoints:
  GET  /subtitles/search/<kind>/<item_id>  : raw coordinator result for a Bazarr ID
  GET  /subtitles/movie                    : search by TMDB / IMDB ID
  GET  /subtitles/episode                  : search by TVDB / IMDB ID or series title
  POST /subtitles/download                 : download a subtitle by encoded ID
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from config import get_settings
from models import ItemKind, SearchKey

bp = Blueprint("subtitles", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


class _BadParam(ValueError):
    pass


def _int_arg(name: str, default=None):
    raw = request.args.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise _BadParam(f"{name} must be an integer") from None


def _timeout_arg():
    timeout = _int_arg("timeout")
    if timeout is not None and timeout < 0:
        raise _BadParam("timeout must be >= 0")
    return timeout


@bp.errorhandler(_BadParam)
def _bad_param(error):
    return jsonify({"error": str(error)}), 400


@bp.route("/subtitles/search/<kind>/<int:item_id>", methods=["GET"])
def search_by_bazarr_id(kind: str, item_id: int):
    """Run (or join) a Bazarr provider search for a Radarr/Sonarr ID.
    ---
    get:
      tags:
        - Subtitles
      summary: Coordinated search by Bazarr ID
      parameters:
        - in: path
          name: kind
          schema:
            type: string
            enum: [movie, episode]
        - in: path
          name: item_id
          schema:
            type: integer
        - in: query
          name: language
          schema:
            type: string
        - in: query
          name: timeout
          description: Seconds to wait before returning a placeholder (0 = wait)
          schema:
            type: integer
      responses:
        200:
          description: Filtered subtitles, or search_in_progress=true
    """
    try:
        item_kind = ItemKind(kind)
    except ValueError:
        return jsonify({"error": f"Unknown item type: {kind}"}), 400

    timeout = _timeout_arg()
    if timeout is None:
        timeout = get_settings().search_timeout_seconds

    result = current_app.search_coordinator.search(
        SearchKey(item_kind, item_id), request.args.get("language"), timeout,
    )
    return jsonify(result.to_dict())


@bp.route("/subtitles/movie", methods=["GET"])
def search_movie():
    """Search subtitles for a movie identified by TMDB / IMDB ID.
    ---
    get:
      tags:
        - Subtitles
      summary: Movie subtitle search
      parameters:
        - {in: query, name: tmdb, schema: {type: integer}}
        - {in: query, name: imdb, schema: {type: string}}
        - {in: query, name: name, schema: {type: string}}
        - {in: query, name: language, schema: {type: string}}
        - {in: query, name: two_letter, schema: {type: string}}
        - {in: query, name: timeout, schema: {type: integer}}
      responses:
        200:
          description: List of remote subtitle infos
    """
    provider_ids = {
        "tmdb": request.args.get("tmdb", ""),
        "imdb": request.args.get("imdb", ""),
    }
    results = current_app.subtitle_search.search_movie(
        provider_ids,
        name=request.args.get("name"),
        language=request.args.get("language"),
        two_letter_code=request.args.get("two_letter"),
        timeout_seconds=_timeout_arg(),
    )
    return jsonify({"subtitles": [r.to_dict() for r in results]})


@bp.route("/subtitles/episode", methods=["GET"])
def search_episode():
    """Search subtitles for an episode.
    ---
    get:
      tags:
        - Subtitles
      summary: Episode subtitle search
      description: Resolved by TVDB ID, then series IMDB ID, then series title.
      parameters:
        - {in: query, name: tvdb, schema: {type: integer}}
        - {in: query, name: imdb, schema: {type: string}}
        - {in: query, name: series, schema: {type: string}}
        - {in: query, name: season, required: true, schema: {type: integer}}
        - {in: query, name: episode, required: true, schema: {type: integer}}
        - {in: query, name: language, schema: {type: string}}
        - {in: query, name: two_letter, schema: {type: string}}
        - {in: query, name: timeout, schema: {type: integer}}
      responses:
        200:
          description: List of remote subtitle infos
        400:
          description: Missing season or episode
    """
    season = _int_arg("season")
    episode = _int_arg("episode")
    if season is None or episode is None:
        return jsonify({"error": "season and episode are required"}), 400

    provider_ids = {
        "tvdb": request.args.get("tvdb", ""),
        "imdb": request.args.get("imdb", ""),
    }
    results = current_app.subtitle_search.search_episode(
        provider_ids,
        series_name=request.args.get("series"),
        season=season,
        episode=episode,
        language=request.args.get("language"),
        two_letter_code=request.args.get("two_letter"),
        timeout_seconds=_timeout_arg(),
    )
    return jsonify({"subtitles": [r.to_dict() for r in results]})


@bp.route("/subtitles/download", methods=["POST"])
def download_subtitle():
    """Have Bazarr download a subtitle returned by a search.

    Body: { "id": "<encoded subtitle id>" }
    ---
    post:
      tags:
        - Subtitles
      summary: Download subtitle
      responses:
        200:
          description: Bazarr accepted the download
        400:
          description: Invalid subtitle ID
        502:
          description: Bazarr rejected the download
    """
    body = request.get_json(force=True, silent=True) or {}
    subtitle_id = body.get("id")
    if not subtitle_id or not isinstance(subtitle_id, str):
        return jsonify({"error": "id is required"}), 400

    req = current_app.subtitle_search.download(subtitle_id)
    return jsonify({
        "status": "downloaded",
        "provider": req.provider,
        "radarr_id": req.radarr_id,
        "sonarr_episode_id": req.sonarr_episode_id,
    })
