"""System routes: /health, /config, /languages, /test-connection."""

import logging
from dataclasses import asdict

from flask import Blueprint, current_app, jsonify

from config import get_settings
from version import __version__

bp = Blueprint("system", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


@bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint (no auth required).
    ---
    get:
      tags:
        - System
      summary: Basic health check
      description: Returns status, version, in-flight searches and cache statistics. Never contacts Bazarr.
      responses:
        200:
          description: Service is up
          content:
            application/json:
              schema:
                type: object
                properties:
                  status:
                    type: string
                  version:
                    type: string
                  bazarr_configured:
                    type: boolean
                  searches:
                    type: object
                  cache:
                    type: object
    """
    try:
        cache_stats = current_app.cache_backend.get_stats()
    except Exception as e:
        logger.warning("Cache stats unavailable: %s", e)
        cache_stats = {"error": str(e)}

    return jsonify({
        "status": "healthy",
        "version": __version__,
        "bazarr_configured": get_settings().bazarr_configured,
        "searches": current_app.search_coordinator.get_status(),
        "cache": cache_stats,
    })


@bp.route("/config", methods=["GET"])
def get_config():
    """Current configuration with API keys masked.
    ---
    get:
      tags:
        - System
      summary: Get configuration
      responses:
        200:
          description: Settings without secrets
    """
    return jsonify(get_settings().get_safe_config())


@bp.route("/languages", methods=["GET"])
def list_languages():
    """Languages known to Bazarr.
    ---
    get:
      tags:
        - System
      summary: List Bazarr languages
      responses:
        200:
          description: Language list
        502:
          description: Bazarr error
    """
    languages = current_app.bazarr_client.get_languages()
    return jsonify({"languages": [asdict(lang) for lang in languages]})


@bp.route("/test-connection", methods=["POST"])
def test_connection():
    """Check that Bazarr is reachable with the configured URL and API key.
    ---
    post:
      tags:
        - System
      summary: Test Bazarr connection
      responses:
        200:
          description: Connection test result (success may be false)
    """
    result = current_app.bazarr_client.test_connection()
    return jsonify(result.to_dict())
