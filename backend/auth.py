"""Optional API key authentication middleware for Flask.

If SUBRELAY_API_KEY is set, all /api/ requests must include the key
either as X-Api-Key header or as ?apikey= query parameter.
Health endpoint is exempt.
"""

import hmac
import logging

from flask import jsonify, request

from config import get_settings

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/api/v1/health"})


def init_auth(app):
    """Add a before_request hook checking the API key on /api/ routes.

    The key is read on each request so reload_settings() takes effect
    without a restart.
    """
    logger.info("API key authentication hook registered (active when SUBRELAY_API_KEY is set)")

    @app.before_request
    def check_api_key():
        current_settings = get_settings()
        if not current_settings.api_key:
            return None

        path = request.path
        if not path.startswith("/api/") or path in EXEMPT_PATHS:
            return None

        provided_key = (
            request.headers.get("X-Api-Key")
            or request.args.get("apikey")
        )

        if not provided_key:
            logger.warning("API request without key from %s", request.remote_addr)
            return jsonify({"error": "API key required"}), 401

        if not hmac.compare_digest(provided_key, current_settings.api_key):
            logger.warning("Invalid API key from %s", request.remote_addr)
            return jsonify({"error": "Invalid API key"}), 401

        return None
