"""Centralized error handling with structured JSON error responses.

Custom exception hierarchy with error codes, HTTP status mapping,
and troubleshooting hints. All SubrelayError subtypes are automatically
caught by Flask error handlers and returned as structured JSON.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from flask import g, jsonify

logger = logging.getLogger(__name__)


# ─── Exception Hierarchy ─────────────────────────────────────────────────────


class SubrelayError(Exception):
    """Base exception for all Subrelay application errors.

    Attributes:
        code: Machine-readable error code (e.g. "BAZARR_001")
        http_status: HTTP status code to return
        context: Additional context data for debugging
        troubleshooting: Human-readable hint for resolving the issue
    """

    code: str = "SUBRELAY_000"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
        troubleshooting: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.context = context or {}
        self.troubleshooting = troubleshooting


class BazarrError(SubrelayError):
    """Talking to Bazarr failed."""

    code = "BAZARR_001"
    http_status = 502


class BazarrConnectionError(BazarrError):
    """Bazarr is unreachable or timed out."""

    code = "BAZARR_002"
    http_status = 503

    def __init__(self, message: str = "Cannot connect to Bazarr", **kwargs: object) -> None:
        kwargs.setdefault(
            "troubleshooting",
            "Check that Bazarr is running and the URL is correct in Settings.",
        )
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class BazarrRedirectError(BazarrError):
    """Bazarr answered with a 3xx redirect instead of JSON."""

    code = "BAZARR_003"

    def __init__(self, message: str, **kwargs: object) -> None:
        kwargs.setdefault(
            "troubleshooting",
            "The URL is probably wrong, or a reverse proxy / auth layer is intercepting "
            "the request. Point SUBRELAY_BAZARR_URL directly at Bazarr.",
        )
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class BazarrResponseError(BazarrError):
    """Bazarr answered with something that is not JSON (usually an HTML page)."""

    code = "BAZARR_004"

    def __init__(self, message: str, **kwargs: object) -> None:
        kwargs.setdefault(
            "troubleshooting",
            "Use the base URL (http://host:6767, not http://host:6767/api) and make "
            "sure no proxy or login page sits in front of Bazarr.",
        )
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class BazarrHTTPError(BazarrError):
    """Bazarr returned an HTTP error status."""

    code = "BAZARR_005"

    def __init__(self, message: str, status_code: int = 0, **kwargs: object) -> None:
        super().__init__(message, **kwargs)  # type: ignore[arg-type]
        self.status_code = status_code
        self.context.setdefault("status_code", status_code)
        if status_code in (401, 403) and not self.troubleshooting:
            self.troubleshooting = "Check the Bazarr API key in Settings."


class ItemNotFoundError(SubrelayError):
    """The requested movie/episode is not known to Bazarr."""

    code = "ITEM_001"
    http_status = 404


class InvalidSubtitleIdError(SubrelayError):
    """A subtitle ID could not be decoded."""

    code = "SUB_001"
    http_status = 400


class DownloadError(SubrelayError):
    """Bazarr refused or failed a subtitle download."""

    code = "SUB_002"
    http_status = 502


# ─── Structured Error Response Builder ───────────────────────────────────────


def _build_error_response(error: SubrelayError) -> dict:
    """Build a structured JSON error response from a SubrelayError."""
    response: dict = {
        "error": str(error),
        "code": error.code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    request_id = getattr(g, "request_id", None)
    if request_id:
        response["request_id"] = request_id

    if error.context:
        response["context"] = error.context

    if error.troubleshooting:
        response["troubleshooting"] = error.troubleshooting

    return response


# ─── Flask Error Handler Registration ────────────────────────────────────────


def register_error_handlers(app: object) -> None:
    """Register global error handlers on a Flask app.

    Call this once during app setup to install:
    - SubrelayError handler (structured JSON)
    - Generic Exception handler (500 with logging)
    - before_request hook for request IDs
    """
    from flask import Flask
    flask_app: Flask = app  # type: ignore[assignment]

    @flask_app.before_request
    def _set_request_id() -> None:
        """Assign a unique request ID to every incoming request."""
        g.request_id = str(uuid.uuid4())[:8]

    @flask_app.errorhandler(SubrelayError)
    def _handle_subrelay_error(error: SubrelayError):  # type: ignore[return]
        """Return structured JSON for known application errors."""
        logger.warning(
            "[%s] %s: %s (request_id=%s)",
            error.code,
            error.__class__.__name__,
            error,
            getattr(g, "request_id", "?"),
        )
        return jsonify(_build_error_response(error)), error.http_status

    @flask_app.errorhandler(Exception)
    def _handle_generic_error(error: Exception):  # type: ignore[return]
        """Catch-all: log full traceback, return generic 500."""
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException):
            return error

        request_id = getattr(g, "request_id", "?")
        logger.exception(
            "Unhandled exception (request_id=%s): %s", request_id, error
        )
        return jsonify({
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 500
