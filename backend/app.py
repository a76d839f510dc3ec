"""Application factory for the Subrelay Flask API server.

create_app() builds and configures the application, wires the Bazarr
client, catalog, search coordinator and subtitle search service onto it,
and registers blueprints.
"""

import atexit
import json
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask, Response, g, has_app_context

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class StructuredJSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging (ELK, Loki, etc.)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        request_id = getattr(g, "request_id", None) if has_app_context() else None
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


def _setup_logging(settings) -> None:
    """Configure the root logger, plus a rotating file handler if log_file is set."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    root = logging.getLogger()

    if settings.log_format.lower() == "json":
        formatter: logging.Formatter = StructuredJSONFormatter()
        for handler in root.handlers:
            if not isinstance(handler, RotatingFileHandler):
                handler.setFormatter(formatter)
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    log_file = settings.log_file
    if not log_file:
        return
    if any(getattr(h, "baseFilename", None) == os.path.abspath(log_file) for h in root.handlers):
        return
    try:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)
    except OSError as e:
        logging.getLogger(__name__).warning("Could not set up log file %s: %s", log_file, e)


def create_app(testing=False, bazarr_client=None, cache_backend=None, search_executor=None):
    """Create and configure the Flask application.

    Args:
        testing: Sets Flask's TESTING flag.
        bazarr_client: Client to use instead of one built from settings.
        cache_backend: Cache to use instead of a fresh in-memory one.
        search_executor: Executor for upstream searches (tests pass their own).

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)
    app.config["TESTING"] = testing

    from config import get_settings
    settings = get_settings()

    _setup_logging(settings)
    logger = logging.getLogger(__name__)

    from error_handler import register_error_handlers
    register_error_handlers(app)

    from auth import init_auth
    init_auth(app)

    from bazarr_client import create_bazarr_client
    from cache import create_cache_backend
    from catalog import CatalogService
    from search_coordinator import SearchCoordinator
    from subtitle_search import SubtitleSearchService

    if not settings.bazarr_configured and bazarr_client is None:
        logger.warning("Bazarr URL or API key not configured; searches will fail until SUBRELAY_BAZARR_* is set")

    app.cache_backend = cache_backend or create_cache_backend()
    app.bazarr_client = bazarr_client or create_bazarr_client(settings)
    app.catalog = CatalogService(
        app.bazarr_client, app.cache_backend, ttl_seconds=settings.catalog_cache_ttl_seconds,
    )
    app.search_coordinator = SearchCoordinator(
        app.bazarr_client.search,
        app.cache_backend,
        search_ttl_seconds=settings.search_cache_ttl_seconds,
        max_workers=settings.search_workers,
        executor=search_executor,
    )
    if search_executor is None:
        atexit.register(app.search_coordinator.shutdown)
    app.subtitle_search = SubtitleSearchService(
        app.catalog, app.search_coordinator, app.bazarr_client, settings,
    )
    logger.info(
        "Subrelay configured for Bazarr at %s (search timeout %ss, %d workers)",
        app.bazarr_client.url, settings.search_timeout_seconds, settings.search_workers,
    )

    from routes import register_blueprints
    register_blueprints(app)

    _register_app_routes(app)

    return app


def _register_app_routes(app):
    """Register app-level routes: /metrics."""

    @app.route("/api/v1/metrics", methods=["GET"])
    def prometheus_metrics():
        """Prometheus metrics endpoint (protected by auth hook)."""
        from metrics import generate_metrics
        body, content_type = generate_metrics(app.cache_backend)
        return Response(body, mimetype=content_type)


def main():
    from config import get_settings
    app = create_app()
    app.run(host="0.0.0.0", port=get_settings().port, threaded=True)


if __name__ == "__main__":
    main()
