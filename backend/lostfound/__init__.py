import logging
import time

from flask import Flask, g, request
from sqlalchemy import text
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import get_config
from .errors import register_error_handlers
from .extensions import db, init_extensions

logger = logging.getLogger(__name__)


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("lostfound").setLevel(level)


def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__)

    config = get_config(config_name)
    app.config.from_object(config)
    _configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Honor proxy headers from Nginx for correct url_for(_external=True) scheme/host
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)  # type: ignore[assignment]

    init_extensions(app)

    register_error_handlers(app)

    # Register blueprints (v1 API)
    from .apis.v1 import register_api
    register_api(app)

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_timing(response):
        started = g.pop("request_started", None)
        if started is not None:
            logger.debug(
                "%s %s -> %s in %.1fms",
                request.method,
                request.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        return response

    @app.get("/health")
    def health():
        try:
            db.session.execute(text("SELECT 1"))
            return {"status": "ok", "db": "ok"}
        except Exception as e:
            logger.error("Health check database probe failed: %s", e)
            db.session.rollback()
            return {"status": "degraded", "db": "error"}, 503

    logger.debug("Application created with %s", type(config).__name__)
    return app
