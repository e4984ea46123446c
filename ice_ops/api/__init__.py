from __future__ import annotations

from flask import Flask, jsonify
from flask_cors import CORS

from ..config import Settings, load_settings
from ..database import get_connection
from ..utils.loggers import get_logger
from .db import close_db
from .errors import register_error_handlers
from .sales_ops import sales_ops_bp


def create_app(settings: Settings | None = None) -> Flask:
    """
    Build the Flask app. The database is bootstrapped (schema + reference
    data) once here; requests then use light per-request connections.
    """
    settings = settings or load_settings()
    log = get_logger("ice_ops", settings.log_level)

    app = Flask(__name__)
    app.config["ICE_OPS_SETTINGS"] = settings
    app.json.sort_keys = False
    CORS(app)

    get_connection(settings.db_path, timeout=settings.db_timeout).close()

    app.teardown_appcontext(close_db)
    register_error_handlers(app)
    app.register_blueprint(sales_ops_bp)

    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    log.info("app ready: db=%s env=%s tz=%s", settings.db_path, settings.env, settings.timezone)
    return app


__all__ = ["create_app"]
