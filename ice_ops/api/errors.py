from __future__ import annotations

import sqlite3

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from ..database.repositories.errors import DomainError
from ..utils.loggers import get_logger

_log = get_logger(__name__)


def register_error_handlers(app) -> None:
    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):
        return jsonify({"error": str(e)}), e.status_code

    @app.errorhandler(sqlite3.IntegrityError)
    def _integrity_error(e: sqlite3.IntegrityError):
        msg = str(e)
        _log.warning("integrity error: %s", msg)
        status = 409 if "UNIQUE" in msg.upper() else 400
        return jsonify({"error": msg}), status

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        _log.exception("unhandled error")
        settings = current_app.config["ICE_OPS_SETTINGS"]
        msg = "Internal server error" if settings.is_production else str(e)
        return jsonify({"error": msg}), 500
