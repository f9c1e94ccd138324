from __future__ import annotations

import logging
import sqlite3
from typing import Any, Mapping

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config, load_yaml_config, setup_logging
from .db import close_db, connect
from .errors import FilmwiseError
from .models import ensure_admin_user, init_db


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(FilmwiseError)
    def handle_filmwise_error(exc: FilmwiseError):
        if exc.status_code >= 500:
            app.logger.error("request failed: %s", exc.__cause__ or exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"ok": False, "error": exc.description}), exc.code

    @app.errorhandler(sqlite3.Error)
    def handle_store_error(exc: sqlite3.Error):
        app.logger.exception("unhandled database error")
        return jsonify({"ok": False, "error": "internal server error"}), 500


def create_app(overrides: Mapping[str, Any] | None = None) -> Flask:
    """Build the Flask application; `overrides` replace values from `Config`."""
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    settings = load_yaml_config(app.config.get("FILMWISE_CONFIG"))
    app.config["JANITOR"] = settings.get("janitor", {}) or {}
    setup_logging(settings)
    logger = logging.getLogger("filmwise")

    conn = connect(app.config["DATABASE_PATH"])
    try:
        init_db(conn)
        if app.config.get("ADMIN_EMAIL") and app.config.get("ADMIN_PASSWORD"):
            ensure_admin_user(conn, app.config["ADMIN_EMAIL"], app.config["ADMIN_PASSWORD"])
    finally:
        conn.close()

    app.teardown_appcontext(close_db)
    _register_error_handlers(app)

    @app.after_request
    def add_cors_headers(resp):
        resp.headers["Access-Control-Allow-Origin"] = "*"
        resp.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type,Authorization"
        return resp

    from .routes import admin, public, user

    app.register_blueprint(public.bp)
    app.register_blueprint(user.bp)
    app.register_blueprint(admin.bp)

    logger.info("filmwise app created (env=%s, db=%s)", app.config["ENV"], app.config["DATABASE_PATH"])
    return app
