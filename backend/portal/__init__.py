# backend/portal/__init__.py
import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import PortalError, UpstreamError
from .extensions import db, migrate
from .storage import build_storage


def create_app(config_overrides: dict | None = None, http_client=None) -> Flask:
    """
    Build the portal app.

    config_overrides is applied on top of Config (tests use it for the
    database URI and storage backend). http_client, when given, is the
    httpx.Client the Freshbooks client sends through.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    if not app.debug and not app.testing:
        app.logger.setLevel(logging.INFO)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Storage backend and Freshbooks client are built once per app
    from .services.freshbooks_service import FreshbooksClient

    storage = build_storage(app.config["STORAGE_BACKEND"])
    app.extensions["portal.storage"] = storage
    app.extensions["portal.freshbooks"] = FreshbooksClient.from_config(
        app.config, storage, http_client=http_client
    )
    app.logger.info("Using %s storage backend", storage.name)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.integrations import integrations_bp
    from .routes.activities import activities_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(integrations_bp)
    app.register_blueprint(activities_bp)
    app.register_blueprint(dashboard_bp)

    @app.errorhandler(PortalError)
    def handle_portal_error(error: PortalError):
        if isinstance(error, UpstreamError):
            app.logger.error("Upstream failure on %s %s: %s", request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({"message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"message": "Internal server error"}), 500

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
