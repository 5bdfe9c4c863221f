"""Flask application factory."""

import logging

from flask import Flask, current_app, jsonify
from flask_cors import CORS

from services.errors import DataUnavailableError, InvalidTrendWindowError, SprintNotFoundError
from services.settings import load_settings
from services.sprint_metrics import SprintMetricsService


def get_metrics_service() -> SprintMetricsService:
    """The metrics service attached to the running app."""
    return current_app.extensions["metrics_service"]


def error_response(e: Exception):
    """Map a service exception to a JSON error response."""
    if isinstance(e, InvalidTrendWindowError):
        return jsonify({"error": str(e)}), 400
    if isinstance(e, SprintNotFoundError):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, DataUnavailableError):
        current_app.logger.warning(f"Upstream data unavailable: {e}")
        return jsonify({"error": str(e)}), 502

    current_app.logger.exception(f"Unexpected error: {e}")
    return jsonify({"error": str(e)}), 500


def create_app(settings=None, service=None):
    """Create and configure the Flask application."""
    settings = settings or load_settings()

    log_level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.logger.setLevel(log_level)

    # Enable CORS for frontend
    CORS(app, resources={
        r"/api/*": {
            "origins": list(settings.cors_origins),
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    app.extensions["metrics_service"] = service or SprintMetricsService(settings)

    # Register blueprints
    from app.api import admin, fix_versions, metrics, sprints
    app.register_blueprint(metrics.bp)
    app.register_blueprint(sprints.bp)
    app.register_blueprint(fix_versions.bp)
    app.register_blueprint(admin.bp)

    app.logger.info(
        f"Metrics service ready (Jira configured: {settings.jira_configured}, "
        f"GitHub configured: {settings.github_configured})"
    )

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app
