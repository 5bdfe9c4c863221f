"""Admin endpoints for data source status and cache control."""

from flask import Blueprint, current_app, jsonify

from app import error_response, get_metrics_service

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@bp.route("/status", methods=["GET"])
def get_status():
    """Active issue source, per-source availability, and cache size."""
    try:
        return jsonify({"data": get_metrics_service().get_status()})
    except Exception as e:
        return error_response(e)


@bp.route("/refresh", methods=["POST"])
def refresh():
    """Drop cached metrics so the next request re-reads the issue source."""
    try:
        get_metrics_service().refresh()
    except Exception as e:
        return error_response(e)

    current_app.logger.info("Metrics cache refreshed")
    return jsonify({"data": {"refreshed": True}})
