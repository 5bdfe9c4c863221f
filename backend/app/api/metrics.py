"""Sprint metrics API endpoints."""

from flask import Blueprint, request, jsonify

from app import error_response, get_metrics_service
from services.errors import InvalidTrendWindowError

bp = Blueprint("metrics", __name__, url_prefix="/api/metrics")


@bp.route("", methods=["GET"])
def get_sprint_metrics():
    """Get extended metrics for one sprint.

    Query params:
        - sprintId: Jira sprint ID (required)

    Returns:
        - sprintMetrics: QA failures, delivery, velocity, bugs, PR approval times
        - developerMetrics: per-assignee breakdown
    """
    sprint_id = request.args.get("sprintId", "").strip()
    if not sprint_id:
        return jsonify({"error": "Missing required query parameter: sprintId"}), 400

    try:
        metrics = get_metrics_service().get_extended_metrics(sprint_id)
        return jsonify({"data": metrics.to_dict()})
    except Exception as e:
        return error_response(e)


@bp.route("/trend", methods=["GET"])
def get_qa_trend():
    """Get the QA failure-rate trend over recent sprints.

    Query params:
        - lastNSprints: Number of sprints to include (default: 5)
    """
    service = get_metrics_service()
    raw = request.args.get("lastNSprints", "5")

    try:
        last_n_sprints = int(raw)
    except ValueError:
        return error_response(InvalidTrendWindowError(raw, service.settings.max_trend_sprints))

    try:
        trend = service.get_trend(last_n_sprints)
        return jsonify({"data": trend.to_dict()})
    except Exception as e:
        return error_response(e)
