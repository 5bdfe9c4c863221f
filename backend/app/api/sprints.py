"""Sprint summary API endpoints."""

from flask import Blueprint, jsonify

from app import error_response, get_metrics_service

bp = Blueprint("sprints", __name__, url_prefix="/api/sprints")


@bp.route("", methods=["GET"])
def list_sprint_summaries():
    """Summaries for every sprint, most recent end date first.

    Issues are counted under their current (most recent) sprint only.
    """
    try:
        summaries = get_metrics_service().get_all_sprint_summaries()
        return jsonify({"data": [s.to_dict() for s in summaries]})
    except Exception as e:
        return error_response(e)


@bp.route("/<sprint_name>/issues", methods=["GET"])
def get_sprint_issues(sprint_name):
    try:
        issues = get_metrics_service().get_sprint_issues(sprint_name)
        return jsonify({"data": [i.to_dict() for i in issues]})
    except Exception as e:
        return error_response(e)


@bp.route("/<sprint_name>", methods=["GET"])
def get_sprint_summary(sprint_name):
    try:
        summary = get_metrics_service().get_sprint_summary(sprint_name)
    except Exception as e:
        return error_response(e)

    if summary is None:
        return jsonify({"error": f"No issues found for sprint {sprint_name}"}), 404
    return jsonify({"data": summary.to_dict()})
