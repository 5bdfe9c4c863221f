"""Fix version summary API endpoints."""

from flask import Blueprint, jsonify

from app import error_response, get_metrics_service

bp = Blueprint("fix_versions", __name__, url_prefix="/api/fix-versions")


@bp.route("", methods=["GET"])
def list_fix_version_summaries():
    """Summaries for every fix version, sorted by name.

    An issue tagged with several versions counts toward each of them.
    """
    try:
        summaries = get_metrics_service().get_all_fix_version_summaries()
        return jsonify({"data": [s.to_dict() for s in summaries]})
    except Exception as e:
        return error_response(e)


@bp.route("/<version_name>/issues", methods=["GET"])
def get_fix_version_issues(version_name):
    try:
        issues = get_metrics_service().get_fix_version_issues(version_name)
        return jsonify({"data": [i.to_dict() for i in issues]})
    except Exception as e:
        return error_response(e)


@bp.route("/<version_name>", methods=["GET"])
def get_fix_version_summary(version_name):
    try:
        summary = get_metrics_service().get_fix_version_summary(version_name)
    except Exception as e:
        return error_response(e)

    if summary is None:
        return jsonify({"error": f"No issues found for fix version {version_name}"}), 404
    return jsonify({"data": summary.to_dict()})
