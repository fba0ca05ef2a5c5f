"""
Issues blueprint — the attention dashboard.

Endpoints:
    GET /api/v1/issues         — severity-sorted issues over the actor's visible tasks
    GET /api/v1/issues/nudges  — gate owners that would be nudged now (admin, preview only)
"""

import logging

from flask import Blueprint, current_app, jsonify, request

import g3tornado.services.task_service as tasks
from g3tornado.models.task import STATUS_OPEN
from g3tornado.services.issues import ACTIVE_STATUSES, ISSUE_TYPES, SEVERITY_ORDER, aggregate_issues, summarize_issues
from g3tornado.services.staleness import utcnow
from g3tornado.utils.errors import E, api_error, register_error_handlers
from g3tornado.utils.helpers import current_actor

logger = logging.getLogger(__name__)

issues_bp = Blueprint("issues", __name__, url_prefix="/api/v1")
register_error_handlers(issues_bp, logger)


@issues_bp.route("/issues", methods=["GET"])
def list_issues():
    """Query params: severity, type (optional filters applied after sorting)."""
    severity = request.args.get("severity")
    kind = request.args.get("type")
    if severity and severity not in SEVERITY_ORDER:
        return api_error(E.VALIDATION_INVALID, f"severity must be one of: {', '.join(SEVERITY_ORDER)}")
    if kind and kind not in ISSUE_TYPES:
        return api_error(E.VALIDATION_INVALID, f"type must be one of: {', '.join(ISSUE_TYPES)}")

    now = utcnow()
    visible = tasks.visible_tasks(current_actor(), statuses=ACTIVE_STATUSES)
    issues = aggregate_issues(visible, now)
    summary = summarize_issues(issues, open_tasks=sum(1 for t in visible if t.status == STATUS_OPEN))
    if severity:
        issues = [i for i in issues if i.severity == severity]
    if kind:
        issues = [i for i in issues if i.type == kind]
    return jsonify({"items": [i.to_dict() for i in issues], "summary": summary}), 200


@issues_bp.route("/issues/nudges", methods=["GET"])
def nudge_preview():
    cooldown = current_app.config.get("NUDGE_COOLDOWN_DAYS", 3)
    items = tasks.nudge_preview(current_actor(), cooldown_days=cooldown)
    return jsonify({"items": items, "total": len(items), "cooldown_days": cooldown}), 200
