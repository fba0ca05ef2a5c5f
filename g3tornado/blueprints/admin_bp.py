"""
Admin blueprint — impersonation ("view as") sessions.

Endpoints:
    POST /api/v1/admin/impersonate/start  — body {target_user_id}; returns the session token
    POST /api/v1/admin/impersonate/stop   — ends the session in X-Impersonation-Token (or body token)
    GET  /api/v1/admin/impersonate        — whom the current request is acting as

Send the returned token as ``X-Impersonation-Token`` alongside the admin's own
bearer token; every other endpoint then answers as the target user.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

import g3tornado.services.impersonation_service as impersonation
from g3tornado.utils.errors import E, api_error, register_error_handlers
from g3tornado.utils.helpers import authenticated_actor, current_actor

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")
register_error_handlers(admin_bp, logger)


@admin_bp.route("/impersonate/start", methods=["POST"])
def start_impersonation():
    data = request.get_json(silent=True) or {}
    target_user_id = data.get("target_user_id")
    if not isinstance(target_user_id, int) or isinstance(target_user_id, bool):
        return api_error(E.VALIDATION_REQUIRED, "target_user_id (integer) is required")

    result = impersonation.start_impersonation(
        target_user_id,
        authenticated_actor(),
        expires_seconds=current_app.config.get("IMPERSONATION_EXPIRES", impersonation.DEFAULT_EXPIRES_SECONDS),
    )
    return jsonify(result), 201


@admin_bp.route("/impersonate/stop", methods=["POST"])
def stop_impersonation():
    data = request.get_json(silent=True) or {}
    token = request.headers.get(impersonation.TOKEN_HEADER) or data.get("token")
    if not token:
        return api_error(E.VALIDATION_REQUIRED, f"{impersonation.TOKEN_HEADER} header or token is required")
    return jsonify(impersonation.stop_impersonation(token, authenticated_actor())), 200


@admin_bp.route("/impersonate", methods=["GET"])
def impersonation_status():
    actor = current_actor()
    return jsonify({
        "is_impersonating": actor.impersonator_id is not None,
        "effective_user_id": actor.user_id,
        "real_user_id": authenticated_actor().user_id,
    }), 200
