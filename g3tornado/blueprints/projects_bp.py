"""
Projects blueprint.

Endpoints:
    GET    /api/v1/projects                                — visible projects with task counts
    POST   /api/v1/projects                                — create
    GET    /api/v1/projects/<id>                           — detail
    PUT    /api/v1/projects/<id>                           — update (creator or admin)
    DELETE /api/v1/projects/<id>                           — delete when empty
    GET    /api/v1/projects/<id>/assignable-contacts       — contacts assignable to its tasks
"""

import logging

from flask import Blueprint, jsonify, request

import g3tornado.services.project_service as projects
from g3tornado.utils.errors import E, api_error, register_error_handlers
from g3tornado.utils.helpers import current_actor

logger = logging.getLogger(__name__)

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1")
register_error_handlers(projects_bp, logger)


@projects_bp.route("/projects", methods=["GET"])
def list_projects():
    return jsonify({"items": projects.list_projects(current_actor())}), 200


@projects_bp.route("/projects", methods=["POST"])
def create_project():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(projects.create_project(data, current_actor())), 201


@projects_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(projects.get_project(project_id, current_actor())), 200


@projects_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    data = request.get_json(silent=True) or {}
    return jsonify(projects.update_project(project_id, data, current_actor())), 200


@projects_bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id):
    projects.delete_project(project_id, current_actor())
    return jsonify({"deleted": project_id}), 200


@projects_bp.route("/projects/<int:project_id>/assignable-contacts", methods=["GET"])
def assignable_contacts(project_id):
    return jsonify({"items": projects.assignable_contacts(project_id, current_actor())}), 200
