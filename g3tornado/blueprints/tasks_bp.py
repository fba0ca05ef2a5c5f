"""
Tasks blueprint — tasks, notes, owners, gates and the close workflow.

Endpoint groups:
  Tasks           GET/POST /api/v1/tasks
                  GET/PUT/DELETE /api/v1/tasks/<id>
  Notes           POST /api/v1/tasks/<id>/notes
                  DELETE /api/v1/notes/<note_id>
  Owners          PUT  /api/v1/tasks/<id>/owners
                  POST /api/v1/tasks/<id>/owners/<contact_id>/void
  Gates           POST /api/v1/tasks/<id>/gates
                  POST /api/v1/tasks/<id>/gates/<position>/complete
                  POST /api/v1/tasks/<id>/gates/<position>/reopen
                  DELETE /api/v1/tasks/<id>/gates/<position>
  Clock / close   POST /api/v1/tasks/<id>/restart-clock
                  POST /api/v1/tasks/<id>/request-close
                  POST /api/v1/tasks/<id>/approve-close
                  POST /api/v1/tasks/<id>/reject-close
                  POST /api/v1/tasks/<id>/close

Gate positions are 0-based. Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

import g3tornado.services.task_service as tasks
from g3tornado.utils.errors import E, api_error, register_error_handlers
from g3tornado.utils.helpers import current_actor, parse_bool

logger = logging.getLogger(__name__)

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/v1")
register_error_handlers(tasks_bp, logger)


# ═════════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════════


@tasks_bp.route("/tasks", methods=["GET"])
def list_tasks():
    """Query params: status, project_id, stale (bool)."""
    items = tasks.list_tasks(
        current_actor(),
        status=request.args.get("status") or None,
        project_id=request.args.get("project_id", type=int),
        stale_only=parse_bool(request.args.get("stale")),
    )
    return jsonify({"items": items, "total": len(items)}), 200


@tasks_bp.route("/tasks", methods=["POST"])
def create_task():
    """Body: {description, project_id, fu_cadence_days?, next_step?, owner_ids?, gates?}"""
    data = request.get_json(silent=True) or {}
    if not (data.get("description") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "description is required")
    if data.get("project_id") is None:
        return api_error(E.VALIDATION_REQUIRED, "project_id is required")
    task = tasks.create_task(
        data, current_actor(),
        default_cadence=current_app.config.get("DEFAULT_FU_CADENCE_DAYS", 3),
    )
    return jsonify(task), 201


@tasks_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id):
    task = tasks.get_task(task_id, current_actor())
    data = tasks.serialize_task(task)
    data["notes"] = [n.to_dict() for n in task.notes]
    return jsonify(data), 200


@tasks_bp.route("/tasks/<int:task_id>", methods=["PUT"])
def update_task(task_id):
    data = request.get_json(silent=True) or {}
    return jsonify(tasks.update_task(task_id, data, current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    tasks.delete_task(task_id, current_actor())
    return jsonify({"deleted": task_id}), 200


# ═════════════════════════════════════════════════════════════════════════
# Notes
# ═════════════════════════════════════════════════════════════════════════


@tasks_bp.route("/tasks/<int:task_id>/notes", methods=["POST"])
def add_note(task_id):
    data = request.get_json(silent=True) or {}
    if not (data.get("body") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "body is required")
    return jsonify(tasks.add_note(task_id, data["body"], current_actor())), 201


@tasks_bp.route("/notes/<int:note_id>", methods=["DELETE"])
def delete_note(note_id):
    tasks.delete_note(note_id, current_actor())
    return jsonify({"deleted": note_id}), 200


# ═════════════════════════════════════════════════════════════════════════
# Owners
# ═════════════════════════════════════════════════════════════════════════


@tasks_bp.route("/tasks/<int:task_id>/owners", methods=["PUT"])
def set_owners(task_id):
    """Body: {"owner_ids": [<contact_id>, ...]}"""
    data = request.get_json(silent=True) or {}
    owner_ids = data.get("owner_ids")
    if not isinstance(owner_ids, list):
        return api_error(E.VALIDATION_INVALID, "owner_ids must be a list of contact ids")
    return jsonify(tasks.set_owners(task_id, owner_ids, current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>/owners/<int:contact_id>/void", methods=["POST"])
def void_owner(task_id, contact_id):
    """Body (optional): {"voided": false} to restore the assignment."""
    data = request.get_json(silent=True) or {}
    voided = parse_bool(data.get("voided", True))
    return jsonify(tasks.void_owner(task_id, contact_id, current_actor(), voided=voided)), 200


# ═════════════════════════════════════════════════════════════════════════
# Gates
# ═════════════════════════════════════════════════════════════════════════


@tasks_bp.route("/tasks/<int:task_id>/gates", methods=["POST"])
def insert_gate(task_id):
    """Body: {name, owner_id?, position?} — position defaults to the end."""
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(tasks.insert_gate(task_id, data, current_actor())), 201


@tasks_bp.route("/tasks/<int:task_id>/gates/<int:position>/complete", methods=["POST"])
def complete_gate(task_id, position):
    return jsonify(tasks.complete_gate(task_id, position, current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>/gates/<int:position>/reopen", methods=["POST"])
def reopen_gate(task_id, position):
    return jsonify(tasks.reopen_gate(task_id, position, current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>/gates/<int:position>", methods=["DELETE"])
def remove_gate(task_id, position):
    return jsonify(tasks.remove_gate(task_id, position, current_actor())), 200


# ═════════════════════════════════════════════════════════════════════════
# Clock and close workflow
# ═════════════════════════════════════════════════════════════════════════


@tasks_bp.route("/tasks/<int:task_id>/restart-clock", methods=["POST"])
def restart_clock(task_id):
    """Body: {"fu_cadence_days": <int>}"""
    data = request.get_json(silent=True) or {}
    if "fu_cadence_days" not in data:
        return api_error(E.VALIDATION_REQUIRED, "fu_cadence_days is required")
    return jsonify(tasks.restart_clock(task_id, data["fu_cadence_days"], current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>/request-close", methods=["POST"])
def request_close(task_id):
    return jsonify(tasks.request_close(task_id, current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>/approve-close", methods=["POST"])
def approve_close(task_id):
    return jsonify(tasks.approve_close(task_id, current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>/reject-close", methods=["POST"])
def reject_close(task_id):
    return jsonify(tasks.reject_close(task_id, current_actor())), 200


@tasks_bp.route("/tasks/<int:task_id>/close", methods=["POST"])
def close_task(task_id):
    return jsonify(tasks.close_task(task_id, current_actor())), 200
