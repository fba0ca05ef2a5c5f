"""
Contacts blueprint.

Endpoints:
    GET    /api/v1/contacts                      — contacts visible to the actor
    POST   /api/v1/contacts                      — create
    GET    /api/v1/contacts/<id>                 — detail
    PUT    /api/v1/contacts/<id>                 — update
    DELETE /api/v1/contacts/<id>?cascade=true    — delete (admin)
    POST   /api/v1/contacts/<id>/toggle-flag     — set one affiliation flag (admin)
    POST   /api/v1/contacts/<id>/merge           — merge into target_id (admin)
"""

import logging

from flask import Blueprint, jsonify, request

import g3tornado.services.contact_service as contacts
from g3tornado.utils.errors import E, api_error, register_error_handlers
from g3tornado.utils.helpers import current_actor, parse_bool

logger = logging.getLogger(__name__)

contacts_bp = Blueprint("contacts", __name__, url_prefix="/api/v1")
register_error_handlers(contacts_bp, logger)


@contacts_bp.route("/contacts", methods=["GET"])
def list_contacts():
    return jsonify({"items": contacts.list_contacts(current_actor())}), 200


@contacts_bp.route("/contacts", methods=["POST"])
def create_contact():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(contacts.create_contact(data, current_actor())), 201


@contacts_bp.route("/contacts/<int:contact_id>", methods=["GET"])
def get_contact(contact_id):
    return jsonify(contacts.get_contact(contact_id, current_actor()).to_dict()), 200


@contacts_bp.route("/contacts/<int:contact_id>", methods=["PUT"])
def update_contact(contact_id):
    data = request.get_json(silent=True) or {}
    return jsonify(contacts.update_contact(contact_id, data, current_actor())), 200


@contacts_bp.route("/contacts/<int:contact_id>", methods=["DELETE"])
def delete_contact(contact_id):
    cascade = parse_bool(request.args.get("cascade"))
    contacts.delete_contact(contact_id, current_actor(), cascade=cascade)
    return jsonify({"deleted": contact_id, "cascade": cascade}), 200


@contacts_bp.route("/contacts/<int:contact_id>/toggle-flag", methods=["POST"])
def toggle_flag(contact_id):
    """Body: {"flag": "is_bp_employee", "value": true}"""
    data = request.get_json(silent=True) or {}
    flag = data.get("flag")
    if not flag:
        return api_error(E.VALIDATION_REQUIRED, "flag is required")
    if "value" not in data:
        return api_error(E.VALIDATION_REQUIRED, "value is required")
    result = contacts.toggle_flag(contact_id, flag, parse_bool(data["value"]), current_actor())
    return jsonify(result), 200


@contacts_bp.route("/contacts/<int:contact_id>/merge", methods=["POST"])
def merge_contact(contact_id):
    """Body: {"target_id": <id>} — fold this contact into the target."""
    data = request.get_json(silent=True) or {}
    target_id = data.get("target_id")
    if not isinstance(target_id, int) or isinstance(target_id, bool):
        return api_error(E.VALIDATION_INVALID, "target_id must be a contact id")
    return jsonify(contacts.merge_contacts(contact_id, target_id, current_actor())), 200
