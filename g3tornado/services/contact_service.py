"""Contact service — CRUD, affiliation flags, merge and delete.

Rules:
  - The actor is always an explicit ``ActorContext`` parameter (never from g).
  - db.session.commit() happens only in the service layer.
  - A contact must carry at least one affiliation, the vendor flag or the
    private flag.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from g3tornado.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from g3tornado.models import db
from g3tornado.models.contact import EMPLOYEE_FLAGS, TOGGLEABLE_FLAGS, VENDOR_FLAG, Contact
from g3tornado.models.project import Project
from g3tornado.models.task import TaskGate, TaskOwner
from g3tornado.models.user import User
from g3tornado.services.visibility import ActorContext, filter_visible_contacts, policy_for

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "email", "phone", "is_private") + TOGGLEABLE_FLAGS


def _require_admin(actor: ActorContext, action: str) -> None:
    if not actor.is_admin:
        logger.warning("Denied %s for non-admin user_id=%s", action, actor.user_id)
        raise PermissionDeniedError(f"Only admins may {action}")


def _validate_flags(contact: Contact) -> None:
    has_flag = any(getattr(contact, flag) for flag in TOGGLEABLE_FLAGS)
    if not (has_flag or contact.is_private):
        raise ValidationError(
            "Contact needs at least one company affiliation, the vendor flag or the private flag",
            details={"flags": list(TOGGLEABLE_FLAGS) + ["is_private"]},
        )


def _validate_name(name: str | None, exclude_id: int | None = None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    stmt = select(Contact.id).where(Contact.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Contact.id != exclude_id)
    if db.session.execute(stmt).first() is not None:
        raise ConflictError("Contact", "name", name)
    return name


def get_contact(contact_id: int, actor: ActorContext) -> Contact:
    """Load a contact the actor may see, or raise NotFoundError."""
    contact = db.session.get(Contact, contact_id)
    if contact is None or not policy_for(actor).can_view_contact(contact, actor):
        raise NotFoundError(resource="Contact", resource_id=contact_id)
    return contact


def list_contacts(actor: ActorContext) -> list[dict]:
    contacts = db.session.execute(select(Contact).order_by(Contact.name)).scalars().all()
    return [c.to_dict() for c in filter_visible_contacts(contacts, actor)]


def create_contact(data: dict, actor: ActorContext) -> dict:
    """Create a contact. Private contacts belong to their creator."""
    contact = Contact(
        name=_validate_name(data.get("name")),
        email=(data.get("email") or None),
        phone=(data.get("phone") or None),
        created_by=actor.user_id,
    )
    for flag in TOGGLEABLE_FLAGS:
        setattr(contact, flag, bool(data.get(flag, False)))
    contact.is_private = bool(data.get("is_private", False))
    if contact.is_private:
        contact.private_owner_id = actor.user_id
    _validate_flags(contact)

    db.session.add(contact)
    db.session.commit()
    logger.info("Contact created id=%s name=%s by user_id=%s", contact.id, contact.name, actor.user_id)
    return contact.to_dict()


def update_contact(contact_id: int, data: dict, actor: ActorContext) -> dict:
    contact = get_contact(contact_id, actor)
    for field in _EDITABLE_FIELDS:
        if field not in data:
            continue
        if field == "name":
            contact.name = _validate_name(data["name"], exclude_id=contact.id)
        elif field in ("email", "phone"):
            setattr(contact, field, data[field] or None)
        else:
            setattr(contact, field, bool(data[field]))
    if contact.is_private and contact.private_owner_id is None:
        contact.private_owner_id = actor.user_id
    _validate_flags(contact)

    db.session.commit()
    logger.info("Contact updated id=%s by user_id=%s", contact.id, actor.user_id)
    return contact.to_dict()


def toggle_flag(contact_id: int, flag: str, value: bool, actor: ActorContext) -> dict:
    """Set one affiliation flag.

    Vendor and employee flags are mutually exclusive: turning the vendor flag
    on clears every employee flag, and turning an employee flag on clears the
    vendor flag.
    """
    _require_admin(actor, "change contact flags")
    if flag not in TOGGLEABLE_FLAGS:
        raise ValidationError(
            f"flag must be one of: {', '.join(TOGGLEABLE_FLAGS)}",
            details={"flag": flag},
        )
    contact = get_contact(contact_id, actor)

    setattr(contact, flag, bool(value))
    if value:
        if flag == VENDOR_FLAG:
            for employee_flag in EMPLOYEE_FLAGS:
                setattr(contact, employee_flag, False)
        else:
            contact.is_third_party_vendor = False
    _validate_flags(contact)

    db.session.commit()
    logger.info("Contact flag %s=%s id=%s by user_id=%s", flag, bool(value), contact.id, actor.user_id)
    return contact.to_dict()


def _reference_counts(contact_id: int) -> dict:
    def count(column, where):
        return db.session.execute(select(func.count(column)).where(where)).scalar_one()

    return {
        "task_owners": count(TaskOwner.task_id, TaskOwner.contact_id == contact_id),
        "gates": count(TaskGate.id, TaskGate.owner_id == contact_id),
        "users": count(User.id, User.contact_id == contact_id),
        "projects": count(Project.id, Project.one_on_one_contact_id == contact_id),
    }


def merge_contacts(source_id: int, target_id: int, actor: ActorContext) -> dict:
    """Fold ``source`` into ``target`` and delete ``source``.

    Every task assignment, gate ownership, user link and one-on-one project
    link moves to the target. When the target already owns a task the
    duplicate assignment is dropped, so no task loses an owner. The target
    stays voided on a task only if both assignments were voided.
    """
    _require_admin(actor, "merge contacts")
    if source_id == target_id:
        raise ValidationError("Cannot merge a contact into itself", details={"target_id": target_id})
    source = get_contact(source_id, actor)
    target = get_contact(target_id, actor)

    moved_tasks = 0
    assignments = db.session.execute(
        select(TaskOwner).where(TaskOwner.contact_id == source.id)
    ).scalars().all()
    for assignment in assignments:
        existing = db.session.get(TaskOwner, (assignment.task_id, target.id))
        if existing is not None:
            existing.is_voided = existing.is_voided and assignment.is_voided
        else:
            db.session.add(TaskOwner(
                task_id=assignment.task_id,
                contact_id=target.id,
                is_voided=assignment.is_voided,
                created_at=assignment.created_at,
            ))
        db.session.delete(assignment)
        moved_tasks += 1
    db.session.flush()

    gates = db.session.execute(select(TaskGate).where(TaskGate.owner_id == source.id)).scalars().all()
    for gate in gates:
        gate.owner_id = target.id

    for user in db.session.execute(select(User).where(User.contact_id == source.id)).scalars():
        user.contact_id = target.id
    for project in db.session.execute(
        select(Project).where(Project.one_on_one_contact_id == source.id)
    ).scalars():
        project.one_on_one_contact_id = target.id
    db.session.flush()

    db.session.delete(source)
    db.session.commit()
    logger.info(
        "Contact merged source_id=%s into target_id=%s tasks=%s gates=%s by user_id=%s",
        source_id, target.id, moved_tasks, len(gates), actor.user_id,
    )
    return {"target": target.to_dict(), "moved_tasks": moved_tasks, "moved_gates": len(gates)}


def delete_contact(contact_id: int, actor: ActorContext, cascade: bool = False) -> None:
    """Delete a contact.

    Without ``cascade`` a referenced contact raises ConflictError. With it,
    assignments are removed, gates lose their owner and user / project links
    are cleared before the delete.
    """
    _require_admin(actor, "delete contacts")
    contact = get_contact(contact_id, actor)

    refs = _reference_counts(contact.id)
    if any(refs.values()) and not cascade:
        raise ConflictError(
            "Contact", "references", contact.name,
            message=f"Contact {contact.name!r} is still referenced; pass cascade=true to remove references",
        )

    if cascade:
        for assignment in db.session.execute(
            select(TaskOwner).where(TaskOwner.contact_id == contact.id)
        ).scalars():
            db.session.delete(assignment)
        for gate in db.session.execute(select(TaskGate).where(TaskGate.owner_id == contact.id)).scalars():
            gate.owner_id = None
        for user in db.session.execute(select(User).where(User.contact_id == contact.id)).scalars():
            user.contact_id = None
        for project in db.session.execute(
            select(Project).where(Project.one_on_one_contact_id == contact.id)
        ).scalars():
            project.one_on_one_contact_id = None
        db.session.flush()

    db.session.delete(contact)
    db.session.commit()
    logger.info("Contact deleted id=%s cascade=%s refs=%s by user_id=%s", contact_id, cascade, refs, actor.user_id)
