"""Task service — tasks, owners, gates, notes and the close workflow.

Rules:
  - The actor is always an explicit ``ActorContext`` parameter (never from g).
  - db.session.commit() happens only in the service layer.
  - Tasks the actor cannot see are reported as missing (NotFoundError).
    Admin-only management actions (void, approve / reject / close) may reach
    any task; listing never widens for admins.
  - Movement (note, gate completion, clock restart) resets last_movement_at.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select

from g3tornado.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from g3tornado.models import db
from g3tornado.models.contact import Contact
from g3tornado.models.task import (
    STATUS_CLOSED,
    STATUS_OPEN,
    STATUS_PENDING_CLOSE,
    VALID_STATUSES,
    Task,
    TaskGate,
    TaskNote,
    TaskOwner,
)
from g3tornado.services.gates import active_gate, format_gate, gate_progress
from g3tornado.services.project_service import get_visible_project
from g3tornado.services.staleness import (
    DEFAULT_FU_CADENCE_DAYS,
    days_between,
    days_past_cadence,
    days_since_movement,
    is_stale,
    record_movement,
    utcnow,
)
from g3tornado.services.visibility import ActorContext, filter_visible_tasks, is_task_visible, policy_for

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────


def _require_admin(actor: ActorContext, action: str) -> None:
    if not actor.is_admin:
        logger.warning("Denied %s for non-admin user_id=%s", action, actor.user_id)
        raise PermissionDeniedError(f"Only admins may {action}")


def parse_cadence(value: Any) -> int:
    """Validate a follow-up cadence: a strictly positive whole number of days."""
    if isinstance(value, bool):
        value = None
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(
            "fu_cadence_days must be a positive whole number of days",
            details={"fu_cadence_days": value},
        )
    return value


def get_task(task_id: int, actor: ActorContext, manage: bool = False) -> Task:
    """Load a task visible to the actor, or raise NotFoundError.

    ``manage=True`` lets admins reach tasks outside their own view.
    """
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(resource="Task", resource_id=task_id)
    if manage and actor.is_admin:
        return task
    if not is_task_visible(task, actor):
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def _gate_at(task: Task, position: int) -> TaskGate:
    if not 0 <= position < len(task.gates):
        raise NotFoundError(resource="Gate", resource_id=f"{task.id}/{position}")
    return task.gates[position]


def _assignable_contact(contact_id: Any, task_project, actor: ActorContext) -> Contact:
    contact = db.session.get(Contact, contact_id) if contact_id is not None else None
    policy = policy_for(actor)
    if contact is None or not policy.can_view_contact(contact, actor):
        raise NotFoundError(resource="Contact", resource_id=contact_id)
    if not policy.can_assign_contact(contact, task_project, actor):
        raise ValidationError(
            f"Contact {contact.name!r} cannot be assigned to tasks in this project",
            details={"contact_id": contact.id},
        )
    return contact


def _gate_owner(owner_id: Any, actor: ActorContext) -> int | None:
    if owner_id in (None, ""):
        return None
    contact = db.session.get(Contact, owner_id)
    if contact is None or not policy_for(actor).can_view_contact(contact, actor):
        raise NotFoundError(resource="Contact", resource_id=owner_id)
    return contact.id


def serialize_task(task: Task, now: datetime | None = None) -> dict:
    """Task row plus the derived fields list and table views render."""
    now = now or utcnow()
    gate = active_gate(task.gates)
    progress = gate_progress(task.gates)
    data = task.to_dict()
    data.update({
        "project_name": task.project.name if task.project else None,
        "days_since_movement": days_since_movement(task, now),
        "days_past_cadence": days_past_cadence(task, now),
        "is_stale": is_stale(task, now),
        "active_gate": gate.to_dict() if gate is not None else None,
        "gate_progress": progress.to_dict(),
        "gate_label": (
            format_gate(progress.current_index, progress.total, progress.current.owner_name)
            if progress.current is not None else None
        ),
    })
    return data


# ── Tasks ────────────────────────────────────────────────────────────────


def visible_tasks(actor: ActorContext, statuses=None, project_id: int | None = None) -> list[Task]:
    stmt = select(Task).order_by(Task.id)
    if statuses:
        stmt = stmt.where(Task.status.in_(list(statuses)))
    if project_id is not None:
        stmt = stmt.where(Task.project_id == project_id)
    return filter_visible_tasks(db.session.execute(stmt).scalars().all(), actor)


def list_tasks(
    actor: ActorContext,
    status: str | None = None,
    project_id: int | None = None,
    stale_only: bool = False,
    now: datetime | None = None,
) -> list[dict]:
    if status is not None and status not in VALID_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(VALID_STATUSES))}",
            details={"status": status},
        )
    now = now or utcnow()
    tasks = visible_tasks(actor, [status] if status else None, project_id)
    if stale_only:
        tasks = [t for t in tasks if is_stale(t, now)]
    return [serialize_task(t, now) for t in tasks]


def create_task(data: dict, actor: ActorContext, default_cadence: int = DEFAULT_FU_CADENCE_DAYS,
                now: datetime | None = None) -> dict:
    """Create a task in a visible project.

    The creator's own contact is always assigned. Extra owners must be
    assignable in the project. ``gates`` is an optional ordered list of
    ``{"name", "owner_id"}``.
    """
    description = (data.get("description") or "").strip()
    if not description:
        raise ValidationError("description is required", details={"description": "required"})
    if data.get("project_id") is None:
        raise ValidationError("project_id is required", details={"project_id": "required"})
    project = get_visible_project(data["project_id"], actor)

    raw_cadence = data.get("fu_cadence_days")
    cadence = parse_cadence(raw_cadence) if raw_cadence is not None else parse_cadence(default_cadence)

    task = Task(
        description=description,
        project_id=project.id,
        status=STATUS_OPEN,
        fu_cadence_days=cadence,
        next_step=data.get("next_step") or None,
        created_by=actor.user_id,
    )
    record_movement(task, now)

    owner_ids: list[int] = []
    if actor.contact_id is not None:
        owner_ids.append(actor.contact_id)
    for contact_id in data.get("owner_ids") or []:
        if contact_id in owner_ids:
            continue
        owner_ids.append(_assignable_contact(contact_id, project, actor).id)
    for contact_id in owner_ids:
        task.assignments.append(TaskOwner(contact_id=contact_id))

    for raw_gate in data.get("gates") or []:
        name = (raw_gate.get("name") or "").strip()
        if not name:
            raise ValidationError("gate name is required", details={"gates": "name required"})
        task.gates.append(TaskGate(name=name, owner_id=_gate_owner(raw_gate.get("owner_id"), actor)))

    db.session.add(task)
    db.session.commit()
    logger.info(
        "Task created id=%s project_id=%s owners=%s gates=%s by user_id=%s",
        task.id, project.id, owner_ids, len(task.gates), actor.user_id,
    )
    return serialize_task(task, now)


def update_task(task_id: int, data: dict, actor: ActorContext, now: datetime | None = None) -> dict:
    task = get_task(task_id, actor)
    if "description" in data:
        description = (data.get("description") or "").strip()
        if not description:
            raise ValidationError("description is required", details={"description": "required"})
        task.description = description
    if "next_step" in data:
        task.next_step = data.get("next_step") or None
    if "fu_cadence_days" in data:
        task.fu_cadence_days = parse_cadence(data.get("fu_cadence_days"))
    if "project_id" in data and data["project_id"] != task.project_id:
        task.project_id = get_visible_project(data["project_id"], actor).id

    db.session.commit()
    logger.info("Task updated id=%s fields=%s by user_id=%s", task.id, sorted(data), actor.user_id)
    return serialize_task(task, now)


def delete_task(task_id: int, actor: ActorContext) -> None:
    """Admins delete any task; others only tasks with at most one owner."""
    task = get_task(task_id, actor, manage=True)
    if not actor.is_admin and len(task.assignments) > 1:
        raise PermissionDeniedError("Only admins may delete a task with several owners")

    db.session.delete(task)
    db.session.commit()
    logger.info("Task deleted id=%s by user_id=%s", task_id, actor.user_id)


# ── Notes ────────────────────────────────────────────────────────────────


def add_note(task_id: int, body: str, actor: ActorContext, now: datetime | None = None) -> dict:
    """Append a note; this is movement and restarts the staleness clock."""
    task = get_task(task_id, actor)
    body = (body or "").strip()
    if not body:
        raise ValidationError("body is required", details={"body": "required"})

    moved_at = record_movement(task, now)
    note = TaskNote(body=body, created_by=actor.user_id, created_at=moved_at)
    task.notes.append(note)
    db.session.commit()
    logger.info("Note added task_id=%s note_id=%s by user_id=%s", task.id, note.id, actor.user_id)
    return note.to_dict()


def delete_note(note_id: int, actor: ActorContext) -> None:
    """Admins delete any note; authors only on tasks with at most one owner."""
    note = db.session.get(TaskNote, note_id)
    if note is None:
        raise NotFoundError(resource="Note", resource_id=note_id)
    task = get_task(note.task_id, actor, manage=True)

    if not actor.is_admin:
        if note.created_by != actor.user_id:
            raise PermissionDeniedError("Only the author or an admin may delete a note")
        if len(task.assignments) > 1:
            raise PermissionDeniedError("Only admins may delete notes on tasks with several owners")

    task.notes.remove(note)
    db.session.commit()
    logger.info("Note deleted id=%s task_id=%s by user_id=%s", note_id, task.id, actor.user_id)


# ── Owners ───────────────────────────────────────────────────────────────


def set_owners(task_id: int, contact_ids: list, actor: ActorContext) -> dict:
    """Replace the owner set. Kept owners retain their voided flag."""
    task = get_task(task_id, actor)
    wanted: list[int] = []
    for contact_id in contact_ids or []:
        if contact_id not in wanted:
            wanted.append(contact_id)
    if not wanted:
        raise ValidationError("A task needs at least one owner", details={"owner_ids": "required"})

    current = {a.contact_id: a for a in task.assignments}
    for contact_id in wanted:
        if contact_id not in current:
            contact = _assignable_contact(contact_id, task.project, actor)
            task.assignments.append(TaskOwner(contact_id=contact.id))
    for contact_id, assignment in current.items():
        if contact_id not in wanted:
            task.assignments.remove(assignment)

    db.session.commit()
    logger.info("Task owners set task_id=%s owners=%s by user_id=%s", task.id, wanted, actor.user_id)
    return serialize_task(task)


def void_owner(task_id: int, contact_id: int, actor: ActorContext, voided: bool = True) -> dict:
    """Void (or un-void) one assignment. Voided owners stop seeing the task
    once every assignment on it is voided."""
    _require_admin(actor, "void task owners")
    task = get_task(task_id, actor, manage=True)
    assignment = next((a for a in task.assignments if a.contact_id == contact_id), None)
    if assignment is None:
        raise NotFoundError(resource="TaskOwner", resource_id=f"{task_id}/{contact_id}")

    assignment.is_voided = bool(voided)
    db.session.commit()
    logger.info(
        "Task owner voided=%s task_id=%s contact_id=%s by user_id=%s",
        assignment.is_voided, task.id, contact_id, actor.user_id,
    )
    return serialize_task(task)


# ── Gates ────────────────────────────────────────────────────────────────


def insert_gate(task_id: int, data: dict, actor: ActorContext) -> dict:
    """Insert a gate at ``position`` (default: end); later gates shift down."""
    task = get_task(task_id, actor)
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})

    position = data.get("position")
    if position is None:
        position = len(task.gates)
    if isinstance(position, bool) or not isinstance(position, int) or not 0 <= position <= len(task.gates):
        raise ValidationError(
            f"position must be between 0 and {len(task.gates)}",
            details={"position": position},
        )

    gate = TaskGate(name=name, owner_id=_gate_owner(data.get("owner_id"), actor))
    task.gates.insert(position, gate)
    db.session.commit()
    logger.info("Gate inserted task_id=%s position=%s by user_id=%s", task.id, position, actor.user_id)
    return serialize_task(task)


def complete_gate(task_id: int, position: int, actor: ActorContext, now: datetime | None = None) -> dict:
    task = get_task(task_id, actor)
    gate = _gate_at(task, position)
    if gate.completed:
        raise ConflictError("Gate", "completed", str(position), message="Gate is already completed")

    gate.completed = True
    gate.completed_at = record_movement(task, now)
    db.session.commit()
    logger.info("Gate completed task_id=%s position=%s by user_id=%s", task.id, position, actor.user_id)
    return serialize_task(task, now)


def reopen_gate(task_id: int, position: int, actor: ActorContext) -> dict:
    task = get_task(task_id, actor)
    gate = _gate_at(task, position)
    if not gate.completed:
        raise ConflictError("Gate", "completed", str(position), message="Gate is not completed")

    gate.completed = False
    gate.completed_at = None
    db.session.commit()
    logger.info("Gate reopened task_id=%s position=%s by user_id=%s", task.id, position, actor.user_id)
    return serialize_task(task)


def remove_gate(task_id: int, position: int, actor: ActorContext) -> dict:
    task = get_task(task_id, actor)
    _gate_at(task, position)
    task.gates.pop(position)
    db.session.commit()
    logger.info("Gate removed task_id=%s position=%s by user_id=%s", task.id, position, actor.user_id)
    return serialize_task(task)


# ── Clock and close workflow ─────────────────────────────────────────────


def restart_clock(task_id: int, cadence: Any, actor: ActorContext, now: datetime | None = None) -> dict:
    """Set a new cadence and count now as movement."""
    task = get_task(task_id, actor)
    task.fu_cadence_days = parse_cadence(cadence)
    record_movement(task, now)
    db.session.commit()
    logger.info("Clock restarted task_id=%s cadence=%s by user_id=%s", task.id, task.fu_cadence_days, actor.user_id)
    return serialize_task(task, now)


def request_close(task_id: int, actor: ActorContext, now: datetime | None = None) -> dict:
    """Owners ask an admin to close the task."""
    if actor.is_admin:
        raise ValidationError("Admins close tasks directly", details={"action": "close"})
    task = get_task(task_id, actor)
    if task.status != STATUS_OPEN:
        raise ConflictError("Task", "status", task.status, message=f"Task is {task.status}, not open")

    task.status = STATUS_PENDING_CLOSE
    task.close_requested_at = now or utcnow()
    task.close_requested_by = actor.user_id
    db.session.commit()
    logger.info("Close requested task_id=%s by user_id=%s", task.id, actor.user_id)
    return serialize_task(task, now)


def _close(task: Task, actor: ActorContext, now: datetime) -> int:
    completed = 0
    for gate in task.gates:
        if not gate.completed:
            gate.completed = True
            gate.completed_at = now
            completed += 1
    task.status = STATUS_CLOSED
    task.closed_at = now
    task.closed_by = actor.user_id
    task.close_requested_at = None
    task.close_requested_by = None
    return completed


def approve_close(task_id: int, actor: ActorContext, now: datetime | None = None) -> dict:
    _require_admin(actor, "approve close requests")
    task = get_task(task_id, actor, manage=True)
    if task.status != STATUS_PENDING_CLOSE:
        raise ConflictError("Task", "status", task.status, message="Task has no pending close request")

    now = now or utcnow()
    gates_completed = _close(task, actor, now)
    db.session.commit()
    logger.info(
        "Close approved task_id=%s gates_completed=%s by user_id=%s",
        task.id, gates_completed, actor.user_id,
    )
    return serialize_task(task, now)


def reject_close(task_id: int, actor: ActorContext, now: datetime | None = None) -> dict:
    _require_admin(actor, "reject close requests")
    task = get_task(task_id, actor, manage=True)
    if task.status != STATUS_PENDING_CLOSE:
        raise ConflictError("Task", "status", task.status, message="Task has no pending close request")

    task.status = STATUS_OPEN
    task.close_requested_at = None
    task.close_requested_by = None
    db.session.commit()
    logger.info("Close rejected task_id=%s by user_id=%s", task.id, actor.user_id)
    return serialize_task(task, now)


def close_task(task_id: int, actor: ActorContext, now: datetime | None = None) -> dict:
    """Close directly, completing any gates still open."""
    _require_admin(actor, "close tasks")
    task = get_task(task_id, actor, manage=True)
    if task.status == STATUS_CLOSED:
        raise ConflictError("Task", "status", task.status, message="Task is already closed")

    now = now or utcnow()
    gates_completed = _close(task, actor, now)
    db.session.commit()
    logger.info(
        "Task closed id=%s gates_completed=%s by user_id=%s",
        task.id, gates_completed, actor.user_id,
    )
    return serialize_task(task, now)


# ── Nudges ───────────────────────────────────────────────────────────────


def nudge_preview(actor: ActorContext, cooldown_days: int, now: datetime | None = None) -> list[dict]:
    """Gate owners who would be nudged right now. Nothing is sent.

    Candidates are open, gated, overdue tasks not nudged within the cooldown.
    Each incomplete gate with an owner yields one entry.
    """
    _require_admin(actor, "preview nudges")
    now = now or utcnow()
    tasks = db.session.execute(
        select(Task).where(Task.status == STATUS_OPEN).order_by(Task.id)
    ).scalars().all()

    entries = []
    for task in tasks:
        if active_gate(task.gates) is None or not is_stale(task, now):
            continue
        since_nudge = days_between(task.last_nudge_at, now)
        if since_nudge is not None and since_nudge < cooldown_days:
            continue
        for gate in task.gates:
            if gate.completed or gate.owner is None:
                continue
            entries.append({
                "task_id": task.id,
                "task_description": task.description,
                "gate_position": gate.position,
                "gate_name": gate.name,
                "owner_id": gate.owner_id,
                "owner_name": gate.owner.name,
                "owner_email": gate.owner.email,
                "days_since_movement": days_since_movement(task, now),
                "days_past_cadence": days_past_cadence(task, now),
            })
    logger.info("Nudge preview by user_id=%s candidates=%s", actor.user_id, len(entries))
    return entries
