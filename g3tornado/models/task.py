"""Task, gate, owner-assignment and note models."""

from datetime import datetime, timezone

from sqlalchemy.ext.orderinglist import ordering_list

from g3tornado.models import db
from g3tornado.services.gates import active_gate

STATUS_OPEN = "open"
STATUS_PENDING_CLOSE = "pending_close"
STATUS_CLOSED = "closed"
VALID_STATUSES = {STATUS_OPEN, STATUS_PENDING_CLOSE, STATUS_CLOSED}


def _utcnow():
    return datetime.now(timezone.utc)


class Task(db.Model):
    """Core unit of work. Blocked state is derived from the gate list."""

    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.Text, nullable=False)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_OPEN,
        comment="open | pending_close | closed",
    )
    fu_cadence_days = db.Column(db.Integer, nullable=False, default=3)
    last_movement_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    next_step = db.Column(db.Text, nullable=True)

    close_requested_at = db.Column(db.DateTime(timezone=True), nullable=True)
    close_requested_by = db.Column(db.Integer, nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.Integer, nullable=True)
    last_nudge_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", back_populates="tasks")
    assignments = db.relationship(
        "TaskOwner", back_populates="task", cascade="all, delete-orphan", lazy="selectin",
    )
    gates = db.relationship(
        "TaskGate",
        back_populates="task",
        order_by="TaskGate.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    notes = db.relationship(
        "TaskNote",
        back_populates="task",
        order_by="TaskNote.created_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def owner_ids(self) -> list[int]:
        return [a.contact_id for a in self.assignments]

    @property
    def active_gate(self):
        return active_gate(self.gates)

    @property
    def is_blocked(self) -> bool:
        return self.active_gate is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "project_id": self.project_id,
            "status": self.status,
            "fu_cadence_days": self.fu_cadence_days,
            "last_movement_at": self.last_movement_at.isoformat() if self.last_movement_at else None,
            "next_step": self.next_step,
            "is_blocked": self.is_blocked,
            "owners": [a.to_dict() for a in self.assignments],
            "gates": [g.to_dict() for g in self.gates],
            "close_requested_at": self.close_requested_at.isoformat() if self.close_requested_at else None,
            "close_requested_by": self.close_requested_by,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "closed_by": self.closed_by,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.status}>"


class TaskOwner(db.Model):
    """Assignment of a contact to a task. Admins may void an assignment."""

    __tablename__ = "task_owners"

    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id", ondelete="CASCADE"), primary_key=True)
    is_voided = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    task = db.relationship("Task", back_populates="assignments")
    contact = db.relationship("Contact")

    def to_dict(self) -> dict:
        return {
            "contact_id": self.contact_id,
            "name": self.contact.name if self.contact else None,
            "is_voided": self.is_voided,
        }


class TaskGate(db.Model):
    """One step of a task's sequential approval chain.

    Ownership is a contact reference; ``owner_name`` is looked up, never stored.
    """

    __tablename__ = "task_gates"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(200), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    task = db.relationship("Task", back_populates="gates")
    owner = db.relationship("Contact")

    @property
    def owner_name(self) -> str | None:
        return self.owner.name if self.owner else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "name": self.name,
            "owner_id": self.owner_id,
            "owner_name": self.owner_name,
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class TaskNote(db.Model):
    """Timestamped update on a task. Creating one counts as movement."""

    __tablename__ = "task_notes"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    body = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    task = db.relationship("Task", back_populates="notes")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "body": self.body,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
