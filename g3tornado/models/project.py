"""Project model — a named grouping of tasks with a visibility mode."""

from datetime import datetime, timezone

from g3tornado.models import COMPANIES, db

VISIBILITY_SHARED = "shared"
VISIBILITY_PERSONAL = "personal"
VISIBILITY_ONE_ON_ONE = "one_on_one"
VALID_VISIBILITIES = {VISIBILITY_SHARED, VISIBILITY_PERSONAL, VISIBILITY_ONE_ON_ONE}

COMPANY_FLAGS = tuple(f"is_{key}" for key in COMPANIES)


class Project(db.Model):
    """Grouping of tasks. Company flags only matter for shared projects."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    visibility = db.Column(
        db.String(20), nullable=False, default=VISIBILITY_SHARED,
        comment="shared | personal | one_on_one",
    )

    is_up = db.Column(db.Boolean, nullable=False, default=False)
    is_bp = db.Column(db.Boolean, nullable=False, default=False)
    is_upfit = db.Column(db.Boolean, nullable=False, default=False)
    is_bpas = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    one_on_one_contact_id = db.Column(
        db.Integer, db.ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True,
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tasks = db.relationship("Task", back_populates="project", lazy="dynamic")

    @property
    def company_flags(self) -> frozenset[str]:
        """Company keys this project belongs to."""
        return frozenset(key for key in COMPANIES if getattr(self, f"is_{key}", False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "visibility": self.visibility,
            "is_up": self.is_up,
            "is_bp": self.is_bp,
            "is_upfit": self.is_upfit,
            "is_bpas": self.is_bpas,
            "companies": sorted(self.company_flags),
            "created_by": self.created_by,
            "one_on_one_contact_id": self.one_on_one_contact_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name}>"
