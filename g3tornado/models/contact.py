"""Contact (owner) model — a person or vendor that can own tasks and gates."""

from datetime import datetime, timezone

from g3tornado.models import COMPANIES, db

EMPLOYEE_FLAGS = tuple(f"is_{key}_employee" for key in COMPANIES)
VENDOR_FLAG = "is_third_party_vendor"
TOGGLEABLE_FLAGS = EMPLOYEE_FLAGS + (VENDOR_FLAG,)


class Contact(db.Model):
    """A person or vendor, scoped to companies through affiliation flags."""

    __tablename__ = "contacts"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)

    # ── Company affiliation ──
    is_up_employee = db.Column(db.Boolean, nullable=False, default=False)
    is_bp_employee = db.Column(db.Boolean, nullable=False, default=False)
    is_upfit_employee = db.Column(db.Boolean, nullable=False, default=False)
    is_bpas_employee = db.Column(db.Boolean, nullable=False, default=False)
    is_third_party_vendor = db.Column(db.Boolean, nullable=False, default=False)

    # ── Private contacts are visible only to private_owner_id ──
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    private_owner_id = db.Column(db.Integer, nullable=True, comment="users.id allowed to see a private contact")

    created_by = db.Column(db.Integer, nullable=True, comment="users.id of the creator")
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

    @property
    def affiliations(self) -> frozenset[str]:
        """Company keys this contact is employed by."""
        return frozenset(key for key in COMPANIES if getattr(self, f"is_{key}_employee", False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "is_up_employee": self.is_up_employee,
            "is_bp_employee": self.is_bp_employee,
            "is_upfit_employee": self.is_upfit_employee,
            "is_bpas_employee": self.is_bpas_employee,
            "is_third_party_vendor": self.is_third_party_vendor,
            "is_private": self.is_private,
            "private_owner_id": self.private_owner_id,
            "affiliations": sorted(self.affiliations),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Contact {self.id}: {self.name}>"
