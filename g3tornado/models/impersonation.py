"""Impersonation sessions — an admin temporarily acting as another user."""

from datetime import datetime, timezone

from g3tornado.models import db
from g3tornado.services.staleness import to_utc


class ImpersonationSession(db.Model):
    __tablename__ = "impersonation_sessions"

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    admin = db.relationship("User", foreign_keys=[admin_id])
    target_user = db.relationship("User", foreign_keys=[target_user_id])

    def is_live(self, now: datetime) -> bool:
        """Not ended and not yet expired at ``now``."""
        return self.ended_at is None and to_utc(self.expires_at) > now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "target_user_id": self.target_user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }

    def __repr__(self) -> str:
        return f"<ImpersonationSession {self.id}: {self.admin_id} as {self.target_user_id}>"
