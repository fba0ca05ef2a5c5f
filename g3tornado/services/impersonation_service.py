"""Impersonation service — start, stop and resolve admin "view as" sessions.

While a session is live, requests from its admin that carry the session token
in ``X-Impersonation-Token`` are evaluated with the target user's
``ActorContext``: same projects, same tasks, same issues. The admin's own
identity is kept separately for starting and stopping sessions.

The token is an opaque random value; it grants nothing without the admin's
own bearer token.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import select

from g3tornado.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from g3tornado.models import db
from g3tornado.models.impersonation import ImpersonationSession
from g3tornado.models.user import User
from g3tornado.services.staleness import utcnow
from g3tornado.services.visibility import ActorContext

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_SECONDS = 3600
TOKEN_HEADER = "X-Impersonation-Token"


def start_impersonation(
    target_user_id: int,
    actor: ActorContext,
    expires_seconds: int = DEFAULT_EXPIRES_SECONDS,
    now: datetime | None = None,
) -> dict:
    """Open a session for ``actor`` (an admin) to act as ``target_user_id``."""
    if not actor.is_admin:
        logger.warning("Denied impersonation for non-admin user_id=%s", actor.user_id)
        raise PermissionDeniedError("Only admins may impersonate users")

    target = db.session.get(User, target_user_id)
    if target is None or not target.is_active:
        raise NotFoundError(resource="User", resource_id=target_user_id)
    if target.id == actor.user_id:
        raise ValidationError("Cannot impersonate yourself", details={"target_user_id": "self"})

    now = now or utcnow()
    session = ImpersonationSession(
        admin_id=actor.user_id,
        target_user_id=target.id,
        token=secrets.token_hex(32),
        created_at=now,
        expires_at=now + timedelta(seconds=expires_seconds),
    )
    db.session.add(session)
    db.session.commit()
    logger.info(
        "Impersonation started session_id=%s admin_id=%s target_user_id=%s",
        session.id, actor.user_id, target.id,
    )
    return {
        "token": session.token,
        "session": session.to_dict(),
        "target_user": target.to_dict(),
    }


def stop_impersonation(token: str, actor: ActorContext, now: datetime | None = None) -> dict:
    """End the admin's session identified by ``token``. Ending twice is a no-op."""
    session = db.session.execute(
        select(ImpersonationSession).where(
            ImpersonationSession.token == token,
            ImpersonationSession.admin_id == actor.user_id,
        )
    ).scalar_one_or_none()
    if session is None:
        raise NotFoundError(resource="ImpersonationSession")

    if session.ended_at is None:
        session.ended_at = now or utcnow()
        db.session.commit()
        logger.info("Impersonation ended session_id=%s admin_id=%s", session.id, actor.user_id)
    return session.to_dict()


def resolve_target(admin: User, token: str | None, now: datetime | None = None) -> User | None:
    """The user ``admin`` is currently acting as, or None.

    Only a live session opened by this same admin counts; the target must
    still be active.
    """
    if not token or not admin.is_admin:
        return None

    session = db.session.execute(
        select(ImpersonationSession).where(ImpersonationSession.token == token)
    ).scalar_one_or_none()
    if session is None or session.admin_id != admin.id or not session.is_live(now or utcnow()):
        return None

    target = session.target_user
    if target is None or not target.is_active:
        return None
    return target
