"""
Actor context middleware — resolves the authenticated user into an ActorContext.

Runs after the JWT hook. Loads the User row (and its linked contact) once per
request and stores an immutable ``ActorContext`` on ``g.actor``; every service
call receives that object explicitly. API calls without a valid, active user
are rejected with 401.

An admin sending a live ``X-Impersonation-Token`` gets the target user's
context on ``g.actor``; their own stays on ``g.authenticated_actor``.
"""

import logging

from flask import g, request

from g3tornado.models import db
from g3tornado.services.impersonation_service import TOKEN_HEADER, resolve_target
from g3tornado.services.visibility import ActorContext
from g3tornado.utils.errors import E, api_error

logger = logging.getLogger(__name__)

_PUBLIC_PREFIXES = (
    "/api/v1/health",
)


def init_actor_context(app):
    """Register the actor-resolution before_request hook."""

    @app.before_request
    def _resolve_actor():
        g.actor = None
        g.authenticated_actor = None
        g.current_user = None

        path = request.path
        if not path.startswith("/api/v1/") or path.startswith(_PUBLIC_PREFIXES):
            return None
        if request.method == "OPTIONS":
            return None

        user_id = getattr(g, "jwt_user_id", None)
        if user_id is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")

        from g3tornado.models.user import User

        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            logger.warning("Token for unknown or inactive user id=%s on %s", user_id, path)
            return api_error(E.UNAUTHORIZED, "Authentication required")

        g.current_user = user
        g.authenticated_actor = ActorContext.from_user(user)
        g.actor = g.authenticated_actor

        token = request.headers.get(TOKEN_HEADER)
        if token:
            target = resolve_target(user, token)
            if target is None:
                logger.warning("Ignoring invalid impersonation token from user_id=%s on %s", user.id, path)
            else:
                g.actor = ActorContext.from_user(target, impersonator_id=user.id)
        return None
