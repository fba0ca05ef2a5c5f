"""Small request helpers shared by the blueprints."""

from flask import g


def current_actor():
    """The request's ActorContext, set by the actor-context middleware."""
    return g.actor


def authenticated_actor():
    """The signed-in user's own ActorContext, even while impersonating."""
    return g.authenticated_actor


def parse_bool(value) -> bool:
    """Interpret query-string style booleans (``true``, ``1``, ``yes``)."""
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")
