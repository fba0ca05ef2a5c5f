"""
Shared pytest fixtures for the G3 Tornado test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)

Seed helpers (``make_*``) commit, so rows are visible to requests made
through the test client.
"""

from datetime import datetime, timedelta, timezone

import pytest

from g3tornado import create_app
from g3tornado.models import db as _db
from g3tornado.models.contact import Contact
from g3tornado.models.project import Project
from g3tornado.models.task import Task, TaskGate, TaskOwner
from g3tornado.models.user import User
from g3tornado.services.jwt_service import generate_access_token
from g3tornado.services.visibility import ActorContext

# Seeded timestamps are relative to real time so API calls (which use the
# wall clock) see the same day counts as service calls given ``now=NOW``.
NOW = datetime.now(timezone.utc)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Seed helpers ─────────────────────────────────────────────────────────


def make_contact(name, **flags):
    contact = Contact(name=name, **flags)
    _db.session.add(contact)
    _db.session.commit()
    return contact


def make_user(email, *, role="user", contact=None):
    user = User(email=email, full_name=email.split("@")[0], role=role,
                contact_id=contact.id if contact else None)
    _db.session.add(user)
    _db.session.commit()
    return user


def make_project(name, *, creator=None, **fields):
    project = Project(name=name, created_by=creator.id if creator else None, **fields)
    _db.session.add(project)
    _db.session.commit()
    return project


def make_task(project, *, owners=(), gates=(), days_ago=0, creator=None, **fields):
    """Create a task. ``gates`` items are ``(name, owner_contact, completed)``."""
    task = Task(
        description=fields.pop("description", "Follow up with vendor"),
        project_id=project.id,
        last_movement_at=fields.pop("last_movement_at", NOW - timedelta(days=days_ago)),
        created_by=creator.id if creator else None,
        **fields,
    )
    for owner in owners:
        task.assignments.append(TaskOwner(contact_id=owner.id))
    for name, owner, completed in gates:
        task.gates.append(TaskGate(name=name, owner_id=owner.id if owner else None, completed=completed))
    _db.session.add(task)
    _db.session.commit()
    return task


def actor_for(user):
    """ActorContext for a seeded user (reloads the linked contact)."""
    _db.session.refresh(user)
    return ActorContext.from_user(user)


def auth_headers(app, user) -> dict:
    with app.app_context():
        token = generate_access_token(user.id, user.role)
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def bp_contact():
    return make_contact("Bea Parker", is_bp_employee=True, email="bea@example.com")


@pytest.fixture()
def up_contact():
    return make_contact("Uli Peters", is_up_employee=True)


@pytest.fixture()
def member(bp_contact):
    """Non-admin user linked to a BP employee contact."""
    return make_user("bea@example.com", contact=bp_contact)


@pytest.fixture()
def admin():
    contact = make_contact("Ada Admin", is_up_employee=True)
    return make_user("ada@example.com", role="admin", contact=contact)
