"""Admin impersonation: sessions, resolution and the "view as" request flow."""

from datetime import timedelta

import pytest

from g3tornado.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from g3tornado.models import db as _db
from g3tornado.models.impersonation import ImpersonationSession
from g3tornado.services import impersonation_service
from g3tornado.services.impersonation_service import TOKEN_HEADER, resolve_target

from tests.conftest import NOW, actor_for, auth_headers, make_contact, make_project, make_task, make_user


@pytest.fixture()
def world(member, admin, bp_contact):
    """A member's task, an admin-only task and a task neither of them can see."""
    member_task = make_task(make_project("BP Depot", is_bp=True), owners=[bp_contact])
    admin_task = make_task(
        make_project("Admin notes", creator=admin, visibility="personal"),
        owners=[admin.contact],
    )
    stranger = make_contact("Stan Ger", is_up_employee=True)
    make_task(make_project("UP Yard", is_up=True), owners=[stranger])
    return {"member_task": member_task, "admin_task": admin_task}


def _start(admin, member, **kwargs):
    return impersonation_service.start_impersonation(member.id, actor_for(admin), now=NOW, **kwargs)


class TestSessions:
    def test_start_returns_token_and_target(self, admin, member):
        result = _start(admin, member)
        assert len(result["token"]) == 64
        assert result["target_user"]["id"] == member.id
        assert result["session"]["ended_at"] is None

    def test_members_cannot_impersonate(self, member, admin):
        with pytest.raises(PermissionDeniedError):
            impersonation_service.start_impersonation(admin.id, actor_for(member))

    def test_cannot_impersonate_self(self, admin):
        with pytest.raises(ValidationError):
            impersonation_service.start_impersonation(admin.id, actor_for(admin))

    def test_inactive_target_is_missing(self, admin, member):
        member.is_active = False
        _db.session.commit()
        with pytest.raises(NotFoundError):
            _start(admin, member)

    def test_stop_is_idempotent(self, admin, member):
        token = _start(admin, member)["token"]
        first = impersonation_service.stop_impersonation(token, actor_for(admin), now=NOW)
        second = impersonation_service.stop_impersonation(token, actor_for(admin))
        assert first["ended_at"] is not None
        assert second["ended_at"] == first["ended_at"]

    def test_stop_only_own_sessions(self, admin, member):
        token = _start(admin, member)["token"]
        other_admin = make_user("ops@example.com", role="admin")
        with pytest.raises(NotFoundError):
            impersonation_service.stop_impersonation(token, actor_for(other_admin))


class TestResolveTarget:
    def test_live_session_resolves(self, admin, member):
        token = _start(admin, member)["token"]
        assert resolve_target(admin, token, now=NOW).id == member.id

    def test_expired_session_ignored(self, admin, member):
        token = _start(admin, member, expires_seconds=60)["token"]
        assert resolve_target(admin, token, now=NOW + timedelta(minutes=2)) is None

    def test_ended_session_ignored(self, admin, member):
        token = _start(admin, member)["token"]
        impersonation_service.stop_impersonation(token, actor_for(admin), now=NOW)
        assert resolve_target(admin, token, now=NOW) is None

    def test_token_bound_to_its_admin(self, admin, member):
        token = _start(admin, member)["token"]
        other_admin = make_user("ops@example.com", role="admin")
        assert resolve_target(other_admin, token, now=NOW) is None

    def test_unknown_token(self, admin):
        assert resolve_target(admin, "nope", now=NOW) is None


class TestViewAs:
    def _ids(self, res):
        assert res.status_code == 200
        return [item["id"] for item in res.get_json()["items"]]

    def test_admin_sees_exactly_the_targets_tasks_and_projects(self, app, client, admin, member, world):
        admin_headers = auth_headers(app, admin)
        member_headers = auth_headers(app, member)

        assert self._ids(client.get("/api/v1/tasks", headers=admin_headers)) == [world["admin_task"].id]

        res = client.post("/api/v1/admin/impersonate/start", json={"target_user_id": member.id},
                          headers=admin_headers)
        assert res.status_code == 201
        view_as = {**admin_headers, TOKEN_HEADER: res.get_json()["token"]}

        member_tasks = self._ids(client.get("/api/v1/tasks", headers=member_headers))
        member_projects = self._ids(client.get("/api/v1/projects", headers=member_headers))
        assert member_tasks == [world["member_task"].id]

        assert self._ids(client.get("/api/v1/tasks", headers=view_as)) == member_tasks
        assert self._ids(client.get("/api/v1/projects", headers=view_as)) == member_projects
        assert len(self._ids(client.get("/api/v1/projects", headers=admin_headers))) == 3

        status = client.get("/api/v1/admin/impersonate", headers=view_as).get_json()
        assert status == {"is_impersonating": True, "effective_user_id": member.id, "real_user_id": admin.id}

    def test_impersonated_admin_loses_admin_actions(self, app, client, admin, member, world):
        admin_headers = auth_headers(app, admin)
        token = client.post("/api/v1/admin/impersonate/start", json={"target_user_id": member.id},
                            headers=admin_headers).get_json()["token"]
        res = client.get("/api/v1/issues/nudges", headers={**admin_headers, TOKEN_HEADER: token})
        assert res.status_code == 403

    def test_stop_restores_own_view(self, app, client, admin, member, world):
        admin_headers = auth_headers(app, admin)
        token = client.post("/api/v1/admin/impersonate/start", json={"target_user_id": member.id},
                            headers=admin_headers).get_json()["token"]
        view_as = {**admin_headers, TOKEN_HEADER: token}

        res = client.post("/api/v1/admin/impersonate/stop", headers=view_as)
        assert res.status_code == 200
        assert _db.session.query(ImpersonationSession).one().ended_at is not None

        assert self._ids(client.get("/api/v1/tasks", headers=view_as)) == [world["admin_task"].id]

    def test_member_cannot_start(self, app, client, admin, member):
        res = client.post("/api/v1/admin/impersonate/start", json={"target_user_id": admin.id},
                          headers=auth_headers(app, member))
        assert res.status_code == 403

    def test_token_useless_without_its_admin(self, app, client, admin, member, world):
        token = _start(admin, member)["token"]
        other_admin = make_user("ops@example.com", role="admin")
        res = client.get("/api/v1/tasks", headers={**auth_headers(app, other_admin), TOKEN_HEADER: token})
        assert self._ids(res) == []

    def test_start_requires_integer_target(self, app, client, admin):
        res = client.post("/api/v1/admin/impersonate/start", json={"target_user_id": "7"},
                          headers=auth_headers(app, admin))
        assert res.status_code == 400
