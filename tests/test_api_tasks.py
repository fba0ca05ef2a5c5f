import pytest

from g3tornado.models import db as _db
from g3tornado.models.task import Task

from tests.conftest import auth_headers, make_contact, make_project, make_task


@pytest.fixture()
def project(member):
    return make_project("Depot", creator=member, is_bp=True)


def test_task_lifecycle(app, client, member, admin, project, bp_contact):
    headers = auth_headers(app, member)

    res = client.post("/api/v1/tasks", json={
        "description": "Replace dock door",
        "project_id": project.id,
        "gates": [{"name": "Quote", "owner_id": bp_contact.id}],
    }, headers=headers)
    assert res.status_code == 201
    task = res.get_json()
    assert task["fu_cadence_days"] == 3
    assert task["is_blocked"] is True
    assert task["gate_label"] == "1/1 Bea Parker"
    task_id = task["id"]

    res = client.post(f"/api/v1/tasks/{task_id}/notes", json={"body": "Asked for quote"}, headers=headers)
    assert res.status_code == 201

    res = client.post(f"/api/v1/tasks/{task_id}/gates/0/complete", headers=headers)
    assert res.status_code == 200
    assert res.get_json()["is_blocked"] is False

    res = client.post(f"/api/v1/tasks/{task_id}/request-close", headers=headers)
    assert res.get_json()["status"] == "pending_close"

    res = client.post(f"/api/v1/tasks/{task_id}/approve-close", headers=headers)
    assert res.status_code == 403

    res = client.post(f"/api/v1/tasks/{task_id}/approve-close", headers=auth_headers(app, admin))
    assert res.status_code == 200
    assert res.get_json()["status"] == "closed"

    res = client.get(f"/api/v1/tasks/{task_id}", headers=headers)
    detail = res.get_json()
    assert [n["body"] for n in detail["notes"]] == ["Asked for quote"]


def test_missing_description_is_400(app, client, member, project):
    res = client.post("/api/v1/tasks", json={"project_id": project.id}, headers=auth_headers(app, member))
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_invalid_cadence_is_422(app, client, member, project):
    res = client.post("/api/v1/tasks", json={
        "description": "x", "project_id": project.id, "fu_cadence_days": 0,
    }, headers=auth_headers(app, member))
    assert res.status_code == 422
    assert "fu_cadence_days" in res.get_json()["details"]


def test_invisible_task_is_404(app, client, member):
    stranger = make_contact("Stan Ger", is_up_employee=True)
    other_project = make_project("Hidden", is_up=True)
    task = make_task(other_project, owners=[stranger])
    res = client.get(f"/api/v1/tasks/{task.id}", headers=auth_headers(app, member))
    assert res.status_code == 404


def test_list_filters_by_status_and_staleness(app, client, member, project, bp_contact):
    make_task(project, owners=[bp_contact], days_ago=8, description="late")
    make_task(project, owners=[bp_contact], description="fresh")
    make_task(project, owners=[bp_contact], status="closed", description="done")
    headers = auth_headers(app, member)

    res = client.get("/api/v1/tasks?status=open", headers=headers)
    assert sorted(t["description"] for t in res.get_json()["items"]) == ["fresh", "late"]

    res = client.get("/api/v1/tasks?stale=true", headers=headers)
    items = res.get_json()["items"]
    assert [t["description"] for t in items] == ["late"]
    assert items[0]["days_since_movement"] == 8
    assert items[0]["is_stale"] is True

    res = client.get("/api/v1/tasks?status=bogus", headers=headers)
    assert res.status_code == 422


def test_gate_insert_and_remove(app, client, member, project, bp_contact):
    task = make_task(project, owners=[bp_contact], gates=[("A", None, False), ("C", None, False)])
    headers = auth_headers(app, member)

    res = client.post(f"/api/v1/tasks/{task.id}/gates", json={"name": "B", "position": 1}, headers=headers)
    assert res.status_code == 201
    assert [g["name"] for g in res.get_json()["gates"]] == ["A", "B", "C"]

    res = client.delete(f"/api/v1/tasks/{task.id}/gates/0", headers=headers)
    assert [(g["position"], g["name"]) for g in res.get_json()["gates"]] == [(0, "B"), (1, "C")]

    res = client.delete(f"/api/v1/tasks/{task.id}/gates/9", headers=headers)
    assert res.status_code == 404


def test_restart_clock_and_owners(app, client, member, project, bp_contact):
    colleague = make_contact("Ben Brown", is_bp_employee=True)
    task = make_task(project, owners=[bp_contact], days_ago=10)
    headers = auth_headers(app, member)

    res = client.post(f"/api/v1/tasks/{task.id}/restart-clock", json={"fu_cadence_days": 7}, headers=headers)
    assert res.get_json()["days_since_movement"] == 0

    res = client.put(f"/api/v1/tasks/{task.id}/owners",
                     json={"owner_ids": [bp_contact.id, colleague.id]}, headers=headers)
    assert res.status_code == 200
    assert sorted(o["contact_id"] for o in res.get_json()["owners"]) == sorted([bp_contact.id, colleague.id])

    res = client.delete(f"/api/v1/tasks/{task.id}", headers=headers)
    assert res.status_code == 403


def test_void_owner_is_admin_only(app, client, member, admin, project, bp_contact):
    task = make_task(project, owners=[bp_contact])
    url = f"/api/v1/tasks/{task.id}/owners/{bp_contact.id}/void"

    assert client.post(url, headers=auth_headers(app, member)).status_code == 403

    res = client.post(url, headers=auth_headers(app, admin))
    assert res.status_code == 200
    assert res.get_json()["owners"][0]["is_voided"] is True


def test_admin_close_completes_open_gates(app, client, admin, project, bp_contact):
    task = make_task(project, owners=[bp_contact], gates=[("A", None, False), ("B", None, False)])
    res = client.post(f"/api/v1/tasks/{task.id}/close", headers=auth_headers(app, admin))
    assert res.status_code == 200
    _db.session.expire_all()
    closed = _db.session.get(Task, task.id)
    assert closed.status == "closed"
    assert all(g.completed for g in closed.gates)


def test_note_delete(app, client, member, project, bp_contact):
    task = make_task(project, owners=[bp_contact])
    headers = auth_headers(app, member)
    note = client.post(f"/api/v1/tasks/{task.id}/notes", json={"body": "x"}, headers=headers).get_json()
    res = client.delete(f"/api/v1/notes/{note['id']}", headers=headers)
    assert res.status_code == 200
    assert client.delete(f"/api/v1/notes/{note['id']}", headers=headers).status_code == 404
