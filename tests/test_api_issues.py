from datetime import timedelta

import pytest

from tests.conftest import NOW, auth_headers, make_contact, make_project, make_task


@pytest.fixture()
def project(member):
    return make_project("Depot", creator=member)


def test_issues_sorted_with_summary(app, client, member, project, bp_contact):
    make_task(project, owners=[bp_contact], days_ago=1, description="gated",
              gates=[("Legal", bp_contact, False)])
    make_task(project, owners=[bp_contact], days_ago=20, description="very late")
    make_task(project, owners=[bp_contact], status="pending_close", description="asking",
              close_requested_at=NOW - timedelta(days=1))
    make_task(project, owners=[bp_contact], days_ago=5, description="late")
    make_task(project, owners=[bp_contact], days_ago=40, status="closed", description="done")

    res = client.get("/api/v1/issues", headers=auth_headers(app, member))
    assert res.status_code == 200
    body = res.get_json()

    assert [(i["type"], i["severity"]) for i in body["items"]] == [
        ("overdue", "critical"),
        ("gated", "warning"),
        ("overdue", "warning"),
        ("close_requested", "info"),
    ]
    assert body["items"][1]["title"] == "Blocked: gated"
    assert body["summary"]["by_severity"] == {"critical": 1, "warning": 2, "info": 1}
    assert body["summary"]["open_tasks"] == 3


def test_issues_only_cover_visible_tasks(app, client, member):
    stranger = make_contact("Stan Ger", is_up_employee=True)
    make_task(make_project("Hidden", is_up=True), owners=[stranger], days_ago=30)
    res = client.get("/api/v1/issues", headers=auth_headers(app, member))
    assert res.get_json()["items"] == []


def test_issue_filters(app, client, member, project, bp_contact):
    make_task(project, owners=[bp_contact], days_ago=20, gates=[("Legal", None, False)])
    headers = auth_headers(app, member)

    res = client.get("/api/v1/issues?severity=warning", headers=headers)
    assert [i["type"] for i in res.get_json()["items"]] == ["gated"]

    res = client.get("/api/v1/issues?type=overdue", headers=headers)
    assert [i["severity"] for i in res.get_json()["items"]] == ["critical"]

    assert client.get("/api/v1/issues?severity=urgent", headers=headers).status_code == 400


def test_nudge_preview_admin_only(app, client, member, admin, project, bp_contact):
    make_task(project, owners=[bp_contact], days_ago=9, gates=[("Quote", bp_contact, False)])

    assert client.get("/api/v1/issues/nudges", headers=auth_headers(app, member)).status_code == 403

    res = client.get("/api/v1/issues/nudges", headers=auth_headers(app, admin))
    assert res.status_code == 200
    body = res.get_json()
    assert body["cooldown_days"] == 3
    assert [(e["gate_name"], e["owner_name"]) for e in body["items"]] == [("Quote", "Bea Parker")]
