from types import SimpleNamespace

from g3tornado.services.visibility import (
    ActorContext,
    AdminPolicy,
    MemberPolicy,
    filter_contacts_by_project,
    filter_projects,
    filter_visible_contacts,
    filter_visible_tasks,
    is_project_visible,
    is_task_visible,
    policy_for,
)


def _project(id=1, visibility="shared", created_by=None, one_on_one_contact_id=None, **companies):
    flags = {f"is_{key}": companies.get(key, False) for key in ("up", "bp", "upfit", "bpas")}
    return SimpleNamespace(id=id, visibility=visibility, created_by=created_by,
                           one_on_one_contact_id=one_on_one_contact_id, **flags)


def _contact(id, vendor=False, private=False, private_owner_id=None, **companies):
    flags = {f"is_{key}_employee": companies.get(key, False) for key in ("up", "bp", "upfit", "bpas")}
    return SimpleNamespace(id=id, name=f"c{id}", is_third_party_vendor=vendor,
                           is_private=private, private_owner_id=private_owner_id, **flags)


def _member(user_id=10, contact_id=100, affiliations=(), vendor=False):
    return ActorContext(user_id=user_id, contact_id=contact_id,
                        affiliations=frozenset(affiliations), is_vendor=vendor)


ADMIN = ActorContext(user_id=1, contact_id=None, is_admin=True)


class TestProjectVisibility:
    def test_shared_without_flags_is_visible_to_everyone(self):
        project = _project()
        assert is_project_visible(project, _member(affiliations=()))
        assert is_project_visible(project, _member(affiliations=("bp",)))
        assert is_project_visible(project, _member(contact_id=None))

    def test_shared_company_project_matches_affiliation(self):
        project = _project(up=True)
        assert is_project_visible(project, _member(affiliations=("up",)))
        assert not is_project_visible(project, _member(affiliations=("bp",)))

    def test_vendor_sees_every_shared_project(self):
        project = _project(bpas=True)
        assert is_project_visible(project, _member(affiliations=(), vendor=True))

    def test_personal_is_creator_only(self):
        project = _project(visibility="personal", created_by=10, up=True)
        assert is_project_visible(project, _member(user_id=10))
        assert not is_project_visible(project, _member(user_id=11, affiliations=("up",)))
        assert not is_project_visible(project, _member(user_id=11, vendor=True))

    def test_admin_bypasses_personal(self):
        project = _project(visibility="personal", created_by=10)
        assert is_project_visible(project, ADMIN)

    def test_one_on_one_visible_to_creator_and_designated_contact(self):
        project = _project(visibility="one_on_one", created_by=10, one_on_one_contact_id=200)
        assert is_project_visible(project, _member(user_id=10, contact_id=100))
        assert is_project_visible(project, _member(user_id=11, contact_id=200))
        assert not is_project_visible(project, _member(user_id=12, contact_id=300))
        assert not is_project_visible(project, _member(user_id=13, contact_id=None))

    def test_filter_projects_keeps_order(self):
        projects = [_project(1, up=True), _project(2, bp=True), _project(3)]
        visible = filter_projects(projects, _member(affiliations=("bp",)))
        assert [p.id for p in visible] == [2, 3]

    def test_policy_dispatch(self):
        assert isinstance(policy_for(ADMIN), AdminPolicy)
        assert isinstance(policy_for(_member()), MemberPolicy)


class TestContactFiltering:
    def test_contacts_without_affiliation_are_excluded(self):
        contacts = [_contact(1), _contact(2, up=True), _contact(3, vendor=True)]
        result = filter_contacts_by_project(contacts, _project(up=True), _member())
        assert [c.id for c in result] == [2]

    def test_requires_company_overlap(self):
        contacts = [_contact(1, up=True), _contact(2, bp=True), _contact(3, bp=True, upfit=True)]
        result = filter_contacts_by_project(contacts, _project(upfit=True), _member())
        assert [c.id for c in result] == [3]

    def test_project_without_flags_accepts_any_affiliated_contact(self):
        contacts = [_contact(1), _contact(2, bpas=True)]
        result = filter_contacts_by_project(contacts, _project(), _member())
        assert [c.id for c in result] == [2]

    def test_admin_sees_all_contacts(self):
        contacts = [_contact(1), _contact(2, up=True)]
        assert len(filter_contacts_by_project(contacts, _project(bp=True), ADMIN)) == 2

    def test_private_contacts_only_for_owner(self):
        contacts = [_contact(1, up=True), _contact(2, private=True, private_owner_id=10)]
        assert [c.id for c in filter_visible_contacts(contacts, _member(user_id=10))] == [1, 2]
        assert [c.id for c in filter_visible_contacts(contacts, _member(user_id=11))] == [1]
        assert len(filter_visible_contacts(contacts, ADMIN)) == 2


def _assignment(contact_id, voided=False):
    return SimpleNamespace(contact_id=contact_id, is_voided=voided)


def _task(id, assignments=(), project=None, project_id=None):
    return SimpleNamespace(id=id, assignments=list(assignments), project=project, project_id=project_id)


class TestTaskVisibility:
    def test_assignee_sees_task(self):
        task = _task(1, [_assignment(100)], project=_project(created_by=99))
        assert is_task_visible(task, _member(contact_id=100))

    def test_unrelated_member_does_not(self):
        task = _task(1, [_assignment(100)], project=_project(created_by=99))
        assert not is_task_visible(task, _member(user_id=5, contact_id=101))

    def test_all_voided_hides_task_from_assignees(self):
        task = _task(1, [_assignment(100, True), _assignment(101, True)], project=_project(created_by=99))
        assert not is_task_visible(task, _member(contact_id=100))

    def test_partially_voided_keeps_task_visible(self):
        task = _task(1, [_assignment(100, True), _assignment(101)], project=_project(created_by=99))
        assert is_task_visible(task, _member(contact_id=100))

    def test_project_creator_sees_task(self):
        task = _task(1, [_assignment(100, True)], project=_project(created_by=10))
        assert is_task_visible(task, _member(user_id=10, contact_id=None))

    def test_admin_role_does_not_widen(self):
        task = _task(1, [_assignment(100)], project=_project(created_by=99))
        assert not is_task_visible(task, ADMIN)

    def test_project_lookup_by_id(self):
        projects = {7: _project(7, created_by=10)}
        tasks = [_task(1, project_id=7), _task(2, project_id=8)]
        visible = filter_visible_tasks(tasks, _member(user_id=10), projects_by_id=projects)
        assert [t.id for t in visible] == [1]


def test_actor_context_from_user():
    contact = _contact(100, up=True, bp=True)
    user = SimpleNamespace(id=10, role="user", contact=contact)
    actor = ActorContext.from_user(user)
    assert actor.user_id == 10
    assert actor.contact_id == 100
    assert actor.affiliations == frozenset({"up", "bp"})
    assert not actor.is_admin
    assert not actor.is_vendor


def test_actor_context_without_contact():
    actor = ActorContext.from_user(SimpleNamespace(id=3, role="admin", contact=None))
    assert actor.is_admin
    assert actor.contact_id is None
    assert actor.affiliations == frozenset()
