"""
Visibility policies — who may see which projects, tasks and contacts.

Every decision takes an explicit, immutable ``ActorContext`` (user id, linked
contact, role, company affiliations) instead of reading request globals.

Role dispatch happens once, in ``policy_for(actor)``:
  - AdminPolicy   bypasses company scoping for projects, assignable contacts
                  and private contacts.
  - MemberPolicy  applies the visibility-mode and company-overlap rules.

Task visibility is identical under both policies: admin is a management
privilege (close, void, merge), not a task-list override.

Inputs are plain records: ORM rows or anything exposing the same attributes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from g3tornado.models import COMPANIES
from g3tornado.models.project import VISIBILITY_ONE_ON_ONE, VISIBILITY_PERSONAL, VISIBILITY_SHARED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorContext:
    """Who is asking. Built once per request and passed to every filter."""

    user_id: int | None
    contact_id: int | None = None
    is_admin: bool = False
    affiliations: frozenset[str] = field(default_factory=frozenset)
    is_vendor: bool = False
    # Set when an admin is viewing the app as this user
    impersonator_id: int | None = None

    @classmethod
    def from_user(cls, user: Any, impersonator_id: int | None = None) -> "ActorContext":
        contact = getattr(user, "contact", None)
        return cls(
            user_id=getattr(user, "id", None),
            contact_id=getattr(contact, "id", None),
            is_admin=getattr(user, "role", None) == "admin",
            affiliations=contact_affiliations(contact),
            is_vendor=bool(getattr(contact, "is_third_party_vendor", False)),
            impersonator_id=impersonator_id,
        )


# ── Flag helpers ─────────────────────────────────────────────────────────


def contact_affiliations(contact: Any) -> frozenset[str]:
    """Company keys set on a contact (``is_<key>_employee``)."""
    if contact is None:
        return frozenset()
    return frozenset(key for key in COMPANIES if getattr(contact, f"is_{key}_employee", False))


def project_companies(project: Any) -> frozenset[str]:
    """Company keys set on a project (``is_<key>``)."""
    if project is None:
        return frozenset()
    return frozenset(key for key in COMPANIES if getattr(project, f"is_{key}", False))


def _project_of(task: Any, projects_by_id: Mapping[int, Any] | None) -> Any:
    project = getattr(task, "project", None)
    if project is None and projects_by_id:
        project = projects_by_id.get(getattr(task, "project_id", None))
    return project


# ── Policies ─────────────────────────────────────────────────────────────


class VisibilityPolicy:
    """Shared contract; subclasses decide project and contact scoping."""

    def can_view_project(self, project: Any, actor: ActorContext) -> bool:
        raise NotImplementedError

    def can_assign_contact(self, contact: Any, project: Any, actor: ActorContext) -> bool:
        raise NotImplementedError

    def can_view_contact(self, contact: Any, actor: ActorContext) -> bool:
        raise NotImplementedError

    def can_view_task(self, task: Any, actor: ActorContext, project: Any = None) -> bool:
        """Assignee (unless every assignment is voided) or project creator."""
        assignments = list(getattr(task, "assignments", None) or [])
        if actor.contact_id is not None and assignments:
            assigned = any(getattr(a, "contact_id", None) == actor.contact_id for a in assignments)
            all_voided = all(getattr(a, "is_voided", False) for a in assignments)
            if assigned and not all_voided:
                return True
        project = project if project is not None else getattr(task, "project", None)
        return (
            project is not None
            and actor.user_id is not None
            and getattr(project, "created_by", None) == actor.user_id
        )


class AdminPolicy(VisibilityPolicy):
    def can_view_project(self, project, actor):
        return True

    def can_assign_contact(self, contact, project, actor):
        return True

    def can_view_contact(self, contact, actor):
        return True


class MemberPolicy(VisibilityPolicy):
    def can_view_project(self, project, actor):
        visibility = getattr(project, "visibility", None) or VISIBILITY_SHARED
        is_creator = actor.user_id is not None and getattr(project, "created_by", None) == actor.user_id

        if visibility == VISIBILITY_PERSONAL:
            return is_creator
        if visibility == VISIBILITY_ONE_ON_ONE:
            shared_with = getattr(project, "one_on_one_contact_id", None)
            return is_creator or (shared_with is not None and shared_with == actor.contact_id)

        companies = project_companies(project)
        if not companies:
            return True
        # Vendors see every shared project regardless of company match.
        return bool(companies & actor.affiliations) or actor.is_vendor

    def can_assign_contact(self, contact, project, actor):
        affiliations = contact_affiliations(contact)
        if not affiliations:
            return False
        companies = project_companies(project)
        if not companies:
            return True
        return bool(affiliations & companies)

    def can_view_contact(self, contact, actor):
        if not getattr(contact, "is_private", False):
            return True
        return actor.user_id is not None and getattr(contact, "private_owner_id", None) == actor.user_id


_ADMIN_POLICY = AdminPolicy()
_MEMBER_POLICY = MemberPolicy()


def policy_for(actor: ActorContext) -> VisibilityPolicy:
    return _ADMIN_POLICY if actor.is_admin else _MEMBER_POLICY


# ── Convenience filters ──────────────────────────────────────────────────


def is_project_visible(project: Any, actor: ActorContext) -> bool:
    return policy_for(actor).can_view_project(project, actor)


def filter_projects(projects: Iterable[Any], actor: ActorContext) -> list:
    policy = policy_for(actor)
    return [p for p in projects if policy.can_view_project(p, actor)]


def filter_contacts_by_project(contacts: Iterable[Any], project: Any, actor: ActorContext) -> list:
    """Contacts that may be assigned to a task in ``project``."""
    policy = policy_for(actor)
    return [c for c in contacts if policy.can_assign_contact(c, project, actor)]


def filter_visible_contacts(contacts: Iterable[Any], actor: ActorContext) -> list:
    policy = policy_for(actor)
    return [c for c in contacts if policy.can_view_contact(c, actor)]


def is_task_visible(task: Any, actor: ActorContext, projects_by_id: Mapping[int, Any] | None = None) -> bool:
    return policy_for(actor).can_view_task(task, actor, _project_of(task, projects_by_id))


def filter_visible_tasks(
    tasks: Iterable[Any],
    actor: ActorContext,
    projects_by_id: Mapping[int, Any] | None = None,
) -> list:
    policy = policy_for(actor)
    visible = [t for t in tasks if policy.can_view_task(t, actor, _project_of(t, projects_by_id))]
    logger.debug("Task visibility: user=%s visible=%d", actor.user_id, len(visible))
    return visible
