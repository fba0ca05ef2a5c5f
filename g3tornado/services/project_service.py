"""Project service — visibility-scoped CRUD and assignable contacts.

Hidden projects are reported as missing (NotFoundError), never as forbidden.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select

from g3tornado.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from g3tornado.models import db
from g3tornado.models.contact import Contact
from g3tornado.models.project import (
    COMPANY_FLAGS,
    VALID_VISIBILITIES,
    VISIBILITY_ONE_ON_ONE,
    VISIBILITY_SHARED,
    Project,
)
from g3tornado.models.task import STATUS_CLOSED, Task
from g3tornado.services.staleness import is_stale
from g3tornado.services.visibility import (
    ActorContext,
    filter_contacts_by_project,
    filter_projects,
    filter_visible_contacts,
    is_project_visible,
)

logger = logging.getLogger(__name__)


def get_visible_project(project_id: int, actor: ActorContext) -> Project:
    project = db.session.get(Project, project_id)
    if project is None or not is_project_visible(project, actor):
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _stats(project: Project, now: datetime | None = None) -> dict:
    open_count = closed_count = overdue_count = 0
    for task in project.tasks:
        if task.status == STATUS_CLOSED:
            closed_count += 1
            continue
        open_count += 1
        if is_stale(task, now):
            overdue_count += 1
    return {"open_tasks": open_count, "closed_tasks": closed_count, "overdue_tasks": overdue_count}


def list_projects(actor: ActorContext, now: datetime | None = None) -> list[dict]:
    """Visible projects, each with open / closed / overdue task counts."""
    projects = db.session.execute(select(Project).order_by(Project.name)).scalars().all()
    return [{**p.to_dict(), **_stats(p, now)} for p in filter_projects(projects, actor)]


def get_project(project_id: int, actor: ActorContext) -> dict:
    project = get_visible_project(project_id, actor)
    return {**project.to_dict(), **_stats(project)}


def _apply(project: Project, data: dict) -> None:
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required", details={"name": "required"})
        project.name = name
    if "description" in data:
        project.description = data.get("description") or None
    if "visibility" in data:
        visibility = data.get("visibility") or VISIBILITY_SHARED
        if visibility not in VALID_VISIBILITIES:
            raise ValidationError(
                f"visibility must be one of: {', '.join(sorted(VALID_VISIBILITIES))}",
                details={"visibility": visibility},
            )
        project.visibility = visibility
    if "one_on_one_contact_id" in data:
        contact_id = data.get("one_on_one_contact_id")
        if contact_id is not None and db.session.get(Contact, contact_id) is None:
            raise NotFoundError(resource="Contact", resource_id=contact_id)
        project.one_on_one_contact_id = contact_id
    for flag in COMPANY_FLAGS:
        if flag in data:
            setattr(project, flag, bool(data[flag]))

    if project.visibility == VISIBILITY_ONE_ON_ONE and project.one_on_one_contact_id is None:
        raise ValidationError(
            "one_on_one projects need a one_on_one_contact_id",
            details={"one_on_one_contact_id": "required"},
        )


def create_project(data: dict, actor: ActorContext) -> dict:
    project = Project(created_by=actor.user_id, visibility=VISIBILITY_SHARED)
    _apply(project, {"name": data.get("name"), **data})

    db.session.add(project)
    db.session.commit()
    logger.info(
        "Project created id=%s visibility=%s by user_id=%s",
        project.id, project.visibility, actor.user_id,
    )
    return {**project.to_dict(), **_stats(project)}


def update_project(project_id: int, data: dict, actor: ActorContext) -> dict:
    project = get_visible_project(project_id, actor)
    if not actor.is_admin and project.created_by != actor.user_id:
        raise PermissionDeniedError("Only the project creator or an admin may edit a project")
    _apply(project, data)

    db.session.commit()
    logger.info("Project updated id=%s by user_id=%s", project.id, actor.user_id)
    return {**project.to_dict(), **_stats(project)}


def delete_project(project_id: int, actor: ActorContext) -> None:
    """Delete a project; refused while it still has tasks."""
    project = get_visible_project(project_id, actor)
    if not actor.is_admin and project.created_by != actor.user_id:
        raise PermissionDeniedError("Only the project creator or an admin may delete a project")

    task_count = db.session.execute(
        select(func.count(Task.id)).where(Task.project_id == project.id)
    ).scalar_one()
    if task_count:
        raise ConflictError(
            "Project", "tasks", str(task_count),
            message=f"Project {project.name!r} still has {task_count} task(s)",
        )

    db.session.delete(project)
    db.session.commit()
    logger.info("Project deleted id=%s by user_id=%s", project_id, actor.user_id)


def assignable_contacts(project_id: int, actor: ActorContext) -> list[dict]:
    """Contacts the actor may assign to tasks in the project."""
    project = get_visible_project(project_id, actor)
    contacts = db.session.execute(select(Contact).order_by(Contact.name)).scalars().all()
    visible = filter_visible_contacts(contacts, actor)
    return [c.to_dict() for c in filter_contacts_by_project(visible, project, actor)]
