"""
Resource-scoped access policies built on the rule chain in
:mod:`devcore.core.permissions`.

Each policy turns a project or task into an :class:`Action` (who owns it,
which roles / grants may act on it) and evaluates the caller against it.
"""

from __future__ import annotations

from devcore.core.exceptions import PermissionDenied
from devcore.core.permissions import (ADMIN_ROLES, Action, Permission, Role,
                                      authorize, evaluate, has_permission,
                                      is_super_admin)
from devcore.models.project import Project
from devcore.models.task import Task
from devcore.models.user import User
from devcore.services.queries import member_ids, project_party_ids


def can_view_project(user: User, project: Project) -> bool:
    """Client owner, members, admins, and holders of the view-all grant."""
    if has_permission(user, Permission.VIEW_ALL_PROJECTS):
        return True
    return evaluate(user, Action(owner_ids=project_party_ids(project), roles=ADMIN_ROLES))


def ensure_can_view_project(user: User, project: Project) -> None:
    if not can_view_project(user, project):
        raise PermissionDenied("Not authorized to access this project")


def ensure_can_edit_project(user: User, project: Project) -> None:
    """The owning client, or staff holding the manage-projects grant."""
    authorize(
        user,
        Action(
            owner_ids=(project.client_id,),
            roles=frozenset({Role.ADMIN, Role.DEVELOPER}),
            permission=Permission.MANAGE_PROJECTS,
        ),
        "Not authorized to update this project",
    )


def ensure_can_manage_members(user: User, project: Project) -> None:
    authorize(
        user,
        Action(
            roles=frozenset({Role.ADMIN, Role.DEVELOPER}),
            permission=Permission.MANAGE_PROJECTS,
        ),
        "Not authorized to manage project members",
    )


def can_assign_tasks(user: User) -> bool:
    return evaluate(user, Action(roles=frozenset({Role.ADMIN}), permission=Permission.ASSIGN_TASKS))


def is_admin_level(user: User) -> bool:
    return evaluate(user, Action(roles=ADMIN_ROLES))


def ensure_assignable(user: User, project: Project, assignee: User) -> None:
    """The assignee must be a project member or admin-level; super admins may assign anyone."""
    if is_super_admin(user) or is_admin_level(assignee) or assignee.id in member_ids(project):
        return
    raise PermissionDenied("Can only assign tasks to project members")


def ensure_can_create_task(user: User, project: Project) -> None:
    """Project members and admins may add tasks."""
    authorize(
        user,
        Action(owner_ids=member_ids(project), roles=ADMIN_ROLES),
        "Only project members or admins can create tasks",
    )


def ensure_can_view_task(user: User, task: Task) -> None:
    if task.created_by == user.id or task.assigned_to == user.id:
        return
    if task.project is not None and can_view_project(user, task.project):
        return
    raise PermissionDenied("You do not have permission to view this task")


def ensure_can_update_task(user: User, task: Task) -> None:
    authorize(
        user,
        Action.owned_by(task.created_by, task.assigned_to, roles=ADMIN_ROLES),
        "You do not have permission to update this task",
    )


def ensure_can_delete_task(user: User, task: Task) -> None:
    authorize(
        user,
        Action.owned_by(task.created_by, roles=ADMIN_ROLES),
        "You do not have permission to delete this task",
    )


def ensure_is_assignee(user: User, task: Task) -> None:
    authorize(
        user,
        Action.owned_by(task.assigned_to, roles=ADMIN_ROLES),
        "You can only work on tasks assigned to you",
    )
