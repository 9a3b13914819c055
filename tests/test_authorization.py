"""
Authorization rule chain.

Pure unit tests over ``evaluate`` / ``authorize``: no database, no HTTP.
"""

import itertools
from types import SimpleNamespace

import pytest

from devcore.core.exceptions import AuthenticationFailed, PermissionDenied
from devcore.core.permissions import (ADMIN_ROLES, Action, Permission, Role,
                                      authorize, default_permissions, evaluate)

ALL_FLAGS = [p.value for p in Permission]


def caller(role: Role, user_id: int = 7, **flags):
    grants = {flag: False for flag in ALL_FLAGS}
    grants.update(flags)
    return SimpleNamespace(id=user_id, role=role.value, **grants)


def every_flag_combination():
    for values in itertools.product([False, True], repeat=len(ALL_FLAGS)):
        yield dict(zip(ALL_FLAGS, values))


@pytest.mark.parametrize("permission", list(Permission))
def test_super_admin_passes_every_check_regardless_of_flags(permission):
    actions = [
        Action(permission=permission),
        Action(permission=permission, roles=frozenset({Role.ADMIN})),
        Action(super_admin_only=True),
        Action.owned_by(999),
        Action(roles=frozenset({Role.CLIENT})),
    ]
    for flags in every_flag_combination():
        sa = caller(Role.SUPER_ADMIN, **flags)
        assert all(evaluate(sa, action) for action in actions)


@pytest.mark.parametrize("role", [Role.ADMIN, Role.DEVELOPER, Role.CLIENT])
@pytest.mark.parametrize("permission", list(Permission))
def test_permission_flag_decides_for_non_super_admins(role, permission):
    action = Action(permission=permission)
    for flags in every_flag_combination():
        user = caller(role, **flags)
        assert evaluate(user, action) is flags[permission.value]


def test_flag_must_be_literally_true():
    user = caller(Role.ADMIN, can_delete_users="yes")
    assert not evaluate(user, Action(permission=Permission.DELETE_USERS))


def test_owner_allowed_without_flags_or_role():
    owner = caller(Role.CLIENT, user_id=3)
    action = Action(
        owner_ids=(3,),
        roles=frozenset({Role.ADMIN}),
        permission=Permission.MANAGE_PROJECTS,
    )
    assert evaluate(owner, action)
    assert not evaluate(caller(Role.CLIENT, user_id=4), action)


def test_pure_ownership_action_denies_strangers():
    action = Action.owned_by(1, None, 2)
    assert action.owner_ids == (1, 2)
    assert evaluate(caller(Role.DEVELOPER, user_id=2), action)
    assert not evaluate(caller(Role.ADMIN, user_id=5, can_manage_projects=True), action)


def test_super_admin_only_denies_fully_granted_admin():
    admin = caller(Role.ADMIN, **{flag: True for flag in ALL_FLAGS})
    assert not evaluate(admin, Action(super_admin_only=True))


def test_super_admin_only_ignores_ownership():
    owner = caller(Role.ADMIN, user_id=9)
    assert not evaluate(owner, Action(owner_ids=(9,), super_admin_only=True))


def test_role_and_permission_are_both_required():
    action = Action(roles=ADMIN_ROLES, permission=Permission.ASSIGN_TASKS)
    assert evaluate(caller(Role.ADMIN, can_assign_tasks=True), action)
    assert not evaluate(caller(Role.ADMIN), action)
    assert not evaluate(caller(Role.DEVELOPER, can_assign_tasks=True), action)


def test_authorize_distinguishes_unauthenticated_from_forbidden():
    with pytest.raises(AuthenticationFailed):
        authorize(None, Action())
    with pytest.raises(PermissionDenied) as exc:
        authorize(caller(Role.CLIENT), Action(permission=Permission.DELETE_USERS))
    assert exc.value.status_code == 403
    assert "can_delete_users" in exc.value.message


def test_authorize_uses_custom_message():
    with pytest.raises(PermissionDenied, match="Only project members"):
        authorize(caller(Role.CLIENT), Action.owned_by(1), "Only project members")


def test_default_permissions_by_role():
    assert all(default_permissions(Role.SUPER_ADMIN).values())
    admin = default_permissions(Role.ADMIN)
    assert admin["can_manage_projects"] and admin["can_assign_tasks"]
    assert not admin["can_delete_users"] and not admin["can_approve_users"]
    assert not any(default_permissions(Role.DEVELOPER).values())
    assert not any(default_permissions(Role.CLIENT).values())
