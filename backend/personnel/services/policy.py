from __future__ import annotations
from sqlalchemy import select
from personnel.models.authz import UserRole, RolePermission, Permission, Role
from personnel.models.employee import Employee
from personnel.constants.permissions import ADMIN_FULL, ADMIN_ROLES
from personnel.errors import ValidationError
from personnel import get_db


def compute_effective_permissions(user_id: int):
    """Union of permission codes across every role assigned to the user.

    ``admin.full`` expands to every known permission so clients can render
    capabilities without knowing about the wildcard.
    """
    session = get_db()
    role_ids = {r.role_id for r in session.execute(select(UserRole).where(UserRole.user_id==user_id)).scalars()}
    perm_codes = set()
    if role_ids:
        rows = session.execute(
            select(Permission.code)
            .join(RolePermission, RolePermission.permission_id==Permission.id)
            .where(RolePermission.role_id.in_(role_ids))
        ).scalars()
        perm_codes.update(rows)
    if ADMIN_FULL in perm_codes:
        perm_codes.update(session.execute(select(Permission.code)).scalars())
    return {
        'roles': sorted(role_ids),
        'perms': sorted(perm_codes),
    }


def employee_id_for_user(user_id: int):
    session = get_db()
    return session.execute(select(Employee.id).where(Employee.user_id==user_id)).scalar_one_or_none()


def build_claims(user_id: int):
    eff = compute_effective_permissions(user_id)
    return {
        'roles': eff['roles'],
        'perms': eff['perms'],
        'employee_id': employee_id_for_user(user_id),
    }


def count_admin_users(session=None) -> int:
    """Number of distinct users holding a role that grants role administration."""
    session = session or get_db()
    admin_role_ids = set(session.execute(
        select(RolePermission.role_id)
        .join(Permission, Permission.id==RolePermission.permission_id)
        .where(Permission.code.in_([ADMIN_FULL, ADMIN_ROLES]))
    ).scalars())
    if not admin_role_ids:
        return 0
    users = set(session.execute(select(UserRole.user_id).where(UserRole.role_id.in_(admin_role_ids))).scalars())
    return len(users)


def assert_not_removing_last_admin(target_user_id: int, new_role_ids: set[int]):
    """Ensure at least one user can still administer roles after the assignment change."""
    session = get_db()
    admin_role_ids = set(session.execute(
        select(RolePermission.role_id)
        .join(Permission, Permission.id==RolePermission.permission_id)
        .where(Permission.code.in_([ADMIN_FULL, ADMIN_ROLES]))
    ).scalars())
    if not admin_role_ids or admin_role_ids & set(new_role_ids):
        return
    had_admin = session.execute(
        select(UserRole).where(UserRole.user_id==target_user_id, UserRole.role_id.in_(admin_role_ids))
    ).first() is not None
    if had_admin and count_admin_users(session) <= 1:
        raise ValidationError('Cannot remove the last administrator')


def role_names(role_ids):
    session = get_db()
    if not role_ids:
        return []
    return sorted(session.execute(select(Role.name).where(Role.id.in_(list(role_ids)))).scalars())
