"""Unit-role assignment.

The external role-membership store is the source of truth for which unit roles a member
holds. ``set_unit_roles`` takes the complete desired set, sends one add/remove batch to the
store and only refreshes the employee's derived department after the store confirms.
"""
from __future__ import annotations
import logging
from itertools import groupby
from typing import Dict, Iterable, List

from flask import current_app
from sqlalchemy import select

from personnel import get_db
from personnel.constants.permissions import EMPLOYEES_VIEW, UNITS_MANAGE
from personnel.errors import ExternalSyncFailure, IdentityNotLinkedError, ValidationError
from personnel.models.unit import Unit, UnitRole
from personnel.services.context import ActorContext
from personnel.services.integrations import RoleMembershipStore
from personnel.services.ranks import get_employee

log = logging.getLogger(__name__)


def display_sort_key(role: UnitRole):
    """Unit order first, then base role before the rest, then ascending sort order."""
    unit = role.unit
    return (unit.sort_order, unit.name, not role.is_base, role.sort_order, role.id)


def group_unit_roles(roles: Iterable[UnitRole]) -> List[Dict]:
    ordered = sorted(roles, key=display_sort_key)
    groups = []
    for unit_id, members in groupby(ordered, key=lambda r: r.unit_id):
        members = list(members)
        groups.append({'unit_id': unit_id, 'unit': members[0].unit.name, 'roles': members})
    return groups


def _active_unit_roles() -> List[UnitRole]:
    session = get_db()
    return session.execute(
        select(UnitRole).join(Unit).where(UnitRole.is_active.is_(True), Unit.is_active.is_(True))
    ).scalars().all()


def _external_id(employee) -> str:
    external_id = employee.user.discord_id if employee.user else None
    if not external_id:
        raise IdentityNotLinkedError(f'Employee {employee.id} has no linked platform account')
    return external_id


def derive_department(roles: Iterable[UnitRole]) -> str:
    units = sorted({r.unit for r in roles}, key=lambda u: (u.sort_order, u.name))
    if not units:
        return current_app.config['ENTRY_DEPARTMENT']
    return ', '.join(u.name for u in units)


def get_unit_roles(actor: ActorContext, employee_id: int, store: RoleMembershipStore) -> List[Dict]:
    """All active unit roles, grouped for display, flagged with the member's current holdings."""
    actor.require(EMPLOYEES_VIEW)
    employee = get_employee(employee_id)
    held = set(store.get_member_roles(_external_id(employee)))
    groups = group_unit_roles(_active_unit_roles())
    for g in groups:
        g['roles'] = [
            {
                'id': r.id,
                'label': r.label,
                'is_base': r.is_base,
                'sort_order': r.sort_order,
                'external_role_id': r.external_role_id,
                'active': r.external_role_id in held,
            }
            for r in g['roles']
        ]
    return groups


def set_unit_roles(actor: ActorContext, employee_id: int, unit_role_ids: Iterable[int], store: RoleMembershipStore) -> Dict:
    actor.require(UNITS_MANAGE)
    employee = get_employee(employee_id)
    external_id = _external_id(employee)
    requested_ids = set(unit_role_ids)
    catalog = {r.id: r for r in _active_unit_roles()}
    unknown = requested_ids - set(catalog)
    if unknown:
        raise ValidationError(f'Unknown unit role ids: {sorted(unknown)}')
    requested = {catalog[i].external_role_id for i in requested_ids}
    unit_external_ids = {r.external_role_id for r in catalog.values()}
    # Only unit roles are reconciled; rank and other platform roles stay untouched.
    current = set(store.get_member_roles(external_id)) & unit_external_ids
    to_add = sorted(requested - current)
    to_remove = sorted(current - requested)
    if to_add or to_remove:
        result = store.set_member_roles(external_id, to_add, to_remove)
        if not result.success:
            log.warning('unit role sync failed for employee #%s: %s', employee.id, result.error)
            raise ExternalSyncFailure(result.error or 'Role membership update rejected', employee_id=employee.id)
    employee.department = derive_department(catalog[i] for i in requested_ids)
    get_db().flush()
    return {
        'employee_id': employee.id,
        'added': to_add,
        'removed': to_remove,
        'department': employee.department,
    }


def list_units(actor: ActorContext) -> List[Dict]:
    actor.require(EMPLOYEES_VIEW)
    return [
        {'unit_id': g['unit_id'], 'unit': g['unit'], 'roles': [
            {'id': r.id, 'label': r.label, 'is_base': r.is_base, 'sort_order': r.sort_order} for r in g['roles']
        ]}
        for g in group_unit_roles(_active_unit_roles())
    ]


__all__ = ['group_unit_roles', 'derive_department', 'get_unit_roles', 'set_unit_roles', 'list_units']
