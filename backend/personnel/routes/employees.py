from __future__ import annotations
from flask import Blueprint, request
from personnel import get_db
from personnel.constants.permissions import (
    EMPLOYEES_VIEW, EMPLOYEES_EDIT, EMPLOYEES_RANK, EMPLOYEES_TERMINATE, UNITS_MANAGE,
)
from personnel.constants.ranks import team_for_level
from personnel.decorators.auth import require_permissions
from personnel.decorators.audit import audit_log
from personnel.models.authz import User
from personnel.models.employee import Employee, RankHistory
from personnel.services import ranks, units
from personnel.services.integrations import get_integrations
from personnel.utils.listing import apply_pagination, cached_list, cached_item
from personnel.utils.sorting import apply_multi_sort
from personnel.utils.timeutil import isoformat
from personnel.utils.validation import validate_status, int_list, require_text

emp_bp = Blueprint('employees', __name__)

SORT_FIELDS = {
    'rank_level': Employee.rank_level,
    'badge_number': Employee.badge_number,
    'status': Employee.status,
    'hired_at': Employee.hired_at,
    'updated_at': Employee.updated_at,
    'id': Employee.id,
}


def employee_json(e: Employee) -> dict:
    return {
        'id': e.id,
        'user_id': e.user_id,
        'name': e.user.display_name if e.user else None,
        'display_name': e.display_name,
        'discord_id': e.user.discord_id if e.user else None,
        'rank': e.rank,
        'rank_level': e.rank_level,
        'team': team_for_level(e.rank_level).name,
        'badge_number': e.badge_number,
        'department': e.department,
        'status': e.status,
        'hired_at': isoformat(e.hired_at),
        'terminated_at': isoformat(e.terminated_at),
        'updated_at': isoformat(e.updated_at),
    }


@emp_bp.get('')
@require_permissions(EMPLOYEES_VIEW)
def list_employees(actor):
    session = get_db()
    q = session.query(Employee).join(User, User.id==Employee.user_id)
    status = request.args.get('status')
    if status:
        q = q.filter(Employee.status==validate_status(status, Employee.ALL_STATUSES))
    elif request.args.get('include_terminated') not in ('1', 'true'):
        q = q.filter(Employee.status!=Employee.STATUS_TERMINATED)
    search = request.args.get('q')
    if search:
        like = f'%{search}%'
        q = q.filter((User.display_name.ilike(like)) | (Employee.badge_number.ilike(like)))
    q = apply_multi_sort(q, request.args.get('sort') or '-rank_level', SORT_FIELDS, Employee.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((e.updated_at for e in rows if e.updated_at), default=None)
    return cached_list([employee_json(e) for e in rows], total, limit, offset, latest_ts)


@emp_bp.get('/units')
@require_permissions(EMPLOYEES_VIEW)
def list_units(actor):
    return {'data': units.list_units(actor)}


@emp_bp.get('/<int:employee_id>')
@require_permissions(EMPLOYEES_VIEW)
def get_employee(employee_id: int, actor):
    e = ranks.get_employee(employee_id)
    return cached_item(employee_json(e), e.updated_at)


@emp_bp.get('/<int:employee_id>/rank-history')
@require_permissions(EMPLOYEES_VIEW)
def rank_history(employee_id: int, actor):
    ranks.get_employee(employee_id)
    session = get_db()
    q = session.query(RankHistory).filter(RankHistory.employee_id==employee_id).order_by(RankHistory.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    data = [
        {
            'id': h.id,
            'old_level': h.old_level,
            'new_level': h.new_level,
            'old_badge': h.old_badge,
            'new_badge': h.new_badge,
            'reason': h.reason,
            'actor_user_id': h.actor_user_id,
            'created_at': isoformat(h.created_at),
        }
        for h in rows
    ]
    return cached_list(data, total, limit, offset, rows[0].created_at if rows else None)


@emp_bp.post('/<int:employee_id>/promote')
@require_permissions(EMPLOYEES_RANK)
@audit_log('EMPLOYEE.PROMOTE', entity='Employee', entity_id_arg='employee_id',
           meta_keys=['old_level', 'new_level', 'new_badge_number', 'team_changed'])
def promote(employee_id: int, actor):
    data = request.get_json(silent=True) or {}
    return ranks.promote(actor, employee_id, data.get('reason')).to_dict()


@emp_bp.post('/<int:employee_id>/demote')
@require_permissions(EMPLOYEES_RANK)
@audit_log('EMPLOYEE.DEMOTE', entity='Employee', entity_id_arg='employee_id',
           meta_keys=['old_level', 'new_level', 'new_badge_number', 'team_changed'])
def demote(employee_id: int, actor):
    data = request.get_json(silent=True) or {}
    return ranks.demote(actor, employee_id, data.get('reason')).to_dict()


@emp_bp.put('/<int:employee_id>/badge')
@require_permissions(EMPLOYEES_RANK)
@audit_log('EMPLOYEE.BADGE.SET', entity='Employee', entity_id_key='id', meta_keys=['badge_number'])
def set_badge(employee_id: int, actor):
    data = request.json or {}
    return employee_json(ranks.assign_badge(actor, employee_id, data.get('badge_number')))


@emp_bp.patch('/<int:employee_id>/status')
@require_permissions(EMPLOYEES_EDIT)
@audit_log('EMPLOYEE.STATUS.SET', entity='Employee', entity_id_key='id', meta_keys=['status'])
def set_status(employee_id: int, actor):
    data = request.json or {}
    return employee_json(ranks.set_status(actor, employee_id, data.get('status')))


@emp_bp.post('/<int:employee_id>/terminate')
@require_permissions(EMPLOYEES_TERMINATE)
@audit_log('EMPLOYEE.TERMINATE', entity='Employee', entity_id_key='id',
           meta_builder=lambda data, rv, a, kw: {'reason': (request.json or {}).get('reason')})
def terminate(employee_id: int, actor):
    data = request.json or {}
    return employee_json(ranks.terminate(actor, employee_id, require_text(data.get('reason'), 'reason')))


@emp_bp.get('/<int:employee_id>/units')
@require_permissions(EMPLOYEES_VIEW)
def get_units(employee_id: int, actor):
    return {'employee_id': employee_id, 'data': units.get_unit_roles(actor, employee_id, get_integrations().roles)}


@emp_bp.put('/<int:employee_id>/units')
@require_permissions(UNITS_MANAGE)
@audit_log('EMPLOYEE.UNITS.SET', entity='Employee', entity_id_key='employee_id',
           meta_keys=['added', 'removed', 'department'])
def set_units(employee_id: int, actor):
    data = request.json or {}
    ids = int_list(data.get('unit_role_ids'), 'unit_role_ids')
    return units.set_unit_roles(actor, employee_id, ids, get_integrations().roles)
