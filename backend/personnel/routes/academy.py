from __future__ import annotations
from flask import Blueprint, request
from personnel.constants.permissions import ACADEMY_VIEW, ACADEMY_MANAGE, UPRANK_REQUEST
from personnel.decorators.auth import require_permissions, require_any_permission
from personnel.decorators.audit import audit_log
from personnel.models.academy import AcademyModule, AcademyProgress
from personnel.routes.uprank import request_json
from personnel.services import academy
from personnel.utils.listing import apply_pagination, cached_list
from personnel.utils.sorting import apply_multi_sort
from personnel.utils.timeutil import isoformat

academy_bp = Blueprint('academy', __name__)

MODULE_FIELDS = ('name', 'description', 'sort_order', 'is_active', 'category')


def _module_json(m: AcademyModule) -> dict:
    return {
        'id': m.id,
        'name': m.name,
        'description': m.description,
        'category': m.category,
        'target_rank': academy.target_rank_for_category(m.category),
        'sort_order': m.sort_order,
        'is_active': m.is_active,
        'updated_at': isoformat(m.updated_at),
    }


def _progress_json(p: AcademyProgress) -> dict:
    return {
        'id': p.id,
        'employee_id': p.employee_id,
        'module_id': p.module_id,
        'completed': p.completed,
        'completed_at': isoformat(p.completed_at),
        'completed_by_id': p.completed_by_id,
    }


@academy_bp.get('/modules')
@require_permissions(ACADEMY_VIEW)
def list_modules(actor):
    q = academy.list_modules(
        actor, request.args.get('category'), include_inactive=request.args.get('include_inactive') in ('1', 'true'),
    )
    allowed = {'category': AcademyModule.category, 'sort_order': AcademyModule.sort_order, 'name': AcademyModule.name}
    q = apply_multi_sort(q, request.args.get('sort') or 'category,sort_order', allowed, AcademyModule.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((m.updated_at for m in rows if m.updated_at), default=None)
    return cached_list([_module_json(m) for m in rows], total, limit, offset, latest_ts)


@academy_bp.post('/modules')
@require_permissions(ACADEMY_MANAGE)
@audit_log('ACADEMY.MODULE.CREATE', entity='AcademyModule', entity_id_key='id', meta_keys=['name', 'category'])
def create_module(actor):
    data = request.json or {}
    m = academy.create_module(actor, data.get('name'), data.get('category'), data.get('description'), data.get('sort_order') or 0)
    return _module_json(m), 201


@academy_bp.patch('/modules/<int:module_id>')
@require_permissions(ACADEMY_MANAGE)
@audit_log('ACADEMY.MODULE.UPDATE', entity='AcademyModule', entity_id_key='id',
           meta_builder=lambda data, rv, a, kw: {'fields': sorted(k for k in (request.json or {}) if k in MODULE_FIELDS)})
def update_module(module_id: int, actor):
    data = request.json or {}
    changes = {k: data[k] for k in MODULE_FIELDS if k in data}
    return _module_json(academy.update_module(actor, module_id, **changes))


@academy_bp.get('/employees/<int:employee_id>/progress')
@require_permissions(ACADEMY_VIEW)
def employee_progress(employee_id: int, actor):
    body = academy.employee_progress(actor, employee_id)
    for cat in body['categories'].values():
        for m in cat['modules']:
            m['completed_at'] = isoformat(m['completed_at'])
    return body


@academy_bp.post('/employees/<int:employee_id>/modules/<int:module_id>/toggle')
@require_permissions(ACADEMY_MANAGE)
@audit_log('ACADEMY.MODULE.TOGGLE', entity='AcademyProgress', entity_id_key='id', meta_keys=['module_id', 'completed'])
def toggle_module(employee_id: int, module_id: int, actor):
    return _progress_json(academy.toggle_module_completion(actor, employee_id, module_id))


@academy_bp.get('/employees/<int:employee_id>/eligibility')
@require_permissions(ACADEMY_VIEW)
def eligibility(employee_id: int, actor):
    return {'employee_id': employee_id, 'categories': academy.eligibility(actor, employee_id)}


@academy_bp.post('/employees/<int:employee_id>/uprank-request')
@require_any_permission(ACADEMY_MANAGE, UPRANK_REQUEST)
@audit_log('ACADEMY.UPRANK.REQUEST', entity='UprankRequest', entity_id_key='id', meta_keys=['target_rank'])
def request_uprank(employee_id: int, actor):
    data = request.json or {}
    return request_json(academy.request_uprank(actor, employee_id, data.get('target_rank'))), 201
