from __future__ import annotations
from flask import Blueprint, request
from personnel.constants.permissions import UPRANK_REQUEST, UPRANK_PROCESS
from personnel.decorators.auth import require_permissions, require_any_permission
from personnel.decorators.audit import audit_log
from personnel.models.academy import UprankRequest, UprankLock
from personnel.services import uprank
from personnel.utils.listing import apply_pagination, cached_list, cached_item
from personnel.utils.sorting import apply_multi_sort
from personnel.utils.timeutil import isoformat
from personnel.utils.validation import optional_datetime, require_int

uprank_bp = Blueprint('uprank', __name__)


def request_json(r: UprankRequest) -> dict:
    return {
        'id': r.id,
        'employee_id': r.employee_id,
        'current_rank': r.current_rank,
        'target_rank': r.target_rank,
        'reason': r.reason,
        'achievements': r.achievements,
        'is_academy_request': r.is_academy_request,
        'status': r.status,
        'rejection_reason': r.rejection_reason,
        'requested_by_id': r.requested_by_id,
        'processed_by_id': r.processed_by_id,
        'processed_at': isoformat(r.processed_at),
        'created_at': isoformat(r.created_at),
        'updated_at': isoformat(r.updated_at),
    }


def _lock_json(lk: UprankLock) -> dict:
    return {
        'id': lk.id,
        'employee_id': lk.employee_id,
        'team': lk.team,
        'reason': lk.reason,
        'locked_until': isoformat(lk.locked_until),
        'is_active': lk.is_active,
        'created_by_id': lk.created_by_id,
        'created_at': isoformat(lk.created_at),
    }


@uprank_bp.get('/requests')
@require_any_permission(UPRANK_REQUEST, UPRANK_PROCESS)
def list_requests(actor):
    employee_id = request.args.get('employee_id')
    q = uprank.list_requests(
        actor, request.args.get('status'),
        require_int(employee_id, 'employee_id') if employee_id else None,
    )
    allowed = {'created_at': UprankRequest.created_at, 'status': UprankRequest.status, 'id': UprankRequest.id}
    q = apply_multi_sort(q, request.args.get('sort') or '-created_at', allowed, UprankRequest.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((r.updated_at for r in rows if r.updated_at), default=None)
    return cached_list([request_json(r) for r in rows], total, limit, offset, latest_ts)


@uprank_bp.get('/requests/<int:request_id>')
@require_any_permission(UPRANK_REQUEST, UPRANK_PROCESS)
def get_request(request_id: int, actor):
    r = uprank.get_request(request_id)
    return cached_item(request_json(r), r.updated_at)


@uprank_bp.post('/requests')
@require_permissions(UPRANK_REQUEST)
@audit_log('UPRANK.REQUEST.CREATE', entity='UprankRequest', entity_id_key='id', meta_keys=['employee_id', 'target_rank'])
def create_request(actor):
    data = request.json or {}
    r = uprank.create_request(
        actor, require_int(data.get('employee_id'), 'employee_id'), data.get('target_rank'),
        data.get('reason'), data.get('achievements'),
    )
    return request_json(r), 201


@uprank_bp.post('/requests/<int:request_id>/process')
@require_permissions(UPRANK_PROCESS)
@audit_log('UPRANK.REQUEST.PROCESS', entity='UprankRequest', entity_id_key='id',
           meta_keys=['status', 'target_rank', 'rejection_reason'])
def process_request(request_id: int, actor):
    data = request.json or {}
    r = uprank.process_request(actor, request_id, data.get('status'), data.get('rejection_reason'))
    return request_json(r)


@uprank_bp.get('/locks')
@require_any_permission(UPRANK_REQUEST, UPRANK_PROCESS)
def list_locks(actor):
    employee_id = request.args.get('employee_id')
    q = uprank.list_locks(
        actor, require_int(employee_id, 'employee_id') if employee_id else None,
        active_only=request.args.get('all') not in ('1', 'true'),
    ).order_by(UprankLock.locked_until.desc(), UprankLock.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([_lock_json(lk) for lk in rows], total, limit, offset, rows[0].created_at if rows else None)


@uprank_bp.post('/locks')
@require_permissions(UPRANK_PROCESS)
@audit_log('UPRANK.LOCK.CREATE', entity='UprankLock', entity_id_key='id', meta_keys=['employee_id', 'locked_until'])
def create_lock(actor):
    data = request.json or {}
    lk = uprank.create_lock(
        actor, require_int(data.get('employee_id'), 'employee_id'), data.get('reason'),
        optional_datetime(data.get('locked_until'), 'locked_until'),
    )
    return _lock_json(lk), 201


@uprank_bp.post('/locks/<int:lock_id>/lift')
@require_permissions(UPRANK_PROCESS)
@audit_log('UPRANK.LOCK.LIFT', entity='UprankLock', entity_id_key='id')
def lift_lock(lock_id: int, actor):
    return _lock_json(uprank.lift_lock(actor, lock_id))
