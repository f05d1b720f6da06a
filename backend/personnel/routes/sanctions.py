from __future__ import annotations
from flask import Blueprint, request
from personnel.constants.permissions import SANCTIONS_VIEW, SANCTIONS_MANAGE
from personnel.decorators.auth import require_permissions
from personnel.decorators.audit import audit_log
from personnel.models.sanction import Sanction
from personnel.services import sanctions
from personnel.utils.listing import apply_pagination, cached_list, cached_item
from personnel.utils.sorting import apply_multi_sort
from personnel.utils.timeutil import isoformat
from personnel.utils.validation import optional_datetime, require_int

sanctions_bp = Blueprint('sanctions', __name__)


def _sanction_json(s: Sanction) -> dict:
    return {
        'id': s.id,
        'employee_id': s.employee_id,
        'reason': s.reason,
        'warning': {'present': s.has_warning, 'completed': s.warning_completed},
        'fine': {'present': s.has_fine, 'amount': s.fine_amount, 'completed': s.fine_completed},
        'measure': {'present': s.has_measure, 'text': s.measure, 'completed': s.measure_completed},
        'status': s.status,
        'effective_status': s.effective_status(),
        'all_components_completed': s.all_components_completed,
        'expires_at': isoformat(s.expires_at),
        'issued_by_id': s.issued_by_id,
        'revoked_by_id': s.revoked_by_id,
        'revoked_at': isoformat(s.revoked_at),
        'created_at': isoformat(s.created_at),
        'updated_at': isoformat(s.updated_at),
    }


@sanctions_bp.get('')
@require_permissions(SANCTIONS_VIEW)
def list_sanctions(actor):
    employee_id = request.args.get('employee_id')
    q = sanctions.list_sanctions(
        actor, request.args.get('status'), require_int(employee_id, 'employee_id') if employee_id else None,
    )
    allowed = {'created_at': Sanction.created_at, 'status': Sanction.status, 'id': Sanction.id}
    q = apply_multi_sort(q, request.args.get('sort') or '-created_at', allowed, Sanction.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((s.updated_at for s in rows if s.updated_at), default=None)
    return cached_list([_sanction_json(s) for s in rows], total, limit, offset, latest_ts)


@sanctions_bp.get('/<int:sanction_id>')
@require_permissions(SANCTIONS_VIEW)
def get_sanction(sanction_id: int, actor):
    s = sanctions.get_sanction(sanction_id)
    return cached_item(_sanction_json(s), s.updated_at)


@sanctions_bp.post('')
@require_permissions(SANCTIONS_MANAGE)
@audit_log('SANCTION.CREATE', entity='Sanction', entity_id_key='id', meta_keys=['employee_id', 'reason'])
def create_sanction(actor):
    data = request.json or {}
    fine = data.get('fine')
    measure = data.get('measure')
    s = sanctions.create_sanction(
        actor,
        require_int(data.get('employee_id'), 'employee_id'),
        data.get('reason'),
        warning=bool(data.get('warning')),
        fine=bool(fine),
        fine_amount=fine.get('amount') if isinstance(fine, dict) else None,
        measure=bool(measure),
        measure_text=measure.get('text') if isinstance(measure, dict) else None,
        expires_at=optional_datetime(data.get('expires_at'), 'expires_at'),
    )
    return _sanction_json(s), 201


@sanctions_bp.post('/<int:sanction_id>/components/<component>/toggle')
@require_permissions(SANCTIONS_MANAGE)
@audit_log('SANCTION.COMPONENT.TOGGLE', entity='Sanction', entity_id_key='id',
           meta_builder=lambda data, rv, a, kw: {'component': kw.get('component'), 'completed': data[kw.get('component')]['completed']})
def toggle_component(sanction_id: int, component: str, actor):
    return _sanction_json(sanctions.toggle_component_completion(actor, sanction_id, component))


@sanctions_bp.post('/<int:sanction_id>/revoke')
@require_permissions(SANCTIONS_MANAGE)
@audit_log('SANCTION.REVOKE', entity='Sanction', entity_id_key='id', meta_keys=['status'])
def revoke(sanction_id: int, actor):
    return _sanction_json(sanctions.revoke(actor, sanction_id))
