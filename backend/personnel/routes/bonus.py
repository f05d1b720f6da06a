from __future__ import annotations
from flask import Blueprint, request
from personnel.constants.permissions import BONUS_VIEW, BONUS_MANAGE
from personnel.decorators.auth import require_permissions
from personnel.decorators.audit import audit_log
from personnel.models.bonus import BonusConfig, BonusPayment, BonusWeek
from personnel.services import bonus
from personnel.utils.listing import apply_pagination, cached_list
from personnel.utils.timeutil import isoformat
from personnel.utils.validation import int_list, optional_datetime, require_int, validate_status

bonus_bp = Blueprint('bonus', __name__)


def _config_json(c: BonusConfig) -> dict:
    return {
        'id': c.id,
        'activity_type': c.activity_type,
        'display_name': c.display_name,
        'category': c.category,
        'amount': c.amount,
        'is_active': c.is_active,
        'updated_at': isoformat(c.updated_at),
    }


def _payment_json(p: BonusPayment) -> dict:
    return {
        'id': p.id,
        'employee_id': p.employee_id,
        'activity_type': p.activity_type,
        'amount': p.amount,
        'reason': p.reason,
        'reference_id': p.reference_id,
        'reference_type': p.reference_type,
        'week_start': isoformat(p.week_start),
        'week_end': isoformat(p.week_end),
        'status': p.status,
        'paid_at': isoformat(p.paid_at),
        'paid_by_id': p.paid_by_id,
        'created_at': isoformat(p.created_at),
    }


def _week_json(w: BonusWeek) -> dict:
    return {
        'id': w.id,
        'week_start': isoformat(w.week_start),
        'week_end': isoformat(w.week_end),
        'status': w.status,
        'total_amount': w.total_amount,
        'payment_count': w.payment_count,
        'closed_at': isoformat(w.closed_at),
        'closed_by_id': w.closed_by_id,
    }


@bonus_bp.get('/configs')
@require_permissions(BONUS_VIEW)
def list_configs(actor):
    return {'data': [_config_json(c) for c in bonus.list_configs(actor)]}


@bonus_bp.patch('/configs/<int:config_id>')
@require_permissions(BONUS_MANAGE)
@audit_log('BONUS.CONFIG.UPDATE', entity='BonusConfig', entity_id_key='id', meta_keys=['activity_type', 'amount', 'is_active'])
def update_config(config_id: int, actor):
    data = request.json or {}
    c = bonus.update_config(actor, config_id, data.get('amount'), data.get('is_active'), data.get('display_name'))
    return _config_json(c)


@bonus_bp.get('/payments')
@require_permissions(BONUS_VIEW)
def list_payments(actor):
    status = request.args.get('status')
    employee_id = request.args.get('employee_id')
    q = bonus.payments_query(
        actor,
        week_of=optional_datetime(request.args.get('week'), 'week'),
        status=validate_status(status, BonusPayment.ALL_STATUSES) if status else None,
        employee_id=require_int(employee_id, 'employee_id') if employee_id else None,
    ).order_by(BonusPayment.created_at.desc(), BonusPayment.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([_payment_json(p) for p in rows], total, limit, offset, rows[0].created_at if rows else None)


@bonus_bp.post('/payments/mark-paid')
@require_permissions(BONUS_MANAGE)
@audit_log('BONUS.PAYMENTS.PAID', entity='BonusPayment', meta_keys=['payment_ids'])
def mark_paid(actor):
    data = request.json or {}
    payments = bonus.mark_paid(actor, int_list(data.get('payment_ids'), 'payment_ids'))
    return {'payment_ids': sorted(p.id for p in payments), 'data': [_payment_json(p) for p in payments]}


@bonus_bp.post('/payments/<int:payment_id>/cancel')
@require_permissions(BONUS_MANAGE)
@audit_log('BONUS.PAYMENT.CANCEL', entity='BonusPayment', entity_id_key='id')
def cancel_payment(payment_id: int, actor):
    return _payment_json(bonus.cancel_payment(actor, payment_id))


@bonus_bp.get('/weeks')
@require_permissions(BONUS_VIEW)
def list_weeks(actor):
    return {'data': [_week_json(w) for w in bonus.list_weeks(actor)]}


@bonus_bp.post('/weeks/close')
@require_permissions(BONUS_MANAGE)
@audit_log('BONUS.WEEK.CLOSE', entity='BonusWeek', entity_id_key='id', meta_keys=['week_start', 'total_amount'])
def close_week(actor):
    data = request.get_json(silent=True) or {}
    w = bonus.close_week(actor, optional_datetime(data.get('week'), 'week'))
    return _week_json(w)
