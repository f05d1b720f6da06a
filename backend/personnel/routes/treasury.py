from __future__ import annotations
from flask import Blueprint, request
from personnel.constants.permissions import TREASURY_VIEW, TREASURY_MANAGE
from personnel.decorators.auth import require_permissions
from personnel.decorators.audit import audit_log
from personnel.models.treasury import TreasuryTransaction
from personnel.services import treasury
from personnel.utils.listing import apply_pagination, cached_list
from personnel.utils.timeutil import isoformat

treasury_bp = Blueprint('treasury', __name__)


def _tx_json(t: TreasuryTransaction, balance=None) -> dict:
    body = {
        'id': t.id,
        'pool': t.pool,
        'type': t.type,
        'amount': t.amount,
        'reason': t.reason,
        'actor_user_id': t.actor_user_id,
        'actor_employee_id': t.actor_employee_id,
        'created_at': isoformat(t.created_at),
    }
    if balance is not None:
        body['balance'] = balance
    return body


@treasury_bp.get('')
@require_permissions(TREASURY_VIEW)
def balances(actor):
    body = treasury.balances(actor)
    body['updated_at'] = isoformat(body['updated_at'])
    return body


@treasury_bp.get('/transactions')
@require_permissions(TREASURY_VIEW)
def list_transactions(actor):
    q = treasury.list_transactions(actor, request.args.get('pool'))
    # newest first; the log is append-only so id order is creation order
    q = q.order_by(TreasuryTransaction.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([_tx_json(t) for t in rows], total, limit, offset, rows[0].created_at if rows else None)


@treasury_bp.post('/deposit')
@require_permissions(TREASURY_MANAGE)
@audit_log('TREASURY.DEPOSIT', entity='TreasuryTransaction', entity_id_key='id', meta_keys=['pool', 'amount', 'reason'])
def deposit(actor):
    data = request.json or {}
    t = treasury.deposit(actor, data.get('pool'), data.get('amount'), data.get('reason'))
    return _tx_json(t, treasury.get_treasury().balance(t.pool)), 201


@treasury_bp.post('/withdraw')
@require_permissions(TREASURY_MANAGE)
@audit_log('TREASURY.WITHDRAW', entity='TreasuryTransaction', entity_id_key='id', meta_keys=['pool', 'amount', 'reason'])
def withdraw(actor):
    data = request.json or {}
    t = treasury.withdraw(actor, data.get('pool'), data.get('amount'), data.get('reason'))
    return _tx_json(t, treasury.get_treasury().balance(t.pool)), 201


@treasury_bp.get('/verify')
@require_permissions(TREASURY_VIEW)
def verify(actor):
    return treasury.verify_ledger(actor)
