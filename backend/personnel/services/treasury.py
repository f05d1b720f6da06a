"""Treasury ledger.

Two pools with materialized balances on a singleton row plus an append-only
transaction log. Balance changes are single conditional UPDATE statements so two
concurrent withdrawals can never overdraw a pool.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update, func, case

from personnel import get_db
from personnel.constants.permissions import TREASURY_VIEW, TREASURY_MANAGE
from personnel.errors import InsufficientFundsError, InvalidAmountError
from personnel.models.treasury import Treasury, TreasuryTransaction
from personnel.services.context import ActorContext
from personnel.utils.validation import require_amount, require_text, validate_status

log = logging.getLogger(__name__)


def get_treasury() -> Treasury:
    """The singleton row, created on first use."""
    session = get_db()
    treasury = session.get(Treasury, Treasury.SINGLETON_ID)
    if treasury is None:
        treasury = Treasury(id=Treasury.SINGLETON_ID, regular_cash=0, untracked_cash=0)
        session.add(treasury)
        session.flush()
    return treasury


def _apply(actor: ActorContext, pool: str, tx_type: str, amount: Any, reason: str) -> TreasuryTransaction:
    actor.require(TREASURY_MANAGE)
    amount = require_amount(amount, error_cls=InvalidAmountError)
    pool = validate_status(pool, Treasury.ALL_POOLS, 'pool')
    reason = require_text(reason, 'reason')
    session = get_db()
    treasury = get_treasury()
    column = Treasury.balance_column(pool)
    stmt = update(Treasury).where(Treasury.id==Treasury.SINGLETON_ID)
    if tx_type == TreasuryTransaction.TYPE_DEPOSIT:
        stmt = stmt.values({column: column + amount})
    else:
        stmt = stmt.where(column >= amount).values({column: column - amount})
    result = session.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount != 1:
        session.refresh(treasury)
        raise InsufficientFundsError(
            f'Withdrawal of {amount} exceeds {pool} balance', pool=pool, balance=treasury.balance(pool), amount=amount,
        )
    tx = TreasuryTransaction(
        pool=pool,
        type=tx_type,
        amount=amount,
        reason=reason,
        actor_user_id=actor.user_id,
        actor_employee_id=actor.employee_id,
    )
    session.add(tx)
    session.flush()
    session.refresh(treasury)
    log.info('treasury %s %s %s (balance %s)', tx_type.lower(), pool, amount, treasury.balance(pool))
    return tx


def deposit(actor: ActorContext, pool: str, amount: Any, reason: str) -> TreasuryTransaction:
    return _apply(actor, pool, TreasuryTransaction.TYPE_DEPOSIT, amount, reason)


def withdraw(actor: ActorContext, pool: str, amount: Any, reason: str) -> TreasuryTransaction:
    return _apply(actor, pool, TreasuryTransaction.TYPE_WITHDRAWAL, amount, reason)


def balances(actor: ActorContext) -> Dict[str, Any]:
    actor.require(TREASURY_VIEW)
    treasury = get_treasury()
    return {
        'regular_cash': treasury.regular_cash,
        'untracked_cash': treasury.untracked_cash,
        'updated_at': treasury.updated_at,
    }


def list_transactions(actor: ActorContext, pool: Optional[str] = None):
    actor.require(TREASURY_VIEW)
    session = get_db()
    q = session.query(TreasuryTransaction)
    if pool:
        q = q.filter(TreasuryTransaction.pool==validate_status(pool, Treasury.ALL_POOLS, 'pool'))
    return q


def ledger_sum(pool: str) -> int:
    session = get_db()
    signed = case(
        (TreasuryTransaction.type==TreasuryTransaction.TYPE_DEPOSIT, TreasuryTransaction.amount),
        else_=-TreasuryTransaction.amount,
    )
    total = session.execute(
        select(func.coalesce(func.sum(signed), 0)).where(TreasuryTransaction.pool==pool)
    ).scalar_one()
    return int(total)


def verify_ledger(actor: ActorContext) -> Dict[str, Dict[str, Any]]:
    """Recompute each pool from the log and compare with the stored balance."""
    actor.require(TREASURY_VIEW)
    treasury = get_treasury()
    report = {}
    for pool in Treasury.ALL_POOLS:
        ledger = ledger_sum(pool)
        balance = treasury.balance(pool)
        report[pool] = {'balance': balance, 'ledger': ledger, 'consistent': balance == ledger}
        if balance != ledger:
            log.error('treasury pool %s inconsistent: balance %s, ledger %s', pool, balance, ledger)
    return report


__all__ = ['get_treasury', 'deposit', 'withdraw', 'balances', 'list_transactions', 'ledger_sum', 'verify_ledger']
