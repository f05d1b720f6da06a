"""Weekly incentive payments.

Payments are created from ``bonus.trigger`` outbox events and grouped into
Monday 00:00 to Sunday 23:59:59.999999 (UTC) weeks. A week can be closed, which records
its pending total for payout.
"""
from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

from sqlalchemy import select, func

from personnel import get_db
from personnel.constants.permissions import BONUS_VIEW, BONUS_MANAGE
from personnel.errors import NotFoundError, InvalidStateTransitionError, ValidationError
from personnel.models.bonus import BonusConfig, BonusPayment, BonusWeek
from personnel.models.employee import Employee
from personnel.services.context import ActorContext
from personnel.utils.fsm import TransitionValidator
from personnel.utils.timeutil import utcnow, as_utc
from personnel.utils.validation import require_amount

log = logging.getLogger(__name__)

PAYMENT_FSM = TransitionValidator({
    BonusPayment.STATUS_PENDING: {BonusPayment.STATUS_PAID, BonusPayment.STATUS_CANCELLED},
    BonusPayment.STATUS_PAID: set(),
    BonusPayment.STATUS_CANCELLED: set(),
})


def week_bounds(when: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    when = as_utc(when) or utcnow()
    start = (when - timedelta(days=when.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end


def create_bonus_payment(activity_type: str, employee_id: int, reason: str,
                         reference_id: Optional[str] = None, reference_type: Optional[str] = None,
                         now: Optional[datetime] = None) -> Optional[BonusPayment]:
    """Create a PENDING payment if the activity has an active config with a positive amount."""
    session = get_db()
    config = session.execute(select(BonusConfig).where(BonusConfig.activity_type==activity_type)).scalar_one_or_none()
    if not config or not config.is_active or config.amount <= 0:
        log.debug('no bonus for %s (config missing, inactive or zero)', activity_type)
        return None
    if session.get(Employee, employee_id) is None:
        log.warning('bonus %s skipped: employee #%s not found', activity_type, employee_id)
        return None
    start, end = week_bounds(now)
    payment = BonusPayment(
        config_id=config.id,
        employee_id=employee_id,
        activity_type=activity_type,
        amount=config.amount,
        reason=reason[:255],
        reference_id=reference_id,
        reference_type=reference_type,
        week_start=start,
        week_end=end,
        status=BonusPayment.STATUS_PENDING,
    )
    session.add(payment)
    session.flush()
    log.info('bonus %s of %s for employee #%s', activity_type, config.amount, employee_id)
    return payment


def list_configs(actor: ActorContext):
    actor.require(BONUS_VIEW)
    session = get_db()
    return session.execute(
        select(BonusConfig).order_by(BonusConfig.category.asc(), BonusConfig.display_name.asc())
    ).scalars().all()


def update_config(actor: ActorContext, config_id: int, amount=None, is_active=None, display_name=None) -> BonusConfig:
    actor.require(BONUS_MANAGE)
    session = get_db()
    config = session.get(BonusConfig, config_id)
    if not config:
        raise NotFoundError(f'Bonus config {config_id} not found')
    if amount is not None:
        config.amount = require_amount(amount, allow_zero=True)
    if is_active is not None:
        config.is_active = bool(is_active)
    if display_name:
        config.display_name = display_name
    session.flush()
    return config


def payments_query(actor: ActorContext, week_of: Optional[datetime] = None, status: Optional[str] = None,
                   employee_id: Optional[int] = None):
    actor.require(BONUS_VIEW)
    session = get_db()
    q = session.query(BonusPayment)
    if week_of is not None:
        start, _ = week_bounds(week_of)
        q = q.filter(BonusPayment.week_start==start)
    if status:
        q = q.filter(BonusPayment.status==status)
    if employee_id is not None:
        q = q.filter(BonusPayment.employee_id==employee_id)
    return q


def _transition_payments(actor: ActorContext, payment_ids: Iterable[int], target: str):
    session = get_db()
    ids = list(payment_ids)
    if not ids:
        raise ValidationError('payment_ids required')
    payments = session.execute(select(BonusPayment).where(BonusPayment.id.in_(ids))).scalars().all()
    missing = set(ids) - {p.id for p in payments}
    if missing:
        raise NotFoundError(f'Bonus payments not found: {sorted(missing)}')
    for p in payments:
        PAYMENT_FSM.assert_can_transition(p.status, target)
    now = utcnow()
    for p in payments:
        p.status = target
        if target == BonusPayment.STATUS_PAID:
            p.paid_at = now
            p.paid_by_id = actor.user_id
    session.flush()
    return payments


def mark_paid(actor: ActorContext, payment_ids: Iterable[int]):
    actor.require(BONUS_MANAGE)
    return _transition_payments(actor, payment_ids, BonusPayment.STATUS_PAID)


def cancel_payment(actor: ActorContext, payment_id: int) -> BonusPayment:
    actor.require(BONUS_MANAGE)
    return _transition_payments(actor, [payment_id], BonusPayment.STATUS_CANCELLED)[0]


def close_week(actor: ActorContext, when: Optional[datetime] = None) -> BonusWeek:
    """Close the week containing ``when`` recording the total of its pending payments."""
    actor.require(BONUS_MANAGE)
    session = get_db()
    start, end = week_bounds(when)
    total, count = session.execute(
        select(func.coalesce(func.sum(BonusPayment.amount), 0), func.count(BonusPayment.id))
        .where(BonusPayment.week_start==start, BonusPayment.status==BonusPayment.STATUS_PENDING)
    ).one()
    week = session.execute(
        select(BonusWeek).where(BonusWeek.week_start==start, BonusWeek.week_end==end)
    ).scalar_one_or_none()
    if week is None:
        week = BonusWeek(week_start=start, week_end=end)
        session.add(week)
    if week.status == BonusWeek.STATUS_CLOSED:
        raise InvalidStateTransitionError('Bonus week already closed')
    week.status = BonusWeek.STATUS_CLOSED
    week.total_amount = int(total)
    week.payment_count = int(count)
    week.closed_at = utcnow()
    week.closed_by_id = actor.user_id
    session.flush()
    log.info('closed bonus week %s: %s payments, total %s', start.date(), count, total)
    return week


def list_weeks(actor: ActorContext, limit: int = 12):
    actor.require(BONUS_VIEW)
    session = get_db()
    return session.execute(select(BonusWeek).order_by(BonusWeek.week_start.desc()).limit(limit)).scalars().all()
