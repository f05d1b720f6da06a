"""Uprank requests and locks.

Approving a request moves the employee through ``apply_level`` and locks further
requests for a team-dependent number of weeks.
"""
from __future__ import annotations
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update

from personnel import get_db
from personnel.constants.permissions import UPRANK_REQUEST, UPRANK_PROCESS
from personnel.constants.ranks import TEAM_LOCK_WEEKS, level_for_rank, team_for_level
from personnel.errors import (
    DuplicateRequestError, NotFoundError, UprankLockedError, ValidationError,
)
from personnel.models.academy import UprankRequest, UprankLock
from personnel.services.academy import has_pending_request
from personnel.services.context import ActorContext
from personnel.services.ranks import apply_level, get_employee
from personnel.utils.fsm import TransitionValidator
from personnel.utils.timeutil import utcnow
from personnel.utils.validation import require_text, optional_text, validate_status

log = logging.getLogger(__name__)

UPRANK_FSM = TransitionValidator({
    UprankRequest.STATUS_PENDING: {UprankRequest.STATUS_APPROVED, UprankRequest.STATUS_REJECTED},
    UprankRequest.STATUS_APPROVED: set(),
    UprankRequest.STATUS_REJECTED: set(),
})


def get_request(request_id: int) -> UprankRequest:
    req = get_db().get(UprankRequest, request_id)
    if not req:
        raise NotFoundError(f'Uprank request {request_id} not found')
    return req


def active_lock(employee_id: int) -> Optional[UprankLock]:
    session = get_db()
    return session.execute(
        select(UprankLock).where(
            UprankLock.employee_id==employee_id,
            UprankLock.is_active.is_(True),
            UprankLock.locked_until > utcnow(),
        ).order_by(UprankLock.locked_until.desc())
    ).scalars().first()


def list_requests(actor: ActorContext, status: Optional[str] = None, employee_id: Optional[int] = None):
    actor.require_any(UPRANK_REQUEST, UPRANK_PROCESS)
    session = get_db()
    q = session.query(UprankRequest)
    if status:
        q = q.filter(UprankRequest.status==validate_status(status, UprankRequest.ALL_STATUSES))
    if employee_id is not None:
        q = q.filter(UprankRequest.employee_id==employee_id)
    return q


def create_request(actor: ActorContext, employee_id: int, target_rank: str, reason: str,
                   achievements: Optional[str] = None) -> UprankRequest:
    actor.require(UPRANK_REQUEST)
    employee = get_employee(employee_id)
    target_level = level_for_rank(target_rank)
    if target_level is None:
        raise ValidationError(f'Unknown rank {target_rank!r}')
    if target_level <= employee.rank_level:
        raise ValidationError(f'{target_rank} is not above the current rank {employee.rank}')
    reason = require_text(reason, 'reason')
    lock = active_lock(employee_id)
    if lock:
        raise UprankLockedError(f'Employee {employee_id} is locked until {lock.locked_until}', lock_id=lock.id)
    if has_pending_request(employee_id):
        raise DuplicateRequestError(f'Employee {employee_id} already has a pending uprank request')
    req = UprankRequest(
        employee_id=employee_id,
        current_rank=employee.rank,
        target_rank=target_rank,
        reason=reason,
        achievements=optional_text(achievements),
        is_academy_request=False,
        status=UprankRequest.STATUS_PENDING,
        requested_by_id=actor.user_id,
    )
    session = get_db()
    session.add(req)
    session.flush()
    return req


def _lock_after_promotion(employee, actor: ActorContext, request_id: int) -> Optional[UprankLock]:
    team = team_for_level(employee.rank_level)
    weeks = TEAM_LOCK_WEEKS.get(team.name)
    if not weeks:
        return None
    session = get_db()
    session.execute(
        update(UprankLock)
        .where(UprankLock.employee_id==employee.id, UprankLock.is_active.is_(True))
        .values(is_active=False)
    )
    lock = UprankLock(
        employee_id=employee.id,
        team=team.name,
        reason=f'Automatic lock after uprank request #{request_id}',
        locked_until=utcnow() + timedelta(weeks=weeks),
        is_active=True,
        created_by_id=actor.user_id,
    )
    session.add(lock)
    session.flush()
    return lock


def process_request(actor: ActorContext, request_id: int, status: str,
                    rejection_reason: Optional[str] = None) -> UprankRequest:
    actor.require(UPRANK_PROCESS)
    validate_status(status, (UprankRequest.STATUS_APPROVED, UprankRequest.STATUS_REJECTED))
    req = get_request(request_id)
    UPRANK_FSM.assert_can_transition(req.status, status)
    if status == UprankRequest.STATUS_REJECTED:
        req.rejection_reason = require_text(rejection_reason, 'rejection_reason')
    else:
        employee = get_employee(req.employee_id)
        target_level = level_for_rank(req.target_rank)
        if target_level is None:
            raise ValidationError(f'Unknown rank {req.target_rank!r}')
        if target_level <= employee.rank_level:
            raise ValidationError(
                f'{req.target_rank} is no longer above the current rank {employee.rank}', current_level=employee.rank_level,
            )
        apply_level(employee, target_level, actor, f'uprank request #{req.id}')
        _lock_after_promotion(employee, actor, req.id)
    req.status = status
    req.processed_by_id = actor.user_id
    req.processed_at = utcnow()
    get_db().flush()
    log.info('uprank request #%s %s', req.id, status)
    return req


# --- locks ---

def list_locks(actor: ActorContext, employee_id: Optional[int] = None, active_only: bool = True):
    actor.require_any(UPRANK_REQUEST, UPRANK_PROCESS)
    session = get_db()
    q = session.query(UprankLock)
    if employee_id is not None:
        q = q.filter(UprankLock.employee_id==employee_id)
    if active_only:
        q = q.filter(UprankLock.is_active.is_(True), UprankLock.locked_until > utcnow())
    return q


def create_lock(actor: ActorContext, employee_id: int, reason: str, locked_until) -> UprankLock:
    actor.require(UPRANK_PROCESS)
    employee = get_employee(employee_id)
    if locked_until is None:
        raise ValidationError('locked_until required')
    lock = UprankLock(
        employee_id=employee.id,
        team=team_for_level(employee.rank_level).name,
        reason=require_text(reason, 'reason'),
        locked_until=locked_until,
        is_active=True,
        created_by_id=actor.user_id,
    )
    session = get_db()
    session.add(lock)
    session.flush()
    return lock


def lift_lock(actor: ActorContext, lock_id: int) -> UprankLock:
    actor.require(UPRANK_PROCESS)
    lock = get_db().get(UprankLock, lock_id)
    if not lock:
        raise NotFoundError(f'Uprank lock {lock_id} not found')
    lock.is_active = False
    get_db().flush()
    return lock


__all__ = [
    'UPRANK_FSM', 'get_request', 'active_lock', 'list_requests', 'create_request', 'process_request',
    'list_locks', 'create_lock', 'lift_lock',
]
