"""Rank & badge engine.

Level changes are one step for promote/demote and arbitrary for approved uprank
requests; all of them go through ``apply_level`` which re-allocates the badge when
the team changes. Badge allocation picks the lowest free number in the new team's
range; the unique badge constraint plus ``commit_with_retry`` settles races between
concurrent allocations.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from flask import current_app
from sqlalchemy import select

from personnel import get_db
from personnel.constants.permissions import EMPLOYEES_RANK, EMPLOYEES_EDIT, EMPLOYEES_TERMINATE
from personnel.constants.ranks import (
    MIN_LEVEL, MAX_LEVEL, DISPLAY_PREFIX_PATTERN, BADGE_PATTERN, Team, team_for_level, team_for_badge, rank_name,
)
from personnel.errors import (
    RankBoundaryError, BadgeRangeExhaustedError, NotFoundError, InvalidStateTransitionError, ValidationError,
    ConflictError,
)
from personnel.models.employee import Employee, RankHistory
from personnel.services.context import ActorContext
from personnel.services.events import emit, EVENT_DISPLAY_NAME_CHANGED, EVENT_EMPLOYEE_TERMINATED
from personnel.utils.fsm import TransitionValidator
from personnel.utils.timeutil import utcnow

log = logging.getLogger(__name__)

EMPLOYEE_FSM = TransitionValidator({
    Employee.STATUS_ACTIVE: {Employee.STATUS_INACTIVE, Employee.STATUS_SUSPENDED, Employee.STATUS_ON_LEAVE, Employee.STATUS_TERMINATED},
    Employee.STATUS_INACTIVE: {Employee.STATUS_ACTIVE, Employee.STATUS_SUSPENDED, Employee.STATUS_ON_LEAVE, Employee.STATUS_TERMINATED},
    Employee.STATUS_SUSPENDED: {Employee.STATUS_ACTIVE, Employee.STATUS_INACTIVE, Employee.STATUS_TERMINATED},
    Employee.STATUS_ON_LEAVE: {Employee.STATUS_ACTIVE, Employee.STATUS_INACTIVE, Employee.STATUS_TERMINATED},
    Employee.STATUS_TERMINATED: set(),
})


@dataclass
class RankChange:
    new_rank: str
    new_level: int
    new_badge_number: Optional[str]
    team_changed: bool
    old_level: int
    old_badge_number: Optional[str]

    def to_dict(self):
        return asdict(self)


def format_display_name(badge: Optional[str], name: str) -> str:
    """``"[G-07] Jane Doe"``; any existing badge prefix on ``name`` is replaced."""
    pure = DISPLAY_PREFIX_PATTERN.sub('', name or '').strip()
    if not badge:
        return pure
    return f'[{badge}] {pure}'


def step_level(level: int, delta: int) -> int:
    """Pure boundary check for promote (+1) / demote (-1)."""
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise RankBoundaryError(f'Rank level {level} outside {MIN_LEVEL}..{MAX_LEVEL}')
    new_level = level + delta
    if not MIN_LEVEL <= new_level <= MAX_LEVEL:
        direction = 'promote' if delta > 0 else 'demote'
        raise RankBoundaryError(f'Cannot {direction} beyond rank level {level}', level=level)
    return new_level


def allocate_badge(team: Team, exclude_employee_id: Optional[int] = None) -> str:
    """Lowest unused badge number in ``team``'s range across all employees."""
    session = get_db()
    q = select(Employee.badge_number).where(Employee.badge_number.like(f'{team.badge_prefix}-%'))
    if exclude_employee_id is not None:
        q = q.where(Employee.id != exclude_employee_id)
    taken = set()
    for badge in session.execute(q).scalars():
        n = team.badge_number(badge)
        if n is not None:
            taken.add(n)
    for n in range(team.badge_min, team.badge_max + 1):
        if n not in taken:
            return team.format_badge(n)
    raise BadgeRangeExhaustedError(
        f'No free badge number in {team.name} range {team.format_badge(team.badge_min)}..{team.format_badge(team.badge_max)}',
        team=team.name,
    )


def get_employee(employee_id: int) -> Employee:
    employee = get_db().get(Employee, employee_id)
    if not employee:
        raise NotFoundError(f'Employee {employee_id} not found')
    return employee


def _display_name_event(employee: Employee):
    user = employee.user
    emit(EVENT_DISPLAY_NAME_CHANGED, {
        'employee_id': employee.id,
        'external_id': user.discord_id if user else None,
        'display_name': employee.display_name,
    })


def apply_level(employee: Employee, new_level: int, actor: ActorContext, reason: Optional[str] = None) -> RankChange:
    """Move ``employee`` to ``new_level``; callers have already authorized ``actor``."""
    if employee.status == Employee.STATUS_TERMINATED:
        raise InvalidStateTransitionError('Terminated employees cannot change rank')
    old_level, old_badge = employee.rank_level, employee.badge_number
    new_rank = rank_name(new_level)
    old_team = team_for_level(old_level)
    new_team = team_for_level(new_level)
    team_changed = old_team != new_team
    session = get_db()
    if team_changed or not old_badge:
        employee.badge_number = allocate_badge(new_team, exclude_employee_id=employee.id)
    employee.rank_level = new_level
    employee.rank = new_rank
    session.add(RankHistory(
        employee_id=employee.id,
        old_level=old_level,
        new_level=new_level,
        old_badge=old_badge,
        new_badge=employee.badge_number,
        reason=reason,
        actor_user_id=actor.user_id,
    ))
    session.flush()
    _display_name_event(employee)
    log.info('employee #%s rank %s -> %s (%s)', employee.id, old_level, new_level, employee.badge_number)
    return RankChange(
        new_rank=new_rank,
        new_level=new_level,
        new_badge_number=employee.badge_number if employee.badge_number != old_badge else None,
        team_changed=team_changed,
        old_level=old_level,
        old_badge_number=old_badge,
    )


def promote(actor: ActorContext, employee_id: int, reason: Optional[str] = None) -> RankChange:
    actor.require(EMPLOYEES_RANK)
    employee = get_employee(employee_id)
    return apply_level(employee, step_level(employee.rank_level, +1), actor, reason or 'promotion')


def demote(actor: ActorContext, employee_id: int, reason: Optional[str] = None) -> RankChange:
    actor.require(EMPLOYEES_RANK)
    employee = get_employee(employee_id)
    return apply_level(employee, step_level(employee.rank_level, -1), actor, reason or 'demotion')


def assign_badge(actor: ActorContext, employee_id: int, badge: str) -> Employee:
    """Manually set a badge; it must belong to the employee's current team and be free."""
    actor.require(EMPLOYEES_RANK)
    employee = get_employee(employee_id)
    badge = (badge or '').strip().upper()
    m = BADGE_PATTERN.match(badge)
    if not m:
        raise ValidationError('badge_number must look like PREFIX-NN')
    team = team_for_level(employee.rank_level)
    if team_for_badge(badge) != team or not team.owns_badge(badge):
        raise ValidationError(f'{badge} is outside the {team.name} badge range')
    badge = team.format_badge(int(m.group(2)))
    session = get_db()
    holder = session.execute(select(Employee.id).where(Employee.badge_number==badge)).scalar_one_or_none()
    if holder is not None and holder != employee.id:
        raise ConflictError(f'Badge {badge} already assigned')
    employee.badge_number = badge
    session.flush()
    _display_name_event(employee)
    return employee


def set_status(actor: ActorContext, employee_id: int, status: str) -> Employee:
    """Non-terminal status changes; termination goes through ``terminate``."""
    actor.require(EMPLOYEES_EDIT)
    if status == Employee.STATUS_TERMINATED:
        raise ValidationError('Use terminate to end employment')
    if status not in Employee.ALL_STATUSES:
        raise ValidationError('status invalid')
    employee = get_employee(employee_id)
    EMPLOYEE_FSM.assert_can_transition(employee.status, status)
    employee.status = status
    get_db().flush()
    return employee


def terminate(actor: ActorContext, employee_id: int, reason: str) -> Employee:
    """Soft delete: status TERMINATED, badge released, login disabled, member removed from the platform."""
    actor.require(EMPLOYEES_TERMINATE)
    if not reason or not reason.strip():
        raise ValidationError('reason required')
    employee = get_employee(employee_id)
    EMPLOYEE_FSM.assert_can_transition(employee.status, Employee.STATUS_TERMINATED)
    released = employee.badge_number
    employee.status = Employee.STATUS_TERMINATED
    employee.badge_number = None
    employee.terminated_at = utcnow()
    if employee.user:
        employee.user.is_active = False
    get_db().flush()
    emit(EVENT_EMPLOYEE_TERMINATED, {
        'employee_id': employee.id,
        'external_id': employee.user.discord_id if employee.user else None,
        'reason': reason.strip(),
        'released_badge': released,
    })
    log.info('employee #%s terminated (badge %s released)', employee.id, released)
    return employee


def hire_badge() -> Optional[str]:
    """Badge for a new hire at the configured entry level, if hiring assigns one."""
    if not current_app.config['HIRE_ASSIGNS_BADGE']:
        return None
    return allocate_badge(team_for_level(current_app.config['ENTRY_RANK_LEVEL']))


__all__ = [
    'RankChange', 'EMPLOYEE_FSM', 'format_display_name', 'step_level', 'allocate_badge', 'get_employee',
    'apply_level', 'promote', 'demote', 'assign_badge', 'set_status', 'terminate', 'hire_badge',
]
