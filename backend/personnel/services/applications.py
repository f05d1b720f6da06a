"""Application workflow.

Pipeline: CRITERIA -> QUESTIONS -> ONBOARDING -> COMPLETED, with REJECTED reachable from
every open status. Step submissions never raise for unmet input: they return a
``StepResult`` describing what is missing and leave the application where it is.
Only precondition violations on ``complete`` / ``reject`` (and submissions against an
application at a different step) are errors.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from flask import current_app
from sqlalchemy import select, or_

from personnel import get_db
from personnel.constants.permissions import HR_VIEW, HR_MANAGE
from personnel.constants.ranks import rank_name
from personnel.errors import (
    AlreadyEmployedError, ApplicationExistsError, BlacklistedError, ConflictError, ExternalSyncFailure,
    IdentityNotLinkedError, InvalidStateTransitionError, NotFoundError, ValidationError,
)
from personnel.models.application import (
    Application, ApplicationCriterion, ApplicationQuestion, OnboardingItem, BlacklistEntry,
)
from personnel.models.authz import User
from personnel.models.employee import Employee
from personnel.services.context import ActorContext
from personnel.services.events import emit, emit_incentive, EVENT_BLOB_OBSOLETE, EVENT_EMPLOYEE_HIRED
from personnel.services.ranks import hire_badge, format_display_name
from personnel.utils.fsm import TransitionValidator
from personnel.utils.timeutil import utcnow
from personnel.utils.validation import require_text, optional_text

log = logging.getLogger(__name__)

APPLICATION_FSM = TransitionValidator({
    Application.STATUS_CRITERIA: {Application.STATUS_QUESTIONS, Application.STATUS_REJECTED},
    Application.STATUS_QUESTIONS: {Application.STATUS_ONBOARDING, Application.STATUS_REJECTED},
    Application.STATUS_ONBOARDING: {Application.STATUS_COMPLETED, Application.STATUS_REJECTED},
    Application.STATUS_COMPLETED: set(),
    Application.STATUS_REJECTED: set(),
})


@dataclass
class StepResult:
    advanced: bool
    application: Application
    unmet: List[Dict[str, Any]] = field(default_factory=list)
    required: int = 0
    satisfied: int = 0
    all_complete: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'advanced': self.advanced,
            'status': self.application.status,
            'step': self.application.step,
            'unmet': self.unmet,
            'required': self.required,
            'satisfied': self.satisfied,
        }
        if self.all_complete is not None:
            body['all_complete'] = self.all_complete
        return body


# --- lookups ---

def get_application(application_id: int) -> Application:
    app = get_db().get(Application, application_id)
    if not app:
        raise NotFoundError(f'Application {application_id} not found')
    return app


def active_blacklist_entry(discord_id: Optional[str]) -> Optional[BlacklistEntry]:
    """Entry blocking ``discord_id``: no expiry, or expiry still in the future."""
    if not discord_id:
        return None
    session = get_db()
    return session.execute(
        select(BlacklistEntry).where(
            BlacklistEntry.discord_id==discord_id,
            or_(BlacklistEntry.expires_at.is_(None), BlacklistEntry.expires_at > utcnow()),
        )
    ).scalar_one_or_none()


def _active(model):
    session = get_db()
    return session.execute(
        select(model).where(model.is_active.is_(True)).order_by(model.sort_order.asc(), model.id.asc())
    ).scalars().all()


def _require_status(app: Application, expected: str):
    if app.status != expected:
        raise InvalidStateTransitionError(
            f'Application {app.id} is at {app.status}, expected {expected}',
            current=app.status, expected=expected,
        )


def catalog(actor: ActorContext) -> Dict[str, List[Dict[str, Any]]]:
    actor.require(HR_VIEW)
    return {
        'criteria': [{'id': c.id, 'name': c.name} for c in _active(ApplicationCriterion)],
        'questions': [{'id': q.id, 'question': q.question} for q in _active(ApplicationQuestion)],
        'onboarding': [{'id': o.id, 'label': o.label} for o in _active(OnboardingItem)],
    }


# --- intake ---

def create_application(actor: ActorContext, applicant_name: str, discord_id: Optional[str] = None,
                       discord_username: Optional[str] = None, notes: Optional[str] = None) -> Application:
    actor.require(HR_MANAGE)
    applicant_name = require_text(applicant_name, 'applicant_name')
    discord_id = optional_text(discord_id)
    if discord_id:
        if active_blacklist_entry(discord_id):
            raise BlacklistedError(f'{discord_id} is blacklisted')
        session = get_db()
        open_app = session.execute(
            select(Application.id).where(
                Application.discord_id==discord_id, Application.status.in_(Application.OPEN_STATUSES)
            )
        ).first()
        if open_app:
            raise ApplicationExistsError(f'Open application #{open_app[0]} exists for {discord_id}')
    app = Application(
        applicant_name=applicant_name,
        discord_id=discord_id,
        discord_username=optional_text(discord_username),
        notes=optional_text(notes),
        status=Application.STATUS_CRITERIA,
        criteria_answers={},
        answered_question_ids=[],
        onboarding_completed_ids=[],
        created_by_id=actor.user_id,
    )
    session = get_db()
    session.add(app)
    session.flush()
    return app


# --- step submissions ---

def submit_criteria(actor: ActorContext, application_id: int, answers: Mapping[Any, Any]) -> StepResult:
    """Advance to QUESTIONS iff every active criterion is answered true."""
    actor.require(HR_MANAGE)
    app = get_application(application_id)
    _require_status(app, Application.STATUS_CRITERIA)
    normalized = {str(k): v is True for k, v in (answers or {}).items()}
    criteria = _active(ApplicationCriterion)
    unmet = [{'id': c.id, 'name': c.name} for c in criteria if not normalized.get(str(c.id))]
    app.criteria_answers = normalized
    # no active criteria can never count as met
    met = bool(criteria) and not unmet
    if met:
        APPLICATION_FSM.assert_can_transition(app.status, Application.STATUS_QUESTIONS)
        app.status = Application.STATUS_QUESTIONS
    get_db().flush()
    return StepResult(met, app, unmet, required=len(criteria), satisfied=len(criteria) - len(unmet))


def required_answers(active_count: int) -> int:
    if active_count <= 0:
        return 0
    return math.ceil(active_count * current_app.config['QUESTION_PASS_THRESHOLD'])


def submit_questions(actor: ActorContext, application_id: int, answered_ids: Iterable[int]) -> StepResult:
    """Advance to ONBOARDING once the answered share of active questions reaches the threshold."""
    actor.require(HR_MANAGE)
    app = get_application(application_id)
    _require_status(app, Application.STATUS_QUESTIONS)
    questions = _active(ApplicationQuestion)
    active_ids = {q.id for q in questions}
    answered = sorted({int(i) for i in (answered_ids or [])} & active_ids)
    required = required_answers(len(questions))
    app.answered_question_ids = answered
    met = bool(questions) and len(answered) >= required
    unmet = [{'id': q.id, 'question': q.question} for q in questions if q.id not in answered]
    if met:
        APPLICATION_FSM.assert_can_transition(app.status, Application.STATUS_ONBOARDING)
        app.status = Application.STATUS_ONBOARDING
    get_db().flush()
    return StepResult(met, app, [] if met else unmet, required=required, satisfied=len(answered))


def submit_onboarding(actor: ActorContext, application_id: int, completed_ids: Iterable[int],
                      discord_id: Optional[str] = None, discord_username: Optional[str] = None) -> StepResult:
    """Record checklist progress and identity linkage; never changes status."""
    actor.require(HR_MANAGE)
    app = get_application(application_id)
    _require_status(app, Application.STATUS_ONBOARDING)
    items = _active(OnboardingItem)
    active_ids = {i.id for i in items}
    done = sorted({int(i) for i in (completed_ids or [])} & active_ids)
    app.onboarding_completed_ids = done
    discord_id = optional_text(discord_id)
    if discord_id:
        app.discord_id = discord_id
    if optional_text(discord_username):
        app.discord_username = optional_text(discord_username)
    all_complete = bool(items) and len(done) == len(items)
    if all_complete and not app.onboarding_bonus_emitted:
        app.onboarding_bonus_emitted = True
        emit_incentive('APPLICATION_ONBOARDING', actor.employee_id,
                       f'Onboarding for {app.applicant_name}', app.id, 'Application')
    get_db().flush()
    unmet = [{'id': i.id, 'label': i.label} for i in items if i.id not in done]
    return StepResult(False, app, unmet, required=len(items), satisfied=len(done), all_complete=all_complete)


# --- terminal transitions ---

def complete(actor: ActorContext, application_id: int) -> Employee:
    """Hire the applicant: exactly one new employee at the entry rank."""
    actor.require(HR_MANAGE)
    session = get_db()
    app = get_application(application_id)
    APPLICATION_FSM.assert_can_transition(app.status, Application.STATUS_COMPLETED)
    if not app.discord_id:
        raise IdentityNotLinkedError('Application has no linked platform account')
    entry = active_blacklist_entry(app.discord_id)
    if entry:
        raise BlacklistedError(f'{app.discord_id} is blacklisted: {entry.reason}')
    user = session.execute(select(User).where(User.discord_id==app.discord_id)).scalar_one_or_none()
    if user is not None:
        existing = session.execute(select(Employee.id).where(Employee.user_id==user.id)).scalar_one_or_none()
        if existing is not None:
            raise AlreadyEmployedError(f'{app.discord_id} is already employee #{existing}', employee_id=existing)
        if not user.is_active:
            user.is_active = True
    else:
        user = User(
            display_name=app.applicant_name,
            discord_id=app.discord_id,
            discord_username=app.discord_username,
            is_active=True,
        )
        session.add(user)
        session.flush()
    level = current_app.config['ENTRY_RANK_LEVEL']
    employee = Employee(
        user_id=user.id,
        rank=rank_name(level),
        rank_level=level,
        badge_number=hire_badge(),
        department=current_app.config['ENTRY_DEPARTMENT'],
        status=Employee.STATUS_ACTIVE,
    )
    session.add(employee)
    session.flush()
    app.status = Application.STATUS_COMPLETED
    app.employee_id = employee.id
    app.processed_by_id = actor.user_id
    app.processed_at = utcnow()
    session.flush()
    emit(EVENT_EMPLOYEE_HIRED, {
        'employee_id': employee.id,
        'external_id': user.discord_id,
        'display_name': format_display_name(employee.badge_number, user.display_name),
    })
    emit_incentive('APPLICATION_COMPLETED', actor.employee_id,
                   f'Application of {app.applicant_name} completed', app.id, 'Application')
    log.info('application #%s completed, employee #%s created', app.id, employee.id)
    return employee


def reject(actor: ActorContext, application_id: int, reason: str, add_to_blacklist: bool = False,
           blacklist_reason: Optional[str] = None, blacklist_expires_at=None) -> Application:
    actor.require(HR_MANAGE)
    reason = require_text(reason, 'reason')
    app = get_application(application_id)
    APPLICATION_FSM.assert_can_transition(app.status, Application.STATUS_REJECTED)
    if add_to_blacklist:
        if not app.discord_id:
            raise IdentityNotLinkedError('Cannot blacklist an application without a linked platform account')
        session = get_db()
        exists = session.execute(select(BlacklistEntry.id).where(BlacklistEntry.discord_id==app.discord_id)).first()
        if not exists:
            session.add(BlacklistEntry(
                discord_id=app.discord_id,
                username=app.discord_username or app.applicant_name,
                reason=optional_text(blacklist_reason) or reason,
                expires_at=blacklist_expires_at,
                added_by_id=actor.user_id,
            ))
    app.rejected_from = app.status
    app.status = Application.STATUS_REJECTED
    app.rejection_reason = reason
    app.processed_by_id = actor.user_id
    app.processed_at = utcnow()
    get_db().flush()
    emit_incentive('APPLICATION_REJECTED', actor.employee_id,
                   f'Application of {app.applicant_name} rejected', app.id, 'Application')
    return app


# --- housekeeping ---

def delete_application(actor: ActorContext, application_id: int) -> None:
    """Remove the application; its uploaded ID card is deleted once the removal commits."""
    actor.require(HR_MANAGE)
    app = get_application(application_id)
    path = app.id_card_path
    session = get_db()
    session.delete(app)
    session.flush()
    if path:
        emit(EVENT_BLOB_OBSOLETE, {'path': path, 'application_id': application_id})


def attach_id_card(actor: ActorContext, application_id: int, filename: str, data: bytes, blobs) -> Application:
    actor.require(HR_MANAGE)
    if not data:
        raise ValidationError('file required')
    app = get_application(application_id)
    previous = app.id_card_path
    app.id_card_path = blobs.store(filename, data)
    get_db().flush()
    if previous:
        emit(EVENT_BLOB_OBSOLETE, {'path': previous, 'application_id': application_id})
    return app


def read_id_card(actor: ActorContext, application_id: int, blobs) -> bytes:
    actor.require(HR_VIEW)
    app = get_application(application_id)
    if not app.id_card_path:
        raise NotFoundError('No ID card uploaded')
    return blobs.retrieve(app.id_card_path)


def create_invite(actor: ActorContext, identity) -> str:
    actor.require(HR_MANAGE)
    result = identity.create_invite_link(
        current_app.config['INVITE_TTL_SECONDS'], current_app.config['INVITE_MAX_USES'],
    )
    if not result.success:
        raise ExternalSyncFailure(result.error or 'Invite creation failed')
    return result.value


# --- blacklist ---

def list_blacklist(actor: ActorContext):
    actor.require(HR_VIEW)
    session = get_db()
    return session.query(BlacklistEntry)


def add_blacklist_entry(actor: ActorContext, discord_id: str, reason: str, username: Optional[str] = None,
                        expires_at=None) -> BlacklistEntry:
    actor.require(HR_MANAGE)
    discord_id = require_text(discord_id, 'discord_id')
    reason = require_text(reason, 'reason')
    session = get_db()
    if session.execute(select(BlacklistEntry.id).where(BlacklistEntry.discord_id==discord_id)).first():
        raise ConflictError(f'{discord_id} is already blacklisted')
    entry = BlacklistEntry(
        discord_id=discord_id, username=optional_text(username), reason=reason,
        expires_at=expires_at, added_by_id=actor.user_id,
    )
    session.add(entry)
    session.flush()
    return entry


def remove_blacklist_entry(actor: ActorContext, entry_id: int) -> None:
    actor.require(HR_MANAGE)
    session = get_db()
    entry = session.get(BlacklistEntry, entry_id)
    if not entry:
        raise NotFoundError(f'Blacklist entry {entry_id} not found')
    session.delete(entry)
    session.flush()


def check_blacklist(actor: ActorContext, discord_id: str) -> Dict[str, Any]:
    actor.require(HR_VIEW)
    session = get_db()
    entry = session.execute(select(BlacklistEntry).where(BlacklistEntry.discord_id==discord_id)).scalar_one_or_none()
    active = active_blacklist_entry(discord_id)
    return {
        'discord_id': discord_id,
        'listed': entry is not None,
        'active': active is not None,
        'entry_id': entry.id if entry else None,
        'reason': entry.reason if entry else None,
    }


__all__ = [
    'APPLICATION_FSM', 'StepResult', 'get_application', 'active_blacklist_entry', 'catalog', 'create_application',
    'submit_criteria', 'required_answers', 'submit_questions', 'submit_onboarding', 'complete', 'reject',
    'delete_application', 'attach_id_card', 'read_id_card', 'create_invite', 'list_blacklist',
    'add_blacklist_entry', 'remove_blacklist_entry', 'check_blacklist',
]
