"""Composite sanctions: warning, fine and corrective measure, completed independently."""
from __future__ import annotations
import logging
from typing import Optional

from personnel import get_db
from personnel.constants.permissions import SANCTIONS_VIEW, SANCTIONS_MANAGE
from personnel.errors import ComponentNotPresentError, EmptySanctionError, NotFoundError, ValidationError
from personnel.models.sanction import Sanction
from personnel.services.context import ActorContext
from personnel.services.events import emit_incentive
from personnel.services.ranks import get_employee
from personnel.utils.fsm import TransitionValidator
from personnel.utils.timeutil import utcnow
from personnel.utils.validation import require_amount, require_text, optional_text, validate_status

log = logging.getLogger(__name__)

SANCTION_FSM = TransitionValidator({
    Sanction.STATUS_ACTIVE: {Sanction.STATUS_REVOKED},
    Sanction.STATUS_REVOKED: set(),
})


def get_sanction(sanction_id: int) -> Sanction:
    sanction = get_db().get(Sanction, sanction_id)
    if not sanction:
        raise NotFoundError(f'Sanction {sanction_id} not found')
    return sanction


def create_sanction(actor: ActorContext, employee_id: int, reason: str, warning: bool = False,
                    fine: bool = False, fine_amount: Optional[int] = None,
                    measure: bool = False, measure_text: Optional[str] = None,
                    expires_at=None) -> Sanction:
    actor.require(SANCTIONS_MANAGE)
    has_fine, has_measure = bool(fine), bool(measure)
    if not (warning or has_fine or has_measure):
        raise EmptySanctionError('A sanction needs a warning, a fine or a measure')
    if has_fine:
        fine_amount = require_amount(fine_amount, 'fine_amount')
    measure_text = optional_text(measure_text)
    if has_measure and not measure_text:
        raise ValidationError('measure text required')
    reason = require_text(reason, 'reason')
    get_employee(employee_id)
    sanction = Sanction(
        employee_id=employee_id,
        reason=reason,
        has_warning=bool(warning),
        has_fine=has_fine,
        fine_amount=fine_amount if has_fine else None,
        has_measure=has_measure,
        measure=measure_text if has_measure else None,
        status=Sanction.STATUS_ACTIVE,
        expires_at=expires_at,
        issued_by_id=actor.user_id,
    )
    session = get_db()
    session.add(sanction)
    session.flush()
    emit_incentive('SANCTION_ISSUED', actor.employee_id, f'Sanction issued to employee #{employee_id}',
                   sanction.id, 'Sanction')
    return sanction


def toggle_component_completion(actor: ActorContext, sanction_id: int, component: str) -> Sanction:
    actor.require(SANCTIONS_MANAGE)
    validate_status(component, Sanction.COMPONENTS, 'component')
    sanction = get_sanction(sanction_id)
    if sanction.status != Sanction.STATUS_ACTIVE:
        raise ValidationError(f'Sanction {sanction_id} is {sanction.status}')
    if not sanction.has_component(component):
        raise ComponentNotPresentError(f'Sanction {sanction_id} has no {component}', component=component)
    flag = f'{component}_completed'
    setattr(sanction, flag, not getattr(sanction, flag))
    get_db().flush()
    return sanction


def revoke(actor: ActorContext, sanction_id: int) -> Sanction:
    actor.require(SANCTIONS_MANAGE)
    sanction = get_sanction(sanction_id)
    SANCTION_FSM.assert_can_transition(sanction.status, Sanction.STATUS_REVOKED)
    sanction.status = Sanction.STATUS_REVOKED
    sanction.revoked_by_id = actor.user_id
    sanction.revoked_at = utcnow()
    get_db().flush()
    log.info('sanction #%s revoked', sanction.id)
    return sanction


def list_sanctions(actor: ActorContext, status: Optional[str] = None, employee_id: Optional[int] = None):
    actor.require(SANCTIONS_VIEW)
    session = get_db()
    q = session.query(Sanction)
    if status:
        q = q.filter(Sanction.status==validate_status(status, Sanction.ALL_STATUSES))
    if employee_id is not None:
        q = q.filter(Sanction.employee_id==employee_id)
    return q


__all__ = ['SANCTION_FSM', 'get_sanction', 'create_sanction', 'toggle_component_completion', 'revoke', 'list_sanctions']
