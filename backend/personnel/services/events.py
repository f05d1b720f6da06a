"""Post-commit side effects (transactional outbox).

Engines call ``emit`` inside their unit of work; the row commits or rolls back together
with the change that caused it. After the request commits, ``dispatch_pending`` hands
each undelivered event to its handlers. A failing handler is logged and the event stays
undelivered with ``attempts``/``last_error`` updated, so the core change never depends
on the external platform being reachable. After ``OUTBOX_MAX_ATTEMPTS`` failures the event is
parked (``failed_at``) so it cannot hold up newer ones.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy import select

from personnel import get_db
from personnel.errors import ExternalSyncFailure
from personnel.models.outbox import OutboxEvent
from personnel.utils.timeutil import utcnow, isoformat, parse_datetime

log = logging.getLogger(__name__)

EVENT_BONUS_TRIGGER = 'bonus.trigger'
EVENT_DISPLAY_NAME_CHANGED = 'employee.display_name_changed'
EVENT_EMPLOYEE_HIRED = 'employee.hired'
EVENT_EMPLOYEE_TERMINATED = 'employee.terminated'
EVENT_BLOB_OBSOLETE = 'blob.obsolete'

Handler = Callable[[Dict[str, Any], Any], None]
HANDLERS: Dict[str, List[Handler]] = {}


def on(event_type: str):
    def register(fn: Handler) -> Handler:
        HANDLERS.setdefault(event_type, []).append(fn)
        return fn
    return register


def emit(event_type: str, payload: Dict[str, Any]) -> OutboxEvent:
    session = get_db()
    evt = OutboxEvent(event_type=event_type, payload=payload)
    session.add(evt)
    session.flush()
    log.debug('queued %s #%s', event_type, evt.id)
    return evt


def emit_incentive(activity_type: str, employee_id: Optional[int], reason: str,
                   reference_id=None, reference_type: Optional[str] = None) -> Optional[OutboxEvent]:
    """Queue an incentive trigger for the acting employee; actors without an employee record earn nothing."""
    if employee_id is None:
        return None
    return emit(EVENT_BONUS_TRIGGER, {
        'activity_type': activity_type,
        'employee_id': employee_id,
        'reason': reason,
        'reference_id': str(reference_id) if reference_id is not None else None,
        'reference_type': reference_type,
        'occurred_at': isoformat(utcnow()),
    })


def _pending_batch(session, after_id: int, limit: int) -> List[int]:
    return session.execute(
        select(OutboxEvent.id)
        .where(
            OutboxEvent.dispatched_at.is_(None),
            OutboxEvent.failed_at.is_(None),
            OutboxEvent.id > after_id,
        )
        .order_by(OutboxEvent.id.asc())
        .limit(limit)
    ).scalars().all()


def dispatch_pending(integrations, limit: int = 100, max_attempts: Optional[int] = None) -> Tuple[int, int]:
    """Deliver every undelivered event once, oldest first, in batches of ``limit``.

    Returns (dispatched, failed). An event that has failed ``max_attempts`` times is
    parked with ``failed_at`` set and no longer picked up.
    """
    session = get_db()
    if max_attempts is None:
        max_attempts = current_app.config['OUTBOX_MAX_ATTEMPTS']
    dispatched = failed = 0
    cursor = 0
    while True:
        pending_ids = _pending_batch(session, cursor, limit)
        if not pending_ids:
            break
        cursor = pending_ids[-1]
        for event_id in pending_ids:
            evt = session.get(OutboxEvent, event_id)
            try:
                for handler in HANDLERS.get(evt.event_type, []):
                    handler(evt.payload or {}, integrations)
                evt.dispatched_at = utcnow()
                evt.attempts = (evt.attempts or 0) + 1
                session.commit()
                dispatched += 1
            except Exception as exc:
                session.rollback()
                evt = session.get(OutboxEvent, event_id)
                evt.attempts = (evt.attempts or 0) + 1
                evt.last_error = f'{type(exc).__name__}: {exc}'[:1000]
                if evt.attempts >= max_attempts:
                    evt.failed_at = utcnow()
                    log.error('event %s #%s parked after %s attempts: %s', evt.event_type, event_id, evt.attempts, exc)
                else:
                    log.warning('event %s #%s failed: %s', evt.event_type, event_id, exc)
                session.commit()
                failed += 1
    return dispatched, failed


def requeue(event_ids: Iterable[int]) -> int:
    """Return parked events to the queue with a fresh attempt budget."""
    session = get_db()
    count = 0
    for event_id in event_ids:
        evt = session.get(OutboxEvent, event_id)
        if evt is None or evt.failed_at is None:
            continue
        evt.failed_at = None
        evt.attempts = 0
        count += 1
    session.flush()
    return count


# --- Handlers ---

@on(EVENT_BONUS_TRIGGER)
def _create_bonus(payload, integrations):
    from personnel.services.bonus import create_bonus_payment
    create_bonus_payment(
        payload['activity_type'],
        payload['employee_id'],
        payload.get('reason') or payload['activity_type'],
        reference_id=payload.get('reference_id'),
        reference_type=payload.get('reference_type'),
        now=parse_datetime(payload['occurred_at']) if payload.get('occurred_at') else None,
    )


@on(EVENT_DISPLAY_NAME_CHANGED)
@on(EVENT_EMPLOYEE_HIRED)
def _sync_display_name(payload, integrations):
    external_id = payload.get('external_id')
    if not external_id:
        return
    if not integrations.identity.update_display_name(external_id, payload['display_name']):
        raise ExternalSyncFailure(f'Display name update failed for {external_id}')


@on(EVENT_EMPLOYEE_HIRED)
def _announce_hire(payload, integrations):
    log.info('hired employee #%s as %s', payload.get('employee_id'), payload.get('display_name'))


@on(EVENT_EMPLOYEE_TERMINATED)
def _kick_member(payload, integrations):
    external_id = payload.get('external_id')
    if not external_id:
        return
    result = integrations.identity.kick_member(external_id, payload.get('reason') or 'Terminated')
    if not result.success:
        raise ExternalSyncFailure(result.error or f'Kick failed for {external_id}')


@on(EVENT_BLOB_OBSOLETE)
def _delete_blob(payload, integrations):
    integrations.blobs.delete(payload['path'])


__all__ = [
    'EVENT_BONUS_TRIGGER', 'EVENT_DISPLAY_NAME_CHANGED', 'EVENT_EMPLOYEE_HIRED', 'EVENT_EMPLOYEE_TERMINATED',
    'EVENT_BLOB_OBSOLETE',
    'HANDLERS', 'on', 'emit', 'emit_incentive', 'dispatch_pending', 'requeue',
]
