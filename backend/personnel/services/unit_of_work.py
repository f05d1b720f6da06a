from __future__ import annotations
import logging
from typing import Callable, Optional, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError

from personnel import get_db
from personnel.errors import ConflictError
from personnel.services.events import dispatch_pending
from personnel.services.integrations import get_integrations

log = logging.getLogger(__name__)

T = TypeVar('T')


def commit_and_dispatch():
    """Commit the request unit of work, then deliver its queued side effects."""
    get_db().commit()
    return dispatch_pending(get_integrations())


def commit_with_retry(operation: Callable[[], T], attempts: Optional[int] = None) -> T:
    """Run ``operation`` and commit, re-running it from scratch on a uniqueness conflict.

    Badge allocation and pending-request creation check then write; the unique
    constraints catch the concurrent writer and the re-run re-checks against the
    winner's committed state.
    """
    session = get_db()
    attempts = attempts or current_app.config['BADGE_ALLOCATION_RETRIES']
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            session.commit()
            break
        except IntegrityError as exc:
            session.rollback()
            log.warning('unique conflict on attempt %s/%s: %s', attempt, attempts, exc.orig)
            if attempt == attempts:
                raise ConflictError('Concurrent update conflict, retry the request')
    dispatch_pending(get_integrations())
    return result
