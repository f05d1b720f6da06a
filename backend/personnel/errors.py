"""Domain error taxonomy.

Every expected, user-actionable failure raised by the engines is a ``DomainError``.
The application error handler renders them as::

    {"error": {"status": 400, "title": "...", "detail": "...", "kind": "RankBoundaryError"}}

``kind`` is the class name and is stable across releases; clients branch on it.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class DomainError(Exception):
    status_code = 400
    title = 'Bad Request'

    def __init__(self, detail: Optional[str] = None, **details: Any):
        self.detail = detail or self.default_detail()
        self.details: Dict[str, Any] = details
        super().__init__(self.detail)

    @property
    def kind(self) -> str:
        return type(self).__name__

    @classmethod
    def default_detail(cls) -> str:
        return cls.title

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'status': self.status_code,
            'title': self.title,
            'detail': self.detail,
            'kind': self.kind,
        }
        body.update(self.details)
        return body


# --- Rank & badge ---
class RankBoundaryError(DomainError):
    title = 'Rank boundary reached'


class BadgeRangeExhaustedError(DomainError):
    status_code = 409
    title = 'Badge range exhausted'


# --- External collaborators ---
class ExternalSyncFailure(DomainError):
    status_code = 502
    title = 'External sync failed'


class IdentityNotLinkedError(DomainError):
    title = 'External identity not linked'


# --- Applications ---
class BlacklistedError(DomainError):
    title = 'Identity is blacklisted'


class AlreadyEmployedError(DomainError):
    status_code = 409
    title = 'Identity already employed'


class ApplicationExistsError(DomainError):
    status_code = 409
    title = 'Open application exists'


# --- Academy / uprank ---
class NotEligibleError(DomainError):
    title = 'Not eligible'


class DuplicateRequestError(DomainError):
    status_code = 409
    title = 'Duplicate request'


class UprankLockedError(DomainError):
    title = 'Uprank locked'


# --- Treasury ---
class InvalidAmountError(DomainError):
    title = 'Invalid amount'


class InsufficientFundsError(DomainError):
    title = 'Insufficient funds'


# --- Sanctions / lifecycle ---
class EmptySanctionError(DomainError):
    title = 'Sanction has no components'


class ComponentNotPresentError(DomainError):
    title = 'Sanction component not present'


class InvalidStateTransitionError(DomainError):
    title = 'Invalid state transition'


# --- Generic ---
class ValidationError(DomainError):
    title = 'Validation failed'


class NotFoundError(DomainError):
    status_code = 404
    title = 'Not Found'


class ConflictError(DomainError):
    status_code = 409
    title = 'Conflict'


class AuthenticationError(DomainError):
    status_code = 401
    title = 'Unauthorized'


class PermissionDenied(DomainError):
    status_code = 403
    title = 'Forbidden'

    @classmethod
    def default_detail(cls) -> str:
        return 'Missing permission'


__all__ = [name for name, obj in list(globals().items()) if isinstance(obj, type) and issubclass(obj, DomainError)]
