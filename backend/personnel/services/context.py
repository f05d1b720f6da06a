"""Per-request actor context.

Resolved once from the access token claims and passed explicitly into every engine
operation. Engines call ``actor.require(...)`` before touching persistence.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping, Optional

from personnel.constants.permissions import ADMIN_FULL
from personnel.errors import PermissionDenied


@dataclass(frozen=True)
class ActorContext:
    user_id: int
    employee_id: Optional[int] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_claims(cls, identity: Any, claims: Mapping[str, Any]) -> 'ActorContext':
        employee_id = claims.get('employee_id')
        return cls(
            user_id=int(identity),
            employee_id=int(employee_id) if employee_id is not None else None,
            permissions=frozenset(claims.get('perms') or []),
        )

    @classmethod
    def system(cls, permissions: Iterable[str] = (ADMIN_FULL,)) -> 'ActorContext':
        """Context for scripts and maintenance jobs (user id 0)."""
        return cls(user_id=0, permissions=frozenset(permissions))

    @property
    def is_admin(self) -> bool:
        return ADMIN_FULL in self.permissions

    def has_permission(self, code: str) -> bool:
        return self.is_admin or code in self.permissions

    def has_any_permission(self, *codes: str) -> bool:
        return any(self.has_permission(c) for c in codes)

    def has_all_permissions(self, *codes: str) -> bool:
        return all(self.has_permission(c) for c in codes)

    def require(self, *codes: str) -> None:
        missing = [c for c in codes if not self.has_permission(c)]
        if missing:
            raise PermissionDenied(f"Missing permission: {', '.join(missing)}", required=list(codes))

    def require_any(self, *codes: str) -> None:
        if not self.has_any_permission(*codes):
            raise PermissionDenied(f"Requires one of: {', '.join(codes)}", required=list(codes))


__all__ = ['ActorContext']
