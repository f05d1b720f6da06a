from __future__ import annotations
from typing import Any, Dict, Optional
from personnel import get_db
from personnel.models.audit import AuditLog
from personnel.services.context import ActorContext


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None,
              meta: Optional[Dict[str, Any]] = None, actor: Optional[ActorContext] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. EMPLOYEE.PROMOTE, TREASURY.WITHDRAW, ROLE.CREATE
      entity: optional entity name (Employee, Application, Sanction, ...)
      entity_id: optional primary key (stored as string)
      meta: additional JSON-safe dictionary (shallow copied)
      actor: acting user; system entries (scripts, no token) are stored as user 0
    """
    session = get_db()
    log = AuditLog(
        actor_user_id=actor.user_id if actor else 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': sorted(actor.permissions) if actor else []},
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
