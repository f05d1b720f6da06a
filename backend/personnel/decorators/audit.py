from __future__ import annotations
"""Audit logging decorator; also the unit-of-work boundary for mutating routes.

Usage examples:

@audit_log('ROLE.CREATE', entity='Role', entity_id_key='id', meta_keys=['name'])
def create_role(actor):
    ... return {'id': role.id, 'name': role.name}, 201

@audit_log('EMPLOYEE.UNITS.SET', entity='Employee', entity_id_arg='employee_id',
           meta_builder=lambda data, rv, args, kwargs: {'added': data.get('added'), 'removed': data.get('removed')})
def set_units(employee_id, actor): ...

Parameters:
  action: required audit action code (e.g. EMPLOYEE.PROMOTE)
  entity: optional entity label (Employee, Application, Sanction)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the function argument / path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs). If provided it overrides meta_keys.
  commit: when true (default) the view and its audit entry run inside ``commit_with_retry``; queued
    events are dispatched after the commit.

Return handling:
  Flask view functions commonly return one of:
    dict
    (dict, status)
    (dict, status, headers)
  The decorator extracts the first element as the JSON payload for key/meta extraction while preserving the original return value.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional

from personnel.services.audit import add_audit
from personnel.services.unit_of_work import commit_with_retry

log = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, original_rv) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        data = rv[0]
        return data, rv
    return rv, rv


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
):
    def outer(fn):
        def record(rv, args, kwargs):
            actor = kwargs.get('actor')
            data, _ = _extract_payload(rv)
            if not isinstance(data, dict):  # nothing to inspect
                add_audit(action, entity, kwargs.get(entity_id_arg) if entity_id_arg else None, None, actor)
                return
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            meta = None
            if meta_builder:
                try:
                    meta = meta_builder(data, rv, args, kwargs)
                except (KeyError, TypeError, ValueError, AttributeError) as exc:
                    log.warning('audit meta for %s could not be built: %s', action, exc)
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            add_audit(action, entity, entity_id, meta, actor)

        @wraps(fn)
        def wrapper(*args, **kwargs):
            def unit():
                rv = fn(*args, **kwargs)
                record(rv, args, kwargs)
                return rv
            if not commit:
                return unit()
            return commit_with_retry(unit)
        return wrapper
    return outer
