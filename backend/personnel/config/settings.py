"""Runtime configuration.

Values come from the process environment (``.env`` is loaded by the package on import)
and may be overridden by the dict passed to ``create_app``. Everything is coerced and
validated once at startup so engines can read ``current_app.config`` without guarding.
"""
from __future__ import annotations
import os
from typing import Any, Callable, Dict, Optional, Tuple

from personnel.constants.ranks import MIN_LEVEL, MAX_LEVEL


def _bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ('1', 'true', 'yes', 'on')


# key -> (default, coercion)
SETTINGS: Dict[str, Tuple[Any, Callable[[Any], Any]]] = {
    'DATABASE_URL': ('sqlite:///dev.db', str),
    'JWT_SECRET_KEY': ('dev-secret', str),
    'LOG_LEVEL': ('INFO', lambda v: str(v).upper()),
    'QUESTION_PASS_THRESHOLD': (0.7, float),
    'ENTRY_RANK_LEVEL': (1, int),
    'ENTRY_DEPARTMENT': ('Patrol', str),
    'HIRE_ASSIGNS_BADGE': (True, _bool),
    'BADGE_ALLOCATION_RETRIES': (3, int),
    'OUTBOX_MAX_ATTEMPTS': (5, int),
    'BLOB_STORAGE_DIR': ('./uploads', str),
    'INVITE_TTL_SECONDS': (86400, int),
    'INVITE_MAX_USES': (1, int),
}


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Resolve every known setting: override dict > environment > default."""
    overrides = overrides or {}
    resolved: Dict[str, Any] = {}
    for key, (default, coerce) in SETTINGS.items():
        if key in overrides:
            raw = overrides[key]
        else:
            raw = os.getenv(key, default)
        try:
            resolved[key] = coerce(raw)
        except (TypeError, ValueError):
            raise ValueError(f'Invalid value for {key}: {raw!r}')
    validate_settings(resolved)
    return resolved


def validate_settings(cfg: Dict[str, Any]) -> None:
    threshold = cfg['QUESTION_PASS_THRESHOLD']
    if not 0 < threshold <= 1:
        raise ValueError('QUESTION_PASS_THRESHOLD must be within (0, 1]')
    if not MIN_LEVEL <= cfg['ENTRY_RANK_LEVEL'] <= MAX_LEVEL:
        raise ValueError(f'ENTRY_RANK_LEVEL must be within {MIN_LEVEL}..{MAX_LEVEL}')
    if cfg['BADGE_ALLOCATION_RETRIES'] < 1:
        raise ValueError('BADGE_ALLOCATION_RETRIES must be >= 1')
    if cfg['OUTBOX_MAX_ATTEMPTS'] < 1:
        raise ValueError('OUTBOX_MAX_ATTEMPTS must be >= 1')
    if cfg['INVITE_TTL_SECONDS'] < 0 or cfg['INVITE_MAX_USES'] < 0:
        raise ValueError('Invite TTL and max uses must not be negative')


__all__ = ['SETTINGS', 'load_settings', 'validate_settings']
