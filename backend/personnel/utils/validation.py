from __future__ import annotations
"""Reusable input validation helpers for engine operations.

Engines receive loosely typed values from the HTTP layer; these helpers coerce them
and raise ``ValidationError`` with a field-specific message.
"""
import math
from datetime import datetime
from typing import Any, Iterable, List, Optional
from personnel.errors import ValidationError
from personnel.utils.timeutil import parse_datetime


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises ValidationError.
    """
    if new_status not in allowed:
        raise ValidationError(f"{field_name} invalid")
    return new_status


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field_name} required')
    return value.strip()


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'{field_name} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} must be an integer')


# largest money amount a single operation accepts
MAX_AMOUNT = 1_000_000_000


def require_amount(value: Any, field_name: str = 'amount', allow_zero: bool = False,
                   error_cls=ValidationError) -> int:
    """Whole, finite amount within 0 (or 1) .. MAX_AMOUNT. Whole floats such as ``20.0`` are accepted."""
    lowest = 0 if allow_zero else 1
    message = f'{field_name} must be a whole number between {lowest} and {MAX_AMOUNT}'
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise error_cls(message)
    if isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()):
        raise error_cls(message)
    if not lowest <= value <= MAX_AMOUNT:
        raise error_cls(message, **{field_name: value})
    return int(value)


def int_list(values: Any, field_name: str) -> List[int]:
    if values is None:
        return []
    if not isinstance(values, (list, tuple, set)):
        raise ValidationError(f'{field_name} must be a list')
    return [require_int(v, field_name) for v in values]


def optional_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    parsed = parse_datetime(str(value))
    if parsed is None:
        raise ValidationError(f'{field_name} must be an ISO 8601 timestamp')
    return parsed

__all__ = [
    'validate_status', 'require_text', 'optional_text', 'require_int', 'require_amount', 'MAX_AMOUNT', 'int_list',
    'optional_datetime',
]
