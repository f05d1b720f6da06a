from __future__ import annotations
from typing import Iterable, Optional, Tuple
from flask import request, make_response, jsonify
from sqlalchemy.orm import Query
from personnel.config.pagination import normalize_pagination
import hashlib
import json
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)

def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds (microseconds removed)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=0)

def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset

def compute_etag(ids: Iterable[int], total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]

def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }

def _http_date(dt: datetime) -> str:
    """Return RFC1123 HTTP-date string in GMT."""
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)

def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')

def _stamp(resp, etag: str, latest_c: Optional[datetime]):
    resp.headers['ETag'] = etag
    if latest_c:
        resp.headers['Last-Modified'] = _http_date(latest_c)
        resp.headers['X-Last-Modified-ISO'] = _iso(latest_c)
    return resp

def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    ids = [r.get('id') for r in rows]
    latest_ts_c = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    latest_iso = _iso(latest_ts_c) if latest_ts_c else ''
    etag = compute_etag(ids, total, limit, offset, latest_iso)
    resp = make_response(build_list_payload(rows, total, limit, offset))
    return _stamp(resp, etag, latest_ts_c), etag

def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    # Try ISO 8601 first
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        dt = None
    if dt is None:
        # Fall back to HTTP-date (RFC 1123)
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Evaluate conditional request headers.

    Precedence: If-None-Match over If-Modified-Since (per RFC 9110 semantics).
    Returns a 304 response object if conditions satisfied, else None.
    """
    latest_c = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag_value:
        return _stamp(make_response('', 304), etag_value, latest_c)
    # Only evaluate If-Modified-Since if If-None-Match was not a match / absent
    ims_dt = _parse_if_modified_since(request.headers.get('If-Modified-Since'))
    if ims_dt and latest_c:
        if latest_c <= canonicalize_timestamp(ims_dt) + TIMESTAMP_TOLERANCE:
            return _stamp(make_response('', 304), etag_value, latest_c)
    return None

def cached_list(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    """Full list response flow shared by GET and HEAD list endpoints."""
    resp, etag = make_cached_list_response(rows, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp

def cached_item(body: dict, latest_ts: Optional[datetime] = None):
    """Single resource response with ETag / Last-Modified validators."""
    latest_c = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    # digest of the representation itself
    etag = hashlib.sha256(json.dumps(body, sort_keys=True, default=str).encode()).hexdigest()[:32]
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    resp = _stamp(make_response(jsonify(body)), etag, latest_c)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp
