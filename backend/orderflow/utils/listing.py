"""List endpoint helpers: pagination, list envelope and conditional GET validators.

Boards and staff screens poll the order lists while also listening to the event
stream; ETag / Last-Modified let those polls come back as cheap 304s.
"""
from __future__ import annotations
from typing import Iterable, Optional, Tuple
from flask import request, abort, make_response
from orderflow.config.pagination import normalize_pagination
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """UTC, tz-aware, whole seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')


def apply_pagination(q) -> Tuple[object, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def compute_etag(keys: Iterable, total: int, limit: int, offset: int, latest_iso: str = '') -> str:
    seed = f"{list(keys)}|{total}|{limit}|{offset}|{latest_iso}"
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


def _set_validators(resp, etag: str, latest: Optional[datetime]):
    resp.headers['ETag'] = etag
    if latest is not None:
        resp.headers['Last-Modified'] = format_datetime(latest, usegmt=True)
        resp.headers['X-Last-Modified-ISO'] = _iso(latest)
    return resp


def latest_timestamp(values: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [canonicalize_timestamp(v) for v in values if isinstance(v, datetime)]
    return max(present) if present else None


def make_cached_list_response(rows: list, total: int, limit: int, offset: int,
                              latest_ts: Optional[datetime] = None, key: str = 'id'):
    """Return (response, etag). The ETag covers row identity, revision and paging."""
    latest = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    keys = [(r.get(key), r.get('revision'), r.get('status')) for r in rows]
    etag = compute_etag(keys, total, limit, offset, _iso(latest) if latest else '')
    resp = make_response(build_list_payload(rows, total, limit, offset))
    return _set_validators(resp, etag, latest), etag


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt is not None and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Return a 304 response when If-None-Match / If-Modified-Since are satisfied, else None.

    If-None-Match wins over If-Modified-Since (RFC 9110).
    """
    latest = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip('"') == etag_value:
            return _set_validators(make_response('', 304), etag_value, latest)
        return None
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and latest is not None:
        ims = _parse_if_modified_since(ims_raw)
        if ims and latest <= canonicalize_timestamp(ims) + TIMESTAMP_TOLERANCE:
            return _set_validators(make_response('', 304), etag_value, latest)
    return None
