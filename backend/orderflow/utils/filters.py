from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from flask import abort

_DATE_FORMATS = ('%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S%z')


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    for fmt in _DATE_FORMATS:
        try:
            dt = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def parse_day(value: Optional[str], name: str = 'date') -> date:
    dt = parse_datetime(value)
    if dt is None:
        abort(400, description=f'{name} must be YYYY-MM-DD')
    return dt.date()


def parse_range(params: Dict[str, Any], start_key: str = 'start_date', end_key: str = 'end_date'):
    """Return (start, end) bounds; a bare end date includes that whole day."""
    start = end = None
    if params.get(start_key):
        start = parse_datetime(params[start_key])
        if start is None:
            abort(400, description=f'{start_key} invalid')
    if params.get(end_key):
        raw = params[end_key]
        end = parse_datetime(raw)
        if end is None:
            abort(400, description=f'{end_key} invalid')
        if len(raw) == 10:
            end = end + timedelta(days=1)
    if start and end and start >= end:
        abort(400, description=f'{start_key} must be before {end_key}')
    return start, end


def parse_filters(specs: Dict[str, Dict[str, Callable]], params: Dict[str, Any]) -> Dict[str, Any]:
    """Pick, coerce and validate optional query parameters.

    specs: { param_name: { 'coerce': callable (optional), 'validate': callable (optional) } }
    """
    out: Dict[str, Any] = {}
    for name, meta in specs.items():
        if name not in params or params[name] in (None, ''):
            continue
        val = params[name]
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        out[name] = val
    return out
