from __future__ import annotations
from flask import Blueprint, request
from orderflow import get_db
from orderflow.decorators.auth import require_permissions
from orderflow.services.reports import reports_query, reports_by_date, reports_summary
from orderflow.services.serializers import report_json
from orderflow.utils.filters import parse_range, parse_day
from orderflow.utils.listing import apply_pagination, make_cached_list_response, handle_conditional, latest_timestamp

rpt_bp = Blueprint('reports', __name__)


@rpt_bp.get('')
@require_permissions('REPORTS.READ')
def list_reports():
    start, end = parse_range(request.args)
    paged_q, total, limit, offset = apply_pagination(reports_query(get_db(), start, end))
    rows = paged_q.all()
    latest_ts = latest_timestamp(r.taken_at for r in rows)
    resp, etag = make_cached_list_response([report_json(r) for r in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@rpt_bp.get('/date/<day>')
@require_permissions('REPORTS.READ')
def list_reports_for_day(day: str):
    result = reports_by_date(get_db(), parse_day(day))
    return {
        'date': result['date'],
        'statistics': result['statistics'],
        'data': [report_json(r) for r in result['reports']],
    }


@rpt_bp.get('/summary')
@require_permissions('REPORTS.READ')
def summary():
    start, end = parse_range(request.args)
    rows = reports_summary(get_db(), start, end)
    return {'count': len(rows), 'data': rows}
