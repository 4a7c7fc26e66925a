from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from orderflow.models.order import Report
from orderflow.services.order_repository import day_bounds


def reports_query(session, start: Optional[datetime] = None, end: Optional[datetime] = None):
    """Reports newest-taken first, optionally bounded by taken_at [start, end)."""
    q = session.query(Report)
    if start is not None:
        q = q.filter(Report.taken_at >= start)
    if end is not None:
        q = q.filter(Report.taken_at < end)
    return q.order_by(Report.taken_at.desc(), Report.id.desc())


def _totals(reports: List[Report]) -> Dict[str, Any]:
    total = sum(r.total_cents for r in reports)
    return {
        'total_orders': len(reports),
        'total_amount_cents': total,
        'average_order_cents': round(total / len(reports)) if reports else 0,
    }


def reports_by_date(session, day: date) -> Dict[str, Any]:
    start, end = day_bounds(day)
    rows = reports_query(session, start, end).all()
    return {'date': day.isoformat(), 'statistics': _totals(rows), 'reports': rows}


def reports_summary(session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Per taken-day totals, newest day first."""
    by_day: Dict[str, List[Report]] = {}
    for r in reports_query(session, start, end):
        taken = r.taken_at if r.taken_at.tzinfo else r.taken_at.replace(tzinfo=timezone.utc)
        by_day.setdefault(taken.date().isoformat(), []).append(r)
    return [{'date': day, **_totals(rows)} for day, rows in sorted(by_day.items(), reverse=True)]
