"""Persistence boundary for orders and their archival into reports.

Every mutating method commits on success and rolls back before re-raising on
failure, so a rejected call leaves the store exactly as it was.
"""
from __future__ import annotations
import logging
import threading
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError

from orderflow.errors import NotFound, Unavailable, Conflict
from orderflow.models.order import Order, Report, utcnow
from orderflow.models.setting import Counter
from orderflow.services.menu import MenuLookup, menu_lookup_for
from orderflow.utils.validation import validate_choice, require_text, parse_line_items

logger = logging.getLogger(__name__)

ORDER_COUNTER = 'order'
ORDER_ID_PREFIX = 'ORD-'

# Held from counter increment until the creating transaction commits.
_ORDER_NUMBER_LOCK = threading.Lock()

# Held by the service layer from an order mutation through its publish; taken before
# _ORDER_NUMBER_LOCK when both are needed.
ORDER_WRITE_LOCK = threading.RLock()


def format_order_id(number: int) -> str:
    return f'{ORDER_ID_PREFIX}{number:05d}'


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class OrderRepository:
    def __init__(self, session, menu_lookup: Optional[MenuLookup] = None):
        self.session = session
        self.menu_lookup = menu_lookup or menu_lookup_for(session)

    # ---------- creation ---------- #

    def _next_order_number(self) -> int:
        res = self.session.execute(
            update(Counter).where(Counter.name==ORDER_COUNTER).values(value=Counter.value + 1)
        )
        if res.rowcount == 0:
            self.session.add(Counter(name=ORDER_COUNTER, value=1))
            self.session.flush()
            return 1
        return self.session.execute(select(Counter.value).where(Counter.name==ORDER_COUNTER)).scalar_one()

    def _snapshot_items(self, lines) -> List[Dict[str, Any]]:
        items = []
        for menu_item_id, quantity in lines:
            menu_item = self.menu_lookup(menu_item_id)
            if not menu_item.is_available:
                raise Unavailable(f'Menu item not available: {menu_item.name}')
            items.append({
                'menu_item_id': menu_item.id,
                'name': menu_item.name,
                'unit_price_cents': menu_item.price_cents,
                'quantity': quantity,
            })
        return items

    def create(self, customer_name: str, items, order_type: str = Order.TYPE_STAFF,
               notes: Optional[str] = None, created_by: Optional[int] = None) -> Order:
        customer_name = require_text(customer_name, 'customer_name')
        order_type = validate_choice(order_type, Order.ALL_TYPES, 'order_type')
        lines = parse_line_items(items)
        with _ORDER_NUMBER_LOCK:
            try:
                snapshot = self._snapshot_items(lines)
                order = Order(
                    order_id=format_order_id(self._next_order_number()),
                    customer_name=customer_name,
                    items=snapshot,
                    status=Order.STATUS_PENDING,
                    order_type=order_type,
                    created_by=created_by,
                    notes=notes or None,
                    revision=1,
                )
                order.recalculate_total()
                self.session.add(order)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
        logger.info('Created order %s (%s, %d cents)', order.order_id, order.order_type, order.total_cents)
        return order

    # ---------- reads ---------- #

    def get(self, order_id: str) -> Order:
        o = self.session.execute(
            select(Order).where(Order.order_id==order_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not o:
            raise NotFound(f'Order not found: {order_id}')
        return o

    def filtered_query(self, status: Optional[str] = None, order_type: Optional[str] = None,
                       start: Optional[datetime] = None, end: Optional[datetime] = None,
                       newest_first: bool = True):
        """Query over orders; management views read newest first."""
        q = self.session.query(Order)
        if status is not None:
            q = q.filter(Order.status==status)
        if order_type is not None:
            q = q.filter(Order.order_type==order_type)
        if start is not None:
            q = q.filter(Order.created_at >= start)
        if end is not None:
            q = q.filter(Order.created_at < end)
        if newest_first:
            return q.order_by(Order.created_at.desc(), Order.id.desc())
        return q.order_by(Order.created_at.asc(), Order.id.asc())

    def list(self, status: Optional[str] = None, order_type: Optional[str] = None,
             start: Optional[datetime] = None, end: Optional[datetime] = None,
             limit: int = 100, offset: int = 0) -> List[Order]:
        q = self.filtered_query(status, order_type, start, end)
        return q.offset(offset).limit(limit).all()

    def list_active(self) -> List[Order]:
        """Active orders oldest first: the operational queue order for boards."""
        return (
            self.session.query(Order)
            .filter(Order.status.in_(Order.ALL_STATUSES))
            .order_by(Order.created_at.asc(), Order.id.asc())
            .all()
        )

    # ---------- mutations ---------- #

    def update_status(self, order_id: str, status: str) -> Order:
        """Last write wins: no revision check, but the revision is bumped."""
        order = self.get(order_id)
        try:
            res = self.session.execute(
                update(Order)
                .where(Order.id==order.id)
                .values(status=status, revision=Order.revision + 1, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                raise NotFound(f'Order not found: {order_id}')
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(order)
        return order

    def archive(self, order_id: str, taken_by: int) -> Tuple[Report, Order]:
        """Copy the order into a Report and remove it, in one transaction.

        The delete only matches the revision that was copied; if anything wrote to
        the order in between, nothing is deleted, the Report insert is rolled back
        and Conflict is raised.
        """
        order = self.get(order_id)
        seen_revision = order.revision
        report = Report(
            order_id=order.order_id,
            customer_name=order.customer_name,
            items=list(order.items or []),
            total_cents=order.total_cents,
            status=order.status,
            order_type=order.order_type,
            created_by=order.created_by,
            taken_by=taken_by,
            notes=order.notes,
            original_created_at=order.created_at,
            taken_at=utcnow(),
        )
        try:
            self.session.add(report)
            self.session.flush()
            res = self.session.execute(
                delete(Order)
                .where(Order.id==order.id, Order.revision==seen_revision)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                raise Conflict(f'Order {order_id} changed while being archived; reload and retry')
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(f'Order {order_id} was already archived')
        except Exception:
            self.session.rollback()
            raise
        self.session.expunge(order)
        logger.info('Archived order %s as report %s (taken by %s)', report.order_id, report.id, taken_by)
        return report, order

    def delete(self, order_id: str) -> Order:
        """Permanent delete; no Report is written."""
        order = self.get(order_id)
        try:
            self.session.delete(order)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info('Permanently deleted order %s', order_id)
        return order

    def sweep_orphan_reports(self) -> int:
        """Remove live orders that already have a Report (half-finished archive)."""
        archived = select(Report.order_id)
        try:
            res = self.session.execute(
                delete(Order).where(Order.order_id.in_(archived)).execution_options(synchronize_session='fetch')
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        if res.rowcount:
            logger.warning('Swept %d order(s) already archived as reports', res.rowcount)
        return res.rowcount or 0

    # ---------- aggregates ---------- #

    def stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or datetime.now(timezone.utc).date()
        start, end = day_bounds(today)
        status_count = {
            status: int(count)
            for status, count in self.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        }
        today_q = self.session.query(func.count(Order.id), func.coalesce(func.sum(Order.total_cents), 0)).filter(
            Order.created_at >= start, Order.created_at < end
        )
        today_orders, today_revenue = today_q.one()
        total_revenue = self.session.query(func.coalesce(func.sum(Order.total_cents), 0)).scalar()
        return {
            'status_count': status_count,
            'today_orders': int(today_orders),
            'today_revenue_cents': int(today_revenue),
            'total_revenue_cents': int(total_revenue or 0),
        }

    def history(self, day: date) -> Dict[str, Any]:
        start, end = day_bounds(day)
        orders = self.filtered_query(start=start, end=end).all()
        revenue = sum(o.total_cents for o in orders)
        breakdown: Dict[str, int] = {}
        for o in orders:
            breakdown[o.status] = breakdown.get(o.status, 0) + 1
        return {
            'orders': orders,
            'stats': {
                'total_orders': len(orders),
                'total_revenue_cents': revenue,
                'average_order_cents': round(revenue / len(orders)) if orders else 0,
                'completed_orders': sum(1 for o in orders if o.status in (Order.STATUS_COMPLETED, Order.STATUS_READY)),
                'status_breakdown': breakdown,
            },
        }


__all__ = ['OrderRepository', 'ORDER_WRITE_LOCK', 'format_order_id', 'day_bounds', 'ORDER_COUNTER']
