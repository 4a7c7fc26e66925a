"""Order operations used by the HTTP layer and scripts.

Persistence goes through OrderRepository; an event is published only after the
repository call returned, i.e. after commit. Each write and its publish run under
ORDER_WRITE_LOCK, so events leave in commit order.
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from orderflow.events.bus import Event, EventBus, ORDER_CREATED, ORDER_DELETED, ORDER_TAKEN
from orderflow.models.order import Order, Report
from orderflow.services.order_repository import OrderRepository, ORDER_WRITE_LOCK
from orderflow.services.serializers import order_json, public_order_json, iso
from orderflow.services.status_engine import StatusEngine


class OrderService:
    def __init__(self, repository: OrderRepository, bus: EventBus):
        self.repository = repository
        self.bus = bus
        self.status = StatusEngine(repository, bus)

    def create(self, customer_name: str, items, order_type: str = Order.TYPE_STAFF,
               notes: Optional[str] = None, created_by: Optional[int] = None) -> Order:
        """Create a PENDING order. Whether CUSTOMER orders are allowed is the caller's check."""
        with ORDER_WRITE_LOCK:
            order = self.repository.create(customer_name, items, order_type, notes=notes, created_by=created_by)
            self.bus.publish(Event(ORDER_CREATED, order_json(order)))
        return order

    def get(self, order_id: str) -> Order:
        return self.repository.get(order_id)

    def list(self, status: Optional[str] = None, order_type: Optional[str] = None,
             start: Optional[datetime] = None, end: Optional[datetime] = None,
             limit: int = 100, offset: int = 0) -> List[Order]:
        return self.repository.list(status, order_type, start, end, limit=limit, offset=offset)

    def list_active_for_display(self) -> List[Dict[str, Any]]:
        return [public_order_json(order_json(o)) for o in self.repository.list_active()]

    def advance(self, order_id: str) -> Order:
        return self.status.advance(order_id)

    def set_status(self, order_id: str, status) -> Order:
        return self.status.set_status(order_id, status)

    update_status = set_status

    def archive(self, order_id: str, taken_by: int) -> Report:
        with ORDER_WRITE_LOCK:
            report, order = self.repository.archive(order_id, taken_by)
            payload = order_json(order)
            payload.update({'report_id': report.id, 'taken_by': report.taken_by, 'taken_at': iso(report.taken_at)})
            self.bus.publish(Event(ORDER_TAKEN, payload))
        return report

    def delete(self, order_id: str) -> None:
        with ORDER_WRITE_LOCK:
            order = self.repository.delete(order_id)
            self.bus.publish(Event(ORDER_DELETED, {'order_id': order.order_id}))

    def stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        return self.repository.stats(today)

    def history(self, day: date) -> Dict[str, Any]:
        return self.repository.history(day)


__all__ = ['OrderService']
