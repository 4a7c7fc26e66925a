"""Order status transitions.

PENDING -> STARTED -> COMPLETED -> READY is the forward chain behind "advance".
``set_status`` is the manual override (kitchen dropdown, revert to active): any of
the four statuses is accepted from any current status.
"""
from __future__ import annotations
import logging
from typing import Optional

from orderflow.errors import InvalidStatus
from orderflow.events.bus import Event, EventBus, ORDER_UPDATED, ORDER_READY
from orderflow.models.order import Order
from orderflow.services.order_repository import OrderRepository, ORDER_WRITE_LOCK
from orderflow.services.serializers import order_json
from orderflow.utils.fsm import StatusWorkflow

logger = logging.getLogger(__name__)

ORDER_FLOW = StatusWorkflow(Order.ALL_STATUSES, {
    Order.STATUS_PENDING: Order.STATUS_STARTED,
    Order.STATUS_STARTED: Order.STATUS_COMPLETED,
    Order.STATUS_COMPLETED: Order.STATUS_READY,
})


def next_status(current: str) -> Optional[str]:
    return ORDER_FLOW.next_status(current)


class StatusEngine:
    def __init__(self, repository: OrderRepository, bus: EventBus):
        self.repository = repository
        self.bus = bus

    def advance(self, order_id: str) -> Order:
        order = self.repository.get(order_id)
        target = next_status(order.status)
        if target is None:
            raise InvalidStatus(f'Order {order_id} is {order.status}; there is no next status')
        return self._apply(order_id, target, previous=order.status)

    def set_status(self, order_id: str, target) -> Order:
        target = ORDER_FLOW.validate(target)
        return self._apply(order_id, target)

    def _apply(self, order_id: str, target: str, previous: Optional[str] = None) -> Order:
        with ORDER_WRITE_LOCK:
            order = self.repository.update_status(order_id, target)
            payload = order_json(order)
            self.bus.publish(Event(ORDER_UPDATED, payload))
            if target == Order.STATUS_READY:
                self.bus.publish(Event(ORDER_READY, payload))
        if previous:
            logger.info('Order %s %s -> %s', order_id, previous, target)
        else:
            logger.info('Order %s set to %s', order_id, target)
        return order


__all__ = ['StatusEngine', 'ORDER_FLOW', 'next_status']
