"""Read model shared by every display board.

A board starts from a snapshot (``GET /orders/active``) and folds the live event
stream into it. Orders are identified by ``order_id``; all merge rules are
idempotent so receiving both ``order-updated`` and ``order-ready`` for one change
leaves a single entry.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional

from orderflow.events.bus import Event, ORDER_CREATED, ORDER_UPDATED, ORDER_READY, ORDER_DELETED, ORDER_TAKEN
from orderflow.models.order import Order

ACTIVE_STATUSES = frozenset(Order.ALL_STATUSES)

BUCKET_PENDING = 'pending'
BUCKET_PREPARING = 'preparing'
BUCKET_READY = 'ready'
BUCKETS = (BUCKET_PENDING, BUCKET_PREPARING, BUCKET_READY)

# COMPLETED is still "preparing" on the boards; only READY is ready for pickup.
STATUS_BUCKET = {
    Order.STATUS_PENDING: BUCKET_PENDING,
    Order.STATUS_STARTED: BUCKET_PREPARING,
    Order.STATUS_COMPLETED: BUCKET_PREPARING,
    Order.STATUS_READY: BUCKET_READY,
}


class DisplayProjection:
    def __init__(self, snapshot: Iterable[Dict[str, Any]] = (), key: str = 'order_id'):
        self.key = key
        self._orders: List[Dict[str, Any]] = []
        self.load_snapshot(snapshot)

    def load_snapshot(self, orders: Iterable[Dict[str, Any]]) -> None:
        self._orders = []
        for o in orders:
            if self._index(o.get(self.key)) is None:
                self._orders.append(dict(o))

    def _index(self, identity: Any) -> Optional[int]:
        for idx, o in enumerate(self._orders):
            if o.get(self.key) == identity:
                return idx
        return None

    def apply_event(self, event: Event) -> bool:
        return self.apply(event.type, event.payload)

    def apply(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """Fold one event into the board. Returns True when the board changed."""
        identity = payload.get(self.key)
        if identity is None:
            return False
        idx = self._index(identity)
        if event_type == ORDER_CREATED:
            if idx is not None:
                return False
            self._orders.insert(0, dict(payload))
            return True
        if event_type in (ORDER_UPDATED, ORDER_READY):
            if idx is not None:
                self._orders[idx] = dict(payload)
                return True
            if payload.get('status') in ACTIVE_STATUSES:
                # display missed the create (connected mid-session)
                self._orders.insert(0, dict(payload))
                return True
            return False
        if event_type in (ORDER_DELETED, ORDER_TAKEN):
            if idx is None:
                return False
            del self._orders[idx]
            return True
        return False

    def orders(self) -> List[Dict[str, Any]]:
        return [dict(o) for o in self._orders]

    def get(self, identity: Any) -> Optional[Dict[str, Any]]:
        idx = self._index(identity)
        return dict(self._orders[idx]) if idx is not None else None

    def buckets(self) -> Dict[str, List[Dict[str, Any]]]:
        out: Dict[str, List[Dict[str, Any]]] = {b: [] for b in BUCKETS}
        for o in self._orders:
            bucket = STATUS_BUCKET.get(o.get('status'))
            if bucket:
                out[bucket].append(dict(o))
        return out

    def __len__(self) -> int:
        return len(self._orders)


__all__ = ['DisplayProjection', 'STATUS_BUCKET', 'BUCKETS', 'ACTIVE_STATUSES']
