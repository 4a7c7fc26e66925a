"""In-process publish/subscribe bus for order lifecycle events.

One bus is built per app (``create_app``) and handed to the services that publish;
nothing reaches for it as a module global. Two dispatch modes:

- ``EventBus``: handlers run in the publisher's thread (tests, scripts).
- ``ThreadedEventBus``: ``publish`` only enqueues; a single worker thread delivers
  events in FIFO order, so the request path never waits on subscribers. The order
  services publish while holding their write lock, so FIFO order is commit order.

Delivery is best effort. There is no persistence or replay; a display that was not
subscribed when an event fired must re-fetch the snapshot.
"""
from __future__ import annotations
import logging
import queue
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

ORDER_CREATED = 'order-created'
ORDER_UPDATED = 'order-updated'
ORDER_READY = 'order-ready'
ORDER_DELETED = 'order-deleted'
ORDER_TAKEN = 'order-taken'
ORDER_EVENTS = (ORDER_CREATED, ORDER_UPDATED, ORDER_READY, ORDER_DELETED, ORDER_TAKEN)

SETTINGS_UPDATED = 'settings-updated'


@dataclass(frozen=True)
class Event:
    type: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[Event], None]


class EventBus:
    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register handler; returns a callable that unsubscribes it."""
        with self._lock:
            self._handlers[event_type].append(handler)
        return lambda: self.unsubscribe(event_type, handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def subscriber_count(self, event_type: Optional[str] = None) -> int:
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            return sum(len(h) for h in self._handlers.values())

    def publish(self, event: Event) -> None:
        self._dispatch(event)

    def _dispatch(self, event: Event) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.type, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception('Event handler %r failed for %s', handler, event.type)

    def flush(self, timeout: Optional[float] = None) -> bool:
        return True

    def close(self) -> None:
        pass


class _Marker:
    def __init__(self):
        self.done = threading.Event()


_STOP = object()


class ThreadedEventBus(EventBus):
    def __init__(self, name: str = 'order-events'):
        super().__init__()
        self._queue: 'queue.Queue[Any]' = queue.Queue()
        self._worker = threading.Thread(target=self._run, name=name, daemon=True)
        self._closed = False
        self._worker.start()

    def publish(self, event: Event) -> None:
        if self._closed:
            logger.warning('Dropping %s published after bus shutdown', event.type)
            return
        self._queue.put(event)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            if isinstance(item, _Marker):
                item.done.set()
                continue
            self._dispatch(item)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every event published so far has been delivered."""
        if self._closed:
            return True
        marker = _Marker()
        self._queue.put(marker)
        return marker.done.wait(timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._worker.join(timeout=5)


def build_event_bus(mode: str) -> EventBus:
    if mode == 'inline':
        return EventBus()
    if mode == 'thread':
        return ThreadedEventBus()
    raise ValueError(f'Unknown EVENT_DISPATCH mode {mode!r}')


__all__ = [
    'Event', 'EventBus', 'ThreadedEventBus', 'build_event_bus',
    'ORDER_CREATED', 'ORDER_UPDATED', 'ORDER_READY', 'ORDER_DELETED', 'ORDER_TAKEN',
    'ORDER_EVENTS', 'SETTINGS_UPDATED',
]
