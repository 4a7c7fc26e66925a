"""Server-Sent Events fan-out for display boards.

Each connected display owns a ``DisplayStream``: a bounded buffer fed by bus
subscriptions. A projector may rewrite each payload or return None to withhold
the event. When the buffer is full the oldest message is dropped; the display
reconciles by re-fetching the snapshot, so the bus worker never waits on a slow client.
"""
from __future__ import annotations
import json
import logging
import queue
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from orderflow.events.bus import Event, EventBus

logger = logging.getLogger(__name__)

KEEP_ALIVE = ': keep-alive\n\n'


def format_sse(event_type: str, data: Dict[str, Any]) -> str:
    return f"event: {event_type}\ndata: {json.dumps(data, default=str, separators=(',', ':'))}\n\n"


class DisplayStream:
    def __init__(
        self,
        bus: EventBus,
        event_types: Iterable[str],
        maxsize: int = 100,
        projector: Optional[Callable[[Event], Optional[Dict[str, Any]]]] = None,
    ):
        self._queue: 'queue.Queue[str]' = queue.Queue(maxsize=maxsize)
        self._projector = projector
        self._put_lock = threading.Lock()
        self._closed = False
        self.dropped = 0
        self._unsubscribers: List[Callable[[], None]] = [bus.subscribe(t, self._on_event) for t in event_types]

    def _on_event(self, event: Event) -> None:
        payload = self._projector(event) if self._projector else event.payload
        if payload is None:
            return
        message = format_sse(event.type, payload)
        with self._put_lock:
            while True:
                try:
                    self._queue.put_nowait(message)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                        logger.warning('Display stream buffer full; dropped oldest event (%d dropped)', self.dropped)
                    except queue.Empty:
                        pass

    def poll(self, timeout: Optional[float] = None) -> Optional[str]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def messages(self, heartbeat: float = 15.0) -> Iterator[str]:
        """Yield SSE frames until the client goes away; keep-alive comments fill idle gaps."""
        try:
            yield 'retry: 3000\n\n'
            while not self._closed:
                message = self.poll(timeout=heartbeat)
                yield message if message is not None else KEEP_ALIVE
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        logger.info('Display stream closed')

__all__ = ['DisplayStream', 'format_sse', 'KEEP_ALIVE']
