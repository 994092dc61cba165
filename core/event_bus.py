"""Upward event bus for PIR Display.

The presence core publishes USER_PRESENCE / ALWAYS_ON / ALWAYS_OFF /
SHOW_ALERT / SENSOR_ERROR here from the loop thread. Two kinds of
consumers listen:

  - in-process subscribers, called synchronously on the publishing thread
  - SSE clients (Flask request threads), fed through bounded queues

The latest payload per topic is kept so the host layer can render the
current state without waiting for the next transition.
"""

import logging
import threading
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

SSE_QUEUE_SIZE = 100
SSE_KEEPALIVE = 30.0  # seconds


class EventBus:
    """Fan-out of upward events to subscribers and SSE streams."""

    def __init__(self):
        self._latest: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._sse_clients: List[Queue] = []
        self._subscribers: Dict[str, List[Callable]] = {}

    def publish(self, topic: str, payload: Any):
        """Deliver payload to every listener of topic. Never raises."""
        with self._lock:
            self._latest[topic] = payload
            clients = list(self._sse_clients)

        # A client that stops reading gets dropped instead of blocking us
        dead = []
        for q in clients:
            try:
                q.put_nowait((topic, payload))
            except Full:
                dead.append(q)
        if dead:
            with self._lock:
                for q in dead:
                    if q in self._sse_clients:
                        self._sse_clients.remove(q)
            logger.warning("Dropped %d stalled SSE client(s)", len(dead))

        for cb in list(self._subscribers.get(topic, [])):
            try:
                cb(payload)
            except Exception as exc:
                logger.error("EventBus callback error [%s]: %s", topic, exc)

    def subscribe(self, topic: str, callback: Callable):
        """Register a callback for a topic."""
        if topic not in self._subscribers:
            self._subscribers[topic] = []
        self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: Callable):
        """Remove a callback."""
        if topic in self._subscribers:
            self._subscribers[topic] = [
                cb for cb in self._subscribers[topic] if cb is not callback
            ]

    def get_latest(self, topic: Optional[str] = None) -> Any:
        """Get latest payload for a topic, or all topics."""
        with self._lock:
            if topic:
                return self._latest.get(topic)
            return dict(self._latest)

    def open_stream(self) -> Queue:
        """Register an SSE client queue. Pair with close_stream()."""
        q = Queue(maxsize=SSE_QUEUE_SIZE)
        with self._lock:
            self._sse_clients.append(q)
        return q

    def close_stream(self, q: Queue):
        with self._lock:
            if q in self._sse_clients:
                self._sse_clients.remove(q)

    @property
    def stream_count(self) -> int:
        with self._lock:
            return len(self._sse_clients)

    def sse_stream(self, keepalive: float = SSE_KEEPALIVE,
                   q: Optional[Queue] = None) -> Iterator[Tuple[str, Any]]:
        """Generator for SSE clients. Yields (topic, payload) tuples.

        Yields ("keepalive", None) after `keepalive` seconds of silence.
        Pass a queue from open_stream() to keep events published since it
        was opened; the stream closes it either way.
        """
        if q is None:
            q = self.open_stream()
        try:
            while True:
                try:
                    yield q.get(timeout=keepalive)
                except Empty:
                    yield "keepalive", None
        finally:
            self.close_stream(q)
