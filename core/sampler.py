"""Line sampler - fixed-period edge detection for GPIO inputs.

One repeating task on the MainLoop reads every watched line each
SAMPLE_INTERVAL (200 ms) and compares it with the last observed value.
A difference becomes an Edge handed to that line's handler. The initial
value is read when the line is registered, so startup produces no edge.

A line that cannot be read is marked degraded and dropped from polling;
the failure goes to the on_error callback. The other lines carry on.
"""

import logging
from typing import Callable, Dict, List, Optional

from config import SAMPLE_INTERVAL
from core.events import Edge, LineRole
from core.scheduler import MainLoop, Timer

logger = logging.getLogger(__name__)


class _Watch:
    __slots__ = ("role", "line", "handler", "last")

    def __init__(self, role, line, handler, last):
        self.role = role
        self.line = line
        self.handler = handler
        self.last = last


class LineSampler:
    """Polls input lines on the loop and emits edges."""

    def __init__(self, loop: MainLoop, interval: float = SAMPLE_INTERVAL,
                 on_error: Optional[Callable[[LineRole, str], None]] = None):
        self._loop = loop
        self.interval = interval
        self._on_error = on_error
        self._watches: Dict[LineRole, _Watch] = {}
        self._timer: Optional[Timer] = None
        self.degraded: List[LineRole] = []

    def watch(self, role: LineRole, line, on_edge: Callable[[Edge], None]) -> Optional[bool]:
        """Start watching a line. Returns its initial raw value, or None if it failed."""
        if not line.available:
            self._fail(role, line, "line could not be claimed")
            return None

        initial = line.read()
        if initial is None:
            self._fail(role, line, "initial read failed")
            return None

        self._watches[role] = _Watch(role, line, on_edge, initial)
        logger.info("Watching %s on GPIO %s (initial=%d)", role.value, line.pin, initial)
        return initial

    def last_value(self, role: LineRole) -> Optional[bool]:
        w = self._watches.get(role)
        return w.last if w else None

    @property
    def watched(self) -> List[LineRole]:
        return list(self._watches)

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.active

    def start(self) -> None:
        if self.running:
            return
        if not self._watches:
            logger.warning("Sampler has no lines to watch; not starting")
            return
        self._timer = self._loop.every(self.interval, self.sample, name="line-sampler")
        logger.info(
            "Sampler started (%.0f ms, lines: %s)",
            self.interval * 1000, ", ".join(r.value for r in self._watches),
        )

    def stop(self) -> None:
        if self._timer:
            self._timer.cancel()
            self._timer = None

    def sample(self) -> None:
        """Read every watched line once and dispatch edges."""
        now = self._loop.time()
        for watch in list(self._watches.values()):
            value = watch.line.read()
            if value is None:
                self._watches.pop(watch.role, None)
                self._fail(watch.role, watch.line, getattr(watch.line, "error", None) or "read failed")
                continue
            if value == watch.last:
                continue
            edge = Edge(watch.role, watch.last, value, now)
            watch.last = value
            logger.debug("Edge %s: %d -> %d", watch.role.value, edge.old, edge.new)
            watch.handler(edge)

        if not self._watches:
            logger.error("No readable lines left; sampler stopping")
            self.stop()

    def _fail(self, role: LineRole, line, reason: str) -> None:
        if role not in self.degraded:
            self.degraded.append(role)
        logger.error("%s line (GPIO %s) degraded: %s", role.value, getattr(line, "pin", "?"), reason)
        if self._on_error:
            self._on_error(role, reason)
