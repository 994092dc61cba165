"""Single-threaded event loop for the presence core.

Every line sample, timer firing and state transition runs on the thread
that calls MainLoop.run(). Nothing in the core takes a lock: other threads
(Flask request handlers, the paho network thread) only hand work over
through call_soon_threadsafe(), which queues the callback for the loop
thread.

Timers are cancellable handles:

    t = loop.after(10.0, presence_ended)
    t.cancel()

    pulse = loop.every(300.0, keepalive)

The clock is injectable so tests can drive the loop with a manual clock
and step through deadlines without sleeping.
"""

import heapq
import itertools
import logging
import time
from queue import Empty, Queue
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Upper bound on how long run() blocks waiting for cross-thread work
MAX_WAIT = 0.5


class Timer:
    """Handle for a scheduled callback returned by MainLoop.after()/every()."""

    def __init__(self, loop: "MainLoop", deadline: float, callback: Callable,
                 args: tuple, interval: Optional[float] = None, name: str = ""):
        self._loop = loop
        self.deadline = deadline
        self.interval = interval
        self.callback = callback
        self.args = args
        self.name = name or getattr(callback, "__name__", "timer")
        self.cancelled = False
        self.fired = False

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    @property
    def active(self) -> bool:
        """True while the timer will still fire."""
        if self.cancelled:
            return False
        return self.repeating or not self.fired

    def cancel(self) -> None:
        """Stop the timer. Safe to call more than once or after it fired."""
        self.cancelled = True

    def __repr__(self) -> str:
        state = "active" if self.active else "done"
        return f"<Timer {self.name} deadline={self.deadline:.3f} {state}>"


class MainLoop:
    """Serialized event-processing context with one-shot and repeating timers."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._heap: List[Tuple[float, int, Timer]] = []
        self._seq = itertools.count()
        self._calls: Queue = Queue()
        self._running = False

    def time(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def after(self, delay: float, callback: Callable, *args, name: str = "") -> Timer:
        """Run callback(*args) once, delay seconds from now."""
        timer = Timer(self, self._clock() + max(0.0, delay), callback, args, name=name)
        self._push(timer)
        return timer

    def every(self, interval: float, callback: Callable, *args, name: str = "") -> Timer:
        """Run callback(*args) every interval seconds, first run one interval from now."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        timer = Timer(self, self._clock() + interval, callback, args,
                      interval=interval, name=name)
        self._push(timer)
        return timer

    def call_soon_threadsafe(self, callback: Callable, *args) -> None:
        """Queue callback(*args) to run on the loop thread. Callable from any thread."""
        self._calls.put((callback, args))

    def next_deadline(self) -> Optional[float]:
        """Earliest deadline of a live timer, or None."""
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)
        if not self._heap:
            return None
        return self._heap[0][0]

    def _push(self, timer: Timer) -> None:
        heapq.heappush(self._heap, (timer.deadline, next(self._seq), timer))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _invoke(self, name: str, callback: Callable, args: tuple) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("Loop callback %s failed", name)

    def _drain_calls(self) -> None:
        while True:
            try:
                callback, args = self._calls.get_nowait()
            except Empty:
                return
            self._invoke(getattr(callback, "__name__", "call"), callback, args)

    def run_pending(self) -> None:
        """Run queued cross-thread calls, then every timer that is due."""
        self._drain_calls()
        now = self._clock()
        while self._heap and self._heap[0][0] <= now:
            _, _, timer = heapq.heappop(self._heap)
            if timer.cancelled:
                continue
            if timer.repeating:
                # Reschedule before the callback so it can cancel itself
                timer.deadline += timer.interval
                if timer.deadline <= now:
                    timer.deadline = now + timer.interval
                self._push(timer)
            else:
                timer.fired = True
            self._invoke(timer.name, timer.callback, timer.args)

    def run(self) -> None:
        """Process timers and queued calls until stop() is called."""
        self._running = True
        logger.debug("Main loop running")
        while self._running:
            self.run_pending()
            if not self._running:
                break
            deadline = self.next_deadline()
            wait = MAX_WAIT if deadline is None else deadline - self._clock()
            wait = min(max(wait, 0.0), MAX_WAIT)
            try:
                callback, args = self._calls.get(timeout=wait)
            except Empty:
                continue
            self._invoke(getattr(callback, "__name__", "call"), callback, args)
        logger.debug("Main loop stopped")

    def stop(self) -> None:
        """Ask run() to return within MAX_WAIT.

        Only flips a flag, so it is safe from a signal handler; it must not
        touch the call queue, whose lock the interrupted thread may hold.
        """
        self._running = False

    @property
    def running(self) -> bool:
        return self._running
