"""Shared fixtures: a manually driven MainLoop and fake hardware.

The loop runs on a ManualClock; `advance(seconds)` walks the clock from
one timer deadline to the next so every callback fires at its exact
scheduled time, without sleeping.
"""

import logging

import pytest

from config import parse_config
from core.event_bus import EventBus
from core.scheduler import MainLoop

logging.basicConfig(
    level=logging.DEBUG, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


class ManualClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now


def run_until(loop, clock, target):
    """Fire every timer due up to `target`, in deadline order."""
    while True:
        deadline = loop.next_deadline()
        if deadline is None or deadline > target:
            break
        clock.now = max(clock.now, deadline)
        loop.run_pending()
    clock.now = max(clock.now, target)
    loop.run_pending()


class FakeLine:
    """Stands in for a gpiod-backed line."""

    def __init__(self, pin=0, value=False, available=True):
        self.pin = pin
        self.value = value
        self._available = available
        self.fail_reads = False
        self.error = None if available else "GPIO unavailable"
        self.writes = []
        self.closed = False

    @property
    def available(self):
        return self._available and not self.closed

    def read(self):
        if not self.available or self.fail_reads:
            self.error = "read failed"
            return None
        return self.value

    def write(self, value):
        self.writes.append(bool(value))
        self.value = bool(value)

    def close(self):
        self.closed = True


class FakeDisplay:
    kind = "fake"

    def __init__(self):
        self.calls = []
        self.closed = False

    def on(self):
        self.calls.append("on")

    def off(self):
        self.calls.append("off")

    def close(self):
        self.closed = True


class FakeMqtt:
    def __init__(self, cfg=None):
        self.cfg = cfg
        self.connected = True
        self.states = []
        self.connects = 0
        self.closes = 0

    def connect(self):
        self.connects += 1

    def close(self):
        self.closes += 1
        self.connected = False

    def publish_state(self, active):
        self.states.append(bool(active))
        return True


class LineFactory:
    """line_factory for PirController; keeps every line it hands out."""

    def __init__(self):
        self.values = {}
        self.unavailable = set()
        self.lines = {}
        self.cfgs = {}

    def __call__(self, role, pin, cfg):
        value = cfg.get("initial", self.values.get(role, False))
        line = FakeLine(pin, value=value, available=role not in self.unavailable)
        self.lines[role] = line
        self.cfgs[role] = cfg
        return line


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def loop(clock):
    return MainLoop(clock=clock)


@pytest.fixture
def advance(loop, clock):
    """advance(seconds): move the manual clock forward, firing due timers."""
    def _advance(seconds):
        run_until(loop, clock, clock.now + seconds)
    return _advance


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorded(bus):
    """List of (topic, payload) for every upward event."""
    from core.events import UPWARD_EVENTS
    seen = []
    for topic in UPWARD_EVENTS:
        bus.subscribe(topic, lambda payload, t=topic: seen.append((t, payload)))
    return seen


@pytest.fixture
def display():
    return FakeDisplay()


@pytest.fixture
def make_config():
    def _make(**overrides):
        raw = {"sensor_pin": 22, "power_saving": True, "power_saving_delay": 5}
        raw.update(overrides)
        return parse_config(raw)
    return _make
