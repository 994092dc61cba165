"""Event names and small value types shared across the core.

Upward events go to the host layer through the EventBus. Their names are
part of the external interface and must not change:

    USER_PRESENCE  bool
    ALWAYS_ON      bool
    ALWAYS_OFF     bool
    SHOW_ALERT     {"title": str, "message": str, "timer": int (ms)}
    SENSOR_ERROR   {"line": str, "message": str}
"""

from dataclasses import dataclass
from enum import Enum

USER_PRESENCE = "USER_PRESENCE"
ALWAYS_ON = "ALWAYS_ON"
ALWAYS_OFF = "ALWAYS_OFF"
SHOW_ALERT = "SHOW_ALERT"
SENSOR_ERROR = "SENSOR_ERROR"

UPWARD_EVENTS = (USER_PRESENCE, ALWAYS_ON, ALWAYS_OFF, SHOW_ALERT, SENSOR_ERROR)

# Inbound notifications from the host layer
CONFIG = "CONFIG"
SCREEN_WAKEUP = "SCREEN_WAKEUP"


class LineRole(str, Enum):
    """Which logical line a reading came from."""

    SENSOR = "sensor"
    ALWAYS_ON = "always_on"
    ALWAYS_OFF = "always_off"
    RELAY = "relay"


@dataclass(frozen=True)
class Edge:
    """A change of a line's raw value seen by the sampler."""

    role: LineRole
    old: bool
    new: bool
    at: float
