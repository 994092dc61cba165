"""GPIO line modules for PIR Display.

Each line class inherits from BaseLine and implements:
    _init_hardware()  - claim the GPIO line
    _read_hardware()  - return the raw level (inputs)

The base class (sensors.base.BaseLine) provides:
    read()            - raw read with retry logic and error handling
    available         - whether the line could be claimed
    close()           - release hardware resources

open_line() is the factory the controller uses; it picks the class for
a logical role (see core.events.LineRole).
"""

from sensors.digital import DigitalInput, OverrideSwitch
from sensors.pir import PIRSensor
from sensors.relay import RelayLine

LINE_CLASSES = {
    "sensor": PIRSensor,
    "always_on": OverrideSwitch,
    "always_off": OverrideSwitch,
    "relay": RelayLine,
}


def open_line(role, pin, cfg=None):
    """Claim the GPIO line for a role ("sensor", "always_on", ...).

    Always returns a line object; check .available for success.
    """
    cls = LINE_CLASSES[str(getattr(role, "value", role))]
    return cls(pin, cfg)


__all__ = [
    "DigitalInput",
    "OverrideSwitch",
    "PIRSensor",
    "RelayLine",
    "LINE_CLASSES",
    "open_line",
]
