"""Generic digital GPIO input line.

The PIR sensor and both override switches are plain digital inputs: the
controller only needs their raw HIGH/LOW level. Which level means
"motion" or "asserted" is configuration, not a property of the line, so
no inversion happens here.

Subclasses may set:
    BIAS  - internal pull resistor requested with the line
"""

import logging
from typing import Optional

from gpiod.line import Bias

from sensors.base import BaseLine
from sensors.gpio_utils import read_line, request_input_line

logger = logging.getLogger(__name__)


class DigitalInput(BaseLine):
    """Base class for simple digital HIGH/LOW GPIO inputs."""

    BIAS: Bias = Bias.AS_IS

    def _init_hardware(self) -> None:
        self._request = None
        if self.pin < 0:
            return

        self._request = request_input_line(self.pin, bias=self.BIAS, chip=self.chip)
        if self._request:
            self._hw_available = True
            logger.info(
                "%s: ready on GPIO %d", self.__class__.__name__, self.pin
            )
        else:
            logger.error(
                "%s: GPIO %d unavailable", self.__class__.__name__, self.pin
            )

    def _read_hardware(self) -> Optional[bool]:
        if not self._request:
            return None
        return read_line(self._request, self.pin)

    def close(self) -> None:
        if self._request:
            self._request.release()
            self._request = None
            self._hw_available = False


class OverrideSwitch(DigitalInput):
    """Always-on / always-off switch input.

    Wired by the user to a toggle switch or a jumper; left floating it
    would read noise, so the configured active level decides the pull.
    """

    def __init__(self, pin, cfg=None):
        active_high = (cfg or {}).get("active_state", True)
        self.BIAS = Bias.PULL_DOWN if active_high else Bias.PULL_UP
        super().__init__(pin, cfg)
