"""Relay output line that switches the display's mains power.

How it works:
  A transistor-driven relay module sits between the GPIO pin and the
  display's power lead. Driving the pin to the configured active level
  closes the relay (display powered), the opposite level opens it.

Hardware: Single GPIO output pin.
"""

import logging
from typing import Optional

from sensors.base import BaseLine
from sensors.gpio_utils import request_output_line, write_line

logger = logging.getLogger(__name__)


class RelayLine(BaseLine):
    """Output line; `initial` in cfg is the level driven when claimed."""

    def _init_hardware(self) -> None:
        self._request = None
        self._level = bool(self._cfg.get("initial", False))
        self._request = request_output_line(self.pin, initial=self._level, chip=self.chip)
        self._hw_available = self._request is not None

        if self._hw_available:
            logger.info("Relay: ready on GPIO %d (level=%d)", self.pin, self._level)
        else:
            logger.error("Relay: GPIO %d unavailable", self.pin)

    def _read_hardware(self) -> Optional[bool]:
        return self._level

    def write(self, value: bool) -> None:
        """Drive the line HIGH (True) or LOW (False)."""
        if not self._request:
            logger.warning("Relay: write to unavailable GPIO %d ignored", self.pin)
            return
        write_line(self._request, self.pin, value)
        self._level = bool(value)

    def close(self) -> None:
        if self._request:
            self._request.release()
            self._request = None
            self._hw_available = False
