"""Power controller - the single authority over display power.

Translates presence transitions and override-line states into the one
`display_on` decision and owns every power-related timer:

  power_saving_timer         one-shot, power_saving_delay after motion ends
  keepalive_timer            repeating, prevent_display_timeout minutes, only while off
  keepalive_phase_two_timer  one-shot, KEEPALIVE_PULSE after each pulse's "on"

Arbitration, highest first:
  always_off > always_on > power-saving timer > motion > default (on)

Override state is tri-state: None means the line is not configured (or
could not be read), True asserted, False released.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from config import KEEPALIVE_PULSE, Config
from core.scheduler import MainLoop, Timer

logger = logging.getLogger(__name__)


@dataclass
class PowerState:
    display_on: Optional[bool] = None
    always_on: Optional[bool] = None
    always_off: Optional[bool] = None
    power_saving_timer: Optional[Timer] = None
    keepalive_timer: Optional[Timer] = None
    keepalive_phase_two_timer: Optional[Timer] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "display_on": self.display_on,
            "always_on": self.always_on,
            "always_off": self.always_off,
            "power_saving_pending": _live(self.power_saving_timer),
            "keepalive_armed": _live(self.keepalive_timer),
        }


def _live(timer: Optional[Timer]) -> bool:
    return timer is not None and timer.active


def _cancel(timer: Optional[Timer]) -> None:
    if timer is not None:
        timer.cancel()


class PowerController:
    """Decides display on/off and drives the DisplayActuator."""

    def __init__(self, loop: MainLoop, display, config: Config):
        self._loop = loop
        self._display = display
        self._config = config
        self.state = PowerState()
        self._motion_active = False

    @property
    def display_on(self) -> bool:
        return bool(self.state.display_on)

    @property
    def always_off_asserted(self) -> bool:
        return self.state.always_off is True

    @property
    def always_on_asserted(self) -> bool:
        return self.state.always_on is True

    # ------------------------------------------------------------------
    # Startup / shutdown
    # ------------------------------------------------------------------

    def start(self, always_on: Optional[bool] = None, always_off: Optional[bool] = None) -> None:
        """Seed override state from the initial line values and apply defaults."""
        self.state.always_on = always_on
        self.state.always_off = always_off

        if always_off is None:
            # No always-off line: assume the room is occupied until told otherwise
            self.activate("startup default")
        elif always_off:
            self.deactivate("always-off asserted at startup")
        else:
            self.activate("startup")

        if self._config.power_saving:
            self._arm_power_saving()

    def close(self) -> None:
        """Cancel every live timer. The display is left as it is."""
        for name in ("power_saving_timer", "keepalive_timer", "keepalive_phase_two_timer"):
            _cancel(getattr(self.state, name))
            setattr(self.state, name, None)

    # ------------------------------------------------------------------
    # Display commands
    # ------------------------------------------------------------------

    def activate(self, reason: str = "") -> bool:
        """Turn the display on unless always-off vetoes it. Returns True if executed."""
        if self.always_off_asserted:
            logger.info("Monitor activation blocked by always-off (%s)", reason or "request")
            return False

        logger.info("Activating monitor (%s)", reason or "request")
        self._display.on()
        self.state.display_on = True
        self._cancel_keepalive()
        return True

    def deactivate(self, reason: str = "") -> bool:
        """Turn the display off unless always-on holds it. Returns True if executed."""
        if self.always_on_asserted and not self.always_off_asserted:
            logger.info("Monitor deactivation skipped, always-on asserted (%s)", reason or "request")
            return False

        logger.info("Deactivating monitor (%s)", reason or "request")
        self._display.off()
        self.state.display_on = False
        if self._config.keepalive_enabled:
            self._arm_keepalive()
        return True

    def wake_now(self) -> bool:
        return self.activate("wake request")

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def on_presence(self, active: bool) -> None:
        self._motion_active = bool(active)
        if active:
            self.on_motion_started()
        else:
            self.on_motion_ended()

    def on_motion_started(self) -> None:
        if not self._config.power_saving:
            return
        self._cancel_power_saving()
        self.activate("motion")

    def on_motion_ended(self) -> None:
        if not self._config.power_saving:
            return
        self._arm_power_saving()

    def on_always_on(self, asserted: bool) -> None:
        self.state.always_on = bool(asserted)
        logger.info("Always-on %s", "asserted" if asserted else "released")
        if asserted:
            self._cancel_power_saving()
        elif self._config.power_saving and not self._motion_active:
            # Room went quiet while the switch was held
            self._arm_power_saving()

    def on_always_off(self, asserted: bool) -> None:
        self.state.always_off = bool(asserted)
        logger.info("Always-off %s", "asserted" if asserted else "released")
        if asserted:
            self.deactivate("always-off")
        else:
            self.activate("always-off released")
            if self._config.power_saving:
                self._cancel_power_saving()

    def on_always_on_lost(self) -> None:
        """The always-on line stopped reading: treat it as released, then unconfigured."""
        if self.state.always_on is None:
            return
        logger.warning("Always-on line lost; resuming motion logic")
        if self.state.always_on:
            self.on_always_on(False)
        self.state.always_on = None

    def on_always_off_lost(self) -> None:
        """The always-off line stopped reading: fail safe to a powered display."""
        if self.state.always_off is None:
            return
        logger.warning("Always-off line lost; display no longer forced off")
        if self.state.always_off:
            self.on_always_off(False)
        self.state.always_off = None

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _arm_power_saving(self) -> None:
        self._cancel_power_saving()
        if self.always_on_asserted and not self.always_off_asserted:
            logger.debug("Power saving suspended while always-on is asserted")
            return
        delay = self._config.power_saving_delay
        self.state.power_saving_timer = self._loop.after(
            delay, self._power_saving_expired, name="power-saving-off"
        )
        logger.debug("Power saving: monitor off in %.0fs", delay)

    def _cancel_power_saving(self) -> None:
        _cancel(self.state.power_saving_timer)
        self.state.power_saving_timer = None

    def _power_saving_expired(self) -> None:
        self.state.power_saving_timer = None
        self.deactivate("power saving")

    def _arm_keepalive(self) -> None:
        self._cancel_keepalive()
        self.state.keepalive_timer = self._loop.every(
            self._config.keepalive_interval, self.keepalive_pulse, name="keepalive"
        )

    def _cancel_keepalive(self) -> None:
        _cancel(self.state.keepalive_timer)
        _cancel(self.state.keepalive_phase_two_timer)
        self.state.keepalive_timer = None
        self.state.keepalive_phase_two_timer = None

    def keepalive_pulse(self) -> None:
        """Briefly wake the display so it never drops into deep standby."""
        logger.debug("Keep-alive pulse")
        self._display.on()
        _cancel(self.state.keepalive_phase_two_timer)
        self.state.keepalive_phase_two_timer = self._loop.after(
            KEEPALIVE_PULSE, self._keepalive_phase_two, name="keepalive-off"
        )

    def _keepalive_phase_two(self) -> None:
        self.state.keepalive_phase_two_timer = None
        self._display.off()
