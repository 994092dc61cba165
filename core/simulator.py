"""Motion simulator for interface testing without hardware.

Injects "motion started" every SIMULATOR_PERIOD seconds and "motion
ended" SIMULATOR_PULSE seconds later, straight into the presence state
machine. Listeners (power controller, publisher) see the same
transitions real motion would produce.
"""

import logging
from typing import Optional

from config import SIMULATOR_PERIOD, SIMULATOR_PULSE
from core.presence import PresenceStateMachine
from core.scheduler import MainLoop, Timer

logger = logging.getLogger(__name__)


class MotionSimulator:

    def __init__(self, loop: MainLoop, presence: PresenceStateMachine,
                 period: float = SIMULATOR_PERIOD, pulse: float = SIMULATOR_PULSE):
        self._loop = loop
        self._presence = presence
        self.period = period
        self.pulse = pulse
        self._cycle: Optional[Timer] = None
        self._end: Optional[Timer] = None

    @property
    def running(self) -> bool:
        return self._cycle is not None and self._cycle.active

    def start(self) -> None:
        if self.running:
            return
        self._cycle = self._loop.every(self.period, self._motion, name="simulator")
        logger.info("Motion simulator on (every %.0fs)", self.period)

    def stop(self) -> None:
        for timer in (self._cycle, self._end):
            if timer:
                timer.cancel()
        self._cycle = self._end = None

    def _motion(self) -> None:
        self._presence.inject(True)
        if self._end:
            self._end.cancel()
        self._end = self._loop.after(self.pulse, self._presence.inject, False, name="simulator-end")
