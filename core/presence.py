"""Presence state machine.

Turns raw PIR edges into "motion started" / "motion ended" transitions:

    IDLE --active edge--> ACTIVE
    ACTIVE --inactive edge--> ACTIVE (hold timer armed, "pending off")
    ACTIVE --hold expires--> IDLE
    pending off --active edge--> ACTIVE (hold cancelled)

PIR modules flicker near the edge of their range. The sampler already
drops repeated identical samples; the MOTION_HOLD window on top of that
turns a burst of flicker into one sustained "occupied" period. Every
active edge refreshes the window, so the hold always counts from the
last moment motion was seen.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from config import MOTION_HOLD
from core.events import Edge, LineRole
from core.scheduler import MainLoop, Timer

logger = logging.getLogger(__name__)


class PresenceState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class PresenceStateMachine:
    """Owns motion_active and the hold timer."""

    def __init__(self, loop: MainLoop, active_state: bool = True, hold: float = MOTION_HOLD):
        self._loop = loop
        self._active_state = bool(active_state)
        self.hold = hold
        self.state = PresenceState.IDLE
        self._hold_timer: Optional[Timer] = None
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def motion_active(self) -> bool:
        return self.state is PresenceState.ACTIVE

    @property
    def hold_pending(self) -> bool:
        return self._hold_timer is not None and self._hold_timer.active

    @property
    def hold_deadline(self) -> Optional[float]:
        return self._hold_timer.deadline if self.hold_pending else None

    def subscribe(self, callback: Callable[[bool], None]) -> None:
        """Register callback(active) for every presence transition."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def handle_edge(self, edge: Edge) -> None:
        """Sampler callback for the sensor line."""
        if edge.role is not LineRole.SENSOR:
            return
        self.handle_sample(edge.new)

    def handle_sample(self, value: bool) -> None:
        if bool(value) == self._active_state:
            self._cancel_hold()
            if not self.motion_active:
                logger.info("Motion detected")
                self._transition(PresenceState.ACTIVE)
        elif self.motion_active:
            self._arm_hold()

    def inject(self, active: bool) -> None:
        """Apply a transition immediately, skipping the hold (simulator)."""
        self._cancel_hold()
        target = PresenceState.ACTIVE if active else PresenceState.IDLE
        if target is not self.state:
            logger.info("Simulated motion %s", "start" if active else "end")
            self._transition(target)

    def close(self) -> None:
        self._cancel_hold()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _arm_hold(self) -> None:
        self._cancel_hold()
        self._hold_timer = self._loop.after(self.hold, self._hold_expired, name="motion-hold")
        logger.debug("No movement; motion ends in %.0fs unless refreshed", self.hold)

    def _cancel_hold(self) -> None:
        if self._hold_timer:
            self._hold_timer.cancel()
            self._hold_timer = None

    def _hold_expired(self) -> None:
        self._hold_timer = None
        if self.motion_active:
            logger.info("No motion for %.0fs", self.hold)
            self._transition(PresenceState.IDLE)

    def _transition(self, state: PresenceState) -> None:
        self.state = state
        active = state is PresenceState.ACTIVE
        for cb in list(self._listeners):
            cb(active)
