"""Event publisher - mirrors state transitions to external listeners.

Every presence and override transition goes upward through the EventBus.
When an MQTT client is attached, presence also goes to the broker: an
ON/OFF on every transition plus an "ON" refresh every STATE_REFRESH
seconds while motion lasts.

Nothing here may raise into the state machine: the EventBus already
isolates subscriber errors, and the MQTT client logs its own failures.
"""

import logging
from typing import Optional

from config import STATE_REFRESH
from core import events
from core.alerts import line_error, override_alert
from core.event_bus import EventBus
from core.events import LineRole
from core.scheduler import MainLoop, Timer

logger = logging.getLogger(__name__)

OVERRIDE_EVENTS = {
    LineRole.ALWAYS_ON: events.ALWAYS_ON,
    LineRole.ALWAYS_OFF: events.ALWAYS_OFF,
}


class EventPublisher:
    """Fans presence / override / error events out to the bus and MQTT."""

    def __init__(self, loop: MainLoop, bus: EventBus, mqtt=None,
                 refresh: float = STATE_REFRESH):
        self._loop = loop
        self._bus = bus
        self._mqtt = mqtt
        self._refresh = refresh
        self._refresh_timer: Optional[Timer] = None

    @property
    def mqtt_connected(self) -> bool:
        return bool(self._mqtt and self._mqtt.connected)

    def motion_changed(self, active: bool) -> None:
        """Presence listener: USER_PRESENCE upward, ON/OFF to the broker."""
        self._bus.publish(events.USER_PRESENCE, bool(active))
        if self._mqtt is None:
            return
        self._cancel_refresh()
        self._send_state(active)
        if active:
            self._refresh_timer = self._loop.every(
                self._refresh, self._send_state, True, name="mqtt-refresh"
            )

    def override_changed(self, role: LineRole, asserted: bool) -> None:
        """Override flag plus a SHOW_ALERT toast."""
        self._bus.publish(OVERRIDE_EVENTS[role], bool(asserted))
        self._bus.publish(events.SHOW_ALERT, override_alert(role, asserted))

    def line_failed(self, role: LineRole, reason: str) -> None:
        self._bus.publish(events.SENSOR_ERROR, line_error(role, reason))

    def close(self) -> None:
        self._cancel_refresh()

    def _send_state(self, active: bool) -> None:
        try:
            self._mqtt.publish_state(active)
        except Exception as exc:
            logger.warning("MQTT state publish failed: %s", exc)

    def _cancel_refresh(self) -> None:
        if self._refresh_timer:
            self._refresh_timer.cancel()
            self._refresh_timer = None
