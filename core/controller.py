"""PIR controller - wires the presence core to its collaborators.

The host layer talks to one PirController:

    controller.handle_notification("CONFIG", {...})   # once, at startup
    controller.handle_notification("SCREEN_WAKEUP")   # wake now

Everything runs on the MainLoop thread. Calls from other threads must
go through loop.call_soon_threadsafe().

Hardware collaborators come from factories so tests (and the simulator
on a dev machine) never need gpiod, a display server or a broker:

    line_factory(role, pin, cfg)     -> line with available/read()/write()/close()
    display_factory(config, relay)   -> DisplayActuator
    mqtt_factory(mqtt_config)        -> client with connect()/close()/publish_state()
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from config import Config, ConfigError, parse_config
from core import events
from core.event_bus import EventBus
from core.events import Edge, LineRole
from core.power import PowerController
from core.presence import PresenceStateMachine
from core.publisher import EventPublisher
from core.sampler import LineSampler
from core.scheduler import MainLoop
from core.simulator import MotionSimulator

logger = logging.getLogger(__name__)


def _gpio_line(role, pin, cfg):
    from sensors import open_line
    return open_line(role, pin, cfg)


def _build_display(config, relay_line):
    from output.display import build_display
    return build_display(config, relay_line)


def _mqtt_client(mqtt_config):
    from output.mqtt import PresenceMqttClient
    return PresenceMqttClient(mqtt_config)


class PirController:
    """Owns the presence core for the lifetime of the process."""

    def __init__(self, loop: MainLoop, bus: EventBus,
                 line_factory: Optional[Callable] = None,
                 display_factory: Optional[Callable] = None,
                 mqtt_factory: Optional[Callable] = None,
                 force_simulator: bool = False):
        self.loop = loop
        self.bus = bus
        self._line_factory = line_factory or _gpio_line
        self._display_factory = display_factory or _build_display
        self._mqtt_factory = mqtt_factory or _mqtt_client
        self._force_simulator = force_simulator

        self.started = False
        self._closed = False
        self.config: Optional[Config] = None
        self.lines: Dict[LineRole, Any] = {}
        self.display = None
        self.mqtt = None
        self.sampler: Optional[LineSampler] = None
        self.presence: Optional[PresenceStateMachine] = None
        self.power: Optional[PowerController] = None
        self.publisher: Optional[EventPublisher] = None
        self.simulator: Optional[MotionSimulator] = None

    # ------------------------------------------------------------------
    # Host-layer entry points
    # ------------------------------------------------------------------

    def handle_notification(self, name: str, payload: Any = None) -> None:
        if name == events.CONFIG:
            self.configure(payload)
        elif name == events.SCREEN_WAKEUP:
            self.wake_now()
        else:
            logger.warning("Unknown notification %r ignored", name)

    def configure(self, raw) -> bool:
        """Build and start the core from the one-time configuration event."""
        if self.started or self._closed:
            logger.info("Configuration received while already started; ignored")
            return False

        try:
            config = raw if isinstance(raw, Config) else parse_config(raw)
        except ConfigError as exc:
            logger.error("Rejected configuration: %s", exc)
            return False
        if self._force_simulator and not config.run_simulator:
            config = replace(config, run_simulator=True)

        logger.info("Received configuration: %s", config.as_dict())
        self.config = config
        self._build(config)
        self._start(config)
        self.started = True
        return True

    def wake_now(self) -> bool:
        if not self.started or self._closed:
            logger.warning("Wake request before configuration; ignored")
            return False
        return self.power.wake_now()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _open(self, role: LineRole, pin: int, active_state: bool, **extra):
        cfg = {"chip": self.config.chip, "active_state": active_state}
        cfg.update(extra)
        line = self._line_factory(role, pin, cfg)
        self.lines[role] = line
        return line

    def _build(self, config: Config) -> None:
        if config.mqtt:
            self.mqtt = self._mqtt_factory(config.mqtt)
        self.publisher = EventPublisher(self.loop, self.bus, self.mqtt)
        self.sampler = LineSampler(self.loop, on_error=self._line_failed)

        relay = None
        if config.relay_pin is not None:
            # Claimed at the active level: display powered from the first instant
            relay = self._open(LineRole.RELAY, config.relay_pin,
                               config.relay_active_state, initial=config.relay_active_state)
            if not relay.available:
                self.publisher.line_failed(LineRole.RELAY, relay.error or "unavailable")

        self.display = self._display_factory(config, relay)
        self.presence = PresenceStateMachine(self.loop, config.sensor_active_state)
        self.power = PowerController(self.loop, self.display, config)

        self.presence.subscribe(self.publisher.motion_changed)
        self.presence.subscribe(self.power.on_presence)

    def _start(self, config: Config) -> None:
        always_on = self._watch_override(
            LineRole.ALWAYS_ON, config.always_on_pin, config.always_on_active_state)
        always_off = self._watch_override(
            LineRole.ALWAYS_OFF, config.always_off_pin, config.always_off_active_state)

        if config.run_simulator:
            self.simulator = MotionSimulator(self.loop, self.presence)
        else:
            logger.info("Initializing PIR sensor on GPIO %d", config.sensor_pin)
            sensor = self._open(LineRole.SENSOR, config.sensor_pin, config.sensor_active_state)
            if self.sampler.watch(LineRole.SENSOR, sensor, self.presence.handle_edge) is None:
                logger.error("Presence detection disabled: PIR sensor unavailable")

        self.power.start(always_on=always_on, always_off=always_off)

        if self.sampler.watched:
            self.sampler.start()
        if self.simulator:
            self.simulator.start()
        if self.mqtt:
            self.mqtt.connect()

    def _watch_override(self, role: LineRole, pin: Optional[int], active_state: bool) -> Optional[bool]:
        """Start polling an override line; returns its initial asserted state."""
        if pin is None:
            return None
        line = self._open(role, pin, active_state)
        initial = self.sampler.watch(role, line, self._override_edge)
        if initial is None:
            return None
        return initial == active_state

    def _line_failed(self, role: LineRole, reason: str) -> None:
        """Sampler error hook: report the line, then forget any override it held."""
        self.publisher.line_failed(role, reason)
        if self.power is None:
            return
        if role is LineRole.ALWAYS_ON:
            self.power.on_always_on_lost()
        elif role is LineRole.ALWAYS_OFF:
            self.power.on_always_off_lost()

    def _override_edge(self, edge: Edge) -> None:
        if edge.role is LineRole.ALWAYS_ON:
            asserted = edge.new == self.config.always_on_active_state
            self.publisher.override_changed(edge.role, asserted)
            self.power.on_always_on(asserted)
        elif edge.role is LineRole.ALWAYS_OFF:
            asserted = edge.new == self.config.always_off_active_state
            self.publisher.override_changed(edge.role, asserted)
            self.power.on_always_off(asserted)

    # ------------------------------------------------------------------
    # State / teardown
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict view of the current state for the host layer."""
        data: Dict[str, Any] = {"started": self.started, "closed": self._closed}
        if not self.started:
            return data
        data.update({
            "motion_active": self.presence.motion_active,
            "hold_pending": self.presence.hold_pending,
            "display_path": getattr(self.display, "kind", "unknown"),
            "degraded_lines": [r.value for r in self.sampler.degraded],
            "simulator": self.simulator is not None,
            "mqtt_connected": self.publisher.mqtt_connected,
        })
        data.update(self.power.state.as_dict())
        return data

    def shutdown(self) -> None:
        """Stop timers and sampling, then release the broker, display and lines."""
        if self._closed:
            return
        self._closed = True
        if not self.started:
            return
        logger.info("Shutting down PIR controller")

        if self.simulator:
            self.simulator.stop()
        self.sampler.stop()
        self.presence.close()
        self.power.close()
        self.publisher.close()

        if self.mqtt:
            self.mqtt.close()
        if self.display:
            self.display.close()
        for role, line in self.lines.items():
            try:
                line.close()
            except OSError as exc:
                logger.warning("Releasing %s line failed: %s", role.value, exc)
