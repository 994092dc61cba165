"""End-to-end tests for PirController with fake lines, display and broker."""

import pytest

from core import events
from core.controller import PirController
from core.events import LineRole
from tests.conftest import FakeMqtt, LineFactory

BASE = {"sensor_pin": 22, "power_saving": True, "power_saving_delay": 5}


@pytest.fixture
def lines():
    return LineFactory()


@pytest.fixture
def mqtt_clients():
    return []


@pytest.fixture
def controller(loop, bus, lines, display, mqtt_clients):
    def mqtt_factory(cfg):
        client = FakeMqtt(cfg)
        mqtt_clients.append(client)
        return client

    ctl = PirController(
        loop, bus,
        line_factory=lines,
        display_factory=lambda config, relay: display,
        mqtt_factory=mqtt_factory,
    )
    yield ctl
    ctl.shutdown()


def configure(controller, **overrides):
    raw = dict(BASE)
    raw.update(overrides)
    assert controller.configure(raw)
    return controller


def presence_events(recorded):
    return [p for t, p in recorded if t == events.USER_PRESENCE]


class TestConfigure:

    def test_configuration_applied_once(self, controller, lines):
        configure(controller)
        assert not controller.configure(dict(BASE, sensor_pin=4))
        assert controller.config.sensor_pin == 22
        assert lines.lines[LineRole.SENSOR].pin == 22

    def test_invalid_configuration_rejected(self, controller):
        assert not controller.configure({"sensor_pin": "nope"})
        assert not controller.started
        assert configure(controller).started

    def test_notification_dispatch(self, controller, display):
        controller.handle_notification(events.CONFIG, dict(BASE))
        assert controller.started
        controller.power.deactivate()

        controller.handle_notification(events.SCREEN_WAKEUP)
        assert display.calls[-1] == "on"
        controller.handle_notification("SOMETHING_ELSE")

    def test_wake_before_configuration_ignored(self, controller, display):
        assert not controller.wake_now()
        assert display.calls == []

    def test_line_cfg_carries_active_state(self, controller, lines):
        configure(controller, sensor_active_state=0, chip="/dev/gpiochip4")
        assert lines.cfgs[LineRole.SENSOR] == {"chip": "/dev/gpiochip4", "active_state": False}


class TestMotionFlow:

    def test_display_on_at_startup(self, controller, display):
        configure(controller)
        assert display.calls == ["on"]

    def test_motion_hold_then_power_saving(self, controller, lines, display, recorded, advance):
        configure(controller)
        sensor = lines.lines[LineRole.SENSOR]

        sensor.value = True
        advance(0.3)
        assert presence_events(recorded) == [True]
        assert controller.presence.motion_active

        advance(0.8)
        sensor.value = False
        advance(0.3)
        # inactive edge sampled at t=1.2: motion ends at 11.2, display off at 16.2
        advance(9.6)
        assert controller.presence.motion_active
        advance(0.5)
        assert presence_events(recorded) == [True, False]

        advance(4.6)
        assert controller.power.display_on
        advance(0.5)
        assert not controller.power.display_on
        assert display.calls[-1] == "off"

    def test_flicker_is_one_motion_period(self, controller, lines, recorded, advance):
        configure(controller)
        sensor = lines.lines[LineRole.SENSOR]
        for _ in range(10):
            sensor.value = not sensor.value
            advance(0.4)
        sensor.value = False
        advance(30)
        assert presence_events(recorded) == [True, False]

    def test_active_low_sensor(self, controller, lines, recorded, advance):
        lines.values[LineRole.SENSOR] = True
        configure(controller, sensor_active_state=0)
        lines.lines[LineRole.SENSOR].value = False
        advance(0.2)
        assert presence_events(recorded) == [True]


class TestOverrides:

    def test_always_off_at_startup(self, controller, lines, display):
        lines.values[LineRole.ALWAYS_OFF] = True
        configure(controller, always_off_pin=24)
        assert display.calls == ["off"]
        assert controller.power.state.always_off is True

    def test_always_off_toggle(self, controller, lines, display, recorded, advance):
        configure(controller, always_off_pin=24)
        switch = lines.lines[LineRole.ALWAYS_OFF]

        switch.value = True
        advance(0.2)
        assert not controller.power.display_on
        assert (events.ALWAYS_OFF, True) in recorded

        # motion cannot wake the display while always-off holds
        lines.lines[LineRole.SENSOR].value = True
        advance(0.2)
        assert not controller.power.display_on

        switch.value = False
        advance(0.2)
        assert controller.power.display_on
        alerts = [p["title"] for t, p in recorded if t == events.SHOW_ALERT]
        assert alerts == ["Always-Off Activated", "Always-Off Deactivated"]

    def test_always_on_blocks_power_saving(self, controller, lines, display, recorded, advance):
        configure(controller, always_on_pin=23)
        lines.lines[LineRole.ALWAYS_ON].value = True
        advance(0.2)
        assert (events.ALWAYS_ON, True) in recorded

        advance(60)
        assert controller.power.display_on
        assert "off" not in display.calls

    def test_active_low_override(self, controller, lines, display, advance):
        lines.values[LineRole.ALWAYS_OFF] = True
        configure(controller, always_off_pin=24, always_off_active_state=0)
        assert controller.power.display_on

        lines.lines[LineRole.ALWAYS_OFF].value = False
        advance(0.2)
        assert not controller.power.display_on


class TestDegradedLines:

    def test_sensor_unavailable_reported(self, controller, lines, recorded, advance):
        lines.unavailable.add(LineRole.SENSOR)
        configure(controller)

        errors = [p for t, p in recorded if t == events.SENSOR_ERROR]
        assert errors[0]["line"] == "sensor"
        assert controller.snapshot()["degraded_lines"] == ["sensor"]
        assert not controller.sampler.running

    def test_sensor_read_failure_keeps_overrides(self, controller, lines, recorded, advance):
        configure(controller, always_off_pin=24)
        lines.lines[LineRole.SENSOR].fail_reads = True
        advance(0.2)
        assert any(t == events.SENSOR_ERROR for t, _ in recorded)

        lines.lines[LineRole.ALWAYS_OFF].value = True
        advance(0.2)
        assert not controller.power.display_on

    def test_failed_always_off_line_stops_forcing_off(self, controller, lines, display, recorded, advance):
        configure(controller, always_off_pin=24)
        switch = lines.lines[LineRole.ALWAYS_OFF]
        switch.value = True
        advance(0.2)
        assert not controller.power.display_on

        switch.fail_reads = True
        advance(0.2)

        assert controller.sampler.degraded == [LineRole.ALWAYS_OFF]
        assert controller.power.state.always_off is None
        assert controller.power.display_on
        assert display.calls[-1] == "on"
        errors = [p for t, p in recorded if t == events.SENSOR_ERROR]
        assert errors[-1]["line"] == "always_off"

        controller.power.deactivate()
        assert controller.wake_now()

    def test_failed_always_on_line_resumes_power_saving(self, controller, lines, display, advance):
        configure(controller, always_on_pin=23)
        switch = lines.lines[LineRole.ALWAYS_ON]
        switch.value = True
        advance(0.2)

        switch.fail_reads = True
        advance(0.2)
        assert controller.power.state.always_on is None

        advance(5.1)
        assert not controller.power.display_on


class TestRelayPath:

    def test_relay_claimed_at_active_level(self, loop, bus, lines):
        ctl = PirController(loop, bus, line_factory=lines)
        ctl.configure(dict(BASE, relay_pin=17, relay_active_state=0))
        relay = lines.lines[LineRole.RELAY]

        assert lines.cfgs[LineRole.RELAY]["initial"] is False
        assert ctl.display.kind == "relay"
        # startup activate drives the active (low) level
        assert relay.writes == [False]
        ctl.shutdown()
        assert relay.closed

    def test_unavailable_relay_reported(self, loop, bus, lines, recorded):
        lines.unavailable.add(LineRole.RELAY)
        ctl = PirController(loop, bus, line_factory=lines)
        ctl.configure(dict(BASE, relay_pin=17))
        assert recorded[0] == (events.SENSOR_ERROR, {
            "line": "relay", "message": "relay line failed: GPIO unavailable",
        })
        ctl.shutdown()


class TestSimulator:

    def test_simulated_motion_cycle(self, controller, lines, recorded, advance):
        configure(controller, run_simulator=True)
        assert LineRole.SENSOR not in lines.lines

        advance(19.9)
        assert presence_events(recorded) == []
        advance(0.2)
        assert presence_events(recorded) == [True]
        advance(1)
        assert presence_events(recorded) == [True, False]

    def test_forced_simulator(self, loop, bus, lines, display):
        ctl = PirController(loop, bus, line_factory=lines,
                            display_factory=lambda c, r: display, force_simulator=True)
        ctl.configure(dict(BASE))
        assert ctl.simulator is not None and ctl.simulator.running
        ctl.shutdown()


class TestMqtt:

    def test_presence_mirrored_to_broker(self, controller, lines, mqtt_clients, advance):
        configure(controller, mqtt={"host": "broker"})
        client = mqtt_clients[0]
        assert client.connects == 1

        lines.lines[LineRole.SENSOR].value = True
        advance(0.2)
        advance(2.05)
        assert client.states == [True, True, True]

    def test_shutdown_closes_broker(self, controller, mqtt_clients):
        configure(controller, mqtt={"host": "broker"})
        controller.shutdown()
        assert mqtt_clients[0].closes == 1


class TestLifecycle:

    def test_snapshot(self, controller):
        assert controller.snapshot() == {"started": False, "closed": False}
        configure(controller)
        snap = controller.snapshot()
        assert snap["started"] is True
        assert snap["display_on"] is True
        assert snap["display_path"] == "fake"
        assert snap["motion_active"] is False
        assert snap["power_saving_pending"] is True

    def test_shutdown_releases_everything(self, controller, lines, display, loop):
        configure(controller, always_on_pin=23, always_off_pin=24)
        controller.shutdown()
        controller.shutdown()

        assert display.closed
        assert all(line.closed for line in lines.lines.values())
        assert loop.next_deadline() is None
        assert not controller.configure(dict(BASE))
