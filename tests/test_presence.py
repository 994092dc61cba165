"""Tests for the presence state machine (motion start / hold / end)."""

import pytest

from core.events import Edge, LineRole
from core.presence import PresenceState, PresenceStateMachine


@pytest.fixture
def presence(loop):
    return PresenceStateMachine(loop, active_state=True)


@pytest.fixture
def transitions(presence, clock):
    """List of (time, active) for every emitted transition."""
    seen = []
    presence.subscribe(lambda active: seen.append((clock.now, active)))
    return seen


def sensor_edge(new, at=0.0):
    return Edge(LineRole.SENSOR, not new, new, at)


class TestMotionStart:

    def test_starts_idle(self, presence):
        assert presence.state is PresenceState.IDLE
        assert not presence.motion_active
        assert not presence.hold_pending

    def test_active_sample_starts_motion(self, presence, transitions):
        presence.handle_edge(sensor_edge(True))
        assert presence.motion_active
        assert transitions == [(0.0, True)]

    def test_inactive_sample_while_idle_does_nothing(self, presence, transitions, loop):
        presence.handle_edge(sensor_edge(False))
        assert transitions == []
        assert loop.next_deadline() is None

    def test_edges_from_other_lines_ignored(self, presence, transitions):
        presence.handle_edge(Edge(LineRole.ALWAYS_ON, False, True, 0.0))
        assert transitions == []

    def test_active_low_sensor(self, loop):
        presence = PresenceStateMachine(loop, active_state=False)
        seen = []
        presence.subscribe(seen.append)

        presence.handle_sample(True)
        assert seen == []
        presence.handle_sample(False)
        assert seen == [True]


class TestHold:

    def test_isolated_pulse_gives_one_start_and_one_end(self, presence, transitions, advance):
        presence.handle_sample(True)
        advance(0.2)
        presence.handle_sample(False)

        advance(9.9)
        assert transitions == [(0.0, True)]
        assert presence.hold_pending

        advance(0.2)
        assert transitions == [(0.0, True), (pytest.approx(10.2), False)]
        assert presence.state is PresenceState.IDLE

        advance(60)
        assert len(transitions) == 2

    def test_repeated_motion_refreshes_hold(self, presence, transitions, advance):
        presence.handle_sample(True)
        for _ in range(5):
            advance(1)
            presence.handle_sample(False)
            advance(8)
            presence.handle_sample(True)

        assert transitions == [(0.0, True)]
        assert not presence.hold_pending

        presence.handle_sample(False)
        last_inactive = presence.hold_deadline - presence.hold
        advance(10.5)
        assert transitions[-1] == (pytest.approx(last_inactive + 10), False)
        assert len(transitions) == 2

    def test_active_edge_cancels_pending_hold(self, presence, transitions, advance):
        presence.handle_sample(True)
        presence.handle_sample(False)
        advance(5)
        presence.handle_sample(True)
        advance(30)

        assert transitions == [(0.0, True)]
        assert presence.motion_active

    def test_hold_measured_from_last_inactive_edge(self, presence, transitions, advance):
        # sensor=1 at t=0, sensor=0 at t=1 -> motion ended at t=11
        presence.handle_sample(True)
        advance(1)
        presence.handle_sample(False)
        assert presence.hold_deadline == pytest.approx(11.0)

        advance(10)
        assert transitions == [(0.0, True), (pytest.approx(11.0), False)]

    def test_close_cancels_hold(self, presence, transitions, advance, loop):
        presence.handle_sample(True)
        presence.handle_sample(False)
        presence.close()

        advance(20)
        assert transitions == [(0.0, True)]
        assert loop.next_deadline() is None


class TestInject:

    def test_inject_bypasses_hold(self, presence, transitions, advance):
        presence.inject(True)
        advance(1)
        presence.inject(False)
        assert transitions == [(0.0, True), (1.0, False)]

    def test_inject_without_change_is_silent(self, presence, transitions):
        presence.inject(False)
        presence.inject(True)
        presence.inject(True)
        assert transitions == [(0.0, True)]

    def test_inject_cancels_pending_hold(self, presence, transitions, advance):
        presence.handle_sample(True)
        presence.handle_sample(False)
        presence.inject(False)
        advance(20)
        assert transitions == [(0.0, True), (0.0, False)]
