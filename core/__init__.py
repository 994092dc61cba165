"""Presence core for PIR Display.

Turns PIR and override-switch samples into display power decisions.

Architecture:
    MainLoop            -- single-threaded event loop with cancellable timers
    LineSampler         -- polls GPIO inputs every 200 ms, emits edges
    PresenceStateMachine -- edges -> motion started / ended (10 s hold)
    PowerController     -- presence + overrides -> display on/off, keep-alive
    EventPublisher      -- upward events (EventBus) and optional MQTT
    PirController       -- wires it all together from one configuration
"""

from core.event_bus import EventBus
from core.scheduler import MainLoop, Timer
from core.sampler import LineSampler
from core.presence import PresenceState, PresenceStateMachine
from core.power import PowerController, PowerState
from core.publisher import EventPublisher
from core.controller import PirController

__all__ = [
    "EventBus",
    "MainLoop",
    "Timer",
    "LineSampler",
    "PresenceState",
    "PresenceStateMachine",
    "PowerController",
    "PowerState",
    "EventPublisher",
    "PirController",
]
