"""Human-readable alerts for override-line changes.

The host layer shows SHOW_ALERT payloads as a toast for `timer`
milliseconds. Texts are keyed by (override, asserted).
"""

from typing import Dict

from config import ALERT_DISPLAY_MS
from core.events import LineRole

ALERT_TEXT = {
    (LineRole.ALWAYS_ON, True): (
        "Always-On Activated",
        "Mirror will not activate power-saving mode",
    ),
    (LineRole.ALWAYS_ON, False): (
        "Always-On Deactivated",
        "Mirror will now use motion sensor to activate",
    ),
    (LineRole.ALWAYS_OFF, True): (
        "Always-Off Activated",
        "Mirror display is forced off",
    ),
    (LineRole.ALWAYS_OFF, False): (
        "Always-Off Deactivated",
        "Mirror display is back on and follows the motion sensor",
    ),
}


def override_alert(role: LineRole, asserted: bool, timer: int = ALERT_DISPLAY_MS) -> Dict:
    """Build the SHOW_ALERT payload for an override change."""
    try:
        title, message = ALERT_TEXT[(role, bool(asserted))]
    except KeyError:
        raise ValueError(f"no alert for line {role!r}")
    return {"title": title, "message": message, "timer": int(timer)}


def line_error(role: LineRole, reason: str) -> Dict:
    """Build the SENSOR_ERROR payload for a failed line."""
    return {"line": role.value, "message": f"{role.value} line failed: {reason}"}
