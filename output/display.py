"""Display power actuators.

Exactly one write path is active per configuration:

  RelayDisplay    - switches a relay GPIO line (relay_pin configured)
  CommandDisplay  - runs an external display-control command, by default
                    `xrandr --output HDMI-1 --auto / --off`

Only core.power.PowerController calls on()/off(). Commands run on one
worker thread fed by a FIFO queue: the loop never waits on a child
process, and an "on" queued before an "off" always runs first.
"""

import logging
import subprocess
import threading
from queue import Queue
from typing import List, Optional

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 10  # seconds


class DisplayActuator:
    """Interface for the display power write path."""

    kind = "none"

    def on(self) -> None:
        raise NotImplementedError

    def off(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class RelayDisplay(DisplayActuator):
    """Drives the display relay; `active_state` is the level that powers it."""

    kind = "relay"

    def __init__(self, line, active_state: bool = True):
        self._line = line
        self._active_state = bool(active_state)

    def on(self) -> None:
        self._line.write(self._active_state)

    def off(self) -> None:
        self._line.write(not self._active_state)

    def close(self) -> None:
        self._line.close()


class CommandDisplay(DisplayActuator):
    """Runs on/off commands on a dedicated worker thread."""

    kind = "command"

    def __init__(self, on_command: List[str], off_command: List[str],
                 timeout: float = COMMAND_TIMEOUT):
        self._commands = {"on": list(on_command), "off": list(off_command)}
        self._timeout = timeout
        self._queue: Queue = Queue()
        self._thread: Optional[threading.Thread] = None
        self.failures = 0

    def on(self) -> None:
        self._submit("on")

    def off(self) -> None:
        self._submit("off")

    def _submit(self, action: str) -> None:
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(
                target=self._worker, daemon=True, name="display-cmd"
            )
            self._thread.start()
        self._queue.put(action)

    def _worker(self) -> None:
        while True:
            action = self._queue.get()
            if action is None:
                return
            self.run_command(action)

    def run_command(self, action: str) -> bool:
        """Run the command for `action` synchronously. Returns True on success."""
        cmd = self._commands[action]
        logger.debug("Display %s: %s", action, " ".join(cmd))
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error("Display %s command timed out after %ss", action, self._timeout)
        except (FileNotFoundError, PermissionError) as exc:
            logger.error("Display %s command failed to start: %s", action, exc)
        else:
            if result.returncode == 0:
                return True
            logger.warning(
                "Display %s command exited %d: %s",
                action, result.returncode, (result.stderr or "").strip(),
            )
        self.failures += 1
        return False

    def close(self, timeout: float = COMMAND_TIMEOUT) -> None:
        """Let queued commands finish, then stop the worker."""
        if self._thread and self._thread.is_alive():
            self._queue.put(None)
            self._thread.join(timeout)
        self._thread = None


def build_display(config, relay_line=None) -> DisplayActuator:
    """Pick the single write path for this configuration."""
    if config.relay_pin is not None:
        if relay_line is None:
            raise ValueError("relay_pin configured but no relay line supplied")
        return RelayDisplay(relay_line, config.relay_active_state)
    return CommandDisplay(config.display_on_command, config.display_off_command)
