"""Base line class for PIR Display.

Every GPIO line the controller touches (PIR sensor, override switches,
relay) inherits from BaseLine. Subclasses only claim the hardware and
read or write it; the base class provides the shared retry and
error-reporting logic.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import time
import logging

logger = logging.getLogger(__name__)


class BaseLine(ABC):
    """Abstract base class for a single digital GPIO line.

    Subclasses must implement:
        _init_hardware()  - claim the line; set self._hw_available = True on success
        _read_hardware()  - return the raw level (True = HIGH), or None on failure

    The base class provides:
        read()            - raw read with retry logic; None once retries are exhausted
        available         - whether the line was claimed successfully
        error             - text of the most recent failure, if any
        close()           - release resources (override if needed)
    """

    MAX_RETRIES: int = 2
    RETRY_DELAY: float = 0.01  # seconds; must stay well under the 200 ms sample period

    def __init__(self, pin: int, cfg: Optional[Dict[str, Any]] = None):
        self.pin = pin
        self._cfg = cfg or {}
        self._hw_available = False
        self._consecutive_failures = 0
        self.error: Optional[str] = None

        try:
            self._init_hardware()
        except Exception as exc:
            logger.warning(
                "%s: hardware init failed on pin %s - %s",
                self.__class__.__name__, pin, exc,
            )
            self.error = str(exc)
            self._hw_available = False

        if not self._hw_available and self.error is None:
            self.error = f"GPIO {pin} unavailable"

    @property
    def chip(self) -> Optional[str]:
        return self._cfg.get("chip")

    @abstractmethod
    def _init_hardware(self) -> None:
        ...

    def _read_hardware(self) -> Optional[bool]:
        raise NotImplementedError(f"{self.__class__.__name__} is not readable")

    @property
    def available(self) -> bool:
        return self._hw_available

    def read(self) -> Optional[bool]:
        """Read the raw line level with retry logic.

        Returns:
            True/False on success, None when the line is unavailable or
            every retry failed.
        """
        if not self._hw_available:
            return None

        last_exc = None
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                result = self._read_hardware()
                if result is not None:
                    self._consecutive_failures = 0
                    return result
            except Exception as exc:
                last_exc = exc
            if attempt < self.MAX_RETRIES:
                time.sleep(self.RETRY_DELAY)

        self._consecutive_failures += 1
        self.error = str(last_exc or "returned None")
        logger.warning(
            "%s: read failed on GPIO %s (%d consecutive) - %s",
            self.__class__.__name__, self.pin,
            self._consecutive_failures, self.error,
        )
        return None

    def close(self) -> None:
        """Release hardware resources. Override in subclasses that hold GPIO lines."""
        pass

    def __repr__(self) -> str:
        status = "live" if self._hw_available else "unavailable"
        return f"<{self.__class__.__name__} pin={self.pin} {status}>"
