"""GPIO utilities for PIR Display.

Raspberry Pi GPIO pins are accessed through the gpiod library, which talks
to the kernel's GPIO character device (/dev/gpiochipN).

Each Pi model has one or more GPIO chips:
  Pi 3B/3B+/4  ->  /dev/gpiochip0  (BCM2835/BCM2711, 54 lines)
  Pi 5         ->  /dev/gpiochip4  (RP1, 54 lines)

We auto-detect the correct chip unless the config names one explicitly.
"""

import logging

import gpiod
from gpiod.line import Bias, Direction, Value

logger = logging.getLogger(__name__)

CONSUMER = "pir-display"
CANDIDATE_CHIPS = ["/dev/gpiochip0", "/dev/gpiochip4"]

# Cached chip path - detected once at first use
_chip_path = None


def get_chip_path(preferred=None):
    """Return the GPIO chip to use.

    An explicit path (from config) wins. Otherwise pick the first chip
    with >= 28 GPIO lines.
    """
    global _chip_path
    if preferred:
        return preferred
    if _chip_path is not None:
        return _chip_path

    for path in CANDIDATE_CHIPS:
        try:
            with gpiod.Chip(path) as chip:
                if chip.get_info().num_lines >= 28:
                    _chip_path = path
                    logger.debug("Using GPIO chip %s", path)
                    return path
        except (OSError, PermissionError):
            continue

    # Fallback
    _chip_path = CANDIDATE_CHIPS[0]
    return _chip_path


def reset_chip_cache():
    global _chip_path
    _chip_path = None


def request_input_line(pin, bias=Bias.AS_IS, chip=None):
    """Request a single GPIO line configured as input.

    Args:
        pin:  BCM GPIO number (e.g. 22, 23)
        bias: Internal pull resistor setting
        chip: Optional chip path overriding auto-detection

    Returns:
        gpiod.LineRequest on success, None on failure.
    """
    try:
        return gpiod.request_lines(
            get_chip_path(chip),
            consumer=CONSUMER,
            config={
                pin: gpiod.LineSettings(
                    direction=Direction.INPUT,
                    bias=bias,
                ),
            },
        )
    except (OSError, ValueError) as e:
        logger.error("GPIO %s: input request failed - %s", pin, e)
        return None


def request_output_line(pin, initial=False, chip=None):
    """Request a single GPIO line configured as output.

    Args:
        pin:     BCM GPIO number
        initial: Level driven as soon as the line is claimed
        chip:    Optional chip path overriding auto-detection

    Returns:
        gpiod.LineRequest on success, None on failure.
    """
    try:
        return gpiod.request_lines(
            get_chip_path(chip),
            consumer=CONSUMER,
            config={
                pin: gpiod.LineSettings(
                    direction=Direction.OUTPUT,
                    output_value=Value.ACTIVE if initial else Value.INACTIVE,
                ),
            },
        )
    except (OSError, ValueError) as e:
        logger.error("GPIO %s: output request failed - %s", pin, e)
        return None


def read_line(request, pin):
    """Read a digital value from a GPIO line.

    Returns True for HIGH / ACTIVE, False for LOW / INACTIVE.
    """
    return request.get_value(pin) == Value.ACTIVE


def write_line(request, pin, value):
    """Set a digital output on a GPIO line.

    Args:
        request: gpiod.LineRequest from request_output_line()
        pin:     BCM GPIO number
        value:   True for HIGH, False for LOW
    """
    request.set_value(pin, Value.ACTIVE if value else Value.INACTIVE)
