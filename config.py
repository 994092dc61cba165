"""PIR Display - Configuration

Pin numbers use BCM (Broadcom) numbering scheme, the same numbers
libgpiod uses for line offsets on the main GPIO chip.

Typical wiring (all optional except the sensor):
  BCM 22 = Physical Pin 15  (PIR output)
  BCM 17 = Physical Pin 11  (relay coil driver)
  BCM 23 = Physical Pin 16  (always-on switch)
  BCM 24 = Physical Pin 18  (always-off switch)

Configuration arrives once at startup, either from the YAML file named
on the command line or from the host layer (POST /api/config). Keys may
be written in snake_case or in the legacy camelCase form, e.g.
``sensor_pin`` or ``sensorPin``.

Example pir.yaml:

    sensor_pin: 22
    sensor_active_state: 1
    relay_pin: false
    power_saving: true
    power_saving_delay: 60
    prevent_display_timeout: 5
    mqtt:
      host: 192.168.1.10
      base_topic: mirror/pir
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Timing constants (seconds)
# ---------------------------------------------------------------------------
SAMPLE_INTERVAL = 0.2       # line polling period
MOTION_HOLD = 10.0          # sensor must stay quiet this long before "motion ended"
KEEPALIVE_PULSE = 1.0       # on -> off gap of a keep-alive pulse
STATE_REFRESH = 1.0         # MQTT "ON" republish period while motion is active
SIMULATOR_PERIOD = 20.0
SIMULATOR_PULSE = 1.0

ALERT_DISPLAY_MS = 4000

# Keep-alive period must fall strictly inside this range (minutes)
KEEPALIVE_MIN_MINUTES = 0
KEEPALIVE_MAX_MINUTES = 10

DEFAULT_CONFIG_FILE = "pir.yaml"

DISPLAY_ON_COMMAND = ["xrandr", "--display", ":0", "--output", "HDMI-1", "--auto"]
DISPLAY_OFF_COMMAND = ["xrandr", "--display", ":0", "--output", "HDMI-1", "--off"]

# Legacy camelCase keys -> canonical keys
LEGACY_KEYS = {
    "sensorPin": "sensor_pin",
    "sensorState": "sensor_active_state",
    "relayPin": "relay_pin",
    "relayState": "relay_active_state",
    "alwaysOnPin": "always_on_pin",
    "alwaysOnState": "always_on_active_state",
    "alwaysOffPin": "always_off_pin",
    "alwaysOffState": "always_off_active_state",
    "powerSaving": "power_saving",
    "powerSavingDelay": "power_saving_delay",
    "preventHDMITimeout": "prevent_display_timeout",
    "runSimulator": "run_simulator",
}

DEFAULTS: Dict[str, Any] = {
    "sensor_pin": 22,
    "sensor_active_state": 1,
    "relay_pin": None,
    "relay_active_state": 1,
    "always_on_pin": None,
    "always_on_active_state": 1,
    "always_off_pin": None,
    "always_off_active_state": 1,
    "power_saving": True,
    "power_saving_delay": 0,
    "prevent_display_timeout": 0,
    "run_simulator": False,
    "chip": None,
    "display_on_command": DISPLAY_ON_COMMAND,
    "display_off_command": DISPLAY_OFF_COMMAND,
    "mqtt": None,
}


class ConfigError(ValueError):
    """Raised when a configuration document cannot be turned into a Config."""


@dataclass(frozen=True)
class MqttConfig:
    host: str
    port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = "pir-display"
    base_topic: str = "pir-display"
    state_topic: str = ""
    availability_topic: str = ""
    discovery_prefix: str = "homeassistant"
    device_name: str = "PIR Display"
    keepalive: int = 60

    def __post_init__(self):
        # Frozen dataclass: derived topics are filled in through object.__setattr__
        if not self.state_topic:
            object.__setattr__(self, "state_topic", f"{self.base_topic}/state")
        if not self.availability_topic:
            object.__setattr__(
                self, "availability_topic", f"{self.base_topic}/availability"
            )

    @property
    def node_id(self) -> str:
        return self.client_id.replace("/", "_").replace(" ", "_")


@dataclass(frozen=True)
class Config:
    """Immutable runtime configuration. Built once by parse_config()."""

    sensor_pin: int
    sensor_active_state: bool = True
    relay_pin: Optional[int] = None
    relay_active_state: bool = True
    always_on_pin: Optional[int] = None
    always_on_active_state: bool = True
    always_off_pin: Optional[int] = None
    always_off_active_state: bool = True
    power_saving: bool = True
    power_saving_delay: float = 0.0
    prevent_display_timeout: float = 0.0
    run_simulator: bool = False
    chip: Optional[str] = None
    display_on_command: List[str] = field(default_factory=lambda: list(DISPLAY_ON_COMMAND))
    display_off_command: List[str] = field(default_factory=lambda: list(DISPLAY_OFF_COMMAND))
    mqtt: Optional[MqttConfig] = None

    @property
    def keepalive_enabled(self) -> bool:
        """True when the keep-alive pulse period is inside (0, 10) minutes."""
        return KEEPALIVE_MIN_MINUTES < self.prevent_display_timeout < KEEPALIVE_MAX_MINUTES

    @property
    def keepalive_interval(self) -> float:
        """Keep-alive pulse period in seconds."""
        return self.prevent_display_timeout * 60

    def as_dict(self) -> Dict[str, Any]:
        data = {
            "sensor_pin": self.sensor_pin,
            "sensor_active_state": self.sensor_active_state,
            "relay_pin": self.relay_pin,
            "relay_active_state": self.relay_active_state,
            "always_on_pin": self.always_on_pin,
            "always_on_active_state": self.always_on_active_state,
            "always_off_pin": self.always_off_pin,
            "always_off_active_state": self.always_off_active_state,
            "power_saving": self.power_saving,
            "power_saving_delay": self.power_saving_delay,
            "prevent_display_timeout": self.prevent_display_timeout,
            "run_simulator": self.run_simulator,
            "chip": self.chip,
            "display_on_command": list(self.display_on_command),
            "display_off_command": list(self.display_off_command),
            "mqtt": None,
        }
        if self.mqtt:
            data["mqtt"] = {
                "host": self.mqtt.host,
                "port": self.mqtt.port,
                "client_id": self.mqtt.client_id,
                "state_topic": self.mqtt.state_topic,
                "availability_topic": self.mqtt.availability_topic,
            }
        return data


# ---------------------------------------------------------------------------
# Loading / parsing
# ---------------------------------------------------------------------------


def load_config(path: str) -> Dict:
    """Load the raw configuration mapping from a YAML file."""
    import yaml
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Config file not found: %s", path)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _normalize_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in raw.items():
        out[LEGACY_KEYS.get(key, key)] = value
    return out


def _pin(value: Any, name: str) -> Optional[int]:
    """Return a BCM pin number, or None for an unconfigured pin."""
    if value is None or value is False:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"{name}: expected a pin number or false, got {value!r}")
    try:
        pin = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name}: expected a pin number, got {value!r}")
    return pin if pin >= 0 else None


def _state(value: Any, name: str) -> bool:
    """Active level: 1/0, true/false or "high"/"low"."""
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("1", "high", "true", "on"):
            return True
        if v in ("0", "low", "false", "off"):
            return False
        raise ConfigError(f"{name}: unknown line state {value!r}")
    if isinstance(value, (bool, int)):
        return bool(value)
    raise ConfigError(f"{name}: unknown line state {value!r}")


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name}: expected a number, got {value!r}")
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        raise ConfigError(f"{name}: expected a number, got {value!r}")


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _command(value: Any, name: str) -> List[str]:
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)) and value and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"{name}: expected a command string or list of arguments")


def _parse_mqtt(raw: Any) -> Optional[MqttConfig]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise ConfigError("mqtt: expected a mapping")
    if not raw.get("host"):
        raise ConfigError("mqtt: 'host' is required")

    known = MqttConfig.__dataclass_fields__
    unknown = sorted(set(raw) - set(known))
    if unknown:
        logger.warning("mqtt: ignoring unknown keys %s", ", ".join(unknown))

    kwargs = {k: v for k, v in raw.items() if k in known and v is not None}
    try:
        kwargs["port"] = int(kwargs.get("port", 1883))
        kwargs["keepalive"] = int(kwargs.get("keepalive", 60))
    except (TypeError, ValueError):
        raise ConfigError("mqtt: 'port' and 'keepalive' must be integers")
    for key in ("username", "password"):
        if key in kwargs:
            kwargs[key] = str(kwargs[key])
    return MqttConfig(**kwargs)


def parse_config(raw: Optional[Dict[str, Any]]) -> Config:
    """Validate a raw configuration mapping and build a Config.

    Missing keys fall back to DEFAULTS. Unknown keys are logged and ignored.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("configuration must be a mapping")

    merged = dict(DEFAULTS)
    supplied = _normalize_keys(raw)
    unknown = sorted(set(supplied) - set(DEFAULTS))
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
    merged.update({k: v for k, v in supplied.items() if k in DEFAULTS})

    sensor_pin = _pin(merged["sensor_pin"], "sensor_pin")
    if sensor_pin is None:
        raise ConfigError("sensor_pin is required")

    return Config(
        sensor_pin=sensor_pin,
        sensor_active_state=_state(merged["sensor_active_state"], "sensor_active_state"),
        relay_pin=_pin(merged["relay_pin"], "relay_pin"),
        relay_active_state=_state(merged["relay_active_state"], "relay_active_state"),
        always_on_pin=_pin(merged["always_on_pin"], "always_on_pin"),
        always_on_active_state=_state(merged["always_on_active_state"], "always_on_active_state"),
        always_off_pin=_pin(merged["always_off_pin"], "always_off_pin"),
        always_off_active_state=_state(merged["always_off_active_state"], "always_off_active_state"),
        power_saving=_flag(merged["power_saving"]),
        power_saving_delay=max(0.0, _number(merged["power_saving_delay"], "power_saving_delay")),
        prevent_display_timeout=_number(merged["prevent_display_timeout"], "prevent_display_timeout"),
        run_simulator=_flag(merged["run_simulator"]),
        chip=merged["chip"] or None,
        display_on_command=_command(merged["display_on_command"], "display_on_command"),
        display_off_command=_command(merged["display_off_command"], "display_off_command"),
        mqtt=_parse_mqtt(merged["mqtt"]),
    )
