"""MQTT client publishing presence state to a broker.

Home Assistant picks the sensor up through MQTT discovery:

  <discovery_prefix>/binary_sensor/<node_id>/motion/config   retained, JSON
  <availability_topic>                                        retained, online/offline
  <state_topic>                                               ON/OFF, not retained

The broker publishes "offline" through the Last Will if the connection
drops; close() publishes it explicitly on a clean shutdown. Connecting
is asynchronous (paho's own network thread) so a missing broker never
holds up the presence core.
"""

from __future__ import annotations

import json
import logging

import paho.mqtt.client as mqtt

from config import MqttConfig

logger = logging.getLogger(__name__)

ONLINE = "online"
OFFLINE = "offline"
STATE_ON = "ON"
STATE_OFF = "OFF"


class PresenceMqttClient:
    """Handles the broker connection and presence publishing."""

    def __init__(self, cfg: MqttConfig, client: mqtt.Client | None = None) -> None:
        self._cfg = cfg
        self._connected = False
        self._discovery_sent = False

        self._client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=cfg.client_id
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

        if cfg.username:
            self._client.username_pw_set(cfg.username, cfg.password or None)

        # Broker announces us offline if we drop without a clean close()
        self._client.will_set(cfg.availability_topic, OFFLINE, qos=1, retain=True)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def discovery_topic(self) -> str:
        return f"{self._cfg.discovery_prefix}/binary_sensor/{self._cfg.node_id}/motion/config"

    def discovery_payload(self) -> dict:
        node = self._cfg.node_id
        return {
            "name": "Motion",
            "unique_id": f"{node}_motion",
            "device_class": "motion",
            "state_topic": self._cfg.state_topic,
            "availability_topic": self._cfg.availability_topic,
            "payload_on": STATE_ON,
            "payload_off": STATE_OFF,
            "payload_available": ONLINE,
            "payload_not_available": OFFLINE,
            "device": {
                "identifiers": [node],
                "name": self._cfg.device_name,
                "manufacturer": "pir-display",
                "model": "PIR motion sensor",
            },
        }

    def connect(self) -> None:
        try:
            self._client.connect_async(self._cfg.host, self._cfg.port, keepalive=self._cfg.keepalive)
            self._client.loop_start()
            logger.info("MQTT connecting to %s:%d", self._cfg.host, self._cfg.port)
        except (OSError, ValueError) as e:
            logger.error("MQTT connection to %s:%d failed: %s", self._cfg.host, self._cfg.port, e)

    def close(self) -> None:
        if self._connected:
            self._publish(self._cfg.availability_topic, OFFLINE, qos=1, retain=True)
        try:
            self._client.disconnect()
            self._client.loop_stop()
        except Exception as e:
            logger.warning("MQTT disconnect error: %s", e)
        self._connected = False

    # Called on paho's network thread; only touches this object's flags.
    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection refused: %s", reason_code)
            return
        self._connected = True
        logger.info("MQTT connected to %s:%d", self._cfg.host, self._cfg.port)
        self._publish(self._cfg.availability_topic, ONLINE, qos=1, retain=True)
        if not self._discovery_sent:
            if self._publish(self.discovery_topic, json.dumps(self.discovery_payload()),
                             qos=1, retain=True):
                self._discovery_sent = True

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._connected = False
        if reason_code.is_failure:
            logger.warning("MQTT disconnected unexpectedly (%s), will auto-reconnect", reason_code)
        else:
            logger.info("MQTT disconnected")

    def publish_state(self, active: bool) -> bool:
        return self._publish(self._cfg.state_topic, STATE_ON if active else STATE_OFF)

    def _publish(self, topic: str, payload: str, qos: int = 0, retain: bool = False) -> bool:
        if not self._connected:
            logger.debug("MQTT offline, dropped %s -> %s", topic, payload)
            return False
        try:
            info = self._client.publish(topic, payload, qos=qos, retain=retain)
        except (OSError, ValueError) as e:
            logger.warning("MQTT publish to %s failed: %s", topic, e)
            return False
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("MQTT publish to %s failed: %s", topic, mqtt.error_string(info.rc))
            return False
        return True
