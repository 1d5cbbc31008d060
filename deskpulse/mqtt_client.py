from __future__ import annotations

import json
import logging
import socket
import ssl
from typing import Any

import paho.mqtt.client as mqtt

from deskpulse.config import MqttConfig

# (object id, name, value template, unit, device class)
DISCOVERY_SENSORS = (
    ("battery_charge", "Battery charge", "{{ value_json.power.charge_pct | default(0) | round(0) }}", "%", "battery"),
    ("memory_used", "Memory used", "{{ value_json.memory.used_pct | round(1) }}", "%", None),
    ("network_in", "Network in", "{{ value_json.network.in_rate_bps | round(0) }}", "B/s", "data_rate"),
    ("network_out", "Network out", "{{ value_json.network.out_rate_bps | round(0) }}", "B/s", "data_rate"),
)


class MqttPublisher:
    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connected = False

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        if config.username:
            self.client.username_pw_set(config.username, config.password)
        if config.tls_enabled:
            self.client.tls_set(
                ca_certs=config.ca_cert,
                cert_reqs=ssl.CERT_REQUIRED,
            )

        self.client.will_set(
            self._availability_topic,
            payload="offline",
            qos=1,
            retain=True,
        )
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)

    @property
    def _availability_topic(self) -> str:
        return f"{self.config.base_topic}/status"

    @property
    def connected(self) -> bool:
        return self._connected

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if not reason_code.is_failure:
            self._connected = True
            self.logger.info(
                "Connected to MQTT broker %s:%s", self.config.host, self.config.port
            )
            self.client.publish(
                self._availability_topic,
                payload="online",
                qos=1,
                retain=True,
            )
        else:
            self._connected = False
            self.logger.error("Failed to connect to MQTT broker: %s", reason_code)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        self._connected = False
        if not reason_code.is_failure:
            self.logger.info("Disconnected from MQTT broker (clean)")
        else:
            self.logger.warning(
                "Unexpectedly disconnected from MQTT broker: %s. Will attempt to reconnect.",
                reason_code,
            )

    def connect(self) -> None:
        self.logger.info(
            "Connecting to MQTT broker %s:%s", self.config.host, self.config.port
        )
        # connect_async lets the network loop retry while the broker is unreachable.
        self.client.connect_async(
            self.config.host,
            self.config.port,
            keepalive=self.config.keepalive,
        )
        self.client.loop_start()

    def disconnect(self) -> None:
        if self._connected:
            self.client.publish(
                self._availability_topic,
                payload="offline",
                qos=1,
                retain=True,
            )
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info("Disconnected from MQTT broker")

    def publish_status(self, status: str) -> bool:
        """Publish ``status`` (``online``, ``sleeping``, ...) to the availability topic."""
        self.logger.info("Publishing status '%s' to %s", status, self._availability_topic)
        result = self.client.publish(
            self._availability_topic,
            payload=status,
            qos=1,
            retain=True,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error("Failed to publish status, error code: %s", result.rc)
            return False
        return True

    def publish(self, payload: str) -> bool:
        if not self._connected:
            self.logger.debug("Not connected to MQTT broker, message may be queued")
        self.logger.debug("Publishing readings payload to %s", self.config.base_topic)
        result = self.client.publish(
            self.config.base_topic,
            payload=payload,
            qos=self.config.qos,
            retain=self.config.retain,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error("Failed to publish message, error code: %s", result.rc)
            return False
        return True

    def publish_discovery(self) -> None:
        device_id = self.config.client_id
        device = {
            "identifiers": [device_id],
            "name": socket.gethostname(),
            "model": "deskpulse",
        }
        for object_id, name, template, unit, device_class in DISCOVERY_SENSORS:
            discovery_payload: dict[str, Any] = {
                "name": name,
                "unique_id": f"{device_id}_{object_id}",
                "state_topic": self.config.base_topic,
                "value_template": template,
                "unit_of_measurement": unit,
                "availability_topic": self._availability_topic,
                "payload_available": "online",
                "payload_not_available": "offline",
                "device": device,
            }
            if device_class:
                discovery_payload["device_class"] = device_class
            topic = f"{self.config.discovery_topic}/sensor/{device_id}/{object_id}/config"
            self.logger.debug("Publishing Home Assistant discovery to %s", topic)
            self.client.publish(
                topic,
                payload=json.dumps(discovery_payload),
                qos=self.config.qos,
                retain=True,
            )
