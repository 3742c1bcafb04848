"""MQTT publisher for decoded thermometer readings."""

import logging
import re
import threading
from typing import Dict, Iterable, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from atcmqtt.shared.models import SensorReading
from atcmqtt.shared.mqtt import MQTTConfig, create_reading_payload

from .config import TopicsConfig
from .discovery import DiscoveryMessage, device_id

logger = logging.getLogger(__name__)

ONLINE = "online"
OFFLINE = "offline"


def slugify(name: str) -> str:
    """Turn a display name into a topic level."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


class MQTTPublisher:
    """Publishes sensor readings to MQTT broker."""

    def __init__(
        self,
        config: MQTTConfig,
        topics: Optional[TopicsConfig] = None,
        device_names: Optional[Dict[str, str]] = None,
    ):
        """Initialize MQTT publisher.

        Args:
            config: MQTT configuration.
            topics: Topic layout.
            device_names: Display names keyed by MAC address.
        """
        self.config = config
        self.topics = topics or TopicsConfig()
        self.device_names = device_names or {}
        self.client: Optional[mqtt.Client] = None
        self._connected = False
        self._connect_event = threading.Event()

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Handle connection to broker."""
        if reason_code == 0:
            logger.info(
                f"Connected to MQTT broker at {self.config.broker}:{self.config.port}"
            )
            self._connected = True
            client.publish(self.topics.availability_topic, ONLINE, qos=1, retain=True)
        else:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            self._connected = False
        self._connect_event.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        """Handle disconnection from broker."""
        self._connected = False
        if reason_code != 0:
            logger.warning(f"Unexpected MQTT disconnection (reason={reason_code})")
        else:
            logger.info("Disconnected from MQTT broker")

    def connect(self, timeout: float = 10.0) -> bool:
        """Connect to the MQTT broker.

        Args:
            timeout: Timeout in seconds to wait for connection.

        Returns:
            True if connected successfully, False otherwise.
        """
        self._connect_event.clear()

        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=self.config.client_id,
        )
        if self.config.username:
            self.client.username_pw_set(self.config.username, self.config.password)
        self.client.will_set(self.topics.availability_topic, OFFLINE, qos=1, retain=True)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        logger.info(
            f"Connecting to MQTT broker at {self.config.broker}:{self.config.port}"
        )

        try:
            self.client.connect(
                self.config.broker, self.config.port, keepalive=self.config.keepalive
            )
            self.client.loop_start()

            # Wait for connection callback
            if self._connect_event.wait(timeout=timeout):
                if self._connected:
                    return True
            else:
                logger.error("Timeout waiting for MQTT connection")
        except OSError as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")

        self.client.loop_stop()
        return False

    def disconnect(self):
        """Mark the bridge offline and disconnect from the MQTT broker."""
        if self.client:
            if self._connected:
                info = self.client.publish(
                    self.topics.availability_topic, OFFLINE, qos=1, retain=True
                )
                if info.rc == mqtt.MQTT_ERR_SUCCESS:
                    info.wait_for_publish(timeout=2.0)
            self.client.disconnect()
            self.client.loop_stop()
            self.client = None
            self._connected = False

    def state_topic(self, mac_address: str) -> str:
        """Get the topic readings of a device are published to."""
        name = self.device_names.get(mac_address)
        slug = slugify(name) if name else ""
        return f"{self.topics.base_topic}/{slug or device_id(mac_address)}"

    def _publish(self, topic: str, payload: str, retain: bool = False) -> bool:
        if not self._connected or not self.client:
            logger.warning(f"Not connected to MQTT broker, cannot publish to {topic}")
            return False

        result = self.client.publish(topic, payload, qos=self.config.qos, retain=retain)
        if result.rc == mqtt.MQTT_ERR_SUCCESS:
            logger.debug(f"Published to {topic}: {payload}")
            return True
        logger.warning(f"Failed to publish to {topic}: rc={result.rc}")
        return False

    def publish_reading(self, reading: SensorReading) -> bool:
        """Publish a sensor reading to MQTT.

        Args:
            reading: The decoded reading.

        Returns:
            True if the client accepted the message.
        """
        logger.info(f"Publishing: {reading.temperature} for {reading.mac_address}")
        return self._publish(
            self.state_topic(reading.mac_address), create_reading_payload(reading)
        )

    def publish_discovery(self, messages: Iterable[DiscoveryMessage]) -> int:
        """Publish retained discovery config messages.

        Returns:
            Number of messages accepted by the client.
        """
        published = 0
        for message in messages:
            if self._publish(message.topic, message.payload, retain=True):
                published += 1
        return published

    @property
    def is_connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected
