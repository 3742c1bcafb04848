"""MQTT configuration and utilities."""

import json
import time
from dataclasses import dataclass
from typing import Optional

from .models import SensorReading


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""
    broker: str = "localhost"
    port: int = 1883
    client_id: str = "atc-mqtt"
    keepalive: int = 60
    qos: int = 1
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "MQTTConfig":
        """Create config from dictionary."""
        return cls(
            broker=data.get("broker", "localhost"),
            port=int(data.get("port", 1883)),
            client_id=data.get("client_id", "atc-mqtt"),
            keepalive=data.get("keepalive", 60),
            qos=data.get("qos", 1),
            username=data.get("username"),
            password=data.get("password"),
        )


def create_reading_payload(
    reading: SensorReading,
    timestamp: Optional[float] = None,
) -> str:
    """Create the MQTT state payload for a decoded reading.

    Args:
        reading: The reading to serialize.
        timestamp: Unix timestamp (defaults to current time).

    Returns:
        JSON string payload.
    """
    data = reading.as_dict()
    data["ts"] = timestamp or time.time()
    return json.dumps(data)

