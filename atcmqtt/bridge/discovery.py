"""Home-Assistant MQTT discovery descriptors for configured thermometers."""

import json
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .config import DeviceConfig, TopicsConfig


@dataclass(frozen=True)
class SensorKind:
    """One measured quantity exposed as a Home-Assistant sensor."""
    key: str
    label: str
    unit: str
    device_class: str
    value_field: str


TEMPERATURE = SensorKind("temperature", "Temperature", "°C", "temperature", "temperature")
HUMIDITY = SensorKind("humidity", "Humidity", "%", "humidity", "humidity")
BATTERY_VOLTAGE = SensorKind("battery_voltage", "Battery voltage", "V", "voltage", "battery_voltage")
BATTERY_LEVEL = SensorKind("battery_level", "Battery", "%", "battery", "battery_level")

SENSOR_KINDS: Tuple[SensorKind, ...] = (TEMPERATURE, HUMIDITY, BATTERY_VOLTAGE, BATTERY_LEVEL)


@dataclass(frozen=True)
class DeviceInfo:
    """Device registry entry grouping the four sensors of a thermometer."""
    manufacturer: str
    name: str
    identifiers: Tuple[str, ...]


@dataclass(frozen=True)
class DiscoveryDescriptor:
    """Payload of a single sensor's discovery config message."""
    name: str
    state_topic: str
    availability_topic: str
    unit_of_measurement: str
    device_class: str
    value_template: str
    unique_id: str
    device: DeviceInfo
    state_class: str = "measurement"

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["device"]["identifiers"] = list(self.device.identifiers)
        return data


@dataclass(frozen=True)
class DiscoveryMessage:
    """A retained config message ready to publish."""
    topic: str
    payload: str


def device_id(mac: str) -> str:
    """Get the identifier used in unique IDs and topics for an address."""
    return mac.replace(":", "").lower()


def build_descriptor(
    device: DeviceConfig,
    kind: SensorKind,
    state_topic: str,
    availability_topic: str,
    manufacturer: str,
) -> DiscoveryDescriptor:
    """Build the descriptor for one sensor of one device."""
    ident = device_id(device.mac)
    return DiscoveryDescriptor(
        name=f"{device.name} {kind.label}",
        state_topic=state_topic,
        availability_topic=availability_topic,
        unit_of_measurement=kind.unit,
        device_class=kind.device_class,
        value_template=f"{{{{ value_json.{kind.value_field} }}}}",
        unique_id=f"{ident}_{kind.key}",
        device=DeviceInfo(
            manufacturer=manufacturer,
            name=device.name,
            identifiers=(ident,),
        ),
    )


def build_discovery_messages(
    devices: Iterable[DeviceConfig],
    topics: TopicsConfig,
    state_topic: Callable[[str], str],
    manufacturer: str = "ATC",
) -> List[DiscoveryMessage]:
    """Build four discovery messages per device.

    Args:
        devices: Configured thermometers.
        topics: Topic layout, for the discovery prefix and availability topic.
        state_topic: Maps a MAC address to the topic its readings go to.
        manufacturer: Manufacturer shown in the device registry.

    Returns:
        Messages for {discovery_prefix}/sensor/{unique_id}/config.
    """
    messages = []
    for device in devices:
        for kind in SENSOR_KINDS:
            descriptor = build_descriptor(
                device,
                kind,
                state_topic=state_topic(device.mac),
                availability_topic=topics.availability_topic,
                manufacturer=manufacturer,
            )
            topic = f"{topics.discovery_prefix}/sensor/{descriptor.unique_id}/config"
            messages.append(DiscoveryMessage(topic, json.dumps(descriptor.as_dict())))
    return messages
