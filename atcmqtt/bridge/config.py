"""Configuration loading for the ATC MQTT bridge."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from atcmqtt.shared.config import get_log_level, load_yaml_config
from atcmqtt.shared.mqtt import MQTTConfig

from .filters import normalize_mac


@dataclass
class BLEConfig:
    """BLE scanning configuration."""
    adapter: Optional[str] = None
    scanning_mode: str = "active"
    only_configured_devices: bool = False


@dataclass
class TopicsConfig:
    """MQTT topic layout."""
    base_topic: str = "atc"
    availability_topic: str = "atc/bridge/availability"
    discovery_prefix: str = "homeassistant"


@dataclass
class HomeAssistantConfig:
    """Home-Assistant MQTT discovery settings."""
    enabled: bool = False
    manufacturer: str = "ATC"


@dataclass
class DeviceConfig:
    """A known thermometer."""
    mac: str
    name: str


@dataclass
class Config:
    """Main configuration."""
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    ble: BLEConfig = field(default_factory=BLEConfig)
    topics: TopicsConfig = field(default_factory=TopicsConfig)
    homeassistant: HomeAssistantConfig = field(default_factory=HomeAssistantConfig)
    devices: List[DeviceConfig] = field(default_factory=list)
    signed_temperature: bool = False
    max_devices: Optional[int] = None
    status_interval: float = 300.0
    log_level: str = "INFO"

    def device_names(self) -> Dict[str, str]:
        """Map configured MAC addresses to display names."""
        return {device.mac: device.name for device in self.devices}

    def allow_list(self) -> Optional[Set[str]]:
        """Get the addresses to forward, or None to forward every sensor."""
        if not self.ble.only_configured_devices:
            return None
        return {device.mac for device in self.devices}

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create config from dictionary."""
        ble_data = data.get("ble") or {}
        topics_data = data.get("topics") or {}
        ha_data = data.get("homeassistant") or {}
        decoder_data = data.get("decoder") or {}
        dedup_data = data.get("dedup") or {}

        devices = []
        for index, entry in enumerate(data.get("devices") or []):
            if not isinstance(entry, dict) or "mac" not in entry:
                raise ValueError(f"devices[{index}] must be a dict with 'mac' and 'name'")
            mac = normalize_mac(str(entry["mac"]))
            devices.append(DeviceConfig(mac=mac, name=entry.get("name") or mac))

        base_topic = topics_data.get("base_topic", "atc")
        return cls(
            mqtt=MQTTConfig.from_dict(data.get("mqtt") or {}),
            ble=BLEConfig(
                adapter=ble_data.get("adapter"),
                scanning_mode=ble_data.get("scanning_mode", "active"),
                only_configured_devices=ble_data.get("only_configured_devices", False),
            ),
            topics=TopicsConfig(
                base_topic=base_topic,
                availability_topic=topics_data.get(
                    "availability_topic", f"{base_topic}/bridge/availability"
                ),
                discovery_prefix=topics_data.get("discovery_prefix", "homeassistant"),
            ),
            homeassistant=HomeAssistantConfig(
                enabled=ha_data.get("enabled", False),
                manufacturer=ha_data.get("manufacturer", "ATC"),
            ),
            devices=devices,
            signed_temperature=decoder_data.get("signed_temperature", False),
            max_devices=dedup_data.get("max_devices"),
            status_interval=data.get("status_interval", 300.0),
            log_level=get_log_level(data),
        )


def load_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to config file. If None, uses $ATC_MQTT_CONFIG or
                     config/atc-mqtt.yaml in the repo root.

    Returns:
        Config object with loaded settings.
    """
    config = Config.from_dict(load_yaml_config(config_path))

    # Environment variable overrides
    if mqtt_broker := os.environ.get("MQTT_BROKER"):
        config.mqtt.broker = mqtt_broker
    if mqtt_port := os.environ.get("MQTT_PORT"):
        config.mqtt.port = int(mqtt_port)
    if mqtt_username := os.environ.get("MQTT_USERNAME"):
        config.mqtt.username = mqtt_username
    if mqtt_password := os.environ.get("MQTT_PASSWORD"):
        config.mqtt.password = mqtt_password

    return config
