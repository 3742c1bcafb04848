"""Shared utilities for the ATC MQTT bridge."""

from .models import SensorReading
from .config import load_yaml_config, get_config_path
from .mqtt import MQTTConfig
from .logging import setup_logging

__all__ = [
    "SensorReading",
    "load_yaml_config",
    "get_config_path",
    "MQTTConfig",
    "setup_logging",
]
