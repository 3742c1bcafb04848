"""Core data models for sensor readings."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class SensorReading:
    """A single decoded measurement broadcast by a thermometer.

    Values are already scaled to their physical units.
    """
    mac_address: str
    temperature: float
    humidity: float
    battery_voltage: float
    battery_level: int
    counter: int

    def as_dict(self) -> Dict[str, Any]:
        """Return the fields as a JSON-serializable mapping."""
        return {
            "mac": self.mac_address,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "battery_voltage": self.battery_voltage,
            "battery_level": self.battery_level,
            "counter": self.counter,
        }
