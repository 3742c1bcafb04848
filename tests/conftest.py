import struct
from typing import List, Optional

import pytest

from atcmqtt.shared.models import SensorReading


def make_frame(
    mac: bytes = bytes([0xFF, 0xEE, 0xDD, 0xCC, 0xBB, 0xAA]),
    temperature: int = 2150,
    humidity: int = 4520,
    battery_mv: int = 2980,
    battery_level: int = 87,
    counter: int = 3,
    flags: Optional[int] = 0x05,
) -> bytes:
    """Build a sensor frame with the MAC given low octet first."""
    frame = mac + struct.pack("<HHHBB", temperature, humidity, battery_mv, battery_level, counter)
    if flags is not None:
        frame += bytes([flags])
    return frame


def make_reading(mac: str = "aa:bb:cc:dd:ee:ff", counter: int = 0) -> SensorReading:
    return SensorReading(
        mac_address=mac,
        temperature=21.5,
        humidity=45.2,
        battery_voltage=2.98,
        battery_level=87,
        counter=counter,
    )


class FakePublisher:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.readings: List[SensorReading] = []

    def publish_reading(self, reading: SensorReading) -> bool:
        self.readings.append(reading)
        return self.succeed


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()
