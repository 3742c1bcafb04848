"""Decoder for the thermometer's custom service-data frame.

All fields are little endian::

    [0:6]   MAC address, low octet first
    [6:8]   temperature     x 0.01 degC
    [8:10]  humidity        x 0.01 %
    [10:12] battery         mV
    [12]    battery level   0..100 %
    [13]    measurement counter
    [14]    flags (unused)
"""

import struct

from atcmqtt.shared.models import SensorReading

FRAME_LENGTH = 14

_UNSIGNED_LAYOUT = struct.Struct("<6sHHHBB")
_SIGNED_LAYOUT = struct.Struct("<6shHHBB")


class MalformedFrameError(ValueError):
    """Raised when a payload cannot hold a sensor frame."""

    def __init__(self, length: int):
        super().__init__(
            f"Sensor frame needs at least {FRAME_LENGTH} bytes, got {length}"
        )
        self.length = length


def format_mac(raw: bytes) -> str:
    """Render a low-octet-first address as ``aa:bb:cc:dd:ee:ff``."""
    return ":".join(f"{octet:02x}" for octet in reversed(raw))


def decode_frame(data: bytes, signed_temperature: bool = False) -> SensorReading:
    """Decode a service-data payload into a SensorReading.

    Args:
        data: Raw payload, at least 14 bytes. Anything after byte 13 is ignored.
        signed_temperature: Interpret the temperature field as int16. The
            default reassembles it as uint16, matching the sensors' documented
            wire behaviour, so sub-zero readings come out as large positives.

    Returns:
        The decoded reading.

    Raises:
        MalformedFrameError: If fewer than 14 bytes were supplied.
    """
    if len(data) < FRAME_LENGTH:
        raise MalformedFrameError(len(data))

    layout = _SIGNED_LAYOUT if signed_temperature else _UNSIGNED_LAYOUT
    mac, temperature, humidity, battery_mv, battery_level, counter = layout.unpack_from(
        bytes(data)
    )

    return SensorReading(
        mac_address=format_mac(mac),
        temperature=temperature / 100,
        humidity=humidity / 100,
        battery_voltage=battery_mv / 1000,
        battery_level=battery_level,
        counter=counter,
    )
