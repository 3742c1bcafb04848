"""Predicates deciding which service-data entries reach the decoder."""

import uuid
from typing import Optional, Set, Union

# 16-bit Environmental Sensing service UUID, as it appears in the key octets
SENSOR_MAGIC = b"\x18\x1a"


def is_sensor_frame(service_data_key: bytes) -> bool:
    """Check whether a service-data key carries the sensor marker.

    The marker may sit at any offset, so both 16-bit and expanded 128-bit
    UUID keys are recognized.
    """
    return SENSOR_MAGIC in bytes(service_data_key)


def is_allowed(mac_address: str, allow_list: Optional[Set[str]]) -> bool:
    """Check a decoded address against an optional allow-list."""
    if allow_list is None:
        return True
    return mac_address in allow_list


def uuid_key_bytes(key: Union[str, bytes]) -> bytes:
    """Convert a service-data key into the octets the marker is matched against.

    Bleak reports keys as UUID strings; raw bytes pass through unchanged.
    """
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    try:
        return uuid.UUID(key).bytes
    except ValueError:
        pass
    try:
        return bytes.fromhex(key)
    except ValueError:
        return key.encode("utf-8")


def normalize_mac(mac: str) -> str:
    """Bring a configured address into the decoder's canonical form."""
    return mac.strip().lower().replace("-", ":")
