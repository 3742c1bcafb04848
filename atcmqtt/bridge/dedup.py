"""Suppression of repeated advertisements of the same measurement."""

import logging
import threading
from collections import OrderedDict
from typing import Dict, Optional

from atcmqtt.shared.models import SensorReading

logger = logging.getLogger(__name__)


def admit(state: Dict[str, int], reading: SensorReading) -> bool:
    """Decide whether a reading is a new measurement, updating state in place.

    The first sighting of an address is always admitted. After that a
    reading is admitted whenever its counter differs from the last one
    stored, which also covers the 255 -> 0 wrap.

    Args:
        state: Mapping from MAC address to last seen counter.
        reading: The decoded reading.

    Returns:
        True if the reading should be forwarded, False for a repeat.
    """
    previous = state.get(reading.mac_address)
    if previous is not None and previous == reading.counter:
        return False
    state[reading.mac_address] = reading.counter
    return True


class DedupGate:
    """Per-device counter tracker shared by every advertisement consumer."""

    def __init__(self, max_devices: Optional[int] = None):
        """Initialize the gate.

        Args:
            max_devices: Evict the least recently seen address once more than
                this many are tracked. None keeps every address for the
                lifetime of the process.
        """
        if max_devices is not None and max_devices < 1:
            raise ValueError("max_devices must be at least 1")
        self.max_devices = max_devices
        self._counters: "OrderedDict[str, int]" = OrderedDict()
        self._lock = threading.Lock()

    def admit(self, reading: SensorReading) -> bool:
        """Thread-safe wrapper around admit() on the gate's own state."""
        with self._lock:
            admitted = admit(self._counters, reading)
            if self.max_devices is not None:
                self._counters.move_to_end(reading.mac_address)
                while len(self._counters) > self.max_devices:
                    evicted, _ = self._counters.popitem(last=False)
                    logger.debug(f"Evicted {evicted} from dedup state")
            return admitted

    def forget(self, mac_address: str) -> None:
        """Drop the stored counter for an address."""
        with self._lock:
            self._counters.pop(mac_address, None)

    def last_counter(self, mac_address: str) -> Optional[int]:
        """Get the last admitted counter for an address."""
        with self._lock:
            return self._counters.get(mac_address)

    def __contains__(self, mac_address: str) -> bool:
        with self._lock:
            return mac_address in self._counters

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)
