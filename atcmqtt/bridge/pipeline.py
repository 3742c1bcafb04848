"""Filter -> decode -> dedup pipeline over advertisement events."""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Protocol, Set

from atcmqtt.shared.models import SensorReading

from .dedup import DedupGate
from .filters import is_allowed, is_sensor_frame
from .frame import MalformedFrameError, decode_frame

logger = logging.getLogger(__name__)


@dataclass
class AdvertisementEvent:
    """Service data seen in one advertisement."""
    address: str
    service_data: Dict[bytes, bytes]
    rssi: Optional[int] = None


class Publisher(Protocol):
    """Anything that can deliver a reading to the message bus."""

    def publish_reading(self, reading: SensorReading) -> bool:
        ...


@dataclass
class PipelineStats:
    """Running totals for status logging."""
    events_seen: int = 0
    frames_decoded: int = 0
    frames_malformed: int = 0
    filtered: int = 0
    duplicates: int = 0
    published: int = 0
    publish_failures: int = 0

    def summary(self) -> str:
        return (
            f"events={self.events_seen} decoded={self.frames_decoded} "
            f"malformed={self.frames_malformed} filtered={self.filtered} "
            f"duplicates={self.duplicates} published={self.published} "
            f"publish_failures={self.publish_failures}"
        )


class ReadingPipeline:
    """Turns advertisement events into new, allowed sensor readings."""

    def __init__(
        self,
        gate: DedupGate,
        allow_list: Optional[Set[str]] = None,
        signed_temperature: bool = False,
    ):
        """Initialize the pipeline.

        Args:
            gate: Dedup state owned by this pipeline's caller.
            allow_list: MAC addresses to forward. None forwards every sensor.
            signed_temperature: Passed through to decode_frame().
        """
        self.gate = gate
        self.allow_list = allow_list
        self.signed_temperature = signed_temperature
        self.stats = PipelineStats()

    def process_event(self, event: AdvertisementEvent) -> List[SensorReading]:
        """Run every service-data entry of an event through the pipeline.

        Args:
            event: The advertisement event.

        Returns:
            Readings that should be published, in entry order.
        """
        self.stats.events_seen += 1
        readings = []

        for key, payload in event.service_data.items():
            if not is_sensor_frame(key):
                continue

            try:
                reading = decode_frame(payload, self.signed_temperature)
            except MalformedFrameError as e:
                self.stats.frames_malformed += 1
                logger.warning(f"Skipping malformed frame from {event.address}: {e}")
                continue
            self.stats.frames_decoded += 1

            if not is_allowed(reading.mac_address, self.allow_list):
                self.stats.filtered += 1
                logger.debug(f"Ignoring {reading.mac_address}: not in allow-list")
                continue

            if not self.gate.admit(reading):
                self.stats.duplicates += 1
                logger.debug(
                    f"Repeated measurement {reading.counter} from {reading.mac_address}"
                )
                continue

            logger.debug(
                f"{reading.counter} - {reading.mac_address}, "
                f"Temp: {reading.temperature}, Hum: {reading.humidity}%, "
                f"Bv: {reading.battery_voltage}, Blev: {reading.battery_level}%"
            )
            readings.append(reading)

        return readings

    def forward(self, reading: SensorReading, publisher: Publisher) -> bool:
        """Hand a reading to the publisher and record the outcome.

        A failed publish leaves the dedup state as is.
        """
        try:
            published = publisher.publish_reading(reading)
        except Exception:
            self.stats.publish_failures += 1
            logger.exception(
                f"Error publishing reading {reading.counter} from {reading.mac_address}"
            )
            return False
        if published:
            self.stats.published += 1
            return True
        self.stats.publish_failures += 1
        logger.warning(
            f"Failed to publish reading {reading.counter} from {reading.mac_address}"
        )
        return False

    async def run(
        self,
        events: AsyncIterator[AdvertisementEvent],
        publisher: Publisher,
    ):
        """Consume events until the source ends or the task is cancelled.

        Args:
            events: Async iterator of advertisement events.
            publisher: Destination for admitted readings.
        """
        async for event in events:
            for reading in self.process_event(event):
                self.forward(reading, publisher)
