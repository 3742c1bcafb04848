"""BLE advertisement source built on bleak's scanner."""

import asyncio
import logging
from typing import AsyncIterator, Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .config import BLEConfig
from .errors import AdapterUnavailableError
from .filters import uuid_key_bytes
from .pipeline import AdvertisementEvent

logger = logging.getLogger(__name__)


class AdvertisementScanner:
    """Listens for advertisements and queues their service data as events."""

    def __init__(self, config: BLEConfig):
        """Initialize the scanner.

        Args:
            config: BLE configuration.
        """
        self.config = config
        self._queue: "asyncio.Queue[Optional[AdvertisementEvent]]" = asyncio.Queue()
        self._scanner: Optional[BleakScanner] = None
        self._running = False

    def detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        """Queue the service data of an advertisement.

        Args:
            device: The advertising device.
            advertisement_data: Parsed advertisement.
        """
        if not advertisement_data.service_data:
            return

        event = AdvertisementEvent(
            address=device.address,
            service_data={
                uuid_key_bytes(key): bytes(value)
                for key, value in advertisement_data.service_data.items()
            },
            rssi=advertisement_data.rssi,
        )
        self._queue.put_nowait(event)

    def _scanner_kwargs(self) -> dict:
        kwargs = {
            "detection_callback": self.detection_callback,
            "scanning_mode": self.config.scanning_mode,
        }
        if self.config.adapter:
            kwargs["adapter"] = self.config.adapter
        if self.config.scanning_mode == "passive":
            # BlueZ only runs passive scans through an advertisement monitor
            from bleak.assigned_numbers import AdvertisementDataType
            from bleak.backends.bluezdbus.advertisement_monitor import OrPattern

            kwargs["bluez"] = {
                "or_patterns": [
                    OrPattern(0, AdvertisementDataType.SERVICE_DATA_UUID16, b"\x1a\x18"),
                ],
            }
        return kwargs

    async def start(self):
        """Start scanning.

        Raises:
            AdapterUnavailableError: If the adapter cannot be used.
        """
        adapter = self.config.adapter or "default adapter"
        logger.info(f"Starting {self.config.scanning_mode} BLE scan on {adapter}")
        try:
            self._scanner = BleakScanner(**self._scanner_kwargs())
            await self._scanner.start()
        except (BleakError, OSError, ImportError) as e:
            self._scanner = None
            raise AdapterUnavailableError(f"Could not start BLE scan on {adapter}: {e}") from e
        self._running = True

    async def stop(self):
        """Stop scanning and end the event stream."""
        if not self._running:
            return
        self._running = False
        if self._scanner:
            try:
                await self._scanner.stop()
            except BleakError as e:
                logger.warning(f"Error stopping BLE scan: {e}")
            self._scanner = None
        self._queue.put_nowait(None)
        logger.info("BLE scan stopped")

    async def events(self) -> AsyncIterator[AdvertisementEvent]:
        """Yield advertisement events until stop() is called."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def __aenter__(self) -> "AdvertisementScanner":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()
