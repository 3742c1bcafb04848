"""ATC to MQTT Bridge Service - main orchestrator."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Union

from atcmqtt.shared.logging import setup_logging

from .ble_scanner import AdvertisementScanner
from .config import Config, load_config
from .dedup import DedupGate
from .discovery import build_discovery_messages
from .errors import BridgeError
from .mqtt_publisher import MQTTPublisher
from .pipeline import ReadingPipeline

logger = logging.getLogger(__name__)


class ATCMQTTBridge:
    """Main service that bridges BLE thermometer advertisements to MQTT."""

    def __init__(self, config: Config):
        """Initialize the bridge service.

        Args:
            config: Configuration object.
        """
        self.config = config
        self.mqtt_publisher: Optional[MQTTPublisher] = None
        self.scanner: Optional[AdvertisementScanner] = None
        self.pipeline = ReadingPipeline(
            gate=DedupGate(max_devices=config.max_devices),
            allow_list=config.allow_list(),
            signed_temperature=config.signed_temperature,
        )
        self._stop_event: Optional[asyncio.Event] = None

    def request_stop(self):
        """Ask the running service to shut down."""
        if self._stop_event is not None:
            self._stop_event.set()

    def _setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            signame = signal.Signals(signum).name
            logger.info(f"Received {signame}, shutting down...")
            self.request_stop()

        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(signum, lambda s, f: loop.call_soon_threadsafe(signal_handler, s))

    def publish_discovery(self):
        """Announce every configured device to Home-Assistant."""
        if not self.config.devices:
            logger.info("No devices configured, skipping Home-Assistant discovery")
            return
        messages = build_discovery_messages(
            self.config.devices,
            self.config.topics,
            state_topic=self.mqtt_publisher.state_topic,
            manufacturer=self.config.homeassistant.manufacturer,
        )
        published = self.mqtt_publisher.publish_discovery(messages)
        logger.info(
            f"Published {published}/{len(messages)} discovery messages "
            f"for {len(self.config.devices)} devices"
        )

    async def _log_status(self):
        """Periodically log pipeline counters."""
        while True:
            await asyncio.sleep(self.config.status_interval)
            logger.info(f"Pipeline status: {self.pipeline.stats.summary()}")

    async def run(self):
        """Run the bridge service until a shutdown signal arrives.

        Raises:
            BridgeError: If the MQTT broker or the BLE adapter cannot be used.
        """
        self._stop_event = asyncio.Event()
        self._setup_signal_handlers()

        # Initialize MQTT publisher
        self.mqtt_publisher = MQTTPublisher(
            self.config.mqtt, self.config.topics, self.config.device_names()
        )
        if not self.mqtt_publisher.connect():
            raise BridgeError("Failed to connect to MQTT broker")

        if self.config.homeassistant.enabled:
            self.publish_discovery()

        self.scanner = AdvertisementScanner(self.config.ble)
        try:
            await self.scanner.start()

            logger.info("ATC-MQTT Bridge is running. Press Ctrl+C to stop.")
            pipeline_task = asyncio.create_task(
                self.pipeline.run(self.scanner.events(), self.mqtt_publisher)
            )
            status_task = asyncio.create_task(self._log_status())
            stop_task = asyncio.create_task(self._stop_event.wait())
            await asyncio.wait(
                [pipeline_task, stop_task], return_when=asyncio.FIRST_COMPLETED
            )

            for task in (pipeline_task, status_task, stop_task):
                task.cancel()
            await asyncio.gather(pipeline_task, status_task, stop_task, return_exceptions=True)

            if not pipeline_task.cancelled() and pipeline_task.exception() is not None:
                raise BridgeError(
                    f"Advertisement processing failed: {pipeline_task.exception()!r}"
                ) from pipeline_task.exception()
        finally:
            # Shutdown
            logger.info("Shutting down ATC-MQTT Bridge...")
            await self.scanner.stop()
            self.mqtt_publisher.disconnect()
            logger.info(f"Pipeline status: {self.pipeline.stats.summary()}")
            logger.info("ATC-MQTT Bridge stopped.")


def run_bridge(
    config_path: Optional[Union[str, Path]] = None,
    log_level: Optional[str] = None,
):
    """Run the ATC-MQTT bridge service.

    Args:
        config_path: Optional path to config file.
        log_level: Overrides the configured log level.
    """
    config = load_config(config_path)
    if log_level:
        config.log_level = log_level
    setup_logging(config.log_level)

    logger.info("Starting ATC-MQTT Bridge...")

    bridge = ATCMQTTBridge(config)

    try:
        asyncio.run(bridge.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except BridgeError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)
