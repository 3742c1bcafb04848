"""ATC to MQTT Bridge - publishes BLE thermometer advertisements to MQTT."""

__version__ = "0.1.0"

from .bridge_service import ATCMQTTBridge
from .dedup import DedupGate, admit
from .filters import is_allowed, is_sensor_frame
from .frame import MalformedFrameError, decode_frame
from .pipeline import AdvertisementEvent, ReadingPipeline


def main(argv=None):
    """Entry point for the ATC-MQTT bridge service."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="atc-mqtt",
        description="Bridge BLE thermometer advertisements to MQTT",
    )
    parser.add_argument("-c", "--config", help="Path to YAML config file")
    parser.add_argument("--log-level", help="Override the configured log level")
    args = parser.parse_args(argv)

    from .bridge_service import run_bridge
    run_bridge(args.config, log_level=args.log_level)


__all__ = [
    "ATCMQTTBridge",
    "AdvertisementEvent",
    "DedupGate",
    "MalformedFrameError",
    "ReadingPipeline",
    "admit",
    "decode_frame",
    "is_allowed",
    "is_sensor_frame",
    "main",
]
