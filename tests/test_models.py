import dataclasses
import json

import pytest

from atcmqtt.shared.mqtt import create_reading_payload

from .conftest import make_reading


def test_reading_is_immutable() -> None:
    reading = make_reading()

    with pytest.raises(dataclasses.FrozenInstanceError):
        reading.counter = 9


def test_payload_includes_timestamp() -> None:
    data = json.loads(create_reading_payload(make_reading(counter=2), timestamp=1700000000.0))

    assert data == {
        "mac": "aa:bb:cc:dd:ee:ff",
        "temperature": 21.5,
        "humidity": 45.2,
        "battery_voltage": 2.98,
        "battery_level": 87,
        "counter": 2,
        "ts": 1700000000.0,
    }

