import asyncio
import logging
from typing import AsyncIterator, List

import pytest

from atcmqtt.bridge.dedup import DedupGate
from atcmqtt.bridge.filters import uuid_key_bytes
from atcmqtt.bridge.pipeline import AdvertisementEvent, ReadingPipeline

from .conftest import FakePublisher, make_frame

SENSOR_KEY = uuid_key_bytes("0000181a-0000-1000-8000-00805f9b34fb")
OTHER_KEY = uuid_key_bytes("0000fe95-0000-1000-8000-00805f9b34fb")
ALLOWED_MAC = "aa:bb:cc:dd:ee:ff"
OTHER_MAC_RAW = bytes([0x66, 0x55, 0x44, 0x33, 0x22, 0x11])


def _event(*entries) -> AdvertisementEvent:
    return AdvertisementEvent(address="A4:C1:38:DD:EE:FF", service_data=dict(entries))


async def _iterate(events: List[AdvertisementEvent]) -> AsyncIterator[AdvertisementEvent]:
    for event in events:
        yield event


def test_matching_entry_is_forwarded_and_unrelated_entry_ignored() -> None:
    pipeline = ReadingPipeline(DedupGate())
    event = _event((OTHER_KEY, b"\x30\x58\x5b\x05"), (SENSOR_KEY, make_frame(counter=3)))

    readings = pipeline.process_event(event)

    assert len(readings) == 1
    assert readings[0].mac_address == ALLOWED_MAC
    assert readings[0].counter == 3


def test_identical_event_is_suppressed() -> None:
    pipeline = ReadingPipeline(DedupGate())
    event = _event((OTHER_KEY, b"\x00"), (SENSOR_KEY, make_frame(counter=3)))

    assert len(pipeline.process_event(event)) == 1
    assert pipeline.process_event(event) == []
    assert pipeline.stats.duplicates == 1


def test_malformed_entry_does_not_block_siblings(caplog) -> None:
    pipeline = ReadingPipeline(DedupGate())
    short_key = b"\x00\x00\x18\x1a"
    event = _event((short_key, b"\x01\x02\x03"), (SENSOR_KEY, make_frame()))

    with caplog.at_level(logging.WARNING):
        readings = pipeline.process_event(event)

    assert len(readings) == 1
    assert pipeline.stats.frames_malformed == 1
    assert any("malformed" in record.message for record in caplog.records)


def test_unrelated_traffic_is_not_logged_as_warning(caplog) -> None:
    pipeline = ReadingPipeline(DedupGate())

    with caplog.at_level(logging.WARNING):
        readings = pipeline.process_event(_event((OTHER_KEY, b"\x01")))

    assert readings == []
    assert not caplog.records


def test_allow_list_blocks_unlisted_devices() -> None:
    pipeline = ReadingPipeline(DedupGate(), allow_list={ALLOWED_MAC})

    blocked = pipeline.process_event(_event((SENSOR_KEY, make_frame(mac=OTHER_MAC_RAW))))
    allowed = pipeline.process_event(_event((SENSOR_KEY, make_frame())))

    assert blocked == []
    assert [reading.mac_address for reading in allowed] == [ALLOWED_MAC]
    assert pipeline.stats.filtered == 1


def test_filtered_reading_does_not_touch_dedup_state() -> None:
    gate = DedupGate()
    pipeline = ReadingPipeline(gate, allow_list={ALLOWED_MAC})

    pipeline.process_event(_event((SENSOR_KEY, make_frame(mac=OTHER_MAC_RAW))))

    assert "11:22:33:44:55:66" not in gate


def test_signed_temperature_is_passed_to_decoder() -> None:
    pipeline = ReadingPipeline(DedupGate(), signed_temperature=True)

    readings = pipeline.process_event(_event((SENSOR_KEY, make_frame(temperature=0xFF38))))

    assert readings[0].temperature == pytest.approx(-2.0)


@pytest.mark.asyncio
async def test_run_publishes_new_readings_once(publisher: FakePublisher) -> None:
    pipeline = ReadingPipeline(DedupGate())
    event = _event((OTHER_KEY, b"\x00"), (SENSOR_KEY, make_frame(counter=3)))

    await pipeline.run(_iterate([event, event]), publisher)

    assert [reading.counter for reading in publisher.readings] == [3]
    assert pipeline.stats.published == 1
    assert pipeline.stats.events_seen == 2


@pytest.mark.asyncio
async def test_run_allow_list_end_to_end(publisher: FakePublisher) -> None:
    pipeline = ReadingPipeline(DedupGate(), allow_list={ALLOWED_MAC})
    events = [
        _event((SENSOR_KEY, make_frame(mac=OTHER_MAC_RAW))),
        _event((SENSOR_KEY, make_frame())),
    ]

    await pipeline.run(_iterate(events), publisher)

    assert [reading.mac_address for reading in publisher.readings] == [ALLOWED_MAC]


@pytest.mark.asyncio
async def test_publish_failure_keeps_reading_seen(caplog) -> None:
    failing = FakePublisher(succeed=False)
    gate = DedupGate()
    pipeline = ReadingPipeline(gate)
    event = _event((SENSOR_KEY, make_frame(counter=9)))

    with caplog.at_level(logging.WARNING):
        await pipeline.run(_iterate([event, event]), failing)

    assert len(failing.readings) == 1
    assert gate.last_counter(ALLOWED_MAC) == 9
    assert pipeline.stats.publish_failures == 1
    assert any("Failed to publish" in record.message for record in caplog.records)


class RaisingPublisher(FakePublisher):
    def publish_reading(self, reading) -> bool:
        self.readings.append(reading)
        if len(self.readings) == 1:
            raise ValueError("payload rejected")
        return True


@pytest.mark.asyncio
async def test_publisher_exception_does_not_stop_pipeline(caplog) -> None:
    raising = RaisingPublisher()
    gate = DedupGate()
    pipeline = ReadingPipeline(gate)
    events = [
        _event((SENSOR_KEY, make_frame(counter=1))),
        _event((SENSOR_KEY, make_frame(counter=2))),
    ]

    with caplog.at_level(logging.ERROR):
        await pipeline.run(_iterate(events), raising)

    assert [reading.counter for reading in raising.readings] == [1, 2]
    assert gate.last_counter(ALLOWED_MAC) == 2
    assert pipeline.stats.publish_failures == 1
    assert pipeline.stats.published == 1
    assert any(
        "Error publishing reading 1" in record.message and record.exc_info
        for record in caplog.records
    )


@pytest.mark.asyncio
async def test_run_stops_on_cancellation(publisher: FakePublisher) -> None:
    queue: "asyncio.Queue[AdvertisementEvent]" = asyncio.Queue()

    async def endless() -> AsyncIterator[AdvertisementEvent]:
        while True:
            yield await queue.get()

    pipeline = ReadingPipeline(DedupGate())
    task = asyncio.create_task(pipeline.run(endless(), publisher))
    queue.put_nowait(_event((SENSOR_KEY, make_frame(counter=1))))
    queue.put_nowait(_event((SENSOR_KEY, make_frame(counter=2))))
    while pipeline.stats.events_seen < 2:
        await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert [reading.counter for reading in publisher.readings] == [1, 2]
