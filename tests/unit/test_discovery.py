"""Test device discovery."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

from apdu_ble.discovery import DeviceListener, find_device, is_available
from apdu_ble.exceptions import RadioNotReady, UserCancelledOpen

NANO_X_SERVICE = "13d63400-2c97-0004-0000-4c6564676572"


class _FakeScanner:
    instances: list[_FakeScanner] = []

    def __init__(self, detection_callback=None, service_uuids=None, fail: bool = False):
        self.detection_callback = detection_callback
        self.service_uuids = service_uuids
        self.fail = fail
        self.started = False
        self.stopped = False
        _FakeScanner.instances.append(self)

    async def start(self) -> None:
        if self.fail:
            raise BleakError("Bluetooth adapter is powered off")
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def advertise(self, address: str, name: str | None) -> None:
        device = SimpleNamespace(address=address, name=name)
        advertisement = SimpleNamespace(local_name=name, service_uuids=[NANO_X_SERVICE.upper()])
        self.detection_callback(device, advertisement)


def _failing_scanner(**kwargs):
    return _FakeScanner(fail=True, **kwargs)


@pytest.mark.asyncio
async def test_listen_emits_each_named_device_once() -> None:
    events = []
    listener = DeviceListener(events.append, scanner_factory=_FakeScanner)
    await listener.start()
    scanner = _FakeScanner.instances[-1]

    scanner.advertise("AA", "Nano X 1A2B")
    scanner.advertise("AA", "Nano X 1A2B")
    scanner.advertise("BB", "Nano X 3C4D")

    assert [event.type for event in events] == ["add", "add"]
    assert [event.descriptor.id for event in events] == ["AA", "BB"]
    assert events[0].descriptor.service_uuid == NANO_X_SERVICE
    assert events[0].descriptor.model.product_name == "Nano X"
    assert scanner.service_uuids == listener.service_uuids


@pytest.mark.asyncio
@pytest.mark.parametrize("name", [None, "", "unknown", "Unknown"])
async def test_listen_ignores_unnamed_devices(name) -> None:
    events = []
    async with DeviceListener(events.append, scanner_factory=_FakeScanner):
        _FakeScanner.instances[-1].advertise("AA", name)

    assert events == []


@pytest.mark.asyncio
async def test_unsubscribe_stops_events() -> None:
    events = []
    listener = DeviceListener(events.append, scanner_factory=_FakeScanner)
    await listener.start()
    scanner = _FakeScanner.instances[-1]

    await listener.unsubscribe()
    scanner.advertise("AA", "Nano X 1A2B")

    assert scanner.stopped
    assert events == []


@pytest.mark.asyncio
async def test_listen_radio_not_ready() -> None:
    listener = DeviceListener(lambda event: None, scanner_factory=_failing_scanner)

    with pytest.raises(RadioNotReady, match="powered off"):
        await listener.start()


@pytest.mark.asyncio
async def test_is_available() -> None:
    assert await is_available(scanner_factory=_FakeScanner) is True
    assert await is_available(scanner_factory=_failing_scanner) is False


@pytest.mark.asyncio
async def test_find_device_returns_first_match() -> None:
    async def _advertise_later() -> None:
        await asyncio.sleep(0.01)
        scanner = _FakeScanner.instances[-1]
        scanner.advertise("AA", "Other")
        scanner.advertise("BB", "Nano X 3C4D")

    task = asyncio.ensure_future(_advertise_later())
    descriptor = await find_device(
        timeout=1.0,
        predicate=lambda d: d.name.startswith("Nano"),
        scanner_factory=_FakeScanner,
    )
    await task

    assert descriptor.id == "BB"
    assert _FakeScanner.instances[-1].stopped


@pytest.mark.asyncio
async def test_find_device_timeout_is_cancelled_open() -> None:
    with pytest.raises(UserCancelledOpen):
        await find_device(timeout=0.01, scanner_factory=_FakeScanner)

    assert _FakeScanner.instances[-1].stopped


@pytest.mark.asyncio
async def test_find_device_forwards_events_from_one_scanner() -> None:
    """Every event reaches the callback, matching or not, from a single scan."""
    before = len(_FakeScanner.instances)
    events = []

    async def _advertise_later() -> None:
        await asyncio.sleep(0.01)
        scanner = _FakeScanner.instances[-1]
        scanner.advertise("AA", "Other")
        scanner.advertise("BB", "Nano X 3C4D")

    task = asyncio.ensure_future(_advertise_later())
    descriptor = await find_device(
        timeout=1.0,
        predicate=lambda d: d.name.startswith("Nano"),
        scanner_factory=_FakeScanner,
        callback=events.append,
    )
    await task

    assert descriptor.id == "BB"
    assert [event.descriptor.id for event in events] == ["AA", "BB"]
    assert all(event.type == "add" for event in events)
    assert len(_FakeScanner.instances) == before + 1
