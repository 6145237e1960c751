"""Shared fixtures: an in-memory link that plays the device side."""

from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from apdu_ble.exceptions import DeviceDisconnected
from apdu_ble.models import DeviceDescriptor
from apdu_ble.protocol import FrameKind, MessageAssembler, decode_frame, encode_frame, split_message


class FakeLink:
    """Link double that answers MTU requests and echoes APDUs with 9000."""

    def __init__(
            self,
            address: str = "AA:BB:CC:DD:EE:FF",
            announced_mtu: int | None = 158,
            responder: Callable[[bytes], bytes | None] | None = None,
            response_budget: int = 20,
            drop_on_request: bool = False,
            discover_error: Exception | None = None,
            connect_delay: float = 0.0,
            write_error: Exception | None = None,
    ):
        self.address = address
        self.announced_mtu = announced_mtu
        self.responder = responder or (lambda apdu: apdu + b"\x90\x00")
        self.response_budget = response_budget
        self.drop_on_request = drop_on_request
        self.discover_error = discover_error
        self.connect_delay = connect_delay
        self.write_error = write_error

        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.subscribe_calls = 0
        self.writes: list[bytes] = []
        self.requests: list[bytes] = []
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._listeners: list[Callable[[], None]] = []
        self._assembler = MessageAssembler()

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        self.connected = True

    async def discover(self) -> None:
        if self.discover_error is not None:
            raise self.discover_error

    async def subscribe(self) -> None:
        self.subscribe_calls += 1
        self._queue = asyncio.Queue()

    def push(self, frame: bytes) -> None:
        """Deliver a raw notification."""
        self._queue.put_nowait(frame)

    async def write(self, data: bytes) -> None:
        if not self.connected:
            raise DeviceDisconnected("fake link not connected")
        self.writes.append(data)
        await asyncio.sleep(0)

        frame = decode_frame(data)
        if frame.kind is FrameKind.DATA and self.write_error is not None:
            raise self.write_error
        if frame.kind is FrameKind.CONTROL:
            if self.announced_mtu is not None:
                self.push(encode_frame(FrameKind.CONTROL, 0, None, bytes([0, 0, self.announced_mtu])))
            return

        if self._assembler.add_frame(data):
            apdu = self._assembler.get_assembled_data()
            self._assembler = MessageAssembler()
            self.requests.append(apdu)
            if self.drop_on_request:
                self.drop()
                return
            response = self.responder(apdu)
            if response is not None:
                for chunk in split_message(response, self.response_budget):
                    self.push(chunk)

    async def read_frame(self, timeout: float | None = None) -> bytes:
        frame = await self._queue.get()
        if frame is None:
            self._queue.put_nowait(None)
            raise DeviceDisconnected("fake link disconnected")
        return frame

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        if self.connected:
            self.drop()

    def drop(self) -> None:
        """Simulate the link going away."""
        self.connected = False
        self._queue.put_nowait(None)
        for listener in list(self._listeners):
            listener()

    def add_disconnect_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove


@pytest.fixture
def make_link() -> Callable[..., FakeLink]:
    """Factory for FakeLink instances."""
    return FakeLink


@pytest.fixture
def connected_link() -> FakeLink:
    """A FakeLink that is already connected."""
    link = FakeLink()
    link.connected = True
    return link


@pytest.fixture
def descriptor() -> DeviceDescriptor:
    """Descriptor for the default fake device."""
    return DeviceDescriptor(
        id="AA:BB:CC:DD:EE:FF",
        name="Nano X 1A2B",
        service_uuid="13d63400-2c97-0004-0000-4c6564676572",
    )
