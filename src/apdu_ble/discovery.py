"""BLE device discovery for APDU devices."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from bleak import BleakScanner
from bleak.exc import BleakError

from .exceptions import RadioNotReady, UserCancelledOpen
from .models.descriptor import DeviceDescriptor
from .models.device_model import get_service_uuids

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceEvent:
    """Discovery event delivered to listen() callbacks."""

    type: str
    descriptor: DeviceDescriptor


class DeviceListener:
    """Scan subscription emitting one "add" event per named device.

    Devices without an advertised name, or named "unknown", are ignored.
    Unsubscribing stops scan events; sessions already open are unaffected.
    """

    def __init__(
            self,
            callback: Callable[[DeviceEvent], None],
            service_uuids: list[str] | None = None,
            scanner_factory: Callable[..., Any] = BleakScanner,
    ):
        self.callback = callback
        self.service_uuids = service_uuids if service_uuids is not None else get_service_uuids()
        self._scanner_factory = scanner_factory
        self._scanner = None
        self._discovered: dict[str, DeviceDescriptor] = {}
        self._unsubscribed = False

    async def __aenter__(self) -> DeviceListener:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.unsubscribe()

    @property
    def discovered(self) -> list[DeviceDescriptor]:
        """Get devices reported so far."""
        return list(self._discovered.values())

    async def start(self) -> None:
        """Start scanning.

        Raises:
            RadioNotReady: If the Bluetooth adapter is unavailable
        """
        _LOGGER.debug("listen...")
        self._scanner = self._scanner_factory(
            detection_callback=self._detection_callback,
            service_uuids=self.service_uuids,
        )
        try:
            await self._scanner.start()
        except BleakError as e:
            self._scanner = None
            raise RadioNotReady(f"Bluetooth not ready: {e}") from e

    def _detection_callback(self, device, advertisement_data) -> None:
        if self._unsubscribed:
            return

        descriptor = DeviceDescriptor.from_advertisement(device, advertisement_data)
        if not descriptor.has_usable_name or descriptor.id in self._discovered:
            return

        self._discovered[descriptor.id] = descriptor
        _LOGGER.debug("Discovered %s (%s)", descriptor.name, descriptor.id)
        self.callback(DeviceEvent(type="add", descriptor=descriptor))

    async def unsubscribe(self) -> None:
        """Stop scanning and further events."""
        self._unsubscribed = True
        if self._scanner is not None:
            scanner, self._scanner = self._scanner, None
            await scanner.stop()


async def listen(
        callback: Callable[[DeviceEvent], None],
        service_uuids: list[str] | None = None,
) -> DeviceListener:
    """Start listening for APDU devices.

    Args:
        callback: Called with a DeviceEvent for every new device
        service_uuids: Services to filter on (default: all known models)

    Returns:
        Started listener; await ``unsubscribe()`` to stop it

    Raises:
        RadioNotReady: If the Bluetooth adapter is unavailable
    """
    listener = DeviceListener(callback, service_uuids)
    await listener.start()
    return listener


async def is_available(scanner_factory: Callable[..., Any] = BleakScanner) -> bool:
    """Check if the Bluetooth adapter is powered and can scan."""
    scanner = scanner_factory()
    try:
        await scanner.start()
    except BleakError as e:
        _LOGGER.debug("Bluetooth unavailable: %s", e)
        return False
    await scanner.stop()
    return True


async def find_device(
        timeout: float = 10.0,
        predicate: Callable[[DeviceDescriptor], bool] | None = None,
        service_uuids: list[str] | None = None,
        scanner_factory: Callable[..., Any] = BleakScanner,
        callback: Callable[[DeviceEvent], None] | None = None,
) -> DeviceDescriptor:
    """Scan until a device is selected.

    Args:
        timeout: Scan duration in seconds (default: 10)
        predicate: Selection function (default: first device found)
        service_uuids: Services to filter on (default: all known models)
        callback: Also called with every DeviceEvent seen while selecting

    Returns:
        Selected device descriptor

    Raises:
        UserCancelledOpen: If the scan ended without a selection
        RadioNotReady: If the Bluetooth adapter is unavailable
    """
    loop = asyncio.get_running_loop()
    selected: asyncio.Future[DeviceDescriptor] = loop.create_future()

    def _on_event(event: DeviceEvent) -> None:
        if callback is not None:
            callback(event)
        if selected.done():
            return
        if predicate is None or predicate(event.descriptor):
            selected.set_result(event.descriptor)

    async with DeviceListener(_on_event, service_uuids, scanner_factory):
        try:
            return await asyncio.wait_for(selected, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise UserCancelledOpen(f"No device selected within {timeout}s") from e
