"""BLE connection management."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    CharacteristicNotFound,
    DeviceDisconnected,
    ServiceNotFound,
    WriteFailed,
)
from ..models.device_model import DEVICE_MODELS, DeviceModel

if TYPE_CHECKING:
    from bleak.backends.characteristic import BleakGATTCharacteristic
    from bleak.backends.device import BLEDevice
    from bleak.backends.service import BleakGATTService

_LOGGER = logging.getLogger(__name__)


class BLEConnection:
    """Link to one APDU device over BLE.

    Features:
    - Automatic retry logic with bleak-retry-connector
    - Service caching for faster reconnections
    - Single-consumer notification queue per subscription
    - Disconnect listeners, and a queue sentinel that fails pending reads
    """

    def __init__(
            self,
            address: str,
            ble_device: BLEDevice | None = None,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
            device_models: tuple[DeviceModel, ...] = DEVICE_MODELS,
    ):
        """Initialize BLE connection.

        Args:
            address: Device address
            ble_device: Optional BLEDevice from a scan (skips the lookup scan)
            timeout: Connection timeout in seconds (default: 10)
            max_attempts: Maximum connection attempts for bleak-retry-connector (default: 4)
            use_services_cache: Enable GATT service caching for faster reconnections (default: True)
            device_models: Known GATT layouts to match against the device
        """
        self.address = address
        self.ble_device = ble_device
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.use_services_cache = use_services_cache
        self.device_models = device_models

        self._client: BleakClient | None = None
        self._notification_queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._write_characteristic: BleakGATTCharacteristic | None = None
        self._notify_characteristic: BleakGATTCharacteristic | None = None
        self._notifying = False
        self._listeners: list[Callable[[], None]] = []

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to device."""
        return self._client is not None and self._client.is_connected

    async def connect(self) -> None:
        """Establish BLE connection to device.

        Raises:
            BLEConnectionError: If connection fails
            BLETimeoutError: If connection times out
        """
        if self.is_connected:
            return

        try:
            _LOGGER.debug(
                "Connecting to %s with bleak-retry-connector (max_attempts=%d)",
                self.address,
                self.max_attempts,
            )

            if self.ble_device:
                device = self.ble_device
            else:
                device = await BleakScanner.find_device_by_address(
                    self.address,
                    timeout=self.timeout,
                )
                if device is None:
                    raise BLEConnectionError(f"Device {self.address} not found during scan")

            self._client = await establish_connection(
                client_class=BleakClientWithServiceCache,
                device=device,
                name=device.name or self.address,
                disconnected_callback=self._on_disconnected,
                max_attempts=self.max_attempts,
                use_services_cache=self.use_services_cache,
                timeout=self.timeout,
            )
            self._notifying = False

            _LOGGER.debug("Connected to %s", self.address)

        except BLEConnectionError:
            raise
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(f"Connection timeout after {self.timeout}s") from e
        except Exception as e:
            raise BLEConnectionError(f"Failed to connect: {e}") from e

    async def discover(self) -> None:
        """Find the APDU service and its characteristics.

        Raises:
            DeviceDisconnected: If not connected
            ServiceNotFound: If no known service is present
            CharacteristicNotFound: If write or notify characteristic is missing
        """
        if not self.is_connected:
            raise DeviceDisconnected(f"{self.address} is not connected")

        services = self._client.services
        for model in self.device_models:
            service = services.get_service(model.service_uuid)
            if service is not None:
                break
        else:
            raise ServiceNotFound(f"No known APDU service on {self.address}")

        self._notify_characteristic = self._find_characteristic(service, model.notify_uuid, "notify")
        self._write_characteristic = self._find_characteristic(service, model.write_uuid, "write")

        _LOGGER.debug("Found %s service %s on %s", model.product_name, service.uuid, self.address)

    def _find_characteristic(
            self,
            service: BleakGATTService,
            uuid: str,
            required_property: str,
    ) -> BleakGATTCharacteristic:
        characteristic = service.get_characteristic(uuid)
        if characteristic is None:
            raise CharacteristicNotFound(f"Characteristic {uuid} not found on {self.address}")
        if required_property not in characteristic.properties:
            raise CharacteristicNotFound(
                f"Characteristic {uuid} does not support {required_property}"
            )
        return characteristic

    async def subscribe(self) -> None:
        """Start notifications into a fresh frame queue.

        Raises:
            DeviceDisconnected: If not connected
            CharacteristicNotFound: If discover() has not run
            BLEConnectionError: If the subscription fails
        """
        if not self.is_connected:
            raise DeviceDisconnected(f"{self.address} is not connected")
        if self._notify_characteristic is None:
            raise CharacteristicNotFound("Notify characteristic not discovered")

        self._notification_queue = asyncio.Queue()
        try:
            if self._notifying:
                await self._client.stop_notify(self._notify_characteristic)
            await self._client.start_notify(
                self._notify_characteristic,
                self._notification_callback,
            )
        except BleakError as e:
            raise BLEConnectionError(f"Failed to start notifications: {e}") from e
        self._notifying = True

        _LOGGER.debug("Notifications started")

    def _notification_callback(self, sender, data: bytearray) -> None:
        """Handle incoming BLE notifications.

        Args:
            sender: Characteristic that sent notification
            data: Notification data
        """
        frame = bytes(data)
        _LOGGER.debug("<= %s", frame.hex())
        self._notification_queue.put_nowait(frame)

    def _on_disconnected(self, client: BleakClient) -> None:
        """Handle the bleak disconnected callback."""
        _LOGGER.debug("Link to %s disconnected", self.address)
        self._notifying = False
        self._notification_queue.put_nowait(None)
        for listener in list(self._listeners):
            listener()

    def add_disconnect_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback for link disconnection.

        Returns:
            Function removing the callback again
        """
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    async def write(self, data: bytes) -> None:
        """Write one frame to the device, waiting for write confirmation.

        Args:
            data: Frame bytes

        Raises:
            DeviceDisconnected: If not connected
            WriteFailed: If the write is not acknowledged
        """
        if not self.is_connected:
            raise DeviceDisconnected(f"{self.address} is not connected")
        if self._write_characteristic is None:
            raise CharacteristicNotFound("Write characteristic not discovered")

        _LOGGER.debug("=> %s", data.hex())
        try:
            await self._client.write_gatt_char(
                self._write_characteristic,
                data,
                response=True,
            )
        except Exception as e:
            raise WriteFailed(f"Write failed: {e}") from e

    async def read_frame(self, timeout: float | None = None) -> bytes:
        """Read the next frame from the notification queue.

        Args:
            timeout: Optional read timeout in seconds (default: wait forever)

        Returns:
            Raw frame bytes

        Raises:
            DeviceDisconnected: If the link dropped
            BLETimeoutError: If no frame arrived within timeout
        """
        try:
            frame = await asyncio.wait_for(self._notification_queue.get(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(f"No frame received within {timeout}s") from e

        if frame is None:
            # Keep the sentinel for any later reader
            self._notification_queue.put_nowait(None)
            raise DeviceDisconnected(f"{self.address} disconnected")
        return frame

    async def disconnect(self) -> None:
        """Disconnect from device."""
        if self._client and self._client.is_connected:
            try:
                _LOGGER.debug("Disconnecting from %s", self.address)
                await self._client.disconnect()
            except Exception as e:
                _LOGGER.warning("Error during disconnect: %s", e)
