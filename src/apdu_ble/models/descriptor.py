"""Scanned device descriptor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .device_model import DeviceModel, get_device_model, get_service_uuids

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice

UNKNOWN_NAME = "unknown"


@dataclass(frozen=True)
class DeviceDescriptor:
    """Immutable description of a discovered device.

    Attributes:
        id: Device identifier (MAC address, or UUID on macOS)
        name: Advertised local name
        service_uuid: Advertised APDU service UUID, if recognised
        ble_device: Underlying bleak BLEDevice, used to connect without rescanning
    """

    id: str
    name: str | None = None
    service_uuid: str | None = None
    ble_device: BLEDevice | None = field(default=None, compare=False, repr=False)

    @property
    def has_usable_name(self) -> bool:
        """Check if the device advertised a real name."""
        return bool(self.name) and self.name.lower() != UNKNOWN_NAME

    @classmethod
    def from_advertisement(cls, device: BLEDevice, advertisement_data: Any) -> DeviceDescriptor:
        """Build a descriptor from a bleak detection callback.

        Args:
            device: BLEDevice from the scanner
            advertisement_data: bleak AdvertisementData for the same packet

        Returns:
            DeviceDescriptor with the first known service UUID, if any
        """
        name = getattr(advertisement_data, "local_name", None) or device.name
        known = set(get_service_uuids())
        service_uuid = next(
            (
                uuid.lower()
                for uuid in getattr(advertisement_data, "service_uuids", None) or []
                if uuid.lower() in known
            ),
            None,
        )
        return cls(id=device.address, name=name, service_uuid=service_uuid, ble_device=device)

    @property
    def model(self) -> DeviceModel | None:
        """Known device model for the advertised service, if any."""
        if self.service_uuid is None:
            return None
        return get_device_model(self.service_uuid)
