"""Known BLE device models and their GATT layout."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DeviceModel:
    """GATT service and characteristic UUIDs for one device family.

    Attributes:
        id: Short model identifier
        product_name: Human readable name
        service_uuid: Primary service carrying the APDU channel
        notify_uuid: Characteristic the device notifies responses on
        write_uuid: Characteristic requests are written to (with response)
    """

    id: str
    product_name: str
    service_uuid: str
    notify_uuid: str
    write_uuid: str


DEVICE_MODELS: tuple[DeviceModel, ...] = (
    DeviceModel(
        id="nanoX",
        product_name="Nano X",
        service_uuid="13d63400-2c97-0004-0000-4c6564676572",
        notify_uuid="13d63400-2c97-0004-0001-4c6564676572",
        write_uuid="13d63400-2c97-0004-0002-4c6564676572",
    ),
    # Pre-release firmware advertised a different service
    DeviceModel(
        id="nanoX-legacy",
        product_name="Nano X",
        service_uuid="d973f2e0-b19e-11e2-9e96-0800200c9a66",
        notify_uuid="d973f2e1-b19e-11e2-9e96-0800200c9a66",
        write_uuid="d973f2e2-b19e-11e2-9e96-0800200c9a66",
    ),
    DeviceModel(
        id="stax",
        product_name="Stax",
        service_uuid="13d63400-2c97-6004-0000-4c6564676572",
        notify_uuid="13d63400-2c97-6004-0001-4c6564676572",
        write_uuid="13d63400-2c97-6004-0002-4c6564676572",
    ),
)


def get_service_uuids() -> list[str]:
    """Get all service UUIDs to filter scans on."""
    return [model.service_uuid for model in DEVICE_MODELS]


def get_device_model(service_uuid: str) -> DeviceModel | None:
    """Look up a device model by its advertised service UUID.

    Args:
        service_uuid: Service UUID (any case)

    Returns:
        Matching DeviceModel, or None if the service is unknown
    """
    wanted = service_uuid.lower()
    for model in DEVICE_MODELS:
        if model.service_uuid == wanted:
            return model
    return None
