"""Data models for APDU BLE devices."""

from .descriptor import DeviceDescriptor
from .device_model import DEVICE_MODELS, DeviceModel, get_device_model, get_service_uuids
from .enums import SessionState

__all__ = [
    "DEVICE_MODELS",
    "DeviceDescriptor",
    "DeviceModel",
    "SessionState",
    "get_device_model",
    "get_service_uuids",
]
