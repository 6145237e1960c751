"""BLE transport layer."""

from .base import Link
from .connection import BLEConnection

__all__ = ["BLEConnection", "Link"]
