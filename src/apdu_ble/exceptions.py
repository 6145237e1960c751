"""Exceptions raised by the APDU BLE transport."""


class ApduBleError(Exception):
    """Base exception for all apdu-ble errors."""


class RadioNotReady(ApduBleError):
    """Bluetooth adapter is not powered or not available."""


class UserCancelledOpen(ApduBleError):
    """Device selection ended without a device being chosen."""


class BLEConnectionError(ApduBleError):
    """Failed to establish or use the BLE connection."""


class DeviceDisconnected(BLEConnectionError):
    """No live session for the device, or the link dropped mid-operation."""


class ServiceNotFound(BLEConnectionError):
    """Expected GATT service is missing on the device."""


class CharacteristicNotFound(BLEConnectionError):
    """Expected write or notify characteristic is missing on the device."""


class WriteFailed(BLEConnectionError):
    """The link stack reported a failed write acknowledgement."""


class BLETimeoutError(ApduBleError):
    """A BLE operation timed out."""


class NegotiationFailed(ApduBleError):
    """MTU negotiation did not complete."""


class ProtocolError(ApduBleError):
    """Framing protocol violation (sequence mismatch, unexpected frame)."""


class MalformedFrame(ProtocolError):
    """Frame is too short or carries an unknown kind."""
