"""APDU over BLE transport.

  Pure Python package for exchanging APDUs with hardware devices over
  Bluetooth Low Energy.
  """

from .controller import ConnectionController, disconnect_device, open_session
from .discovery import DeviceEvent, DeviceListener, find_device, is_available, listen
from .exceptions import (
    ApduBleError,
    BLEConnectionError,
    BLETimeoutError,
    CharacteristicNotFound,
    DeviceDisconnected,
    MalformedFrame,
    NegotiationFailed,
    ProtocolError,
    RadioNotReady,
    ServiceNotFound,
    UserCancelledOpen,
    WriteFailed,
)
from .models import (
    DEVICE_MODELS,
    DeviceDescriptor,
    DeviceModel,
    SessionState,
    get_device_model,
    get_service_uuids,
)
from .protocol import DEFAULT_PACKET_BUDGET
from .registry import REGISTRY, SessionRegistry
from .session import Session
from .transport import BLEConnection

__version__ = "0.1.0"

__all__ = [
    # Main API
    "ConnectionController",
    "Session",
    "SessionRegistry",
    "BLEConnection",
    "open_session",
    "disconnect_device",
    "listen",
    "is_available",
    "find_device",
    "DeviceEvent",
    "DeviceListener",
    # Exceptions
    "ApduBleError",
    "RadioNotReady",
    "UserCancelledOpen",
    "BLEConnectionError",
    "DeviceDisconnected",
    "ServiceNotFound",
    "CharacteristicNotFound",
    "WriteFailed",
    "BLETimeoutError",
    "NegotiationFailed",
    "ProtocolError",
    "MalformedFrame",
    # Models
    "DeviceDescriptor",
    "DeviceModel",
    "SessionState",
    "get_device_model",
    "get_service_uuids",
    # Constants
    "DEVICE_MODELS",
    "DEFAULT_PACKET_BUDGET",
    "REGISTRY",
]
