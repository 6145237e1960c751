"""Process-wide registry of live sessions."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from .exceptions import DeviceDisconnected

if TYPE_CHECKING:
    from .session import Session

_LOGGER = logging.getLogger(__name__)


class SessionRegistry:
    """Maps device ids to their single live Session.

    Entries are added when an open completes its connect step and removed
    only by the disconnect handler or an explicit close/teardown.
    """

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._sessions

    def get(self, device_id: str) -> Session | None:
        """Get the registered session for a device, if any."""
        with self._lock:
            return self._sessions.get(device_id)

    def put(self, session: Session) -> None:
        """Register a session.

        Raises:
            ValueError: If another live session is registered for the device
        """
        with self._lock:
            existing = self._sessions.get(session.id)
            if existing is not None and existing is not session and existing.is_alive:
                raise ValueError(f"Device {session.id} already has a live session")
            self._sessions[session.id] = session
        _LOGGER.debug("Registered session for %s", session.id)

    def remove(self, device_id: str, session: Session | None = None) -> bool:
        """Remove a device's session.

        Args:
            device_id: Device identifier
            session: Only remove if this exact instance is registered

        Returns:
            True if an entry was removed
        """
        with self._lock:
            existing = self._sessions.get(device_id)
            if existing is None or (session is not None and existing is not session):
                return False
            del self._sessions[device_id]
        _LOGGER.debug("Removed session for %s", device_id)
        return True

    def open(self, device_id: str) -> Session:
        """Get the live session for a known device id.

        Raises:
            DeviceDisconnected: If the device has no live session
        """
        session = self.get(device_id)
        if session is None or not session.is_alive:
            _LOGGER.debug("No live session for %s, need to rediscover", device_id)
            raise DeviceDisconnected(f"No live session for {device_id}")
        _LOGGER.debug("Session for %s in registry, using that", device_id)
        return session


REGISTRY = SessionRegistry()
