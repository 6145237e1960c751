"""Connection and reconnect control for APDU sessions."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from .exceptions import DeviceDisconnected
from .models.descriptor import DeviceDescriptor
from .protocol import DEFAULT_NEGOTIATION_TIMEOUT
from .registry import REGISTRY, SessionRegistry
from .session import Session
from .transport.base import Link
from .transport.connection import BLEConnection

_LOGGER = logging.getLogger(__name__)

# A slow MTU answer means the device just went through first-time pairing;
# its firmware then needs one disconnect/reconnect cycle to finish bonding.
RECONNECT_THRESHOLD = 0.5
SETTLE_DELAY = 1.0


def _default_link_factory(descriptor: DeviceDescriptor) -> Link:
    return BLEConnection(descriptor.id, ble_device=descriptor.ble_device)


class ConnectionController:
    """Opens sessions and keeps the registry in sync with link state.

    Usage:
        controller = ConnectionController()
        session = await controller.open(descriptor)
        same = await controller.open(descriptor.id)  # cached, no link traffic
        await controller.disconnect(descriptor.id)
    """

    def __init__(
            self,
            registry: SessionRegistry | None = None,
            link_factory: Callable[[DeviceDescriptor], Link] = _default_link_factory,
            negotiation_timeout: float = DEFAULT_NEGOTIATION_TIMEOUT,
            reconnect_threshold: float = RECONNECT_THRESHOLD,
            settle_delay: float = SETTLE_DELAY,
            clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize controller.

        Args:
            registry: Session registry (default: process-wide REGISTRY)
            link_factory: Builds a Link for a descriptor (default: BLEConnection)
            negotiation_timeout: MTU handshake bound in seconds (default: 5)
            reconnect_threshold: MTU round trip in seconds that triggers the
                pairing reconnect (default: 0.5)
            settle_delay: Wait between forced disconnect and reconnect in seconds (default: 1)
            clock: Monotonic clock used to time the handshake
        """
        self.registry = REGISTRY if registry is None else registry
        self.link_factory = link_factory
        self.negotiation_timeout = negotiation_timeout
        self.reconnect_threshold = reconnect_threshold
        self.settle_delay = settle_delay
        self.clock = clock
        self._links: dict[str, Link] = {}
        self._open_locks: dict[str, asyncio.Lock] = {}

    async def open(self, descriptor_or_id: DeviceDescriptor | str) -> Session:
        """Open a session for a device.

        Args:
            descriptor_or_id: Scanned descriptor, or the id of an open device

        Returns:
            Ready session

        Raises:
            DeviceDisconnected: If given an id without a live session
            ServiceNotFound: If the APDU service is missing
            CharacteristicNotFound: If a write/notify characteristic is missing
            NegotiationFailed: If MTU negotiation fails
        """
        if isinstance(descriptor_or_id, str):
            return self.registry.open(descriptor_or_id)

        descriptor = descriptor_or_id
        lock = self._open_locks.setdefault(descriptor.id, asyncio.Lock())
        async with lock:
            existing = self.registry.get(descriptor.id)
            if existing is not None and existing.is_alive:
                _LOGGER.debug("Session for %s already open", descriptor.id)
                return existing
            return await self._open_with_workaround(descriptor)

    async def _open_with_workaround(self, descriptor: DeviceDescriptor) -> Session:
        """Open once, and once more if the MTU answer shows a fresh pairing."""
        needs_reconnect = True
        for _ in range(2):
            session, round_trip = await self._open_once(descriptor)
            if not needs_reconnect or round_trip < self.reconnect_threshold:
                break

            needs_reconnect = False
            _LOGGER.warning(
                "MTU answer from %s took %.0fms, reconnecting to complete pairing",
                descriptor.id,
                round_trip * 1000,
            )
            await session.disconnect()
            self._teardown(session)
            await asyncio.sleep(self.settle_delay)

        _LOGGER.info("Opened session for %s (packet budget %d)", descriptor.id, session.packet_budget)
        return session

    async def _open_once(self, descriptor: DeviceDescriptor) -> tuple[Session, float]:
        """Run connect, discover, subscribe, register and negotiate once.

        Returns:
            The session and the MTU round trip in seconds
        """
        link = self._links.get(descriptor.id)
        if link is None:
            link = self.link_factory(descriptor)
            self._links[descriptor.id] = link

        if not link.is_connected:
            _LOGGER.debug("%s not connected, connecting...", descriptor.id)
            await link.connect()

        await link.discover()
        await link.subscribe()

        session = Session(descriptor.id, link, registry=self.registry)
        if not link.is_connected:
            raise DeviceDisconnected(f"{descriptor.id} disconnected while opening")
        self.registry.put(session)

        def _on_disconnect() -> None:
            _LOGGER.debug("Session(%s) link disconnected", session.id)
            self._teardown(session)

        # Detached again when the session is closed or torn down
        session.add_release_callback(link.add_disconnect_listener(_on_disconnect))

        started = self.clock()
        try:
            await session.negotiate_mtu(timeout=self.negotiation_timeout)
        except Exception:
            self._teardown(session)
            raise
        return session, self.clock() - started

    def _teardown(self, session: Session) -> None:
        """Remove a session from the registry and mark it disconnected; idempotent."""
        self.registry.remove(session.id, session)
        session.mark_disconnected()

    async def disconnect(self, device_id: str) -> None:
        """Evict a cached session and sever its link.

        The cached link handle is dropped too; the next open builds a new one.

        Args:
            device_id: Device identifier
        """
        _LOGGER.debug("User disconnect(%s)", device_id)
        session = self.registry.get(device_id)
        link = self._links.pop(device_id, None)
        if session is not None:
            self.registry.remove(device_id, session)
            await session.disconnect()
            session.mark_disconnected()
        elif link is not None and link.is_connected:
            # Link left connected by a closed session
            await link.disconnect()


_default_controller: ConnectionController | None = None


def get_default_controller() -> ConnectionController:
    """Get the process-wide controller bound to REGISTRY."""
    global _default_controller
    if _default_controller is None:
        _default_controller = ConnectionController()
    return _default_controller


async def open_session(descriptor_or_id: DeviceDescriptor | str) -> Session:
    """Open a session with the process-wide controller."""
    return await get_default_controller().open(descriptor_or_id)


async def disconnect_device(device_id: str) -> None:
    """Evict and sever a session with the process-wide controller."""
    await get_default_controller().disconnect(device_id)
