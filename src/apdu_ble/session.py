"""APDU session over one BLE link."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from .exceptions import DeviceDisconnected, NegotiationFailed
from .models.enums import SessionState
from .protocol import (
    DEFAULT_NEGOTIATION_TIMEOUT,
    DEFAULT_PACKET_BUDGET,
    negotiate_mtu,
    receive_message,
    send_message,
)

if TYPE_CHECKING:
    from .registry import SessionRegistry
    from .transport.base import Link

_LOGGER = logging.getLogger(__name__)


class Session:
    """Live APDU session with one device.

    Exchanges (and the MTU handshake) are serialized by an exchange lock;
    queued callers run one after another in arrival order.

    Usage:
        session = await controller.open(descriptor)
        response = await session.exchange(bytes.fromhex("e001000000"))
        await session.close()
    """

    def __init__(
            self,
            device_id: str,
            link: Link,
            registry: SessionRegistry | None = None,
            packet_budget: int = DEFAULT_PACKET_BUDGET,
    ):
        """Initialize session.

        Args:
            device_id: Device identifier (registry key)
            link: Connected link; borrowed, not owned
            registry: Registry the session is removed from on close
            packet_budget: Initial packet budget (default: 20)
        """
        self.id = device_id
        self.link = link
        self.packet_budget = packet_budget
        self._registry = registry
        self._state = SessionState.CONNECTING
        self._exchange_lock = asyncio.Lock()
        self._disconnect_requested = False
        self._disconnect_listeners: list[Callable[[], None]] = []
        self._release_callbacks: list[Callable[[], None]] = []

        _LOGGER.debug("Session(%s) new instance", self.id)

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, state={self._state.name}, packet_budget={self.packet_budget})"

    @property
    def state(self) -> SessionState:
        """Get current lifecycle state."""
        return self._state

    @property
    def is_alive(self) -> bool:
        """Check if the session can still be used."""
        return not self._state.is_terminal

    def add_disconnect_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback fired once when the session is disconnected.

        Returns:
            Function removing the callback again
        """
        self._disconnect_listeners.append(callback)

        def _remove() -> None:
            if callback in self._disconnect_listeners:
                self._disconnect_listeners.remove(callback)

        return _remove

    def add_release_callback(self, callback: Callable[[], None]) -> None:
        """Register cleanup run once when the session is closed or disconnected."""
        self._release_callbacks.append(callback)

    def _release(self) -> None:
        callbacks, self._release_callbacks = self._release_callbacks, []
        for callback in callbacks:
            callback()

    def mark_disconnected(self) -> bool:
        """Transition to DISCONNECTED after the link dropped.

        Disconnect listeners are notified on the transition. A closed
        session stays closed.

        Returns:
            True if this call performed the transition
        """
        if self._state.is_terminal:
            return False
        self._state = SessionState.DISCONNECTED
        _LOGGER.debug("Session(%s) disconnected", self.id)
        self._release()
        for listener in list(self._disconnect_listeners):
            listener()
        return True

    def _ensure_alive(self) -> None:
        if not self.is_alive:
            raise DeviceDisconnected(f"Session {self.id} is {self._state.value}")
        if self._disconnect_requested:
            raise DeviceDisconnected(f"Session {self.id} is disconnecting")

    async def negotiate_mtu(self, timeout: float = DEFAULT_NEGOTIATION_TIMEOUT) -> int:
        """Negotiate the packet budget with the device.

        Args:
            timeout: Bound on the handshake in seconds (default: 5)

        Returns:
            Negotiated packet budget

        Raises:
            NegotiationFailed: If no answer arrives; the link is disconnected
        """
        async with self._exchange_lock:
            if not self.is_alive:
                raise NegotiationFailed(f"Session {self.id} is {self._state.value}")
            self._state = SessionState.NEGOTIATING
            try:
                self.packet_budget = await negotiate_mtu(
                    self.link.write,
                    self.link.read_frame,
                    timeout=timeout,
                )
            except Exception as e:
                _LOGGER.debug("Session(%s) MTU negotiation got %s", self.id, e)
                await self._force_disconnect()
                raise
            finally:
                if self._state is SessionState.NEGOTIATING:
                    self._state = SessionState.READY

        _LOGGER.info("Session(%s) packet budget set to %d", self.id, self.packet_budget)
        return self.packet_budget

    async def exchange(self, apdu: bytes) -> bytes:
        """Exchange one APDU with the device.

        Args:
            apdu: Request bytes

        Returns:
            Response bytes

        Raises:
            DeviceDisconnected: If the session is gone or the link dropped
            ProtocolError: If the response framing is invalid
            WriteFailed: If a frame write was not acknowledged
        """
        async with self._exchange_lock:
            self._ensure_alive()
            self._state = SessionState.EXCHANGING
            _LOGGER.debug("Session(%s) => %s", self.id, apdu.hex())
            try:
                response = await self._run_exchange(apdu)
            except Exception as e:
                _LOGGER.debug("Session(%s) exchange got %s", self.id, e)
                link_dropped = self._state is SessionState.DISCONNECTED
                await self._force_disconnect()
                if link_dropped and not isinstance(e, DeviceDisconnected):
                    raise DeviceDisconnected(f"{self.id} disconnected during exchange: {e}") from e
                raise
            finally:
                if self._state is SessionState.EXCHANGING:
                    self._state = SessionState.READY

        _LOGGER.debug("Session(%s) <= %s", self.id, response.hex())
        return response

    async def _run_exchange(self, apdu: bytes) -> bytes:
        """Send the request while listening for the response."""
        sender = asyncio.ensure_future(send_message(self.link.write, apdu, self.packet_budget))
        receiver = asyncio.ensure_future(receive_message(self.link.read_frame))
        try:
            _, response = await asyncio.gather(sender, receiver)
        except BaseException:
            for task in (sender, receiver):
                task.cancel()
            await asyncio.gather(sender, receiver, return_exceptions=True)
            raise
        return response

    async def _force_disconnect(self) -> None:
        """Sever the link once after a fault; later faults are not re-triggered."""
        if self._disconnect_requested or self._state is SessionState.DISCONNECTED:
            return
        self._disconnect_requested = True
        _LOGGER.debug("Session(%s) forcing disconnect", self.id)
        await self.link.disconnect()

    async def disconnect(self) -> None:
        """Force-disconnect the underlying link."""
        await self._force_disconnect()

    async def close(self) -> None:
        """Wait for any in-flight exchange, then release the session.

        The link itself stays connected.
        """
        async with self._exchange_lock:
            if self.is_alive:
                self._state = SessionState.CLOSED
            if self._registry is not None:
                self._registry.remove(self.id, self)
            self._release()
        _LOGGER.debug("Session(%s) closed", self.id)
