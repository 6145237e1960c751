"""Link interface consumed by sessions."""

from __future__ import annotations

from typing import Callable, Protocol


class Link(Protocol):
    """One device connection as seen by the session engine."""

    address: str

    @property
    def is_connected(self) -> bool:
        """Check if the link is currently connected."""

    async def connect(self) -> None:
        """Connect to the device."""

    async def discover(self) -> None:
        """Resolve the APDU service and its write/notify characteristics."""

    async def subscribe(self) -> None:
        """Start notifications and reset the frame queue."""

    async def write(self, data: bytes) -> None:
        """Write one frame and wait for its acknowledgement."""

    async def read_frame(self, timeout: float | None = None) -> bytes:
        """Wait for the next notified frame."""

    async def disconnect(self) -> None:
        """Sever the connection."""

    def add_disconnect_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a disconnect callback, returning a function that removes it."""
