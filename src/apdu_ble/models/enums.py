"""Enums for session lifecycle."""

from __future__ import annotations

from enum import Enum


class SessionState(Enum):
    """Lifecycle state of a Session.

    CONNECTING -> NEGOTIATING -> READY <-> EXCHANGING, with DISCONNECTED
    reachable from any state. DISCONNECTED and CLOSED are terminal.
    """

    CONNECTING = "connecting"
    NEGOTIATING = "negotiating"
    READY = "ready"
    EXCHANGING = "exchanging"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in (SessionState.DISCONNECTED, SessionState.CLOSED)
