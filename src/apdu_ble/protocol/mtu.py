"""MTU negotiation handshake."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ..exceptions import ApduBleError, NegotiationFailed
from .frames import DEFAULT_PACKET_BUDGET, FrameKind, decode_frame, encode_frame

_LOGGER = logging.getLogger(__name__)

MTU_HEADER_OVERHEAD = 3  # ATT opcode + handle
MTU_RESPONSE_OFFSET = 5  # Announced size, offset in the raw response frame
DEFAULT_NEGOTIATION_TIMEOUT = 5.0


def build_mtu_request() -> bytes:
    """Build the MTU request frame.

    Returns:
        Frame bytes: 08 00 00 00 00
    """
    return encode_frame(FrameKind.CONTROL, 0, None, b"\x00\x00")


def parse_mtu_response(data: bytes) -> int | None:
    """Extract the announced packet size from a notification.

    Args:
        data: Raw notification bytes

    Returns:
        Announced size, or None if this is not an MTU response
    """
    frame = decode_frame(data)
    if frame.kind is not FrameKind.CONTROL:
        return None
    if len(data) <= MTU_RESPONSE_OFFSET:
        raise NegotiationFailed(
            f"MTU response too short: {len(data)} bytes (need at least {MTU_RESPONSE_OFFSET + 1})"
        )
    return data[MTU_RESPONSE_OFFSET]


def packet_budget_for(announced: int) -> int:
    """Usable packet budget for an announced size, never below the default."""
    return max(announced - MTU_HEADER_OVERHEAD, DEFAULT_PACKET_BUDGET)


async def negotiate_mtu(
        write: Callable[[bytes], Awaitable[None]],
        read_frame: Callable[[], Awaitable[bytes]],
        timeout: float = DEFAULT_NEGOTIATION_TIMEOUT,
) -> int:
    """Ask the peer for its preferred packet size.

    Notifications are queued by the link, so the request can be written
    before waiting without losing a fast answer.

    Args:
        write: Link write primitive
        read_frame: Link notification primitive
        timeout: Bound on the whole handshake in seconds

    Returns:
        Negotiated packet budget

    Raises:
        NegotiationFailed: On timeout, disconnect or a malformed answer
    """

    async def _handshake() -> int:
        await write(build_mtu_request())
        while True:
            announced = parse_mtu_response(await read_frame())
            if announced is not None:
                return announced
            _LOGGER.debug("Discarding non-MTU frame while negotiating")

    try:
        announced = await asyncio.wait_for(_handshake(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise NegotiationFailed(f"No MTU response within {timeout}s") from e
    except NegotiationFailed:
        raise
    except ApduBleError as e:
        raise NegotiationFailed(f"MTU negotiation failed: {e}") from e

    budget = packet_budget_for(announced)
    _LOGGER.debug("Peer announced packet size %d, budget %d", announced, budget)
    return budget
