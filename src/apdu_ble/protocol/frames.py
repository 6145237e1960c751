"""Link frame encoding and decoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from ..exceptions import MalformedFrame


class FrameKind(IntEnum):
    """Frame kind tag (first byte of every frame)."""

    DATA = 0x05      # APDU fragment
    CONTROL = 0x08   # MTU request/response


# Framing constants
HEADER_SIZE = 3  # [kind:1][sequence:2]
LENGTH_SIZE = 2  # [total_length:2], first DATA frame only
FIRST_HEADER_SIZE = HEADER_SIZE + LENGTH_SIZE
MAX_SEQUENCE = 0xFFFF
MAX_MESSAGE_LENGTH = 0xFFFF

DEFAULT_PACKET_BUDGET = 20  # BLE 4.0 ATT_MTU (23) minus ATT header


@dataclass(frozen=True)
class Frame:
    """Decoded link frame.

    Wire format (all numeric fields big-endian):
    - DATA, sequence 0: [0x05][sequence:2][total_length:2][payload]
    - DATA, sequence N: [0x05][sequence:2][payload]
    - CONTROL:          [0x08][sequence:2][payload]

    Attributes:
        kind: Frame kind
        sequence: Frame index within its message
        total_length: Full message length (first DATA frame only)
        payload: Frame payload bytes
    """

    kind: FrameKind
    sequence: int
    total_length: int | None
    payload: bytes

    @property
    def is_first(self) -> bool:
        """Check if this frame opens a message."""
        return self.sequence == 0


def encode_frame(
        kind: FrameKind,
        sequence: int,
        total_length: int | None,
        payload: bytes,
        budget: int | None = None,
) -> bytes:
    """Encode a single link frame.

    Args:
        kind: Frame kind
        sequence: Frame sequence number (0-65535)
        total_length: Message length to prefix, or None
        payload: Payload bytes
        budget: Optional maximum frame size to enforce

    Returns:
        Encoded frame bytes

    Raises:
        ValueError: If a field is out of range or the frame exceeds budget
    """
    if not 0 <= sequence <= MAX_SEQUENCE:
        raise ValueError(f"Sequence {sequence} out of range 0-{MAX_SEQUENCE}")

    frame = struct.pack(">BH", kind, sequence)
    if total_length is not None:
        if not 0 <= total_length <= MAX_MESSAGE_LENGTH:
            raise ValueError(f"Message length {total_length} exceeds {MAX_MESSAGE_LENGTH}")
        frame += struct.pack(">H", total_length)
    frame += bytes(payload)

    if budget is not None and len(frame) > budget:
        raise ValueError(f"Frame of {len(frame)} bytes exceeds packet budget {budget}")

    return frame


def decode_frame(data: bytes) -> Frame:
    """Decode a single link frame.

    Args:
        data: Raw notification bytes

    Returns:
        Decoded Frame

    Raises:
        MalformedFrame: If the frame is truncated or its kind is unknown
    """
    if len(data) < HEADER_SIZE:
        raise MalformedFrame(f"Frame too short: {len(data)} bytes (need at least {HEADER_SIZE})")

    tag, sequence = struct.unpack(">BH", data[0:HEADER_SIZE])
    try:
        kind = FrameKind(tag)
    except ValueError as e:
        raise MalformedFrame(f"Unknown frame kind 0x{tag:02x}") from e

    if kind is FrameKind.DATA and sequence == 0:
        if len(data) < FIRST_HEADER_SIZE:
            raise MalformedFrame(
                f"First frame too short: {len(data)} bytes (need at least {FIRST_HEADER_SIZE})"
            )
        total_length = struct.unpack(">H", data[HEADER_SIZE:FIRST_HEADER_SIZE])[0]
        return Frame(kind, sequence, total_length, bytes(data[FIRST_HEADER_SIZE:]))

    return Frame(kind, sequence, None, bytes(data[HEADER_SIZE:]))
