"""APDU fragmentation and reassembly over link frames."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from ..exceptions import ProtocolError
from .frames import (
    FIRST_HEADER_SIZE,
    HEADER_SIZE,
    MAX_MESSAGE_LENGTH,
    FrameKind,
    decode_frame,
    encode_frame,
)

_LOGGER = logging.getLogger(__name__)

MIN_PACKET_BUDGET = HEADER_SIZE + 1


def first_frame_capacity(packet_budget: int) -> int:
    """Payload bytes that fit in the first frame of a message."""
    return max(packet_budget - FIRST_HEADER_SIZE, 0)


def frame_capacity(packet_budget: int) -> int:
    """Payload bytes that fit in every frame after the first."""
    return packet_budget - HEADER_SIZE


def split_message(message: bytes, packet_budget: int) -> list[bytes]:
    """Split a message into DATA frames.

    Frame 0 carries the total length and up to ``packet_budget - 5`` bytes,
    later frames up to ``packet_budget - 3`` bytes each.

    At the minimum budget of 4 the first frame is its bare 5-byte header,
    one byte over budget; the length prefix cannot be split. Budgets of 5
    and above never produce an oversized frame.

    Args:
        message: Complete APDU
        packet_budget: Maximum bytes per frame

    Returns:
        Encoded frames in send order (always at least one)

    Raises:
        ValueError: If the budget is too small or the message too long
    """
    if packet_budget < MIN_PACKET_BUDGET:
        raise ValueError(f"Packet budget {packet_budget} below minimum {MIN_PACKET_BUDGET}")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"Message of {len(message)} bytes exceeds {MAX_MESSAGE_LENGTH}")

    first_size = first_frame_capacity(packet_budget)
    frames = [encode_frame(FrameKind.DATA, 0, len(message), message[:first_size])]

    offset = first_size
    sequence = 1
    step = frame_capacity(packet_budget)
    while offset < len(message):
        frames.append(encode_frame(FrameKind.DATA, sequence, None, message[offset:offset + step]))
        offset += step
        sequence += 1

    return frames


async def send_message(
        write: Callable[[bytes], Awaitable[None]],
        message: bytes,
        packet_budget: int,
) -> None:
    """Write a message frame by frame.

    Each write is awaited before the next begins; the link allows a single
    outstanding write.

    Args:
        write: Link write primitive (resolves on acknowledgement)
        message: Complete APDU
        packet_budget: Maximum bytes per frame
    """
    for frame in split_message(message, packet_budget):
        await write(frame)


class MessageAssembler:
    """Reassembles one message from incoming DATA frames.

    Frames must arrive in order starting at sequence 0. Frames of any other
    kind are ignored.
    """

    def __init__(self):
        self.expected_sequence = 0
        self.total_length: int | None = None
        self._data = bytearray()
        self.complete = False

    def add_frame(self, data: bytes) -> bool:
        """Add one raw frame to the assembly.

        Args:
            data: Raw notification bytes

        Returns:
            True once the declared message length has been received

        Raises:
            MalformedFrame: If the frame cannot be decoded
            ProtocolError: If the sequence number is not the next expected one
        """
        if self.complete:
            raise ProtocolError("Message already complete")

        frame = decode_frame(data)
        if frame.kind is not FrameKind.DATA:
            _LOGGER.debug("Ignoring %s frame during reassembly", frame.kind.name)
            return False

        if frame.sequence != self.expected_sequence:
            raise ProtocolError(
                f"Invalid sequence number: expected {self.expected_sequence}, got {frame.sequence}"
            )

        if frame.sequence == 0:
            self.total_length = frame.total_length

        self._data.extend(frame.payload)
        self.expected_sequence += 1

        if len(self._data) >= self.total_length:
            # Bytes past the declared length are padding
            del self._data[self.total_length:]
            self.complete = True

        return self.complete

    def get_assembled_data(self) -> bytes:
        """Get the reassembled message.

        Raises:
            ProtocolError: If assembly not complete
        """
        if not self.complete:
            raise ProtocolError(
                f"Assembly incomplete: have {len(self._data)}/{self.total_length or '?'} bytes"
            )
        return bytes(self._data)

    @property
    def bytes_received(self) -> int:
        """Get number of message bytes received so far."""
        return len(self._data)


async def receive_message(read_frame: Callable[[], Awaitable[bytes]]) -> bytes:
    """Read frames until one complete message is assembled.

    Args:
        read_frame: Link notification primitive returning one raw frame

    Returns:
        Reassembled message
    """
    assembler = MessageAssembler()
    while not assembler.add_frame(await read_frame()):
        pass
    return assembler.get_assembled_data()
