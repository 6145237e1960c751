"""BLE framing protocol implementation."""

from .chunking import (
    MIN_PACKET_BUDGET,
    MessageAssembler,
    receive_message,
    send_message,
    split_message,
)
from .frames import (
    DEFAULT_PACKET_BUDGET,
    Frame,
    FrameKind,
    decode_frame,
    encode_frame,
)
from .mtu import (
    DEFAULT_NEGOTIATION_TIMEOUT,
    MTU_HEADER_OVERHEAD,
    build_mtu_request,
    negotiate_mtu,
    packet_budget_for,
    parse_mtu_response,
)

__all__ = [
    "DEFAULT_NEGOTIATION_TIMEOUT",
    "DEFAULT_PACKET_BUDGET",
    "MIN_PACKET_BUDGET",
    "MTU_HEADER_OVERHEAD",
    "Frame",
    "FrameKind",
    "MessageAssembler",
    "build_mtu_request",
    "decode_frame",
    "encode_frame",
    "negotiate_mtu",
    "packet_budget_for",
    "parse_mtu_response",
    "receive_message",
    "send_message",
    "split_message",
]
