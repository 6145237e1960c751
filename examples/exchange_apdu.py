"""Find an APDU device over BLE and exchange one APDU with it.

Usage:
    uv run python examples/exchange_apdu.py --apdu e001000000
    uv run python examples/exchange_apdu.py --name "Nano X" --timeout 30 --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime

from apdu_ble import (
    ApduBleError,
    ConnectionController,
    DeviceDescriptor,
    DeviceEvent,
    find_device,
    is_available,
)


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _print_event(event: DeviceEvent) -> None:
    descriptor = event.descriptor
    model = descriptor.model.product_name if descriptor.model else "?"
    print(f"[{_timestamp()}] {event.type} {descriptor.name} ({descriptor.id}) model={model}")


async def run(apdu: bytes, name: str | None, timeout: float) -> None:
    """Scan, open a session, exchange the APDU and disconnect."""
    if not await is_available():
        print("Bluetooth is not available")
        return

    def _matches(descriptor: DeviceDescriptor) -> bool:
        return name is None or name.lower() in (descriptor.name or "").lower()

    descriptor = await find_device(timeout=timeout, predicate=_matches, callback=_print_event)

    controller = ConnectionController()
    session = await controller.open(descriptor)
    print(f"[{_timestamp()}] opened {descriptor.id} packet_budget={session.packet_budget}")
    try:
        response = await session.exchange(apdu)
        print(f"[{_timestamp()}] => {apdu.hex()}")
        print(f"[{_timestamp()}] <= {response.hex()}")
    finally:
        await controller.disconnect(descriptor.id)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Exchange one APDU with a BLE hardware device."
    )
    parser.add_argument(
        "--apdu",
        default="e001000000",
        help="APDU to send as hex. Default: e001000000 (get version)",
    )
    parser.add_argument(
        "--name",
        default=None,
        help="Only select devices whose name contains this text.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Scan timeout in seconds. Default: 15",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log frame traffic.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        asyncio.run(run(bytes.fromhex(args.apdu), args.name, args.timeout))
    except ApduBleError as err:
        print(f"Error: {err}")
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
