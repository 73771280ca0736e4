"""Command-line interface for flashforge-relay."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .adapters import TransactionClient
from .app import RelayApp
from .commands import PRINT_ACTIONS, PrinterCommandError, PrinterController
from .config import RelayConfig, load_config, save_config
from .core import InvalidAddressError, validate_address
from .logging import configure_logging
from .telemetry import SnapshotAssembler

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="Telemetry relay for FlashForge network printers",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the HTTP and WebSocket relay")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    init_parser = subparsers.add_parser(
        "init-config", help="Write a configuration file populated with the defaults"
    )
    init_parser.add_argument(
        "--force", action="store_true", help="Rewrite an existing file, keeping its values and adding missing defaults"
    )

    snapshot_parser = subparsers.add_parser(
        "snapshot", help="Query one printer once and print the snapshot as JSON"
    )
    snapshot_parser.add_argument("address", help="Printer IP address or host name")

    send_parser = subparsers.add_parser("send", help="Send a control action to a printer")
    send_parser.add_argument("address", help="Printer IP address or host name")
    send_parser.add_argument(
        "action", choices=sorted([*PRINT_ACTIONS, "led-on", "led-off"])
    )

    return parser


def _client_for(config: RelayConfig) -> TransactionClient:
    return TransactionClient(
        port=config.printer.port,
        timeout=config.printer.timeout_seconds,
        read_size=config.printer.read_size,
    )


async def _print_snapshot(config: RelayConfig, address: str) -> int:
    snapshot = await SnapshotAssembler(_client_for(config)).assemble(address)
    print(json.dumps(snapshot.as_dict(), indent=2))
    return 1 if snapshot.errors else 0


async def _send_action(config: RelayConfig, address: str, action: str) -> int:
    controller = PrinterController(_client_for(config))
    try:
        if action == "led-on":
            outcome = await controller.set_led(address)
        elif action == "led-off":
            outcome = await controller.set_led(address, state="off")
        else:
            outcome = await controller.execute_action(address, action)
    except PrinterCommandError as exc:
        LOGGER.error("Action %s failed: %s", action, exc)
        return 1
    print(outcome.response)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        RelayApp.start(config)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "init-config":
        if config.path.exists() and not args.force:
            print(
                f"{config.path} already exists; pass --force to overwrite it",
                file=sys.stderr,
            )
            return 1
        save_config(config)
        print(f"Wrote configuration to {config.path}")
        return 0

    if args.command in ("snapshot", "send"):
        configure_logging(config.logging.level, log_network=config.logging.log_network)
        try:
            address = validate_address(args.address)
        except InvalidAddressError as exc:
            LOGGER.error("%s", exc)
            return 2
        if args.command == "snapshot":
            return asyncio.run(_print_snapshot(config, address))
        return asyncio.run(_send_action(config, address, args.action))

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
