"""
Command-line entry point.

Examples:
    # Serial mode (default port from settings, 9600 baud):
    python -m relaypanel --serial /dev/ttyUSB0 --baud 9600
    # Telnet mode:
    python -m relaypanel --telnet 192.168.1.50:23
    # Relay board and buzzer on two ESP32s:
    python -m relaypanel --multi
"""

import argparse

import uvicorn

from relaypanel.config import settings
from relaypanel.main import create_app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="relaypanel",
        description="HTTP control for a relay board, a door buzzer and a TV remote.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--serial", metavar="PORT", help="serial port of the relay board")
    mode.add_argument("--telnet", metavar="HOST[:PORT]", help="telnet address of the relay board")
    mode.add_argument(
        "--multi",
        action="store_true",
        help="connect to both the relays and the buzzer ESP32s",
    )
    parser.add_argument("--baud", type=int, help="serial baud rate")
    parser.add_argument("--host", help="HTTP listen address")
    parser.add_argument("--port", type=int, help="HTTP listen port")
    return parser.parse_args(argv)


def settings_overrides(args: argparse.Namespace) -> dict:
    """Translate parsed flags into ``Settings`` field updates."""
    update: dict = {}
    if args.multi:
        update["connection_mode"] = "multi"
    elif args.telnet:
        update["connection_mode"] = "telnet"
        update["telnet_addr"] = args.telnet
    elif args.serial:
        update["connection_mode"] = "serial"
        update["serial_port"] = args.serial
    if args.baud is not None:
        update["serial_baudrate"] = args.baud
    if args.host:
        update["api_host"] = args.host
    if args.port is not None:
        update["api_port"] = args.port
    return update


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    cfg = settings.model_copy(update=settings_overrides(args))
    uvicorn.run(create_app(cfg), host=cfg.api_host, port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()
