"""Command-line interface for printing thermal tickets."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from common.errors import DeviceError, InputError
from common.interface import BusinessProfile, SaleDocument
from config import settings
from printer.template import render_ticket
from server.app import create_app
from transport.dispatcher import PrintService
from transport.native_host import NativeMessagingHost


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ticket-printer",
        description="Thermal ticket print manager CLI"
    )
    parser.add_argument(
        "--payload",
        help="JSON string or path to a JSON file with 'business', 'sale' and optional 'template'",
    )
    parser.add_argument(
        "--template",
        choices=["legal", "simple"],
        help="Ticket template override",
    )
    parser.add_argument(
        "--printer",
        help="Printer name override (Windows queue, CUPS queue or /dev path)",
    )
    parser.add_argument(
        "--output",
        help="Write the ESC/POS bytes to this file instead of printing",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Print a test page on the configured printer",
    )
    parser.add_argument(
        "--list-printers",
        dest="list_printers",
        action="store_true",
        help="List installed printers and exit",
    )
    parser.add_argument(
        "--set-printer",
        dest="set_printer",
        help="Store the default printer name and exit",
    )
    parser.add_argument(
        "--serve",
        nargs="?",
        const="",
        help="Run the HTTP API server (optionally specify host:port)",
    )
    parser.add_argument(
        "--native",
        action="store_true",
        help="Run as a native-messaging host on stdin/stdout",
    )
    return parser.parse_args(argv)


def load_payload(payload_arg: str) -> dict:
    path = Path(payload_arg)
    try:
        is_file = path.is_file()
    except OSError:
        # inline JSON longer than the OS path limit
        is_file = False
    if is_file:
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Failed to parse JSON file: {exc}") from exc
    try:
        return json.loads(payload_arg)
    except json.JSONDecodeError as exc:
        raise ValueError("Payload must be valid JSON or a readable JSON file path") from exc


def parse_serve_address(value: Optional[str]) -> tuple[str, int]:
    default_host = settings.SERVICE.get("host", "127.0.0.1")
    default_port = settings.SERVICE.get("port", 9100)

    if value in (None, ""): return default_host, default_port
    if ":" not in value: raise ValueError("--serve expects host:port")

    host, port_str = value.split(":", 1)
    host = host or default_host
    try:
        port = int(port_str)
    except ValueError as exc:
        raise ValueError("Port in --serve must be an integer") from exc
    if port <= 0 or port > 65535:
        raise ValueError("Port in --serve must be between 1 and 65535")
    return host, port


def render_payload(payload: dict, template: Optional[str]) -> bytes:
    if not isinstance(payload, dict):
        raise InputError("Payload must be a JSON object")
    return render_ticket(
        template or payload.get("template"),
        SaleDocument.from_dict(payload.get("sale")),
        BusinessProfile.from_dict(payload.get("business")),
    )


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.SERVICE.get("log_level", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.native:
        return NativeMessagingHost(PrintService()).serve()

    if args.serve is not None:
        try:
            host, port = parse_serve_address(args.serve)
        except ValueError as exc:
            print(f"[ERROR] {exc}", file=sys.stderr)
            return 2

        app = create_app()
        debug = settings.SERVICE.get("debug", False)
        app.run(host=host, port=port, debug=debug)
        return 0

    service = PrintService()

    if args.set_printer:
        service.configure({"printerName": args.set_printer})
        print(f"[OK] Default printer set to {args.set_printer}")
        return 0

    if args.list_printers:
        for printer in service.list_printers():
            print(f"{printer['Name']}\t{printer.get('PortName', '')}")
        return 0

    if args.test:
        try:
            service.print_test_page(args.printer)
        except DeviceError as exc:
            print(f"[ERROR] {exc}", file=sys.stderr)
            return 1

        print("[OK] Test page printed successfully")
        return 0

    if not args.payload:
        print("[ERROR] --payload is required unless --test, --list-printers, --serve or --native is used", file=sys.stderr)
        return 2

    try:
        payload = load_payload(args.payload)
        data = render_payload(payload, args.template)
    except ValueError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    if args.output:
        Path(args.output).write_bytes(data)
        print(f"[OK] Wrote {len(data)} bytes to {args.output}")
        return 0

    printer_name = args.printer or service.printer_name
    try:
        service.transport.send(printer_name, data)
    except DeviceError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    print("[OK] Receipt printed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
