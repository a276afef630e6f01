"""Command handling shared by the native-messaging host and the HTTP API."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from common.errors import InputError, PrintManagerError
from common.interface import BusinessProfile, SaleDocument
from config import settings
from printer.driver import PrinterTransport, SpoolerTransport
from printer.template import TicketTemplate, render_simple, render_ticket, sample_sale

LOGGER = logging.getLogger(__name__)

VERSION = "1.0.0"

# Front-end field names that map onto PRINTER settings keys.
_CONFIG_KEYS = {
    "printerName": "printer_name",
    "encoding": "encoding",
    "lineWidth": "line_width",
}


class PrintService:
    """Executes ``print``, ``status``, ``listPrinters`` and ``configure``.

    Jobs aimed at the same printer are serialised so their bytes never
    interleave; jobs for different printers may run concurrently.
    """

    def __init__(self, transport: Optional[PrinterTransport] = None) -> None:
        self.transport = transport or SpoolerTransport()
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "print": self.print_ticket,
            "status": lambda _data: self.status(),
            "listPrinters": lambda _data: {"printers": self.list_printers()},
            "configure": self.configure,
        }

    @property
    def printer_name(self) -> str:
        return settings.PRINTER.get("printer_name", "")

    def _device_lock(self, printer_name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(printer_name, threading.Lock())

    def _send(self, printer_name: str, data: bytes) -> None:
        with self._device_lock(printer_name):
            self.transport.send(printer_name, data)

    def print_ticket(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise InputError("Print data must be an object")
        template = TicketTemplate.from_name(data.get("template"))
        sale = SaleDocument.from_dict(data.get("sale"))
        business = BusinessProfile.from_dict(data.get("business"))
        printer_name = data.get("printerName") or self.printer_name

        payload = render_ticket(template, sale, business)
        self._send(printer_name, payload)
        LOGGER.info("Printed %s ticket %s on %s", template.value, sale.number, printer_name)
        return {"message": "Printed successfully", "printer": printer_name}

    def print_test_page(self, printer_name: Optional[str] = None) -> Dict[str, Any]:
        printer_name = printer_name or self.printer_name
        business = BusinessProfile(name="TEST PAGE", address=f"Printer: {printer_name}")
        self._send(printer_name, render_simple(sample_sale(), business))
        return {"message": "Test page printed", "printer": printer_name}

    def status(self) -> Dict[str, Any]:
        return {"connected": True, "printerName": self.printer_name, "version": VERSION}

    def list_printers(self) -> List[Dict[str, str]]:
        return self.transport.list_printers()

    def configure(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise InputError("Configuration data must be an object")
        values = {_CONFIG_KEYS.get(key, key): value for key, value in data.items()}
        settings.update_section("PRINTER", values)
        LOGGER.info("Printer configuration updated: %s", sorted(values))
        return {}

    def handle(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Run one command envelope and build its response envelope.

        Never raises: every failure becomes ``success: False`` with an
        ``error`` string so one bad request cannot end the connection.
        """
        request_id = message.get("requestId")
        command = message.get("command")
        handler = self._handlers.get(command)

        try:
            if handler is None:
                raise InputError(f"Unknown command: {command}")
            result = handler(message.get("data") or {})
        except PrintManagerError as exc:
            LOGGER.warning("Command %s (%s) failed: %s", command, request_id, exc)
            return {"requestId": request_id, "success": False, "error": str(exc)}
        except Exception as exc:
            LOGGER.exception("Unexpected failure running command %s (%s)", command, request_id)
            return {"requestId": request_id, "success": False, "error": str(exc) or exc.__class__.__name__}

        return {"requestId": request_id, "success": True, **result}


__all__ = ["PrintService", "VERSION"]
