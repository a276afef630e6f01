"""Delivery of finished ESC/POS buffers to OS printers."""
from __future__ import annotations

import abc
import importlib
import logging
import shutil
import subprocess
from typing import Dict, List

from common.errors import DeviceError

try:  # pragma: no cover - resolved only when optional dependency installed
    escpos_printer = importlib.import_module("escpos.printer")
except ModuleNotFoundError:  # pragma: no cover - library might not be installed locally
    escpos_printer = None
try:  # pragma: no cover - optional win32 dependency
    win32print = importlib.import_module("win32print")
except ModuleNotFoundError:  # pragma: no cover - not on Windows
    win32print = None

LOGGER = logging.getLogger(__name__)

SPOOLER_TIMEOUT = 60


class PrinterTransport(abc.ABC):
    """Somewhere a command buffer can be sent to."""

    @abc.abstractmethod
    def list_printers(self) -> List[Dict[str, str]]:
        """Installed printers as ``{"Name", "DriverName", "PortName"}`` dicts."""

    @abc.abstractmethod
    def send(self, printer_name: str, data: bytes) -> None:
        """Deliver ``data`` to ``printer_name`` or raise :class:`DeviceError`."""


class SpoolerTransport(PrinterTransport):
    """Raw printing through the Windows spooler, a device file or CUPS.

    * Windows queues go through python-escpos ``Win32Raw``.
    * Names starting with ``/dev/`` are opened with python-escpos ``File``.
    * Anything else is piped to ``lp -o raw``.
    """

    def __init__(self, job_name: str = "ticket-print-manager") -> None:
        self.job_name = job_name

    def list_printers(self) -> List[Dict[str, str]]:
        try:
            if win32print is not None:
                return self._list_windows_printers()
            return self._list_cups_printers()
        except Exception:
            LOGGER.warning("Unable to enumerate printers", exc_info=True)
            return []

    def _list_windows_printers(self) -> List[Dict[str, str]]:
        flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
        return [
            {
                "Name": info.get("pPrinterName", ""),
                "DriverName": info.get("pDriverName", ""),
                "PortName": info.get("pPortName", ""),
            }
            for info in win32print.EnumPrinters(flags, None, 2)
        ]

    def _list_cups_printers(self) -> List[Dict[str, str]]:
        if shutil.which("lpstat") is None:
            return []
        result = subprocess.run(
            ["lpstat", "-v"], capture_output=True, text=True, timeout=10, check=True
        )
        printers = []
        # device for POS-80: usb://Gprinter/POS-80
        for line in result.stdout.splitlines():
            if not line.startswith("device for ") or ":" not in line:
                continue
            name, _, uri = line[len("device for "):].partition(":")
            printers.append({"Name": name.strip(), "DriverName": "", "PortName": uri.strip()})
        return printers

    def send(self, printer_name: str, data: bytes) -> None:
        if not printer_name:
            raise DeviceError("No printer configured")
        LOGGER.info("Sending %d bytes to printer %s", len(data), printer_name)
        if printer_name.startswith("/dev/"):
            self._send_escpos(escpos_printer.File if escpos_printer else None, printer_name, data, devfile=printer_name)
        elif win32print is not None:
            self._send_escpos(escpos_printer.Win32Raw if escpos_printer else None, printer_name, data, printer_name=printer_name)
        else:
            self._send_lp(printer_name, data)

    def _send_escpos(self, factory, printer_name: str, data: bytes, **kwargs) -> None:
        if factory is None:
            raise DeviceError("python-escpos is not installed; cannot send data to printer")
        device = None
        try:
            device = factory(**kwargs)
            # python-escpos has no public passthrough for pre-built command streams
            device._raw(data)
        except Exception as exc:  # pragma: no cover - hardware specific
            LOGGER.exception("Unable to print on %s", printer_name)
            raise DeviceError(f"Failed to print on '{printer_name}': {exc}") from exc
        finally:
            if device is not None:
                try:
                    device.close()
                except Exception:  # pragma: no cover - best-effort cleanup
                    LOGGER.debug("Failed to close printer device", exc_info=True)

    def _send_lp(self, printer_name: str, data: bytes) -> None:
        if shutil.which("lp") is None:
            raise DeviceError("No print spooler available ('lp' not found)")
        try:
            subprocess.run(
                ["lp", "-d", printer_name, "-t", self.job_name, "-o", "raw"],
                input=data,
                capture_output=True,
                timeout=SPOOLER_TIMEOUT,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
            raise DeviceError(f"Spooler rejected job for '{printer_name}': {stderr or exc}") from exc
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise DeviceError(f"Failed to print on '{printer_name}': {exc}") from exc


__all__ = ["PrinterTransport", "SpoolerTransport"]
