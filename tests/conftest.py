import io
import os
import tempfile
import threading

import pytest

# Keep the settings module away from the real user configuration.
os.environ["TICKET_PRINT_MANAGER_CONFIG"] = os.path.join(
    tempfile.mkdtemp(prefix="ticket-print-manager-"), "config.json"
)

from PIL import Image  # noqa: E402

from common.errors import DeviceError  # noqa: E402
from common.interface import BusinessProfile, SaleDocument  # noqa: E402
from config import settings  # noqa: E402
from printer.driver import PrinterTransport  # noqa: E402


class MemoryTransport(PrinterTransport):
    """Collects jobs in memory instead of talking to a spooler."""

    def __init__(self, printers=None, fail_on=(), list_error=False):
        self.printers = list(printers if printers is not None else ["POS-80"])
        self.fail_on = set(fail_on)
        self.list_error = list_error
        self.jobs = []
        self._lock = threading.Lock()

    def list_printers(self):
        if self.list_error:
            return []
        return [{"Name": name, "DriverName": "Generic", "PortName": "USB001"} for name in self.printers]

    def send(self, printer_name, data):
        if printer_name in self.fail_on or printer_name not in self.printers:
            raise DeviceError(f"Printer '{printer_name}' not found")
        with self._lock:
            self.jobs.append((printer_name, bytes(data)))


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path):
    settings.use_config_file(tmp_path / "config.json")
    yield settings
    settings.use_config_file(tmp_path / "config.json")


@pytest.fixture
def memory_transport():
    return MemoryTransport()


@pytest.fixture
def business():
    return BusinessProfile(
        name="Ferreteria Central",
        cuit="20-12345678-9",
        address="Av. Siempreviva 742",
        phone="011-4444-5555",
        email="ventas@ferreteria.test",
    )


@pytest.fixture
def sale_payload():
    return {
        "number": "0003-00000123",
        "date": "2024-05-10",
        "voucherName": "FACTURA",
        "voucherLetter": "B",
        "afipCode": 6,
        "customer": "Juan Perez",
        "customerCuit": "20-30111222-3",
        "customerVatCondition": "Consumidor Final",
        "customerAddress": "Calle Falsa 123",
        "items": [
            {"name": "Martillo", "quantity": 2, "unitPrice": 100, "total": 200, "taxAmount": 34.71},
        ],
        "subtotal": 200,
        "discountAmount": 0,
        "taxAmount": 34.71,
        "totalAmount": 200,
        "payments": [{"name": "Efectivo", "amount": 200, "reference": "REC-1"}],
        "salesPointNumber": 3,
        "discriminatesVat": True,
    }


@pytest.fixture
def sale(sale_payload):
    return SaleDocument.from_dict(sale_payload)


@pytest.fixture
def make_png():
    def _make(width, height, color=(0, 0, 0), mode="RGB"):
        image = Image.new(mode, (width, height), color)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
    return _make


@pytest.fixture
def make_transport():
    return MemoryTransport
