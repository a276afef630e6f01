"""Legal (fiscal) and simple (quote) thermal ticket templates."""
from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from common.errors import InputError, QrRenderError
from common.interface import BusinessProfile, SaleDocument
from config import settings
from printer import commands
from printer import utils
from printer.commands import CommandBuffer
from printer.fiscal_qr import encode_qr_url, render_qr_png
from printer.raster import rasterize_png

LOGGER = logging.getLogger(__name__)

DEFAULT_BUSINESS_NAME = "MI NEGOCIO"
FOOTER_FEED_LINES = 3


def _today() -> str:
    today = date.today()
    return f"{today.day}/{today.month}/{today.year}"


def _layout(overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    layout = dict(settings.LAYOUT)
    if overrides:
        layout.update({k: v for k, v in overrides.items() if v is not None})
    return layout


def _new_buffer(encoding: Optional[str]) -> CommandBuffer:
    return CommandBuffer(encoding or settings.PRINTER.get("encoding", "latin-1"))


def _business_header(buf: CommandBuffer, business: BusinessProfile) -> None:
    buf.command(commands.ALIGN_CENTER, commands.BOLD_ON, commands.SIZE_DOUBLE)
    buf.line(business.name or DEFAULT_BUSINESS_NAME)
    buf.command(commands.SIZE_NORMAL, commands.BOLD_OFF)


def _business_contact(buf: CommandBuffer, business: BusinessProfile) -> None:
    if business.address:
        buf.line(business.address)
    if business.phone:
        buf.line(f"Tel: {business.phone}")
    if business.email:
        buf.line(f"Email: {business.email}")


def _title(buf: CommandBuffer, title: str) -> None:
    buf.command(commands.ALIGN_CENTER, commands.BOLD_ON, commands.SIZE_DOUBLE_HEIGHT)
    buf.line(title)
    buf.command(commands.SIZE_NORMAL, commands.BOLD_OFF)


def _number_and_date(buf: CommandBuffer, sale: SaleDocument) -> None:
    buf.command(commands.ALIGN_LEFT)
    buf.line(f"Numero: {sale.number or 'N/A'}")
    buf.line(f"Fecha: {sale.date or _today()}")


def _items(buf: CommandBuffer, sale: SaleDocument, divider: str, show_vat: bool) -> None:
    if not sale.items:
        return
    buf.command(commands.BOLD_ON)
    buf.line("PRODUCTOS")
    buf.command(commands.BOLD_OFF)
    buf.line(divider)

    for item in sale.items:
        buf.line(item.name)
        buf.line(utils.item_row(item.quantity, item.unit_price, item.line_total))
        if show_vat and item.tax_amount > 0:
            buf.line(utils.vat_row(item.tax_amount))

    buf.line(divider)


def _totals(buf: CommandBuffer, sale: SaleDocument, show_vat: bool, divider: str) -> None:
    buf.command(commands.ALIGN_RIGHT)
    if sale.discount_amount > 0:
        if sale.subtotal:
            buf.line(f"Subtotal: {utils.format_money(sale.subtotal)}")
        buf.line(f"Descuento: -{utils.format_money(sale.discount_amount)}")
    if show_vat and sale.tax_amount > 0:
        buf.line(f"IVA 21%: {utils.format_money(sale.tax_amount)}")

    buf.command(commands.BOLD_ON, commands.SIZE_DOUBLE)
    buf.line(f"TOTAL: {utils.format_money(sale.total_amount)}")
    buf.command(commands.SIZE_NORMAL, commands.BOLD_OFF)

    buf.command(commands.ALIGN_LEFT)
    buf.line(divider)


def _payments(buf: CommandBuffer, sale: SaleDocument, header: str, divider: str, with_reference: bool) -> None:
    if not sale.payments:
        return
    buf.command(commands.BOLD_ON)
    buf.line(header)
    buf.command(commands.BOLD_OFF)
    for payment in sale.payments:
        buf.line(utils.payment_line(payment.name, payment.amount))
        if with_reference and payment.reference:
            buf.line(f"    Ref: {payment.reference}")
    buf.line(divider)


def _footer(buf: CommandBuffer, sale: SaleDocument, *closing_lines: str) -> None:
    buf.command(commands.ALIGN_CENTER)
    if sale.notes:
        buf.line()
        buf.line("NOTAS:")
        buf.line(sale.notes)
        buf.line()
    for text in closing_lines:
        buf.line(text)
    buf.command(commands.feed(FOOTER_FEED_LINES), commands.CUT)


def _qr_bitmap(sale: SaleDocument, business: BusinessProfile, width: int) -> Optional[bytes]:
    try:
        url = encode_qr_url(sale, business)
        return rasterize_png(render_qr_png(url, width=width))
    except (QrRenderError, ValueError):
        LOGGER.exception("Failed to build fiscal QR code; printing ticket without it")
        return None


def _fiscal_block(buf: CommandBuffer, sale: SaleDocument, business: BusinessProfile, layout: Dict[str, Any]) -> None:
    if not sale.cae:
        return
    divider = utils.LEGAL_DIVIDER
    buf.command(commands.BOLD_ON)
    buf.line("DATOS DE VALIDACION ARCA")
    buf.command(commands.BOLD_OFF)
    buf.line(f"CAE: {sale.cae.number}")
    if sale.cae.expiration:
        buf.line(f"Vto CAE: {sale.cae.expiration}")
    buf.line(divider)

    if not business.cuit:
        return
    bitmap = _qr_bitmap(sale, business, int(layout.get("qr_width", 200)))
    if bitmap is None:
        return
    buf.command(commands.ALIGN_CENTER)
    buf.line("Codigo QR de validacion ARCA")
    buf.line("(Escanea para verificar)")
    buf.line()
    buf.raw(bitmap)
    buf.line()
    buf.line(divider)


def render_legal(
    sale: SaleDocument,
    business: BusinessProfile,
    layout: Optional[Dict[str, Any]] = None,
    encoding: Optional[str] = None,
) -> bytes:
    """Render a fiscal ticket with recipient data, CAE and the ARCA QR code."""
    layout = _layout(layout)
    divider = utils.LEGAL_DIVIDER
    buf = _new_buffer(encoding)

    buf.command(commands.INIT)
    _business_header(buf, business)
    if business.cuit:
        buf.line(f"CUIT: {business.cuit}")
    # Printed for every business regardless of its actual tax regime.
    disclaimer = layout.get("fiscal_disclaimer")
    if disclaimer:
        buf.line(disclaimer)
    _business_contact(buf, business)
    buf.line(divider)

    title = " ".join(filter(None, [sale.voucher_name or "FACTURA", sale.voucher_letter]))
    _title(buf, title)
    if sale.afip_code:
        buf.line(f"Cod. ARCA: {sale.afip_code}")
    buf.command(commands.ALIGN_LEFT)
    buf.line(divider)

    _number_and_date(buf, sale)
    buf.line(divider)

    buf.command(commands.BOLD_ON)
    buf.line("DATOS DEL RECEPTOR")
    buf.command(commands.BOLD_OFF)
    if sale.customer:
        buf.line(f"Cliente: {sale.customer}")
    if sale.customer_cuit:
        buf.line(f"CUIT: {sale.customer_cuit}")
    if sale.customer_vat_condition:
        buf.line(f"Cond. IVA: {sale.customer_vat_condition}")
    if sale.customer_address:
        buf.line(f"Domicilio: {sale.customer_address}")
    buf.line(divider)

    _items(buf, sale, divider, show_vat=sale.discriminates_vat)
    _totals(buf, sale, show_vat=sale.discriminates_vat, divider=divider)
    _payments(buf, sale, "FORMAS DE PAGO:", divider, with_reference=True)
    _fiscal_block(buf, sale, business, layout)
    _footer(buf, sale, "Gracias por su compra!")
    return buf.getvalue()


def render_simple(
    sale: SaleDocument,
    business: BusinessProfile,
    layout: Optional[Dict[str, Any]] = None,
    encoding: Optional[str] = None,
) -> bytes:
    """Render a quote ticket without fiscal sections."""
    divider = utils.SIMPLE_DIVIDER
    buf = _new_buffer(encoding)

    buf.command(commands.INIT)
    _business_header(buf, business)
    if business.cuit:
        buf.line(f"CUIT: {business.cuit}")
    _business_contact(buf, business)
    buf.line(divider)

    _title(buf, "PRESUPUESTO")
    _number_and_date(buf, sale)
    if sale.customer:
        buf.line(f"Cliente: {sale.customer}")
    buf.line(divider)

    _items(buf, sale, divider, show_vat=False)
    _totals(buf, sale, show_vat=False, divider=divider)
    _payments(buf, sale, "Formas de Pago:", divider, with_reference=False)
    _footer(buf, sale, "Presupuesto valido por 30 dias", "", "Gracias por su consulta!")
    return buf.getvalue()


class TicketTemplate(Enum):
    LEGAL = "legal"
    SIMPLE = "simple"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "TicketTemplate":
        try:
            return cls(name or cls.SIMPLE.value)
        except ValueError as exc:
            raise InputError(f"Unknown ticket template: {name}") from exc

    def render(self, sale: SaleDocument, business: BusinessProfile, **options) -> bytes:
        renderer = render_legal if self is TicketTemplate.LEGAL else render_simple
        return renderer(sale, business, **options)


def render_ticket(template: str | TicketTemplate, sale: SaleDocument, business: BusinessProfile, **options) -> bytes:
    if not isinstance(template, TicketTemplate):
        template = TicketTemplate.from_name(template)
    LOGGER.debug("Rendering %s ticket for sale %s", template.value, sale.number)
    return template.render(sale, business, **options)


def sample_sale() -> SaleDocument:
    """Quote used for test pages."""
    return SaleDocument.from_dict({
        "number": "0001-00000001",
        "date": _today(),
        "customer": "Consumidor Final",
        "items": [
            {"name": "Producto de prueba", "quantity": 2, "unitPrice": 100.0},
            {"name": "Otro producto", "quantity": 1, "unitPrice": 50.5},
        ],
        "subtotal": 250.5,
        "totalAmount": 250.5,
        "payments": [{"name": "Efectivo", "amount": 250.5}],
        "notes": "Pagina de prueba",
    })


__all__ = [
    "TicketTemplate",
    "render_legal",
    "render_simple",
    "render_ticket",
    "sample_sale",
]
