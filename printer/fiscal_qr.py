"""ARCA (ex-AFIP) fiscal QR payload and image generation.

The verifier at ``https://www.afip.gob.ar/fe/qr/`` expects a Base64 encoded
JSON object in the ``p`` query parameter. Key names and value types are a
compatibility contract: every numeric field must be a JSON number and the
amount is sent multiplied by 100 without decimals (``$1500.50`` becomes
``150050``).
"""
from __future__ import annotations

import base64
import io
import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Optional, Tuple

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from common.errors import QrRenderError
from common.interface import BusinessProfile, SaleDocument
from printer.utils import only_digits

LOGGER = logging.getLogger(__name__)

QR_BASE_URL = "https://www.afip.gob.ar/fe/qr/"

DOC_TYPE_CUIT = 80
DOC_TYPE_DNI = 96
DOC_TYPE_UNIDENTIFIED = 99

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")


@dataclass(frozen=True)
class QrPayload:
    ver: int
    fecha: str
    cuit: int
    ptoVta: int
    tipoCmp: int
    nroCmp: int
    importe: int
    moneda: str
    ctz: int
    tipoDocRec: int
    nroDocRec: int
    tipoCodAut: str
    codAut: int

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    def to_base64(self) -> str:
        return base64.b64encode(self.to_json().encode("utf-8")).decode("ascii")

    def to_url(self) -> str:
        return f"{QR_BASE_URL}?p={self.to_base64()}"


def recipient_document(customer_id: Optional[str]) -> Tuple[int, int]:
    """Derive ``(tipoDocRec, nroDocRec)`` from a customer identifier."""
    digits = only_digits(customer_id)
    if len(digits) == 11:
        return DOC_TYPE_CUIT, int(digits)
    if 7 <= len(digits) <= 8:
        return DOC_TYPE_DNI, int(digits)
    return DOC_TYPE_UNIDENTIFIED, 0


def scaled_amount(amount: float) -> int:
    """Amount times 100 rounded half up, as the verifier rejects decimals."""
    return int(math.floor(amount * 100 + 0.5))


def voucher_number(number: Optional[str]) -> int:
    """Take the sequence part of a ``PPPP-NNNNNNNN`` voucher number."""
    parts = (number or "").split("-")
    digits = only_digits(parts[1]) if len(parts) > 1 else ""
    return int(digits) if digits else 1


def issue_date(value: Optional[str]) -> str:
    """Normalise the sale date to ``YYYY-MM-DD``.

    ISO dates and datetimes keep their own calendar date; missing or
    unreadable values fall back to today.
    """
    if value:
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            pass
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date().isoformat()
            except ValueError:
                continue
        LOGGER.warning("Unrecognised sale date %r; using today for the QR payload", value)
    return date.today().isoformat()


def build_qr_payload(sale: SaleDocument, business: BusinessProfile) -> QrPayload:
    """Build the payload for a sale that already carries a CAE.

    A missing business CUIT is not an error: it is encoded as ``0`` and the
    verifier will reject the code. Callers are expected to check for the
    CUIT before printing a QR at all.
    """
    cuit_digits = only_digits(business.cuit)
    cae_digits = only_digits(sale.cae.number if sale.cae else None)
    doc_type, doc_number = recipient_document(sale.customer_cuit)

    return QrPayload(
        ver=1,
        fecha=issue_date(sale.date),
        cuit=int(cuit_digits) if cuit_digits else 0,
        ptoVta=sale.sales_point_number or 1,
        tipoCmp=sale.afip_code or 1,
        nroCmp=voucher_number(sale.number),
        importe=scaled_amount(sale.total_amount),
        moneda="PES",
        ctz=1,
        tipoDocRec=doc_type,
        nroDocRec=doc_number,
        tipoCodAut="E",
        codAut=int(cae_digits) if cae_digits else 0,
    )


def encode_qr_url(sale: SaleDocument, business: BusinessProfile) -> str:
    return build_qr_payload(sale, business).to_url()


def render_qr_png(data: str, width: int = 200) -> bytes:
    """Render ``data`` as a black-on-white QR code PNG about ``width`` pixels wide."""
    try:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=1)
        qr.add_data(data)
        qr.make(fit=True)
        qr.box_size = max(1, width // (qr.modules_count + 2 * qr.border))
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    except Exception as exc:
        raise QrRenderError(f"Failed to render QR code: {exc}") from exc
    return buffer.getvalue()


__all__ = [
    "QR_BASE_URL",
    "QrPayload",
    "build_qr_payload",
    "encode_qr_url",
    "issue_date",
    "recipient_document",
    "render_qr_png",
    "scaled_amount",
    "voucher_number",
]
