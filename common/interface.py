import math
from dataclasses import dataclass, field
from typing import Any, Optional

from common.errors import InputError


@dataclass(frozen=True)
class BusinessProfile:
    name: Optional[str] = None
    cuit: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Optional[dict[str, Any]]) -> "BusinessProfile":
        payload = _ensure_mapping(payload, "business")
        return cls(
            name=_to_text(payload.get("name")),
            cuit=_to_text(payload.get("cuit")),
            address=_to_text(payload.get("address")),
            phone=_to_text(payload.get("phone")),
            email=_to_text(payload.get("email")),
        )


@dataclass(frozen=True)
class LineItem:
    name: str
    quantity: float
    unit_price: float
    total: float = 0.0
    tax_amount: float = 0.0

    @property
    def line_total(self) -> float:
        return self.total or self.quantity * self.unit_price

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "LineItem":
        payload = _ensure_mapping(payload, "item")
        name = payload.get("name") or payload.get("productName") or "Producto"
        return cls(
            name=str(name),
            # a zero or missing quantity prints as a single unit
            quantity=_to_float(payload.get("quantity"), "quantity") or 1.0,
            unit_price=_to_float(payload.get("unitPrice"), "unitPrice"),
            total=_to_float(payload.get("total"), "total"),
            tax_amount=_to_float(payload.get("taxAmount"), "taxAmount"),
        )


@dataclass(frozen=True)
class Payment:
    name: str
    amount: float
    reference: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Payment":
        payload = _ensure_mapping(payload, "payment")
        return cls(
            name=str(payload.get("name") or ""),
            amount=_to_float(payload.get("amount"), "amount"),
            reference=_to_text(payload.get("reference")),
        )


@dataclass(frozen=True)
class CaeBlock:
    number: str
    expiration: Optional[str] = None


@dataclass(frozen=True)
class SaleDocument:
    total_amount: float
    number: Optional[str] = None
    date: Optional[str] = None
    voucher_name: Optional[str] = None
    voucher_letter: Optional[str] = None
    afip_code: Optional[int] = None
    customer: Optional[str] = None
    customer_cuit: Optional[str] = None
    customer_vat_condition: Optional[str] = None
    customer_address: Optional[str] = None
    items: tuple[LineItem, ...] = field(default_factory=tuple)
    subtotal: float = 0.0
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    payments: tuple[Payment, ...] = field(default_factory=tuple)
    cae: Optional[CaeBlock] = None
    notes: Optional[str] = None
    sales_point_number: Optional[int] = None
    discriminates_vat: bool = False

    @classmethod
    def from_dict(cls, payload: Optional[dict[str, Any]]) -> "SaleDocument":
        """Build a sale from the camelCase JSON sent by the web front end."""
        payload = _ensure_mapping(payload, "sale")

        if payload.get("totalAmount") is None:
            raise InputError("Field 'totalAmount' is required")

        items = payload.get("items") or []
        payments = payload.get("payments") or []
        if not isinstance(items, list):
            raise InputError("Field 'items' must be a list")
        if not isinstance(payments, list):
            raise InputError("Field 'payments' must be a list")

        cae = None
        cae_number = _to_text(payload.get("caeNumber"))
        if cae_number:
            cae = CaeBlock(number=cae_number, expiration=_to_text(payload.get("caeExpiration")))

        return cls(
            total_amount=_to_float(payload.get("totalAmount"), "totalAmount"),
            number=_to_text(payload.get("number")),
            date=_to_text(payload.get("date")),
            voucher_name=_to_text(payload.get("voucherName")),
            voucher_letter=_to_text(payload.get("voucherLetter")),
            afip_code=_to_int_or_none(payload.get("afipCode"), "afipCode"),
            customer=_to_text(payload.get("customer")),
            customer_cuit=_to_text(payload.get("customerCuit")),
            customer_vat_condition=_to_text(payload.get("customerVatCondition")),
            customer_address=_to_text(payload.get("customerAddress")),
            items=tuple(LineItem.from_dict(item) for item in items),
            subtotal=_to_float(payload.get("subtotal"), "subtotal"),
            discount_amount=_to_float(payload.get("discountAmount"), "discountAmount"),
            tax_amount=_to_float(payload.get("taxAmount"), "taxAmount"),
            payments=tuple(Payment.from_dict(payment) for payment in payments),
            cae=cae,
            notes=_to_text(payload.get("notes")),
            sales_point_number=_to_int_or_none(payload.get("salesPointNumber"), "salesPointNumber"),
            discriminates_vat=bool(payload.get("discriminatesVat")),
        )


def _ensure_mapping(payload: Any, label: str) -> dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InputError(f"Field '{label}' must be an object")
    return payload


def _to_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_float(value, label: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InputError(f"Field '{label}' must be numeric") from exc
    if not math.isfinite(number):
        raise InputError(f"Field '{label}' must be a finite number")
    return number


def _to_int_or_none(value, label: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InputError(f"Field '{label}' must be an integer") from exc
