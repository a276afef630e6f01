"""Utility helpers for formatting fixed-width ESC/POS receipt lines."""
from __future__ import annotations

import re

TICKET_WIDTH = 48
QTY_WIDTH = 7
MONEY_WIDTH = 15

LEGAL_DIVIDER = "-" * 40
SIMPLE_DIVIDER = "=" * 39

DEFAULT_PAYMENT_LABEL = "Pago"

_NON_DIGITS = re.compile(r"\D")


def only_digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def fit_text(text: str | None, width: int, align: str = "left") -> str:
    """Truncate or pad ``text`` to exactly ``width`` characters."""
    text = text or ""
    if len(text) > width:
        return text[:width]
    padding = width - len(text)
    if align == "right":
        return " " * padding + text
    if align == "center":
        left = padding // 2
        return " " * left + text + " " * (padding - left)
    return text + " " * padding


def format_amount(value: float) -> str:
    return f"{value:.2f}"


def format_money(value: float) -> str:
    return f"${format_amount(value)}"


def format_quantity(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def item_row(quantity: float, unit_price: float, total: float) -> str:
    """Quantity, unit price and line total as one 43 character row."""
    qty = fit_text(format_quantity(quantity), QTY_WIDTH, "right")
    price = fit_text(format_money(unit_price), MONEY_WIDTH, "right")
    amount = fit_text(format_money(total), MONEY_WIDTH, "right")
    return f"{qty} x {price} = {amount}"


def vat_row(amount: float, width: int = TICKET_WIDTH) -> str:
    return fit_text(f"IVA 21%: {format_money(amount)}", width, "right")


def payment_line(name: str | None, amount: float) -> str:
    return f"  {name or DEFAULT_PAYMENT_LABEL}: {format_money(amount)}"
