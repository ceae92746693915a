"""QR order rules: entity mapping, item formatting, order numbers, UPI links."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal
from urllib.parse import quote

EntityType = Literal["table", "room"]

QR_SERVER_NAME = "QR Order"
ORDER_NUMBER_LENGTH = 8


@dataclass(frozen=True)
class OrderLine:
    """One requested item joined with its menu row."""

    menu_item_id: str
    name: str
    quantity: int
    price: float
    modifiers: tuple[str, ...] = ()


def order_type_for(entity_type: EntityType) -> str:
    """Order type stored on the orders row."""
    return "dine-in" if entity_type == "table" else "room_service"


def kitchen_order_type_for(entity_type: EntityType) -> str:
    """Order type stored on the kitchen queue row (underscore variant)."""
    return "dine_in" if entity_type == "table" else "room_service"


def order_number(order_id: str) -> str:
    """Short customer-facing reference: first 8 id characters, uppercased."""
    return order_id.replace("-", "")[:ORDER_NUMBER_LENGTH].upper()


def _format_price(price: float) -> str:
    # 150.0 -> "150", 149.5 -> "149.5"
    return str(int(price)) if float(price).is_integer() else str(price)


def format_pos_item(line: OrderLine) -> str:
    """POS-style item string, e.g. ``2x Paneer Tikka @150``."""
    return f"{line.quantity}x {line.name} @{_format_price(line.price)}"


def kitchen_items(lines: list[OrderLine]) -> list[dict[str, Any]]:
    """Items as the kitchen display expects them; modifiers become notes."""
    return [
        {
            "name": line.name,
            "quantity": line.quantity,
            "price": line.price,
            "notes": list(line.modifiers),
        }
        for line in lines
    ]


def format_amount(amount: float) -> str:
    """Two-decimal rupee amount for payment links."""
    return str(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def upi_payment_link(upi_id: str, payee_name: str | None, amount: float, order_ref: str) -> str:
    """UPI deep link: upi://pay?pa=..&pn=..&am=..&cu=INR&tn=Order%20<ref>."""
    return (
        f"upi://pay?pa={quote(upi_id, safe='')}"
        f"&pn={quote(payee_name or 'Restaurant', safe='')}"
        f"&am={format_amount(amount)}&cu=INR"
        f"&tn={quote('Order ' + order_ref, safe='')}"
    )


def payment_block(settings: dict[str, Any] | None, amount: float, order_ref: str) -> dict[str, Any]:
    """Payment section of the order response."""
    upi_id = settings.get("upi_id") if settings else None
    upi = None
    if settings:
        upi = {
            "id": upi_id,
            "name": settings.get("upi_name"),
            "paymentLink": upi_payment_link(upi_id, settings.get("upi_name"), amount, order_ref) if upi_id else None,
            "amount": amount,
        }
    return {
        "required": True,
        "method": "upi" if upi_id else "pending",
        "upi": upi,
    }
