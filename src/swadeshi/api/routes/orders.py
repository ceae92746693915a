"""QR order submission.

POST /orders/qr → 201 {success, orderId, orderNumber, message, payment}

Flow: authenticate → tenant check → validate → one transaction writing the
order, its kitchen queue entry and (for tables) the occupied status. The
three writes commit together or not at all. The UPI payment lookup runs
after commit and never fails the order.
"""

from __future__ import annotations

from typing import Any, Literal
from uuid import uuid4

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from swadeshi.api.auth import CurrentUser
from swadeshi.api.errors import ApiError
from swadeshi.api.ids import UuidStr
from swadeshi.api.rate_limit import limit_per_user, standard_limiter
from swadeshi.api.tenancy import authorize_restaurant
from swadeshi.domain.orders import (
    QR_SERVER_NAME,
    OrderLine,
    format_pos_item,
    kitchen_items,
    kitchen_order_type_for,
    order_number,
    order_type_for,
    payment_block,
)
from swadeshi.infra.db import txn
from swadeshi.infra.repositories.orders_repository import (
    get_active_payment_settings,
    get_entity_name,
    get_menu_items,
    insert_kitchen_order,
    insert_order,
    mark_table_occupied,
)
from swadeshi.observability.correlation import get_correlation_id
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import mask_identifier, safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

_rate_limited_user = limit_per_user(standard_limiter)


# ── Schemas ───────────────────────────────────────────────────────────────────


class OrderItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    menu_item_id: UuidStr = Field(alias="menuItemId")
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)
    modifiers: list[str] = Field(default_factory=list)


class SubmitOrderRequest(BaseModel):
    """Wire names are camelCase; presence checks run after the tenant check."""

    model_config = ConfigDict(populate_by_name=True)

    restaurant_id: str | None = Field(None, alias="restaurantId")
    entity_type: Literal["table", "room"] | None = Field(None, alias="entityType")
    entity_id: UuidStr | None = Field(None, alias="entityId")
    customer_name: str | None = Field(None, alias="customerName")
    customer_phone: str | None = Field(None, alias="customerPhone")
    special_instructions: str | None = Field(None, alias="specialInstructions")
    items: list[OrderItemRequest] = Field(default_factory=list)
    total_amount: float = Field(0, alias="totalAmount", ge=0)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _validate(body: SubmitOrderRequest) -> None:
    if not body.restaurant_id or not body.entity_type or not body.entity_id or not body.items:
        raise ApiError(400, "Missing required fields: restaurantId, entityType, entityId, items")
    if not (body.customer_name or "").strip() or not (body.customer_phone or "").strip():
        raise ApiError(400, "Customer name and phone are required")


def _build_lines(body: SubmitOrderRequest, menu: dict[str, dict[str, Any]]) -> list[OrderLine]:
    missing = sorted({item.menu_item_id for item in body.items if item.menu_item_id not in menu})
    if missing:
        raise ApiError(404, "Menu item not found", details=", ".join(missing))
    return [
        OrderLine(
            menu_item_id=item.menu_item_id,
            name=menu[item.menu_item_id]["name"] or "Unknown Item",
            quantity=item.quantity,
            price=item.price,
            modifiers=tuple(item.modifiers),
        )
        for item in body.items
    ]


def _load_payment_settings(restaurant_id: str) -> dict[str, Any] | None:
    """Best-effort: a failed lookup only downgrades the payment method."""
    try:
        with txn() as cur:
            return get_active_payment_settings(cur, restaurant_id=restaurant_id)
    except Exception:
        logger.exception(
            "payment settings lookup failed",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        return None


# ── POST /orders/qr ───────────────────────────────────────────────────────────


@router.post("/qr", status_code=201)
def submit_qr_order(
    body: SubmitOrderRequest,
    user: CurrentUser = Depends(_rate_limited_user),
) -> dict:
    """Place an order from a table or room QR code."""
    ctx = authorize_restaurant(user, body.restaurant_id)
    _validate(body)

    restaurant_id = ctx.restaurant_id
    entity_type = body.entity_type
    order_id = str(uuid4())

    try:
        with txn() as cur:
            entity_name = get_entity_name(
                cur,
                restaurant_id=restaurant_id,
                entity_type=entity_type,
                entity_id=body.entity_id,
            )
            if entity_name is None:
                raise ApiError(404, "Table not found" if entity_type == "table" else "Room not found")
            if not entity_name:
                entity_name = "Unknown Table" if entity_type == "table" else "Unknown Room"

            menu = get_menu_items(
                cur,
                restaurant_id=restaurant_id,
                menu_item_ids=[item.menu_item_id for item in body.items],
            )
            lines = _build_lines(body, menu)

            insert_order(
                cur,
                order_id=order_id,
                restaurant_id=restaurant_id,
                customer_name=body.customer_name.strip(),
                customer_phone=body.customer_phone.strip(),
                items=[format_pos_item(line) for line in lines],
                total=body.total_amount,
                order_type=order_type_for(entity_type),
                table_id=body.entity_id if entity_type == "table" else None,
                room_id=body.entity_id if entity_type == "room" else None,
                entity_name=entity_name,
                special_instructions=body.special_instructions,
            )
            insert_kitchen_order(
                cur,
                order_id=order_id,
                restaurant_id=restaurant_id,
                table_number=entity_name,
                customer_name=body.customer_name.strip(),
                customer_phone=body.customer_phone.strip(),
                server_name=QR_SERVER_NAME,
                items=kitchen_items(lines),
                order_type=kitchen_order_type_for(entity_type),
            )
            if entity_type == "table":
                mark_table_occupied(cur, restaurant_id=restaurant_id, table_id=body.entity_id)
    except ApiError:
        raise
    except Exception:
        logger.exception(
            "qr order write failed - rolled back",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    restaurant_id=restaurant_id,
                    entity_type=entity_type,
                )
            },
        )
        raise ApiError(500, "Failed to create order")

    reference = order_number(order_id)
    logger.info(
        "qr order placed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                restaurant_id=restaurant_id,
                order_id_prefix=mask_identifier(order_id),
                entity_type=entity_type,
                item_count=len(lines),
            )
        },
    )

    settings = _load_payment_settings(restaurant_id)

    return {
        "success": True,
        "orderId": order_id,
        "orderNumber": reference,
        "message": "Order placed successfully!",
        "payment": payment_block(settings, body.total_amount, reference),
    }
