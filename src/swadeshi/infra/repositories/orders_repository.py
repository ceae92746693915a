"""Orders repository - QR order writes and the lookups they depend on.

Uses raw SQL with psycopg2 (no ORM). Every lookup is scoped by
restaurant_id so a row from another tenant reads as "not found".

The caller runs insert_order, insert_kitchen_order and mark_table_occupied
inside one transaction (with txn() as cur:) so they commit together.
"""

from typing import Any

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json

from swadeshi.domain.orders import EntityType


def get_entity_name(
    cur: PgCursor,
    *,
    restaurant_id: str,
    entity_type: EntityType,
    entity_id: str,
) -> str | None:
    """Return the table number or room number, None if absent for this restaurant."""
    if entity_type == "table":
        query = "SELECT table_number FROM restaurant_tables WHERE id = %s AND restaurant_id = %s"
    else:
        query = "SELECT room_number FROM rooms WHERE id = %s AND restaurant_id = %s"
    cur.execute(query, (entity_id, restaurant_id))
    row = cur.fetchone()
    if row is None:
        return None
    return str(row[0]) if row[0] is not None else ""


def get_menu_items(
    cur: PgCursor,
    *,
    restaurant_id: str,
    menu_item_ids: list[str],
) -> dict[str, dict[str, Any]]:
    """Fetch menu items by id. Returns {id: {"name", "price"}}."""
    if not menu_item_ids:
        return {}
    cur.execute(
        """
        SELECT id, name, price
        FROM menu_items
        WHERE restaurant_id = %s AND id = ANY(%s)
        """,
        (restaurant_id, list(menu_item_ids)),
    )
    return {
        str(row[0]): {"name": row[1], "price": float(row[2]) if row[2] is not None else None}
        for row in cur.fetchall()
    }


def insert_order(
    cur: PgCursor,
    *,
    order_id: str,
    restaurant_id: str,
    customer_name: str,
    customer_phone: str,
    items: list[str],
    total: float,
    order_type: str,
    table_id: str | None,
    room_id: str | None,
    entity_name: str,
    special_instructions: str | None,
) -> None:
    """Insert the customer-facing order row (pending, source=qr)."""
    cur.execute(
        """
        INSERT INTO orders (
            id, restaurant_id, customer_name, customer_phone, items, total,
            status, source, order_type, payment_status, is_qr_order,
            table_id, room_id, entity_name, special_instructions
        )
        VALUES (%s, %s, %s, %s, %s, %s,
                'pending', 'qr', %s, 'pending', TRUE,
                %s, %s, %s, %s)
        """,
        (
            order_id,
            restaurant_id,
            customer_name,
            customer_phone,
            Json(items),
            total,
            order_type,
            table_id,
            room_id,
            entity_name,
            special_instructions,
        ),
    )


def insert_kitchen_order(
    cur: PgCursor,
    *,
    order_id: str,
    restaurant_id: str,
    table_number: str,
    customer_name: str,
    customer_phone: str,
    server_name: str,
    items: list[dict[str, Any]],
    order_type: str,
) -> None:
    """Queue the order on the kitchen display (status=new)."""
    cur.execute(
        """
        INSERT INTO kitchen_orders (
            order_id, restaurant_id, table_number, customer_name, customer_phone,
            server_name, items, status, source, order_type
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, 'new', 'qr', %s)
        """,
        (
            order_id,
            restaurant_id,
            table_number,
            customer_name,
            customer_phone,
            server_name,
            Json(items),
            order_type,
        ),
    )


def mark_table_occupied(cur: PgCursor, *, restaurant_id: str, table_id: str) -> None:
    cur.execute(
        "UPDATE restaurant_tables SET status = 'occupied' WHERE id = %s AND restaurant_id = %s",
        (table_id, restaurant_id),
    )


def get_active_payment_settings(cur: PgCursor, *, restaurant_id: str) -> dict[str, Any] | None:
    """Active UPI settings for the restaurant, None if not configured."""
    cur.execute(
        """
        SELECT upi_id, upi_name
        FROM payment_settings
        WHERE restaurant_id = %s AND is_active = TRUE
        LIMIT 1
        """,
        (restaurant_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return {"upi_id": row[0], "upi_name": row[1]}
