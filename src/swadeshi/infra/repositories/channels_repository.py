"""Booking channels repository (OTA / direct / GDS distribution)."""

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json


def list_active_channels(
    cur: PgCursor,
    *,
    restaurant_id: str,
    channel_id: str | None = None,
) -> list[dict[str, Any]]:
    """Active channels for the restaurant, optionally narrowed to one id."""
    query = """
        SELECT id, channel_name, channel_type, channel_settings
        FROM booking_channels
        WHERE restaurant_id = %s AND is_active = TRUE
    """
    params: list[Any] = [restaurant_id]
    if channel_id:
        query += " AND id = %s"
        params.append(channel_id)
    query += " ORDER BY channel_name"

    cur.execute(query, params)
    return [
        {
            "id": str(row[0]),
            "channel_name": row[1],
            "channel_type": row[2],
            "channel_settings": row[3] if isinstance(row[3], dict) else {},
        }
        for row in cur.fetchall()
    ]


def count_rooms(cur: PgCursor, *, restaurant_id: str) -> int:
    cur.execute("SELECT count(*) FROM rooms WHERE restaurant_id = %s", (restaurant_id,))
    return int(cur.fetchone()[0])


def count_active_rate_plans(cur: PgCursor, *, restaurant_id: str) -> int:
    cur.execute(
        "SELECT count(*) FROM rate_plans WHERE restaurant_id = %s AND is_active = TRUE",
        (restaurant_id,),
    )
    return int(cur.fetchone()[0])


def update_channel_sync(
    cur: PgCursor,
    *,
    channel_id: str,
    channel_settings: dict[str, Any],
    last_sync: datetime | None = None,
) -> None:
    """Store sync outcome. last_sync is only advanced on success."""
    cur.execute(
        """
        UPDATE booking_channels
        SET channel_settings = %s, last_sync = COALESCE(%s, last_sync)
        WHERE id = %s
        """,
        (Json(channel_settings), last_sync, channel_id),
    )
