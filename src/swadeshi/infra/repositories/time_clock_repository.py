"""Staff time clock repository.

Uses raw SQL with psycopg2 (no ORM).

Concurrency
───────────
A punch first locks the staff row (lock_staff, SELECT ... FOR UPDATE). Two
concurrent clock-ins for the same person therefore run one after the other,
and the second sees the session the first created.
"""

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from swadeshi.infra.db import for_update, row_to_dict

SESSION_COLUMNS = ("id", "staff_id", "restaurant_id", "clock_in", "clock_out", "notes", "shift_id")

_SESSION_SELECT = """
    SELECT id, staff_id, restaurant_id, clock_in, clock_out, notes, shift_id
    FROM staff_time_clock
"""


def lock_staff(cur: PgCursor, *, restaurant_id: str, staff_id: str) -> dict[str, Any] | None:
    """Lock and return the staff row, None if absent for this restaurant."""
    row = for_update(
        cur,
        "SELECT id, restaurant_id, status FROM staff WHERE id = %s AND restaurant_id = %s",
        (staff_id, restaurant_id),
    )
    if row is None:
        return None
    return row_to_dict(("id", "restaurant_id", "status"), row)


def find_open_session(cur: PgCursor, *, staff_id: str) -> dict[str, Any] | None:
    """Most recent session without clock_out for the staff member."""
    cur.execute(
        _SESSION_SELECT
        + """
        WHERE staff_id = %s AND clock_out IS NULL
        ORDER BY clock_in DESC
        LIMIT 1
        """,
        (staff_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return row_to_dict(SESSION_COLUMNS, row)


def insert_clock_in(
    cur: PgCursor,
    *,
    staff_id: str,
    restaurant_id: str,
    notes: str | None,
) -> dict[str, Any]:
    cur.execute(
        """
        INSERT INTO staff_time_clock (staff_id, restaurant_id, clock_in, notes)
        VALUES (%s, %s, now(), %s)
        RETURNING id, staff_id, restaurant_id, clock_in, clock_out, notes, shift_id
        """,
        (staff_id, restaurant_id, notes),
    )
    return row_to_dict(SESSION_COLUMNS, cur.fetchone())


def close_session(
    cur: PgCursor,
    *,
    session_id: str,
    notes: str | None,
    clock_out_at: datetime | None = None,
) -> dict[str, Any] | None:
    """Set clock_out (now() unless given). Returns None if already closed."""
    cur.execute(
        """
        UPDATE staff_time_clock
        SET clock_out = COALESCE(%s, now()), notes = %s
        WHERE id = %s AND clock_out IS NULL
        RETURNING id, staff_id, restaurant_id, clock_in, clock_out, notes, shift_id
        """,
        (clock_out_at, notes, session_id),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return row_to_dict(SESSION_COLUMNS, row)


def set_staff_status(cur: PgCursor, *, staff_id: str, status: str) -> None:
    cur.execute("UPDATE staff SET status = %s WHERE id = %s", (status, staff_id))


def list_open_sessions(cur: PgCursor) -> list[dict[str, Any]]:
    """All open sessions with their shift rule, oldest first.

    clock_in stays a datetime and end_time a time here (no row_to_dict) since
    auto clock-out does arithmetic on them.
    """
    cur.execute(
        """
        SELECT c.id, c.staff_id, c.restaurant_id, c.clock_in,
               s.end_time, s.auto_clock_out_minutes
        FROM staff_time_clock c
        LEFT JOIN shifts s ON s.id = c.shift_id
        WHERE c.clock_out IS NULL
        ORDER BY c.clock_in ASC
        """
    )
    return [
        {
            "id": str(row[0]),
            "staff_id": str(row[1]),
            "restaurant_id": str(row[2]),
            "clock_in": row[3],
            "shift_end_time": row[4],
            "auto_clock_out_minutes": row[5],
        }
        for row in cur.fetchall()
    ]
