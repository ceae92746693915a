"""Profiles repository - maps an auth user id to its restaurant and role."""

from typing import Any

from psycopg2.extensions import cursor as PgCursor

PROFILE_COLUMNS = ("id", "restaurant_id", "role", "email", "full_name")


def get_profile(cur: PgCursor, *, user_id: str) -> dict[str, Any] | None:
    """Profile row for the token subject, None when the user has no profile."""
    cur.execute(
        "SELECT id, restaurant_id, role, email, full_name FROM profiles WHERE id = %s",
        (user_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    profile = dict(zip(PROFILE_COLUMNS, row))
    profile["id"] = str(profile["id"])
    if profile["restaurant_id"] is not None:
        profile["restaurant_id"] = str(profile["restaurant_id"])
    return profile
