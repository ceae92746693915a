"""Postgres access layer (psycopg2, raw SQL, no ORM).

The managed database is the only shared mutable state in the service, so
every handler talks to it through short transactions opened with txn().
Repositories under swadeshi.infra.repositories take the cursor txn() yields.
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor, parse_dsn

APPLICATION_NAME = "swadeshi"


def get_conn() -> PgConnection:
    """Open a new connection from DATABASE_URL.

    DATABASE_URL may be a URL or a libpq DSN. When it carries no password,
    DB_PASSWORD (mounted from a secret store) is used instead.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    kwargs: dict[str, Any] = {"application_name": APPLICATION_NAME}
    password = os.environ.get("DB_PASSWORD")
    if password and "password" not in parse_dsn(dsn):
        kwargs["password"] = password
    return psycopg2.connect(dsn, **kwargs)


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Run a block inside one transaction.

    Commits on clean exit, rolls back and re-raises on any exception. A
    connection opened here is closed on exit; a caller-supplied one is left
    open.

    Example:
        with txn() as cur:
            set_staff_status(cur, staff_id=staff_id, status="active")
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def row_to_dict(columns: Sequence[str], row: Sequence[Any]) -> dict[str, Any]:
    """Zip a positional row with its column names.

    Values that are not JSON-native (UUID, datetime, Decimal) are rendered so
    the dict can go straight into a response body.
    """
    result: dict[str, Any] = {}
    for name, value in zip(columns, row):
        if value is None or isinstance(value, (str, int, float, bool, dict, list)):
            result[name] = value
        elif hasattr(value, "isoformat"):
            result[name] = value.isoformat()
        else:
            result[name] = str(value)
    return result


def for_update(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
    *,
    nowait: bool = False,
    skip_locked: bool = False,
) -> tuple[Any, ...] | None:
    """Execute SELECT ... FOR UPDATE and fetch one row.

    The row stays locked until the surrounding transaction ends.

    Raises:
        ValueError: If both nowait and skip_locked are True.
    """
    if nowait and skip_locked:
        raise ValueError("Cannot use both nowait and skip_locked")

    suffix = " FOR UPDATE"
    if nowait:
        suffix += " NOWAIT"
    elif skip_locked:
        suffix += " SKIP LOCKED"

    cur.execute(query.rstrip().rstrip(";") + suffix, params)
    return cur.fetchone()
