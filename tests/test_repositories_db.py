"""Repository tests against a migrated Postgres (skipped without DATABASE_URL).

Run `alembic upgrade head` against the database first.
"""

import os
import uuid

import pytest

DATABASE_URL = os.environ.get("DATABASE_URL")

pytestmark = pytest.mark.skipif(
    not DATABASE_URL,
    reason="DATABASE_URL not set - skipping DB integration tests",
)


@pytest.fixture
def restaurant_and_staff():
    from swadeshi.infra.db import txn

    restaurant_id = str(uuid.uuid4())
    staff_id = str(uuid.uuid4())
    with txn() as cur:
        cur.execute("INSERT INTO restaurants (id, name) VALUES (%s, %s)", (restaurant_id, "Test Cafe"))
        cur.execute(
            "INSERT INTO staff (id, restaurant_id, first_name) VALUES (%s, %s, %s)",
            (staff_id, restaurant_id, "Ravi"),
        )
    yield restaurant_id, staff_id
    with txn() as cur:
        cur.execute("DELETE FROM staff_time_clock WHERE restaurant_id = %s", (restaurant_id,))
        cur.execute("DELETE FROM staff WHERE restaurant_id = %s", (restaurant_id,))
        cur.execute("DELETE FROM restaurants WHERE id = %s", (restaurant_id,))


class TestProcessedEvents:
    def test_second_insert_is_duplicate(self):
        from swadeshi.infra.db import txn
        from swadeshi.infra.repositories.webhook_events_repository import record_processed_event

        external_id = f"wamid.test-{uuid.uuid4()}"
        try:
            with txn() as cur:
                assert record_processed_event(cur, source="whatsapp", external_id=external_id) is True
            with txn() as cur:
                assert record_processed_event(cur, source="whatsapp", external_id=external_id) is False
        finally:
            with txn() as cur:
                cur.execute("DELETE FROM processed_events WHERE external_id = %s", (external_id,))


class TestTimeClock:
    def test_clock_in_then_out(self, restaurant_and_staff):
        from swadeshi.infra.db import txn
        from swadeshi.infra.repositories.time_clock_repository import (
            close_session,
            find_open_session,
            insert_clock_in,
            lock_staff,
        )

        restaurant_id, staff_id = restaurant_and_staff
        with txn() as cur:
            assert lock_staff(cur, restaurant_id=restaurant_id, staff_id=staff_id) is not None
            record = insert_clock_in(cur, staff_id=staff_id, restaurant_id=restaurant_id, notes="start")

        with txn() as cur:
            session = find_open_session(cur, staff_id=staff_id)
            assert session["id"] == record["id"]
            closed = close_session(cur, session_id=session["id"], notes="start end")
            assert closed["clock_out"] is not None
            assert close_session(cur, session_id=session["id"], notes="again") is None

    def test_staff_scoped_by_restaurant(self, restaurant_and_staff):
        from swadeshi.infra.db import txn
        from swadeshi.infra.repositories.time_clock_repository import lock_staff

        _, staff_id = restaurant_and_staff
        with txn() as cur:
            assert lock_staff(cur, restaurant_id=str(uuid.uuid4()), staff_id=staff_id) is None

    def test_second_open_session_rejected_by_index(self, restaurant_and_staff):
        import psycopg2

        from swadeshi.infra.db import txn
        from swadeshi.infra.repositories.time_clock_repository import insert_clock_in

        restaurant_id, staff_id = restaurant_and_staff
        with txn() as cur:
            insert_clock_in(cur, staff_id=staff_id, restaurant_id=restaurant_id, notes=None)
        with pytest.raises(psycopg2.IntegrityError):
            with txn() as cur:
                insert_clock_in(cur, staff_id=staff_id, restaurant_id=restaurant_id, notes=None)
