"""Webhook receipts - dedupe keys and PII-free metadata of inbound events.

processed_events is the idempotency ledger: (source, external_id) is
unique, so inserting a key that already exists means the platform redelivered
an event this service has already seen.
"""

from psycopg2.extensions import cursor as PgCursor

SOURCE_WHATSAPP_MESSAGE = "whatsapp"
SOURCE_WHATSAPP_STATUS = "whatsapp_status"


def record_processed_event(cur: PgCursor, *, source: str, external_id: str) -> bool:
    """Insert a receipt. Returns False when the event was already recorded."""
    cur.execute(
        """
        INSERT INTO processed_events (source, external_id)
        VALUES (%s, %s)
        ON CONFLICT (source, external_id) DO NOTHING
        """,
        (source, external_id),
    )
    return cur.rowcount == 1


def insert_inbound_event(
    cur: PgCursor,
    *,
    message_id: str,
    kind: str,
    sender_hash: str | None,
    phone_number_id: str | None,
    sent_at_epoch: str | None,
) -> None:
    """Store message metadata only. Body and phone number are never written."""
    cur.execute(
        """
        INSERT INTO whatsapp_inbound_events (
            message_id, kind, sender_hash, phone_number_id, sent_at
        )
        VALUES (%s, %s, %s, %s, to_timestamp(%s))
        ON CONFLICT (message_id) DO NOTHING
        """,
        (message_id, kind, sender_hash, phone_number_id, _epoch_or_none(sent_at_epoch)),
    )


def _epoch_or_none(value: str | None) -> int | None:
    if value and value.isdigit():
        return int(value)
    return None
