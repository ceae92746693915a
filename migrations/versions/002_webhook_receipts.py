"""Webhook receipts: idempotency ledger and PII-free inbound message metadata.

Revision ID: 002_webhook_receipts
Revises: 001_initial_schema
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "002_webhook_receipts"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(
        """
        CREATE TABLE IF NOT EXISTS processed_events (
            id           bigserial PRIMARY KEY,
            source       text NOT NULL,
            external_id  text NOT NULL,
            received_at  timestamptz NOT NULL DEFAULT now(),
            UNIQUE (source, external_id)
        );
        """
    )
    # sender_hash is an HMAC of the sender, NULL when CONTACT_HASH_SECRET is unset.
    conn.exec_driver_sql(
        """
        CREATE TABLE IF NOT EXISTS whatsapp_inbound_events (
            message_id       text PRIMARY KEY,
            kind             text NOT NULL,
            sender_hash      text,
            phone_number_id  text,
            sent_at          timestamptz,
            received_at      timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    conn.exec_driver_sql(
        "CREATE INDEX IF NOT EXISTS ix_whatsapp_inbound_events_sender "
        "ON whatsapp_inbound_events (sender_hash, received_at DESC);"
    )


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql("DROP TABLE IF EXISTS whatsapp_inbound_events;")
    conn.exec_driver_sql("DROP TABLE IF EXISTS processed_events;")
