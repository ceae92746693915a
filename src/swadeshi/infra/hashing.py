"""Pseudonymous sender hashes for webhook receipts.

Inbound WhatsApp senders are identified by phone number. Receipts store an
HMAC of (channel, phone_number_id, sender) instead, so the same customer can
be correlated across messages without the number ever being persisted.
"""

import base64
import hashlib
import hmac
import os

HASH_LENGTH = 32


class HashSecretMissing(RuntimeError):
    """CONTACT_HASH_SECRET is not configured."""


def _secret() -> bytes:
    secret = os.environ.get("CONTACT_HASH_SECRET")
    if not secret:
        raise HashSecretMissing("CONTACT_HASH_SECRET not configured (openssl rand -hex 32)")
    return secret.encode()


def hash_sender(sender_id: str, phone_number_id: str | None = None, channel: str = "whatsapp") -> str:
    """Return a base64url HMAC-SHA256 of the sender, truncated to HASH_LENGTH.

    Args:
        sender_id: Sender phone number as delivered by the platform. NEVER logged.
        phone_number_id: Business phone number the message was sent to.
        channel: Messaging channel.

    Raises:
        HashSecretMissing: If CONTACT_HASH_SECRET is unset.
    """
    key = "|".join((channel, phone_number_id or "", sender_id)).encode()
    digest = hmac.new(_secret(), key, hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")[:HASH_LENGTH]
