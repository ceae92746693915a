"""Meta WhatsApp Cloud API adapter - signature verification and payload walking.

Payload shape delivered by Meta:

    {
      "object": "whatsapp_business_account",
      "entry": [{
        "id": "WABA_ID",
        "changes": [{
          "field": "messages",
          "value": {
            "metadata": {"phone_number_id": "..."},
            "messages": [{"from": "PHONE", "id": "wamid...", "type": "text", "text": {"body": "..."}}],
            "statuses": [{"id": "wamid...", "status": "delivered", "recipient_id": "PHONE"}]
          }
        }]
      }]
    }

Messages and statuses are independent collections; a single change may carry
either, both, or neither.
"""

import hashlib
import hmac
from typing import Any, Callable, Iterator

from .models import BUSINESS_ACCOUNT_OBJECT, InboundMessage, StatusUpdate, WebhookBatch

SIGNATURE_PREFIX = "sha256="


class InvalidPayloadError(Exception):
    """Raised when a webhook payload is not a WhatsApp business account event."""

    pass


class SignatureVerificationError(Exception):
    """Raised when HMAC signature verification fails."""

    pass


def compute_signature(payload_bytes: bytes, app_secret: str) -> str:
    """Return the ``sha256=<hex>`` header value Meta would send for this body."""
    digest = hmac.new(
        key=app_secret.encode("utf-8"),
        msg=payload_bytes,
        digestmod=hashlib.sha256,
    ).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(payload_bytes: bytes, signature_header: str | None, app_secret: str) -> None:
    """Verify the X-Hub-Signature-256 header against the raw request body.

    The HMAC is computed over the exact bytes received. Re-serialized JSON
    will not match.

    Args:
        payload_bytes: Raw request body bytes.
        signature_header: X-Hub-Signature-256 header value (sha256=...).
        app_secret: Meta App Secret.

    Raises:
        SignatureVerificationError: If header is missing, malformed, or wrong.
    """
    if not app_secret:
        raise SignatureVerificationError("app secret not configured")

    if not signature_header:
        raise SignatureVerificationError("missing signature header")

    if not signature_header.startswith(SIGNATURE_PREFIX):
        raise SignatureVerificationError("invalid signature format")

    expected_sig = signature_header[len(SIGNATURE_PREFIX):]
    computed_sig = compute_signature(payload_bytes, app_secret)[len(SIGNATURE_PREFIX):]

    # compare_digest on bytes: non-ASCII header junk must fail, not raise
    if not hmac.compare_digest(
        computed_sig.encode("ascii"),
        expected_sig.encode("utf-8", errors="replace"),
    ):
        raise SignatureVerificationError("signature mismatch")


def is_valid_signature(payload_bytes: bytes, signature_header: str | None, app_secret: str) -> bool:
    """Boolean form of verify_signature()."""
    try:
        verify_signature(payload_bytes, signature_header, app_secret)
    except SignatureVerificationError:
        return False
    return True


# Type-specific payload extraction. Each message type carries its data under a
# key named after the type.


def _media_id(body: dict[str, Any]) -> str | None:
    return body.get("id")


def _text_body(body: dict[str, Any]) -> str | None:
    return body.get("body")


def _button_payload(body: dict[str, Any]) -> str | None:
    return body.get("payload") or body.get("text")


def _interactive_reply(body: dict[str, Any]) -> str | None:
    for reply_key in ("button_reply", "list_reply"):
        reply = body.get(reply_key)
        if isinstance(reply, dict) and reply.get("id"):
            return reply["id"]
    return None


def _location(body: dict[str, Any]) -> str | None:
    lat, lng = body.get("latitude"), body.get("longitude")
    if lat is None or lng is None:
        return None
    return f"{lat},{lng}"


_CONTENT_EXTRACTORS: dict[str, Callable[[dict[str, Any]], str | None]] = {
    "text": _text_body,
    "image": _media_id,
    "video": _media_id,
    "audio": _media_id,
    "document": _media_id,
    "sticker": _media_id,
    "button": _button_payload,
    "interactive": _interactive_reply,
    "location": _location,
}


def extract_content(message: dict[str, Any]) -> str | None:
    """Extract the type-specific payload of a message, None for unknown types."""
    kind = message.get("type")
    extractor = _CONTENT_EXTRACTORS.get(kind) if isinstance(kind, str) else None
    if extractor is None:
        return None
    body = message.get(kind)
    if not isinstance(body, dict):
        return None
    value = extractor(body)
    return str(value) if value is not None else None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def iter_message_changes(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield the ``value`` dict of every ``field == "messages"`` change."""
    for entry in _as_list(payload.get("entry")):
        if not isinstance(entry, dict):
            continue
        for change in _as_list(entry.get("changes")):
            if not isinstance(change, dict) or change.get("field") != "messages":
                continue
            value = change.get("value")
            if isinstance(value, dict):
                yield value


def _parse_message(raw: Any, phone_number_id: str | None) -> InboundMessage | None:
    if not isinstance(raw, dict):
        return None
    message_id = raw.get("id")
    if not message_id or not isinstance(message_id, str):
        return None
    return InboundMessage(
        message_id=message_id,
        sender=str(raw.get("from") or ""),
        kind=str(raw.get("type") or "unknown"),
        timestamp=str(raw.get("timestamp") or ""),
        content=extract_content(raw),
        phone_number_id=phone_number_id,
    )


def _parse_status(raw: Any, phone_number_id: str | None) -> StatusUpdate | None:
    if not isinstance(raw, dict):
        return None
    message_id = raw.get("id")
    status = raw.get("status")
    if not message_id or not isinstance(message_id, str) or not status:
        return None
    return StatusUpdate(
        message_id=message_id,
        status=str(status),
        timestamp=str(raw.get("timestamp") or ""),
        recipient_id=str(raw.get("recipient_id") or ""),
        phone_number_id=phone_number_id,
    )


def parse_batch(payload: Any) -> WebhookBatch:
    """Walk entry[].changes[] and collect messages and statuses.

    Malformed items are counted in ``skipped`` and otherwise ignored.

    Raises:
        InvalidPayloadError: If payload is not a business account event.
    """
    if not isinstance(payload, dict):
        raise InvalidPayloadError("payload is not an object")
    if payload.get("object") != BUSINESS_ACCOUNT_OBJECT:
        raise InvalidPayloadError("unexpected object type")

    batch = WebhookBatch()
    for value in iter_message_changes(payload):
        metadata = value.get("metadata")
        phone_number_id = metadata.get("phone_number_id") if isinstance(metadata, dict) else None

        for raw in _as_list(value.get("messages")):
            message = _parse_message(raw, phone_number_id)
            if message is None:
                batch.skipped += 1
            else:
                batch.messages.append(message)

        for raw in _as_list(value.get("statuses")):
            status = _parse_status(raw, phone_number_id)
            if status is None:
                batch.skipped += 1
            else:
                batch.statuses.append(status)

    return batch
