"""WhatsApp Cloud API webhook - subscription handshake and event delivery.

Response contract with Meta:
- GET  handshake: 200 text/plain echo of hub.challenge, else 403.
- POST delivery:  403 {"error": "Invalid signature"} when the HMAC check
  fails; otherwise ALWAYS 200 {"status": "received"}. Meta retries non-2xx
  responses and eventually disables the subscription, so malformed payloads,
  unknown shapes and storage failures are logged, never surfaced.

Security:
- HMAC-SHA256 over the raw body with WHATSAPP_APP_SECRET. Without a secret
  the webhook rejects every POST unless INSECURE_SKIP_VERIFICATION is set.
- Sender phone numbers and message bodies are never logged or stored; receipts
  keep a keyed hash of the sender.
"""

import hmac
import json
import os
from typing import Any

from fastapi import APIRouter, Header, Query, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from swadeshi.infra.db import txn
from swadeshi.infra.hashing import HashSecretMissing, hash_sender
from swadeshi.infra.repositories.webhook_events_repository import (
    SOURCE_WHATSAPP_MESSAGE,
    SOURCE_WHATSAPP_STATUS,
    insert_inbound_event,
    record_processed_event,
)
from swadeshi.observability.correlation import get_correlation_id
from swadeshi.observability.logging import get_logger
from swadeshi.observability.redaction import mask_identifier, safe_log_context
from swadeshi.whatsapp.meta_adapter import (
    InvalidPayloadError,
    SignatureVerificationError,
    parse_batch,
    verify_signature,
)
from swadeshi.whatsapp.models import InboundMessage, StatusUpdate, WebhookBatch

router = APIRouter(prefix="/webhooks/whatsapp", tags=["webhooks"])

logger = get_logger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}

RECEIVED = {"status": "received"}


def insecure_mode_enabled() -> bool:
    """INSECURE_SKIP_VERIFICATION opt-in (bootstrap environments only)."""
    return os.environ.get("INSECURE_SKIP_VERIFICATION", "").strip().lower() in _TRUTHY


def check_webhook_signature(body: bytes, signature_header: str | None) -> bool:
    """Apply the signature policy to one delivery.

    Secret configured: the HMAC must match. Secret missing: reject, unless the
    insecure flag is explicitly on, in which case allow and warn loudly.
    """
    correlation_id = get_correlation_id()
    app_secret = os.environ.get("WHATSAPP_APP_SECRET", "")

    if not app_secret:
        if insecure_mode_enabled():
            logger.warning(
                "WHATSAPP_APP_SECRET missing - signature check SKIPPED (INSECURE_SKIP_VERIFICATION)",
                extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
            )
            return True
        logger.error(
            "WHATSAPP_APP_SECRET missing - rejecting delivery (fail closed)",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return False

    try:
        verify_signature(body, signature_header, app_secret)
    except SignatureVerificationError as e:
        logger.warning(
            "whatsapp signature verification failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    reason=str(e),
                    header_present=bool(signature_header),
                )
            },
        )
        return False
    return True


@router.get("")
async def whatsapp_webhook_verify(
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
) -> Response:
    """Subscription handshake: echo hub.challenge when mode and token match."""
    expected_token = os.environ.get("WHATSAPP_VERIFY_TOKEN", "")

    token_ok = bool(expected_token) and hmac.compare_digest(
        (hub_verify_token or "").encode("utf-8"),
        expected_token.encode("utf-8"),
    )

    if hub_mode == "subscribe" and token_ok:
        logger.info(
            "whatsapp webhook verified",
            extra={"extra_fields": safe_log_context(hub_mode=hub_mode)},
        )
        return Response(status_code=200, content=hub_challenge or "", media_type="text/plain")

    logger.warning(
        "whatsapp webhook verification failed",
        extra={
            "extra_fields": safe_log_context(
                hub_mode=hub_mode or "missing",
                token_configured=bool(expected_token),
                token_match=token_ok,
            )
        },
    )
    return Response(status_code=403, content="Forbidden", media_type="text/plain")


def _sender_hash(message: InboundMessage) -> str | None:
    if not message.sender:
        return None
    try:
        return hash_sender(message.sender, message.phone_number_id)
    except HashSecretMissing:
        # receipt is kept without a sender hash
        return None


def _record_message(message: InboundMessage) -> bool:
    """Dedupe and store a message receipt. Returns False for a redelivery."""
    sender_hash = _sender_hash(message)
    with txn() as cur:
        if not record_processed_event(
            cur, source=SOURCE_WHATSAPP_MESSAGE, external_id=message.message_id
        ):
            return False
        insert_inbound_event(
            cur,
            message_id=message.message_id,
            kind=message.kind,
            sender_hash=sender_hash,
            phone_number_id=message.phone_number_id,
            sent_at_epoch=message.timestamp,
        )
    return True


def _record_status(status: StatusUpdate) -> bool:
    """Dedupe a status transition. Returns False for a redelivery."""
    with txn() as cur:
        return record_processed_event(
            cur, source=SOURCE_WHATSAPP_STATUS, external_id=status.dedupe_key
        )


def _handle_message(message: InboundMessage, correlation_id: str) -> None:
    try:
        is_new = _record_message(message)
    except Exception:
        logger.exception(
            "failed to record whatsapp message",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    message_id_prefix=mask_identifier(message.message_id),
                )
            },
        )
        return

    if not is_new:
        logger.info(
            "duplicate whatsapp message ignored",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    message_id_prefix=mask_identifier(message.message_id),
                )
            },
        )
        return

    logger.info(
        "whatsapp message received",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                message_id_prefix=mask_identifier(message.message_id),
                kind=message.kind,
                has_content=message.content is not None,
                content_length=len(message.content or ""),
            )
        },
    )


def _handle_status(status: StatusUpdate, correlation_id: str) -> None:
    try:
        is_new = _record_status(status)
    except Exception:
        logger.exception(
            "failed to record whatsapp status",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    message_id_prefix=mask_identifier(status.message_id),
                    status=status.status,
                )
            },
        )
        return

    logger.info(
        "whatsapp status update" if is_new else "duplicate whatsapp status ignored",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                message_id_prefix=mask_identifier(status.message_id),
                status=status.status,
            )
        },
    )


def dispatch_batch(batch: WebhookBatch, correlation_id: str) -> None:
    """Process messages and statuses independently; one failure never stops the rest."""
    for message in batch.messages:
        _handle_message(message, correlation_id)
    for status in batch.statuses:
        _handle_status(status, correlation_id)


@router.post("")
async def whatsapp_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(None, alias="X-Hub-Signature-256"),
) -> Response:
    """Receive a webhook delivery from the WhatsApp Cloud API."""
    correlation_id = get_correlation_id()

    # Raw bytes first: the HMAC covers exactly what was sent
    body_bytes = await request.body()

    if not check_webhook_signature(body_bytes, x_hub_signature_256):
        return JSONResponse(status_code=403, content={"error": "Invalid signature"})

    try:
        payload: Any = json.loads(body_bytes)
        batch = parse_batch(payload)
    except (ValueError, InvalidPayloadError) as e:
        # ValueError covers JSONDecodeError and undecodable bytes
        logger.warning(
            "whatsapp delivery ignored",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    reason=type(e).__name__,
                    detail=str(e) if isinstance(e, InvalidPayloadError) else "invalid json",
                )
            },
        )
        return JSONResponse(status_code=200, content=RECEIVED)
    except Exception:
        logger.exception(
            "whatsapp delivery could not be parsed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=200, content=RECEIVED)

    try:
        logger.info(
            "whatsapp delivery accepted",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    messages=len(batch.messages),
                    statuses=len(batch.statuses),
                    skipped=batch.skipped,
                )
            },
        )
        await run_in_threadpool(dispatch_batch, batch, correlation_id)
    except Exception:
        logger.exception(
            "whatsapp delivery processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )

    return JSONResponse(status_code=200, content=RECEIVED)
