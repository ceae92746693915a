"""WhatsApp Cloud API webhook models."""

from dataclasses import dataclass, field

BUSINESS_ACCOUNT_OBJECT = "whatsapp_business_account"


@dataclass(frozen=True)
class InboundMessage:
    """One entry of ``value.messages[]``.

    ``sender`` is the customer's phone number (PII): use only in memory,
    never log it, never persist it raw.
    """

    message_id: str
    sender: str
    kind: str  # "text", "image", "button", ...
    timestamp: str
    content: str | None = None  # type-specific payload, see meta_adapter
    phone_number_id: str | None = None


@dataclass(frozen=True)
class StatusUpdate:
    """One entry of ``value.statuses[]``: a delivery-state transition."""

    message_id: str
    status: str
    timestamp: str
    recipient_id: str
    phone_number_id: str | None = None

    @property
    def dedupe_key(self) -> str:
        # sent/delivered/read for one wamid are distinct events
        return f"{self.message_id}:{self.status}"


@dataclass
class WebhookBatch:
    """Everything extracted from one POST delivery."""

    messages: list[InboundMessage] = field(default_factory=list)
    statuses: list[StatusUpdate] = field(default_factory=list)
    skipped: int = 0  # malformed items ignored while walking the payload
