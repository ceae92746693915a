"""Per-request correlation id, carried in a ContextVar.

The id is echoed in X-Correlation-ID and stamped on every log line written
while the request is in flight.
"""

import uuid
from contextvars import ContextVar, Token
from typing import Mapping

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Accepted in this order; the last two are set by proxies and the hosting platform
INBOUND_HEADERS = (CORRELATION_ID_HEADER, "X-Request-ID", "sb-request-id")

MAX_INBOUND_LENGTH = 128

_current: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def resolve_correlation_id(headers: Mapping[str, str]) -> str:
    """First usable inbound id, else a fresh UUID.

    Blank or oversized values are ignored.
    """
    for name in INBOUND_HEADERS:
        candidate = (headers.get(name) or "").strip()
        if 0 < len(candidate) <= MAX_INBOUND_LENGTH:
            return candidate
    return generate_correlation_id()


def get_correlation_id() -> str:
    """Current request's id, empty outside a request."""
    return _current.get()


def set_correlation_id(cid: str) -> Token[str]:
    return _current.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    _current.reset(token)
