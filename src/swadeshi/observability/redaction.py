"""Log redaction. Anything that came from a request passes through here.

Customer phones, e-mails, bearer tokens and webhook signatures never reach
the log stream in clear text. Containers are summarized by shape only.
"""

import re
from typing import Any

REDACTED = "[REDACTED]"

# Applied in order: credentials first so a JWT is not half-eaten by the
# phone pattern.
_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)bearer\s+[A-Za-z0-9\-_.=]+"), REDACTED),
    (re.compile(r"eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*"), REDACTED),
    (re.compile(r"sha256=[0-9a-fA-F]+"), "sha256=" + REDACTED),
    # +<9-15 digits> with light punctuation, or 10-15 bare digits with optional
    # single spaces. Must stand alone, so dates, UUIDs and ids stay intact.
    (
        re.compile(r"(?<![\w+\-])(?:\+\d(?:[\s\-().]{0,2}\d){8,14}|\d(?: ?\d){9,14})(?![\w\-])"),
        REDACTED,
    ),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), REDACTED),
)


def redact_string(value: str) -> str:
    for pattern, replacement in _RULES:
        value = pattern.sub(replacement, value)
    return value


def redact_value(value: Any) -> str:
    """Render a value as a log-safe string."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value)})"
    if isinstance(value, (list, tuple, set)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def mask_identifier(value: str | None, keep: int = 8) -> str:
    """Shorten an opaque id (wamid, order id) to a loggable prefix."""
    if not value:
        return "missing"
    return value[:keep]


def safe_log_context(**fields: Any) -> dict[str, str]:
    """Build the extra_fields dict for a log call, every value redacted."""
    return {name: redact_value(value) for name, value in fields.items()}
