"""Redaction helpers for safe logging.

Webhook payloads carry phone numbers, JIDs, push names and message text.
Anything taken from a payload must pass through these helpers before it
reaches a log line.
"""

import re
from enum import Enum
from typing import Any

_JID_PATTERN = re.compile(
    r"\b[\w.+-]+@(?:s\.whatsapp\.net|c\.us|g\.us|lid|broadcast)\b", re.IGNORECASE
)
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Redact JIDs, phone numbers and e-mails from a string."""
    result = _JID_PATTERN.sub(_REDACTED, value)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if isinstance(value, Enum):
        value = value.value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # Structure only, never values
        return f"dict(keys={sorted(str(k) for k in value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def mask_identifier(value: str | None, keep: int = 8) -> str:
    """Keep only a short prefix of a provider message id."""
    if not value:
        return "missing"
    return value if len(value) <= keep else f"{value[:keep]}..."


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
