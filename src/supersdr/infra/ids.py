"""Identifier generation for normalized messages."""

import secrets

from .time import now_ms

MESSAGE_ID_PREFIX = "msg"


def generate_message_id(prefix: str = MESSAGE_ID_PREFIX) -> str:
    """Generate a unique internal message id.

    Time component (ms, hex) plus 48 random bits; no shared counter, safe
    to call from concurrent requests.
    """
    return f"{prefix}_{now_ms():x}_{secrets.token_hex(6)}"
