"""Phone number canonicalization shared by all provider adapters."""

import re

# WhatsApp addressing suffixes: @s.whatsapp.net, @c.us, @g.us, @lid ...
_WHATSAPP_SUFFIX = re.compile(r"@[a-z.]+$", re.IGNORECASE)
_NON_DIGIT_OR_PLUS = re.compile(r"[^\d+]")


def normalize_phone_number(phone: str | int | None) -> str:
    """Return the canonical digits-only form of a phone number or JID.

    Country code is kept, the leading plus sign is dropped. Idempotent.

    Examples:
        "5511988888888@s.whatsapp.net" -> "5511988888888"
        "+55 (11) 98888-8888" -> "5511988888888"
    """
    if not phone:
        return ""

    normalized = _WHATSAPP_SUFFIX.sub("", str(phone))
    normalized = _NON_DIGIT_OR_PLUS.sub("", normalized)
    return normalized.lstrip("+")
