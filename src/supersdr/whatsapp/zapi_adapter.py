"""Z-API adapter - detect and normalize webhook payloads.

Z-API sends a flat payload per message (ReceivedCallback):
{
  "instanceId": "...", "messageId": "...", "phone": "5511...",
  "fromMe": false, "momment": 1677234567000, "status": "RECEIVED",
  "senderName": "...", "chatName": "...", "senderPhoto": "...",
  "type": "ReceivedCallback",
  "text": {"message": "..."} | "image": {...} | "audio": {...} | ...
}

"momment" (sic) is already in milliseconds. The business number is not part
of the payload, so our side of the conversation has an empty phone number.
"""

from __future__ import annotations

from typing import Any

from supersdr.infra.phone import normalize_phone_number

from .base_adapter import BaseWebhookAdapter, is_object
from .models import (
    Contact,
    Location,
    MessageContent,
    MessageDirection,
    MessageStatus,
    MessageType,
    NormalizationResult,
    WebhookProvider,
)

_STATUS_MAP: dict[str, MessageStatus] = {
    "RECEIVED": MessageStatus.RECEIVED,
    "SENT": MessageStatus.SENT,
    "DELIVERED": MessageStatus.DELIVERED,
    "READ": MessageStatus.READ,
    "PLAYED": MessageStatus.READ,  # audio
    "FAILED": MessageStatus.FAILED,
    "PENDING": MessageStatus.PENDING,
}

# (payload field, url field, kind), probed in this order after text
_MEDIA_FIELDS: tuple[tuple[str, str, MessageType], ...] = (
    ("image", "imageUrl", MessageType.IMAGE),
    ("audio", "audioUrl", MessageType.AUDIO),
    ("video", "videoUrl", MessageType.VIDEO),
    ("document", "documentUrl", MessageType.DOCUMENT),
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def map_status(zapi_status: Any, is_outbound: bool) -> MessageStatus:
    """Map a Z-API status (case-insensitive) to MessageStatus.

    Inbound messages are always RECEIVED, whatever the payload says.
    """
    if not is_outbound:
        return MessageStatus.RECEIVED
    if not isinstance(zapi_status, str):
        return MessageStatus.PENDING
    return _STATUS_MAP.get(zapi_status.upper(), MessageStatus.PENDING)


class ZApiAdapter(BaseWebhookAdapter):
    provider = WebhookProvider.ZAPI
    display_name = "Z-API"
    missing_fields_message = (
        "Z-API payload is missing required fields (instanceId, messageId, phone, momment)"
    )

    def can_handle(self, payload: Any) -> bool:
        if not is_object(payload):
            return False
        return (
            isinstance(payload.get("instanceId"), str)
            and isinstance(payload.get("messageId"), str)
            and isinstance(payload.get("phone"), str)
            and _is_number(payload.get("momment"))
        )

    def _has_required_fields(self, payload: Any) -> bool:
        return bool(
            payload["instanceId"]
            and payload["messageId"]
            and payload["phone"]
            and payload["momment"]
        )

    def _extract(self, payload: Any) -> NormalizationResult:
        is_outbound = payload.get("fromMe") is True
        contact_phone = normalize_phone_number(payload["phone"])
        photo = payload.get("senderPhoto") or payload.get("photo") or None

        if is_outbound:
            sender = Contact(phone_number="")
            recipient = Contact(
                phone_number=contact_phone,
                name=payload.get("chatName") or None,
                profile_pic_url=photo,
            )
        else:
            sender = Contact(
                phone_number=contact_phone,
                name=payload.get("senderName") or payload.get("chatName") or None,
                profile_pic_url=photo,
            )
            recipient = Contact(phone_number="")

        return self._build(
            payload,
            external_id=payload["messageId"],
            instance_id=payload["instanceId"],
            timestamp=int(payload["momment"]),
            direction=MessageDirection.OUTBOUND if is_outbound else MessageDirection.INBOUND,
            status=map_status(payload.get("status"), is_outbound),
            sender=sender,
            recipient=recipient,
            content=self._extract_content(payload),
            metadata={
                "type": payload.get("type"),
                "broadcast": payload.get("broadcast"),
                "participant_phone": payload.get("participantPhone"),
                "is_group": payload.get("isGroup"),
            },
        )

    def _extract_content(self, payload: dict[str, Any]) -> MessageContent:
        # Text wins over any media sub-object
        text = payload.get("text")
        if is_object(text) and text.get("message"):
            return MessageContent(type=MessageType.TEXT, text=text["message"])

        for field_name, url_field, kind in _MEDIA_FIELDS:
            media = payload.get(field_name)
            if is_object(media):
                return MessageContent(
                    type=kind,
                    media_url=media.get(url_field),
                    mime_type=media.get("mimeType"),
                    caption=media.get("caption"),
                    file_name=media.get("fileName"),
                )

        location = payload.get("location")
        if is_object(location):
            return MessageContent(
                type=MessageType.LOCATION,
                location=Location(
                    latitude=location.get("latitude") or 0,
                    longitude=location.get("longitude") or 0,
                    name=location.get("name"),
                    address=location.get("address"),
                ),
            )

        sticker = payload.get("sticker")
        if is_object(sticker):
            return MessageContent(
                type=MessageType.STICKER,
                media_url=sticker.get("stickerUrl"),
                mime_type=sticker.get("mimeType"),
            )

        reaction = payload.get("reaction")
        if is_object(reaction):
            return MessageContent(type=MessageType.REACTION, text=reaction.get("value") or "")

        contact = payload.get("contact")
        if is_object(contact):
            return MessageContent(type=MessageType.CONTACT, text=contact.get("displayName"))

        return MessageContent(
            type=MessageType.UNKNOWN,
            text=f"Message type: {payload.get('type')}",
        )
