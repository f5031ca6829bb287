"""Meta Cloud API adapter - detect and normalize WhatsApp Business webhooks.

Meta payload structure:
{
  "object": "whatsapp_business_account",
  "entry": [{
    "id": "WABA_ID",
    "changes": [{
      "value": {
        "metadata": {"display_phone_number": "...", "phone_number_id": "..."},
        "contacts": [{"profile": {"name": "..."}, "wa_id": "..."}],
        "messages": [{"from": "PHONE", "id": "wamid...", "timestamp": "...", "type": "text", ...}],
        "statuses": [{"id": "wamid...", "status": "delivered", "timestamp": "...", "recipient_id": "..."}]
      },
      "field": "messages"
    }]
  }]
}

Only the first entry/change/message is normalized. Media messages carry the
Meta media id, not a URL; resolving it needs a Graph API call that is not
part of normalization.
"""

from __future__ import annotations

from typing import Any

from supersdr.infra.phone import normalize_phone_number
from supersdr.infra.time import seconds_to_ms

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

META_OBJECT = "whatsapp_business_account"

_MEDIA_TYPES: dict[str, MessageType] = {
    "image": MessageType.IMAGE,
    "audio": MessageType.AUDIO,
    "video": MessageType.VIDEO,
    "document": MessageType.DOCUMENT,
    "sticker": MessageType.STICKER,
}

_STATUS_MAP: dict[str, MessageStatus] = {
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "read": MessageStatus.READ,
    "failed": MessageStatus.FAILED,
}


def map_status(meta_status: Any) -> MessageStatus:
    """Map a Meta status string to MessageStatus (PENDING when unknown)."""
    if not isinstance(meta_status, str):
        return MessageStatus.PENDING
    return _STATUS_MAP.get(meta_status, MessageStatus.PENDING)


def _first_change_value(payload: dict[str, Any]) -> dict[str, Any]:
    value = payload["entry"][0]["changes"][0]["value"]
    if not is_object(value):
        raise TypeError("change value is not an object")
    return value


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


class MetaAdapter(BaseWebhookAdapter):
    provider = WebhookProvider.META
    display_name = "Meta Cloud API"
    missing_fields_message = "Meta payload contains no messages or status updates"

    def can_handle(self, payload: Any) -> bool:
        if not is_object(payload):
            return False
        return payload.get("object") == META_OBJECT and _non_empty_list(payload.get("entry"))

    def _has_required_fields(self, payload: Any) -> bool:
        value = _first_change_value(payload)
        return _non_empty_list(value.get("messages")) or _non_empty_list(value.get("statuses"))

    def _extract(self, payload: Any) -> NormalizationResult:
        entry = payload["entry"][0]
        value = _first_change_value(payload)
        metadata = value.get("metadata") or {}

        if _non_empty_list(value.get("messages")):
            return self._from_message(payload, entry, value, metadata)
        return self._from_status(payload, metadata, value["statuses"][0])

    def _from_message(
        self,
        payload: Any,
        entry: dict[str, Any],
        value: dict[str, Any],
        metadata: dict[str, Any],
    ) -> NormalizationResult:
        message = value["messages"][0]
        contacts = value.get("contacts") or []
        contact = contacts[0] if contacts and is_object(contacts[0]) else {}
        profile = contact.get("profile") or {}

        return self._build(
            payload,
            external_id=message.get("id"),
            instance_id=metadata.get("phone_number_id"),
            # Meta sends epoch seconds as a string
            timestamp=seconds_to_ms(message["timestamp"]),
            direction=MessageDirection.INBOUND,
            status=MessageStatus.RECEIVED,
            sender=Contact(
                phone_number=normalize_phone_number(message.get("from")),
                name=profile.get("name") or None,
            ),
            recipient=Contact(
                phone_number=normalize_phone_number(metadata.get("display_phone_number")),
            ),
            content=self._extract_content(message),
            metadata={
                "business_account_id": entry.get("id"),
                "phone_number_id": metadata.get("phone_number_id"),
            },
        )

    def _from_status(
        self,
        payload: Any,
        metadata: dict[str, Any],
        status: dict[str, Any],
    ) -> NormalizationResult:
        raw_status = status.get("status")
        extra: dict[str, Any] = {"is_status_update": True, "original_status": raw_status}
        if status.get("errors"):
            extra["errors"] = status["errors"]

        return self._build(
            payload,
            external_id=status.get("id"),
            instance_id=metadata.get("phone_number_id"),
            timestamp=seconds_to_ms(status["timestamp"]),
            direction=MessageDirection.OUTBOUND,
            status=map_status(raw_status),
            sender=Contact(
                phone_number=normalize_phone_number(metadata.get("display_phone_number")),
            ),
            recipient=Contact(phone_number=normalize_phone_number(status.get("recipient_id"))),
            # Status updates carry no content
            content=MessageContent(type=MessageType.UNKNOWN),
            metadata=extra,
        )

    def _extract_content(self, message: dict[str, Any]) -> MessageContent:
        message_type = message.get("type")

        if message_type == "text":
            text = message.get("text") or {}
            return MessageContent(type=MessageType.TEXT, text=text.get("body") or "")

        if isinstance(message_type, str) and message_type in _MEDIA_TYPES:
            media = message.get(message_type) or {}
            return MessageContent(
                type=_MEDIA_TYPES[message_type],
                media_url=media.get("id"),
                mime_type=media.get("mime_type"),
                caption=media.get("caption"),
                file_name=media.get("filename"),
            )

        if message_type == "location":
            location = message.get("location") or {}
            return MessageContent(
                type=MessageType.LOCATION,
                location=Location(
                    latitude=location.get("latitude") or 0,
                    longitude=location.get("longitude") or 0,
                    name=location.get("name"),
                    address=location.get("address"),
                ),
            )

        if message_type == "reaction":
            reaction = message.get("reaction") or {}
            return MessageContent(type=MessageType.REACTION, text=reaction.get("emoji") or "")

        if message_type == "contacts":
            cards = message.get("contacts") or []
            card = cards[0] if cards and is_object(cards[0]) else {}
            name = card.get("name") or {}
            return MessageContent(type=MessageType.CONTACT, text=name.get("formatted_name"))

        return MessageContent(
            type=MessageType.UNKNOWN,
            text=f"Unsupported message type: {message_type}",
        )
