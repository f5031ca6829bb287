"""Evolution API adapter - detect and normalize webhook payloads.

Evolution payload structure:
{
  "event": "messages.upsert",
  "instance": "instance-name",
  "data": {
    "key": {"remoteJid": "5511...@s.whatsapp.net", "fromMe": false, "id": "3EB0..."},
    "pushName": "...",
    "message": {"conversation": "..."} | {"imageMessage": {...}} | ...,
    "messageType": "conversation",
    "messageTimestamp": 1677234567
  },
  "destination": "...",
  "date_time": "...",
  "server_url": "..."
}
"""

from __future__ import annotations

from typing import Any

from supersdr.infra.phone import normalize_phone_number
from supersdr.infra.time import coerce_epoch_ms

from .base_adapter import BaseWebhookAdapter, is_object
from .models import (
    Contact,
    ErrorCode,
    Location,
    MessageContent,
    MessageDirection,
    MessageStatus,
    MessageType,
    NormalizationResult,
    WebhookProvider,
)

MESSAGE_EVENTS = frozenset(
    {
        "messages.upsert",
        "messages.update",
        "message.ack",
        "send.message",
    }
)

# Probed in this order after the two text variants
_MEDIA_VARIANTS: tuple[tuple[str, MessageType], ...] = (
    ("imageMessage", MessageType.IMAGE),
    ("audioMessage", MessageType.AUDIO),
    ("videoMessage", MessageType.VIDEO),
    ("documentMessage", MessageType.DOCUMENT),
)

_KIND_BY_MESSAGE_TYPE: dict[str, MessageType] = {
    "conversation": MessageType.TEXT,
    "extendedTextMessage": MessageType.TEXT,
    "imageMessage": MessageType.IMAGE,
    "audioMessage": MessageType.AUDIO,
    "videoMessage": MessageType.VIDEO,
    "documentMessage": MessageType.DOCUMENT,
    "locationMessage": MessageType.LOCATION,
    "contactMessage": MessageType.CONTACT,
    "stickerMessage": MessageType.STICKER,
    "reactionMessage": MessageType.REACTION,
}


def map_message_type(evolution_type: Any) -> MessageType:
    if not isinstance(evolution_type, str):
        return MessageType.UNKNOWN
    return _KIND_BY_MESSAGE_TYPE.get(evolution_type, MessageType.UNKNOWN)


def _media_content(kind: MessageType, media: dict[str, Any]) -> MessageContent:
    return MessageContent(
        type=kind,
        media_url=media.get("url"),
        mime_type=media.get("mimetype"),
        caption=media.get("caption"),
        file_name=media.get("fileName"),
    )


class EvolutionAdapter(BaseWebhookAdapter):
    provider = WebhookProvider.EVOLUTION
    display_name = "Evolution API"
    missing_fields_message = (
        "Evolution payload is missing required fields (remoteJid, id, messageTimestamp)"
    )

    def can_handle(self, payload: Any) -> bool:
        if not is_object(payload):
            return False
        data = payload.get("data")
        return (
            isinstance(payload.get("event"), str)
            and isinstance(payload.get("instance"), str)
            and is_object(data)
            and is_object(data.get("key"))
        )

    def _has_required_fields(self, payload: Any) -> bool:
        data = payload["data"]
        key = data["key"]
        return bool(
            key.get("remoteJid")
            and key.get("id")
            and data.get("messageTimestamp") is not None
        )

    def _extract(self, payload: Any) -> NormalizationResult:
        event = payload["event"]
        if event not in MESSAGE_EVENTS:
            return NormalizationResult.fail(
                ErrorCode.UNSUPPORTED_MESSAGE_TYPE,
                f"Unsupported event: {event}. Only message events are processed.",
                details={"event": event, "supported_events": sorted(MESSAGE_EVENTS)},
            )

        data = payload["data"]
        key = data["key"]
        from_me = key.get("fromMe") is True
        push_name = data.get("pushName") or None

        remote_phone = normalize_phone_number(key["remoteJid"])
        own_phone = normalize_phone_number(payload.get("destination"))

        if from_me:
            sender = Contact(phone_number=own_phone)
            recipient = Contact(phone_number=remote_phone, name=push_name)
        else:
            sender = Contact(phone_number=remote_phone, name=push_name)
            recipient = Contact(phone_number=own_phone)

        return self._build(
            payload,
            external_id=key.get("id"),
            instance_id=payload["instance"],
            timestamp=coerce_epoch_ms(data["messageTimestamp"]),
            direction=MessageDirection.OUTBOUND if from_me else MessageDirection.INBOUND,
            # Evolution has no richer status vocabulary on message events
            status=MessageStatus.SENT if from_me else MessageStatus.RECEIVED,
            sender=sender,
            recipient=recipient,
            content=self._extract_content(data.get("message"), data.get("messageType")),
            metadata={
                "event": event,
                "message_type": data.get("messageType"),
                "server_url": payload.get("server_url"),
                "date_time": payload.get("date_time"),
            },
        )

    def _extract_content(self, message: Any, message_type: Any) -> MessageContent:
        if not is_object(message):
            return MessageContent(type=MessageType.UNKNOWN)

        conversation = message.get("conversation")
        if isinstance(conversation, str) and conversation:
            return MessageContent(type=MessageType.TEXT, text=conversation)

        # Text with link preview, quoted reply, etc.
        extended = message.get("extendedTextMessage")
        if is_object(extended):
            return MessageContent(type=MessageType.TEXT, text=extended.get("text") or "")

        for variant, kind in _MEDIA_VARIANTS:
            media = message.get(variant)
            if is_object(media):
                return _media_content(kind, media)

        location = message.get("locationMessage")
        if is_object(location):
            return MessageContent(
                type=MessageType.LOCATION,
                location=Location(
                    latitude=location.get("degreesLatitude") or 0,
                    longitude=location.get("degreesLongitude") or 0,
                    name=location.get("name"),
                    address=location.get("address"),
                ),
            )

        sticker = message.get("stickerMessage")
        if is_object(sticker):
            return _media_content(MessageType.STICKER, sticker)

        contact = message.get("contactMessage")
        if is_object(contact):
            return MessageContent(type=MessageType.CONTACT, text=contact.get("displayName"))

        reaction = message.get("reactionMessage")
        if is_object(reaction):
            return MessageContent(type=MessageType.REACTION, text=reaction.get("text") or "")

        return MessageContent(
            type=map_message_type(message_type),
            text=f"Content type: {message_type}",
        )
