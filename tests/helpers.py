"""Shared test helper functions for SuperSDR tests.

Payload builders for each provider. These are NOT fixtures - they are
regular functions returning a fresh dict on every call, so tests can
mutate the result freely.
"""

from __future__ import annotations

import copy
from typing import Any

META_TEXT_PAYLOAD: dict[str, Any] = {
    "object": "whatsapp_business_account",
    "entry": [
        {
            "id": "WHATSAPP_BUSINESS_ACCOUNT_ID",
            "changes": [
                {
                    "value": {
                        "messaging_product": "whatsapp",
                        "metadata": {
                            "display_phone_number": "5511999999999",
                            "phone_number_id": "PHONE_NUMBER_ID",
                        },
                        "contacts": [
                            {"profile": {"name": "João Silva"}, "wa_id": "5511988888888"}
                        ],
                        "messages": [
                            {
                                "from": "5511988888888",
                                "id": "wamid.ABC",
                                "timestamp": "1677234567",
                                "type": "text",
                                "text": {"body": "Olá"},
                            }
                        ],
                    },
                    "field": "messages",
                }
            ],
        }
    ],
}

EVOLUTION_TEXT_PAYLOAD: dict[str, Any] = {
    "event": "messages.upsert",
    "instance": "minha-instancia",
    "data": {
        "key": {
            "remoteJid": "5511988888888@s.whatsapp.net",
            "fromMe": False,
            "id": "3EB0B430B6F8C1D073A0",
        },
        "pushName": "João Silva",
        "message": {"conversation": "Olá, gostaria de saber mais sobre o produto"},
        "messageType": "conversation",
        "messageTimestamp": 1677234567,
    },
    "destination": "5511999999999@s.whatsapp.net",
    "date_time": "2024-01-15T10:30:00.000Z",
    "sender": "5511988888888@s.whatsapp.net",
    "server_url": "https://evolution.example.com",
    "apikey": "test-api-key",
}

ZAPI_TEXT_PAYLOAD: dict[str, Any] = {
    "instanceId": "ZAPI_INSTANCE_ID",
    "messageId": "3EB0B430B6F8C1D073A0",
    "phone": "5511988888888",
    "fromMe": False,
    "momment": 1677234567000,
    "status": "RECEIVED",
    "chatName": "João Silva",
    "senderPhoto": "https://pps.whatsapp.net/photo.jpg",
    "senderName": "João Silva",
    "participantPhone": None,
    "photo": "https://pps.whatsapp.net/chat.jpg",
    "broadcast": False,
    "type": "ReceivedCallback",
    "text": {"message": "Olá, gostaria de saber mais sobre o produto"},
}


def meta_payload() -> dict[str, Any]:
    return copy.deepcopy(META_TEXT_PAYLOAD)


def meta_value(payload: dict[str, Any]) -> dict[str, Any]:
    """The first change value of a Meta payload (for in-place edits)."""
    return payload["entry"][0]["changes"][0]["value"]


def meta_message_payload(message: dict[str, Any]) -> dict[str, Any]:
    """Meta payload whose single message is replaced by `message`."""
    payload = meta_payload()
    base = {"from": "5511988888888", "id": "wamid.MEDIA", "timestamp": "1677234567"}
    meta_value(payload)["messages"] = [{**base, **message}]
    return payload


def meta_status_payload(status: str = "delivered") -> dict[str, Any]:
    payload = meta_payload()
    value = meta_value(payload)
    del value["messages"]
    del value["contacts"]
    value["statuses"] = [
        {
            "id": "wamid.OUT123",
            "status": status,
            "timestamp": "1677234600",
            "recipient_id": "5511988888888",
        }
    ]
    return payload


def evolution_payload(**data_overrides: Any) -> dict[str, Any]:
    payload = copy.deepcopy(EVOLUTION_TEXT_PAYLOAD)
    payload["data"].update(data_overrides)
    return payload


def evolution_message_payload(message: dict[str, Any], message_type: str) -> dict[str, Any]:
    return evolution_payload(message=message, messageType=message_type)


def zapi_payload(**overrides: Any) -> dict[str, Any]:
    payload = copy.deepcopy(ZAPI_TEXT_PAYLOAD)
    payload.update(overrides)
    return payload


def zapi_media_payload(**media: Any) -> dict[str, Any]:
    """Z-API payload without text, carrying the given media sub-objects."""
    payload = zapi_payload(**media)
    del payload["text"]
    return payload


# Values that are not JSON objects, or are objects of no known provider
NON_PROVIDER_VALUES: list[Any] = [
    None,
    [],
    [1, 2],
    {},
    "",
    "whatsapp_business_account",
    0,
    1.5,
    True,
    {"foo": "bar"},
    {"object": "page", "entry": [{}]},
    {"object": "whatsapp_business_account", "entry": []},
    {"object": "whatsapp_business_account", "entry": "not-a-list"},
    {"event": "messages.upsert", "instance": "x", "data": []},
    {"event": "messages.upsert", "instance": 1, "data": {"key": {}}},
    {"instanceId": "i", "messageId": "m", "phone": "p", "momment": "1677234567000"},
    {"instanceId": "i", "messageId": "m", "phone": "p", "momment": True},
]
