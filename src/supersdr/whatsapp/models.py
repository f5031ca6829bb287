"""Canonical WhatsApp message model shared by every provider adapter.

All adapters converge to NormalizedMessage. Instances are created only
inside an adapter's normalize() and are immutable afterwards; persistence
and classification collaborators read them but never mutate them.

PII: sender/recipient phone numbers, names and message text are
personal data. Never log a NormalizedMessage directly, use
observability.redaction.safe_log_context on individual fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WebhookProvider(str, Enum):
    META = "meta"
    EVOLUTION = "evolution"
    ZAPI = "z-api"
    UNKNOWN = "unknown"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    LOCATION = "location"
    CONTACT = "contact"
    STICKER = "sticker"
    REACTION = "reaction"
    UNKNOWN = "unknown"


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageStatus(str, Enum):
    RECEIVED = "received"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    PENDING = "pending"


class ErrorCode(str, Enum):
    """Closed error taxonomy for normalization failures."""

    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    UNKNOWN_PROVIDER = "UNKNOWN_PROVIDER"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    UNSUPPORTED_MESSAGE_TYPE = "UNSUPPORTED_MESSAGE_TYPE"
    PARSE_ERROR = "PARSE_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"


def provider_name(provider: WebhookProvider | str) -> str:
    """Plain string name of a built-in or custom provider."""
    if isinstance(provider, WebhookProvider):
        return provider.value
    return str(provider)


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class Contact:
    """One side of a conversation.

    phone_number is canonical: digits only, country code included, no plus
    sign. It may be empty when the provider does not send our own number.
    """

    phone_number: str
    name: str | None = None
    profile_pic_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"phone_number": self.phone_number, "name": self.name}
        if self.profile_pic_url is not None:
            data["profile_pic_url"] = self.profile_pic_url
        return data


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    name: str | None = None
    address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "latitude": self.latitude,
                "longitude": self.longitude,
                "name": self.name,
                "address": self.address,
            }
        )


@dataclass(frozen=True)
class MessageContent:
    """Message body tagged by type.

    Only the fields relevant to `type` are set: text for text (and the
    diagnostic text of unknown content), caption/media_url/mime_type for
    media, file_name for documents, location for locations.
    """

    type: MessageType
    text: str | None = None
    caption: str | None = None
    media_url: str | None = None
    mime_type: str | None = None
    file_name: str | None = None
    location: Location | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "type": self.type.value,
                "text": self.text,
                "caption": self.caption,
                "media_url": self.media_url,
                "mime_type": self.mime_type,
                "file_name": self.file_name,
                "location": self.location.to_dict() if self.location else None,
            }
        )


@dataclass(frozen=True)
class NormalizedMessage:
    """Canonical message produced by a provider adapter.

    Attributes:
        id: Internal id generated at normalization time.
        external_id: Provider-native message id.
        provider: Adapter that produced the message (never UNKNOWN).
        instance_id: phone_number_id (Meta) or instance name (Evolution/Z-API).
        timestamp: Unix epoch in milliseconds.
        direction: inbound or outbound.
        status: Delivery status mapped from the provider vocabulary.
        sender: Who sent the message ("from").
        recipient: Who receives it ("to").
        content: Typed message body.
        raw_payload: Untouched webhook payload, for audit/debug only.
        metadata: Provider-specific facts outside the canonical schema.
    """

    id: str
    external_id: str
    provider: WebhookProvider | str
    instance_id: str
    timestamp: int
    direction: MessageDirection
    status: MessageStatus
    sender: Contact
    recipient: Contact
    content: MessageContent
    raw_payload: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def external_contact(self) -> Contact:
        """The party outside our account (the contact to upsert)."""
        if self.direction == MessageDirection.INBOUND:
            return self.sender
        return self.recipient

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict ("from"/"to" keys for the parties)."""
        return {
            "id": self.id,
            "external_id": self.external_id,
            "provider": provider_name(self.provider),
            "instance_id": self.instance_id,
            "timestamp": self.timestamp,
            "direction": self.direction.value,
            "status": self.status.value,
            "from": self.sender.to_dict(),
            "to": self.recipient.to_dict(),
            "content": self.content.to_dict(),
            "raw_payload": self.raw_payload,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ProviderIdentification:
    provider: WebhookProvider | str
    confidence: float

    @classmethod
    def unknown(cls) -> ProviderIdentification:
        return cls(provider=WebhookProvider.UNKNOWN, confidence=0.0)


@dataclass(frozen=True)
class NormalizationError:
    code: ErrorCode
    message: str
    details: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass(frozen=True)
class NormalizationResult:
    """Either a message (success) or an error, never both."""

    success: bool
    message: NormalizedMessage | None = None
    error: NormalizationError | None = None

    def __post_init__(self) -> None:
        if self.success and (self.message is None or self.error is not None):
            raise ValueError("successful result must carry a message and no error")
        if not self.success and (self.error is None or self.message is not None):
            raise ValueError("failed result must carry an error and no message")

    @classmethod
    def ok(cls, message: NormalizedMessage) -> NormalizationResult:
        return cls(success=True, message=message)

    @classmethod
    def fail(
        cls, code: ErrorCode, message: str, details: Any = None
    ) -> NormalizationResult:
        return cls(
            success=False,
            error=NormalizationError(code=code, message=message, details=details),
        )

    def to_dict(self) -> dict[str, Any]:
        if self.success and self.message is not None:
            return {"success": True, "message": self.message.to_dict()}
        assert self.error is not None
        return {"success": False, "error": self.error.to_dict()}
