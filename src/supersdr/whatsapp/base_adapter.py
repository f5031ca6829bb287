"""Provider adapter contract and shared base implementation.

A provider adapter turns one webhook JSON shape into NormalizedMessage.
New providers integrate by implementing WebhookAdapter (usually by
subclassing BaseWebhookAdapter) and registering with AdapterRegistry; the
registry and the built-in adapters never need to change.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Protocol, runtime_checkable

from supersdr.infra.ids import generate_message_id
from supersdr.observability.logging import get_logger
from supersdr.observability.redaction import safe_log_context

from .models import (
    Contact,
    ErrorCode,
    MessageContent,
    MessageDirection,
    MessageStatus,
    NormalizationResult,
    NormalizedMessage,
    ProviderIdentification,
    WebhookProvider,
)

logger = get_logger(__name__)


@runtime_checkable
class WebhookAdapter(Protocol):
    """Contract every provider adapter implements.

    can_handle and validate are total: they return False for any input
    they do not understand (None, lists, scalars) and never raise.
    normalize never raises either; failures come back as a failed
    NormalizationResult.
    """

    provider: WebhookProvider | str

    def can_handle(self, payload: Any) -> bool: ...

    def validate(self, payload: Any) -> bool: ...

    def normalize(self, payload: Any) -> NormalizationResult: ...

    def identify(self, payload: Any) -> ProviderIdentification: ...


def is_object(value: Any) -> bool:
    """JSON object check (a dict, not a list or scalar)."""
    return isinstance(value, dict)


def describe_exception(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


class BaseWebhookAdapter(ABC):
    """Shared normalize pipeline: detect -> validate -> extract -> check.

    Subclasses provide the structural predicate (can_handle), the deeper
    completeness check (_has_required_fields) and the field extraction
    (_extract). Extraction may raise freely on unexpected shapes; the base
    class turns any exception into a PARSE_ERROR result.
    """

    provider: ClassVar[WebhookProvider | str]
    display_name: ClassVar[str]
    missing_fields_message: ClassVar[str] = "Payload is missing required fields"

    @abstractmethod
    def can_handle(self, payload: Any) -> bool:
        """Structural, side-effect-free detection of the provider's shape."""

    @abstractmethod
    def _has_required_fields(self, payload: Any) -> bool:
        """Deeper completeness check. Only called when can_handle is True."""

    @abstractmethod
    def _extract(self, payload: Any) -> NormalizationResult:
        """Build the normalized message. May raise on malformed input."""

    def validate(self, payload: Any) -> bool:
        if not self.can_handle(payload):
            return False
        try:
            return bool(self._has_required_fields(payload))
        except (LookupError, TypeError, AttributeError, ValueError):
            return False

    def normalize(self, payload: Any) -> NormalizationResult:
        if not self.can_handle(payload):
            return NormalizationResult.fail(
                ErrorCode.INVALID_PAYLOAD,
                f"Payload is not a valid {self.display_name} webhook",
            )

        if not self.validate(payload):
            return NormalizationResult.fail(
                ErrorCode.MISSING_REQUIRED_FIELD, self.missing_fields_message
            )

        try:
            return self._extract(payload)
        except Exception as exc:
            logger.warning(
                "adapter failed to parse payload",
                extra={
                    "extra_fields": safe_log_context(
                        provider=self.provider,
                        error_type=type(exc).__name__,
                    )
                },
            )
            return NormalizationResult.fail(
                ErrorCode.PARSE_ERROR,
                f"Failed to parse {self.display_name} payload",
                details=describe_exception(exc),
            )

    def identify(self, payload: Any) -> ProviderIdentification:
        if self.can_handle(payload):
            return ProviderIdentification(provider=self.provider, confidence=1.0)
        return ProviderIdentification.unknown()

    def _build(
        self,
        payload: Any,
        *,
        external_id: Any,
        instance_id: Any,
        timestamp: int,
        direction: MessageDirection,
        status: MessageStatus,
        sender: Contact,
        recipient: Contact,
        content: MessageContent,
        metadata: dict[str, Any] | None = None,
    ) -> NormalizationResult:
        """Assemble the message and enforce the success invariants."""
        if not isinstance(external_id, str) or not external_id:
            return NormalizationResult.fail(
                ErrorCode.MISSING_REQUIRED_FIELD,
                f"{self.display_name} payload has no message id",
                details={"field": "external_id"},
            )
        if timestamp <= 0:
            return NormalizationResult.fail(
                ErrorCode.MISSING_REQUIRED_FIELD,
                f"{self.display_name} payload has no valid timestamp",
                details={"field": "timestamp"},
            )

        message = NormalizedMessage(
            id=generate_message_id(),
            external_id=external_id,
            provider=self.provider,
            instance_id="" if instance_id is None else str(instance_id),
            timestamp=timestamp,
            direction=direction,
            status=status,
            sender=sender,
            recipient=recipient,
            content=content,
            raw_payload=payload,
            metadata=metadata or {},
        )
        return NormalizationResult.ok(message)
