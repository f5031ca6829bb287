"""Webhook handler - normalize one delivery and hand it to the sink.

Framework-agnostic: the FastAPI routes in supersdr.api call into this, and
queue consumers or scripts can use it directly with an already-decoded
JSON value.
"""

from __future__ import annotations

import hmac
from typing import Any, Protocol

from supersdr.observability.correlation import correlation_scope
from supersdr.observability.logging import get_logger
from supersdr.observability.redaction import mask_identifier, safe_log_context

from .base_adapter import describe_exception
from .models import ErrorCode, NormalizationResult, NormalizedMessage, WebhookProvider
from .registry import AdapterRegistry

logger = get_logger(__name__)


def _tokens_match(token: str | None, expected: str) -> bool:
    return hmac.compare_digest((token or "").encode(), expected.encode())


class MessageSink(Protocol):
    """Persistence-side collaborator receiving normalized messages.

    Implementations typically store the message and upsert
    message.external_contact. They must treat the message as read-only.
    """

    def save(self, message: NormalizedMessage) -> None: ...


class WebhookHandler:
    def __init__(
        self,
        registry: AdapterRegistry | None = None,
        sink: MessageSink | None = None,
    ) -> None:
        self.registry = registry if registry is not None else AdapterRegistry()
        self.sink = sink

    def handle(
        self, payload: Any, provider: WebhookProvider | str | None = None
    ) -> NormalizationResult:
        """Normalize a webhook payload and forward a successful message.

        Args:
            payload: Decoded JSON body of one webhook delivery.
            provider: Skip detection and use this provider's adapter.

        Returns:
            The normalization result. A sink failure is reported as
            PROCESSING_ERROR; nothing is retried here.
        """
        with correlation_scope():
            if provider is None:
                result = self.registry.normalize(payload)
            else:
                result = self.registry.normalize_with_provider(payload, provider)

            if not result.success or result.message is None:
                assert result.error is not None
                logger.warning(
                    "webhook normalization failed",
                    extra={
                        "extra_fields": safe_log_context(
                            error_code=result.error.code,
                            provider=provider or self.registry.identify_provider(payload).provider,
                            payload=payload,
                        )
                    },
                )
                return result

            message = result.message
            logger.info(
                "webhook normalized",
                extra={
                    "extra_fields": safe_log_context(
                        provider=message.provider,
                        direction=message.direction,
                        status=message.status,
                        kind=message.content.type,
                        message_id=message.id,
                        external_id_prefix=mask_identifier(message.external_id),
                    )
                },
            )

            if self.sink is None:
                return result

            try:
                self.sink.save(message)
            except Exception as exc:
                logger.exception(
                    "message sink failed",
                    extra={"extra_fields": safe_log_context(message_id=message.id)},
                )
                return NormalizationResult.fail(
                    ErrorCode.PROCESSING_ERROR,
                    "Normalized message could not be delivered to the sink",
                    details=describe_exception(exc),
                )

            return result

    def verify(
        self,
        mode: str | None,
        token: str | None,
        challenge: str | None,
        expected_token: str | None,
    ) -> str | None:
        """Meta webhook subscription handshake.

        Returns the challenge to echo back when mode is "subscribe" and the
        token matches a configured expected token, otherwise None.
        """
        if mode == "subscribe" and expected_token and _tokens_match(token, expected_token):
            logger.info(
                "webhook verification successful",
                extra={"extra_fields": safe_log_context(hub_mode=mode)},
            )
            return challenge or ""

        logger.warning(
            "webhook verification failed",
            extra={
                "extra_fields": safe_log_context(
                    hub_mode=mode or "missing",
                    token_configured=bool(expected_token),
                )
            },
        )
        return None
