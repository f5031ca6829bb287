"""WhatsApp webhook routes - every provider posts to the same endpoint.

IMPORTANT: normalization failures still answer 200. Providers retry on
non-2xx responses, and a payload we cannot normalize will not become
normalizable on retry. Only authentication failures answer 401.
"""

import json
import os
from typing import Any

from fastapi import APIRouter, Header, Path, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from supersdr.api.security import WebhookAuthError, authenticate_delivery
from supersdr.observability.correlation import get_correlation_id
from supersdr.observability.logging import get_logger
from supersdr.observability.redaction import safe_log_context
from supersdr.whatsapp.handler import WebhookHandler
from supersdr.whatsapp.models import (
    ErrorCode,
    NormalizationResult,
    WebhookProvider,
    provider_name,
)

router = APIRouter(prefix="/webhooks/whatsapp", tags=["webhooks"])

logger = get_logger(__name__)


class WebhookResponse(BaseModel):
    success: bool
    message_id: str | None = None
    provider: str | None = None
    error_code: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: NormalizationResult, provider: str | None) -> "WebhookResponse":
        if result.success and result.message is not None:
            return cls(
                success=True,
                message_id=result.message.id,
                provider=provider_name(result.message.provider),
            )
        assert result.error is not None
        return cls(
            success=False,
            provider=provider,
            error_code=result.error.code.value,
            error=result.error.message,
        )


def _get_handler(request: Request) -> WebhookHandler:
    return request.app.state.webhook_handler


def _json_response(body: WebhookResponse, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _process(
    request: Request,
    provider: str | None,
    signature_header: str | None,
    secret_header: str | None,
) -> JSONResponse:
    correlation_id = get_correlation_id()
    handler = _get_handler(request)

    body = await request.body()
    try:
        payload: Any = json.loads(body)
    except (ValueError, RecursionError):
        # RecursionError: pathologically nested arrays/objects
        logger.warning(
            "invalid json body",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    body_size=len(body),
                )
            },
        )
        return _json_response(
            WebhookResponse(
                success=False,
                provider=provider,
                error_code=ErrorCode.INVALID_PAYLOAD.value,
                error="Request body is not valid JSON",
            )
        )

    detected = provider or provider_name(handler.registry.identify_provider(payload).provider)

    try:
        authenticate_delivery(
            is_meta=detected == WebhookProvider.META.value,
            body=body,
            signature_header=signature_header,
            secret_header=secret_header,
        )
    except WebhookAuthError as e:
        logger.warning(
            "webhook authentication failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    provider=detected,
                    error=str(e),
                )
            },
        )
        return _json_response(
            WebhookResponse(success=False, provider=detected, error="unauthorized"),
            status_code=401,
        )

    result = handler.handle(payload, provider=provider)
    return _json_response(WebhookResponse.from_result(result, detected))


@router.get("")
async def verify_webhook(
    request: Request,
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
) -> Response:
    """Meta webhook verification endpoint.

    Meta sends a GET during webhook setup; we echo hub.challenge when
    hub.verify_token matches WHATSAPP_VERIFY_TOKEN.

    Returns:
        200 with hub.challenge if valid, 403 otherwise.
    """
    expected_token = os.environ.get("WHATSAPP_VERIFY_TOKEN", "")
    challenge = _get_handler(request).verify(
        hub_mode, hub_verify_token, hub_challenge, expected_token
    )
    if challenge is None:
        return Response(status_code=403, content="verification failed")
    return Response(status_code=200, content=challenge, media_type="text/plain")


@router.post("")
async def receive_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(None, alias="X-Hub-Signature-256"),
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
) -> Response:
    """Receive a webhook from any registered provider (auto-detected)."""
    return await _process(request, None, x_hub_signature_256, x_webhook_secret)


@router.post("/{provider}")
async def receive_provider_webhook(
    request: Request,
    provider: str = Path(..., description="Registered provider name, e.g. meta, evolution, z-api"),
    x_hub_signature_256: str | None = Header(None, alias="X-Hub-Signature-256"),
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
) -> Response:
    """Receive a webhook for a known provider, skipping detection."""
    return await _process(request, provider, x_hub_signature_256, x_webhook_secret)
