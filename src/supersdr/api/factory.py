"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from supersdr.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from supersdr.whatsapp.handler import MessageSink, WebhookHandler
from supersdr.whatsapp.registry import AdapterRegistry

from .routers import public
from .routes import webhooks


def create_app(
    registry: AdapterRegistry | None = None,
    sink: MessageSink | None = None,
) -> FastAPI:
    """Create the webhook ingestion app.

    Args:
        registry: Adapter registry to dispatch with. Defaults to a registry
            holding the built-in Meta, Evolution and Z-API adapters.
        sink: Optional persistence collaborator receiving every successfully
            normalized message.

    Returns:
        Configured FastAPI application. The handler lives on
        app.state.webhook_handler.
    """
    app = FastAPI(
        title="SuperSDR Webhooks",
        docs_url=None,
        redoc_url=None,
    )
    app.state.webhook_handler = WebhookHandler(registry=registry, sink=sink)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(webhooks.router)

    return app
