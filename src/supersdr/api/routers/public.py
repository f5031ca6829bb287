"""Public-facing routes."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    """Health check endpoint, listing the providers the registry can detect."""
    handler = request.app.state.webhook_handler
    return {"status": "ok", "providers": handler.registry.registered_providers()}
