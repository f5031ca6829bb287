"""Webhook request authentication.

Two optional mechanisms, both configured through the environment:

- META_APP_SECRET: Meta signs each delivery with HMAC-SHA256 of the raw
  body in X-Hub-Signature-256 ("sha256=<hex>").
- WEBHOOK_SECRET: Evolution/Z-API deliveries carry a shared secret in
  X-Webhook-Secret (set in the provider's webhook headers).

An unset variable disables the corresponding check.
"""

import hashlib
import hmac
import os

SIGNATURE_PREFIX = "sha256="


class WebhookAuthError(Exception):
    """Raised when a webhook delivery fails authentication."""

    pass


def verify_meta_signature(payload_bytes: bytes, signature_header: str | None, app_secret: str) -> None:
    """Verify Meta's X-Hub-Signature-256 header.

    Raises:
        WebhookAuthError: If the header is missing, malformed or does not match.
    """
    if not signature_header:
        raise WebhookAuthError("missing signature header")

    if not signature_header.startswith(SIGNATURE_PREFIX):
        raise WebhookAuthError("invalid signature format")

    expected = hmac.new(
        key=app_secret.encode("utf-8"),
        msg=payload_bytes,
        digestmod=hashlib.sha256,
    ).hexdigest()

    received = signature_header[len(SIGNATURE_PREFIX):]
    if not hmac.compare_digest(expected.encode(), received.encode()):
        raise WebhookAuthError("signature mismatch")


def verify_shared_secret(header_value: str | None, expected_secret: str) -> None:
    """Constant-time comparison of X-Webhook-Secret against the configured secret.

    Raises:
        WebhookAuthError: If the header is missing or does not match.
    """
    if not header_value:
        raise WebhookAuthError("missing webhook secret")
    if not hmac.compare_digest(header_value.encode(), expected_secret.encode()):
        raise WebhookAuthError("webhook secret mismatch")


def authenticate_delivery(
    *,
    is_meta: bool,
    body: bytes,
    signature_header: str | None,
    secret_header: str | None,
) -> None:
    """Apply whichever check is configured for the delivery's provider.

    Raises:
        WebhookAuthError: If the configured check fails.
    """
    if is_meta:
        app_secret = os.environ.get("META_APP_SECRET", "")
        if app_secret:
            verify_meta_signature(body, signature_header, app_secret)
        return

    shared_secret = os.environ.get("WEBHOOK_SECRET", "")
    if shared_secret:
        verify_shared_secret(secret_header, shared_secret)
