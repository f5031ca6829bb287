"""HTTP tests for the WhatsApp webhook routes.

Normalization failures answer 200 (providers retry on anything else);
only authentication failures answer 401.
"""

from __future__ import annotations

import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from supersdr.api.factory import create_app
from supersdr.observability.correlation import CORRELATION_ID_HEADER
from supersdr.whatsapp.models import NormalizedMessage

from .helpers import evolution_payload, meta_payload, zapi_payload


class RecordingSink:
    def __init__(self):
        self.saved: list[NormalizedMessage] = []

    def save(self, message: NormalizedMessage) -> None:
        self.saved.append(message)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def client(sink) -> TestClient:
    return TestClient(create_app(sink=sink))


def _sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "providers": ["meta", "evolution", "z-api"]}


class TestReceiveWebhook:
    @pytest.mark.parametrize(
        "payload,provider",
        [
            (meta_payload(), "meta"),
            (evolution_payload(), "evolution"),
            (zapi_payload(), "z-api"),
        ],
    )
    def test_auto_detects_provider(self, client, sink, payload, provider):
        response = client.post("/webhooks/whatsapp", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["provider"] == provider
        assert body["message_id"] == sink.saved[0].id
        assert body["error_code"] is None

    def test_explicit_provider(self, client, sink):
        response = client.post("/webhooks/whatsapp/z-api", json=zapi_payload())

        assert response.status_code == 200
        assert response.json()["provider"] == "z-api"
        assert len(sink.saved) == 1

    def test_explicit_provider_mismatch(self, client, sink):
        response = client.post("/webhooks/whatsapp/evolution", json=meta_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "INVALID_PAYLOAD"
        assert body["provider"] == "evolution"
        assert sink.saved == []

    def test_unregistered_provider_in_path(self, client):
        response = client.post("/webhooks/whatsapp/telegram", json=meta_payload())

        assert response.status_code == 200
        assert response.json()["error_code"] == "UNKNOWN_PROVIDER"

    def test_unknown_payload_still_answers_200(self, client, sink):
        response = client.post("/webhooks/whatsapp", json={"foo": "bar"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "UNKNOWN_PROVIDER"
        assert body["provider"] == "unknown"
        assert sink.saved == []

    def test_invalid_json(self, client):
        response = client.post(
            "/webhooks/whatsapp",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["error_code"] == "INVALID_PAYLOAD"
        assert response.json()["error"] == "Request body is not valid JSON"

    def test_deeply_nested_json(self, client, sink):
        """Nesting deep enough to exhaust the JSON parser is an invalid payload."""
        depth = 200_000
        response = client.post(
            "/webhooks/whatsapp",
            content=b"[" * depth + b"]" * depth,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error_code"] == "INVALID_PAYLOAD"
        assert sink.saved == []

    def test_json_null_body(self, client):
        response = client.post(
            "/webhooks/whatsapp",
            content=b"null",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["error_code"] == "INVALID_PAYLOAD"

    def test_missing_required_fields(self, client):
        payload = meta_payload()
        del payload["entry"][0]["changes"][0]["value"]["messages"]

        response = client.post("/webhooks/whatsapp", json=payload)

        assert response.status_code == 200
        assert response.json()["error_code"] == "MISSING_REQUIRED_FIELD"


class TestCorrelationHeader:
    def test_generated_when_absent(self, client):
        response = client.post("/webhooks/whatsapp", json=meta_payload())
        assert response.headers[CORRELATION_ID_HEADER]

    def test_echoes_incoming_id(self, client):
        response = client.post(
            "/webhooks/whatsapp",
            json=meta_payload(),
            headers={CORRELATION_ID_HEADER: "req-abc"},
        )
        assert response.headers[CORRELATION_ID_HEADER] == "req-abc"


class TestMetaSignature:
    """META_APP_SECRET enables X-Hub-Signature-256 checking for Meta deliveries."""

    def test_valid_signature(self, client, monkeypatch):
        monkeypatch.setenv("META_APP_SECRET", "app-secret")
        body = json.dumps(meta_payload()).encode()

        response = client.post(
            "/webhooks/whatsapp",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Hub-Signature-256": _sign(body, "app-secret"),
            },
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_missing_signature_rejected(self, client, sink, monkeypatch):
        monkeypatch.setenv("META_APP_SECRET", "app-secret")

        response = client.post("/webhooks/whatsapp", json=meta_payload())

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert sink.saved == []

    def test_wrong_signature_rejected(self, client, monkeypatch):
        monkeypatch.setenv("META_APP_SECRET", "app-secret")
        body = json.dumps(meta_payload()).encode()

        response = client.post(
            "/webhooks/whatsapp/meta",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Hub-Signature-256": _sign(body, "other-secret"),
            },
        )

        assert response.status_code == 401

    def test_non_ascii_signature_rejected(self, client, monkeypatch):
        """A signature header with non-ASCII bytes is an auth failure, not a crash."""
        monkeypatch.setenv("META_APP_SECRET", "s3cret")

        response = client.post(
            "/webhooks/whatsapp",
            content=json.dumps(meta_payload()).encode(),
            headers={
                "Content-Type": "application/json",
                "X-Hub-Signature-256": b"sha256=\xe9\xe9",
            },
        )

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_meta_secret_does_not_apply_to_other_providers(self, client, monkeypatch):
        monkeypatch.setenv("META_APP_SECRET", "app-secret")

        response = client.post("/webhooks/whatsapp", json=evolution_payload())

        assert response.status_code == 200


class TestSharedSecret:
    """WEBHOOK_SECRET enables X-Webhook-Secret checking for Evolution/Z-API."""

    def test_valid_secret(self, client, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET", "s3cret")

        response = client.post(
            "/webhooks/whatsapp",
            json=evolution_payload(),
            headers={"X-Webhook-Secret": "s3cret"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_missing_secret_rejected(self, client, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET", "s3cret")

        response = client.post("/webhooks/whatsapp/z-api", json=zapi_payload())

        assert response.status_code == 401

    def test_wrong_secret_rejected(self, client, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET", "s3cret")

        response = client.post(
            "/webhooks/whatsapp",
            json=zapi_payload(),
            headers={"X-Webhook-Secret": "nope"},
        )

        assert response.status_code == 401


class TestVerifyWebhook:
    def _verify(self, client, token="verify-me", mode="subscribe"):
        return client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": mode, "hub.verify_token": token, "hub.challenge": "1158201444"},
        )

    def test_valid_token_echoes_challenge(self, client, monkeypatch):
        monkeypatch.setenv("WHATSAPP_VERIFY_TOKEN", "verify-me")

        response = self._verify(client)

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token(self, client, monkeypatch):
        monkeypatch.setenv("WHATSAPP_VERIFY_TOKEN", "verify-me")
        assert self._verify(client, token="wrong").status_code == 403

    def test_wrong_mode(self, client, monkeypatch):
        monkeypatch.setenv("WHATSAPP_VERIFY_TOKEN", "verify-me")
        assert self._verify(client, mode="unsubscribe").status_code == 403

    def test_unconfigured_token(self, client):
        assert self._verify(client).status_code == 403
