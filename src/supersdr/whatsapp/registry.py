"""Adapter registry - provider detection and normalization dispatch.

The registry is constructed explicitly and owned by whoever handles
webhooks (see handler.WebhookHandler); there is no process-wide instance.

Detection probes adapters in registration order and the first adapter
whose can_handle() accepts the payload wins. The built-in adapters use
mutually exclusive markers, so order only matters if a custom adapter
overlaps with them.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

from supersdr.observability.logging import get_logger
from supersdr.observability.redaction import safe_log_context

from .base_adapter import WebhookAdapter, describe_exception
from .evolution_adapter import EvolutionAdapter
from .meta_adapter import MetaAdapter
from .models import (
    ErrorCode,
    NormalizationResult,
    ProviderIdentification,
    WebhookProvider,
    provider_name,
)
from .zapi_adapter import ZApiAdapter

logger = get_logger(__name__)


def default_adapters() -> list[WebhookAdapter]:
    """Fresh instances of the built-in adapters, in detection order."""
    return [MetaAdapter(), EvolutionAdapter(), ZApiAdapter()]


def _payload_keys(payload: Any) -> list[str]:
    if isinstance(payload, dict):
        return [str(k) for k in payload.keys()]
    return []


class AdapterRegistry:
    """Holds provider adapters keyed by provider name.

    Registration changes are serialized with a lock; detection walks a
    snapshot of the table, so concurrent normalize() calls never see a
    half-applied change.

    Args:
        adapters: Adapters to install. None installs the built-in Meta,
            Evolution and Z-API adapters; an empty iterable starts empty.
    """

    def __init__(self, adapters: Iterable[WebhookAdapter] | None = None) -> None:
        self._lock = threading.Lock()
        self._adapters: dict[str, WebhookAdapter] = {}
        for adapter in default_adapters() if adapters is None else adapters:
            self.register(adapter)

    def register(self, adapter: WebhookAdapter) -> None:
        """Insert or replace the adapter for adapter.provider.

        Replacing keeps the original detection position and is logged,
        since it usually points at a configuration conflict.
        """
        key = provider_name(adapter.provider)
        with self._lock:
            previous = self._adapters.get(key)
            self._adapters[key] = adapter

        if previous is not None:
            logger.warning(
                "adapter replaced",
                extra={
                    "extra_fields": safe_log_context(
                        provider=key,
                        previous=type(previous).__name__,
                        replacement=type(adapter).__name__,
                    )
                },
            )

    def unregister(self, provider: WebhookProvider | str) -> bool:
        """Remove a provider's adapter. Returns whether one was registered."""
        with self._lock:
            return self._adapters.pop(provider_name(provider), None) is not None

    def reset(self) -> None:
        """Drop all registrations and reinstall the built-in adapters."""
        with self._lock:
            self._adapters = {
                provider_name(adapter.provider): adapter for adapter in default_adapters()
            }

    def get_adapter(self, provider: WebhookProvider | str) -> WebhookAdapter | None:
        return self._adapters.get(provider_name(provider))

    def registered_providers(self) -> list[str]:
        return list(self._adapters.keys())

    def _snapshot(self) -> tuple[WebhookAdapter, ...]:
        with self._lock:
            return tuple(self._adapters.values())

    def find_adapter(self, payload: Any) -> WebhookAdapter | None:
        """First registered adapter that can handle the payload, or None."""
        for adapter in self._snapshot():
            if self._safe_can_handle(adapter, payload):
                return adapter
        return None

    def _safe_can_handle(self, adapter: WebhookAdapter, payload: Any) -> bool:
        # Built-ins are total; a custom adapter that raises counts as "no match"
        try:
            return bool(adapter.can_handle(payload))
        except Exception:
            logger.exception(
                "adapter can_handle raised",
                extra={"extra_fields": safe_log_context(provider=adapter.provider)},
            )
            return False

    def identify_provider(self, payload: Any) -> ProviderIdentification:
        adapter = self.find_adapter(payload)
        if adapter is None:
            return ProviderIdentification.unknown()
        return ProviderIdentification(provider=adapter.provider, confidence=1.0)

    def is_supported(self, payload: Any) -> bool:
        """True when some registered adapter recognizes the payload shape."""
        return self.find_adapter(payload) is not None

    def normalize(self, payload: Any) -> NormalizationResult:
        """Detect the provider and normalize the payload.

        Never raises: an unknown shape yields UNKNOWN_PROVIDER and any
        exception escaping the adapter yields PROCESSING_ERROR.
        """
        if payload is None:
            return NormalizationResult.fail(
                ErrorCode.INVALID_PAYLOAD, "Payload must not be null"
            )

        adapter = self.find_adapter(payload)
        if adapter is None:
            return NormalizationResult.fail(
                ErrorCode.UNKNOWN_PROVIDER,
                "No registered adapter can handle this payload",
                details={
                    "registered_providers": self.registered_providers(),
                    "payload_type": type(payload).__name__,
                    "payload_keys": _payload_keys(payload),
                },
            )

        return self._dispatch(adapter, payload)

    def normalize_with_provider(
        self, payload: Any, provider: WebhookProvider | str
    ) -> NormalizationResult:
        """Normalize with a known provider, skipping detection."""
        adapter = self.get_adapter(provider)
        if adapter is None:
            return NormalizationResult.fail(
                ErrorCode.UNKNOWN_PROVIDER,
                f'Provider "{provider_name(provider)}" is not registered',
                details={"registered_providers": self.registered_providers()},
            )

        return self._dispatch(adapter, payload)

    def _dispatch(self, adapter: WebhookAdapter, payload: Any) -> NormalizationResult:
        name = provider_name(adapter.provider)
        try:
            return adapter.normalize(payload)
        except Exception as exc:
            logger.exception(
                "adapter raised during normalization",
                extra={"extra_fields": safe_log_context(provider=name)},
            )
            return NormalizationResult.fail(
                ErrorCode.PROCESSING_ERROR,
                f"Error processing payload with adapter {name}",
                details=describe_exception(exc),
            )
