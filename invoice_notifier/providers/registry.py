"""Provider registry: maps a provider name to one long-lived adapter."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping

from invoice_notifier.domain.errors import ProviderNotRegisteredError, UnknownProviderError
from invoice_notifier.providers.base import ProviderAdapter
from invoice_notifier.providers.catalog import supported_provider_ids
from invoice_notifier.providers.eon import EONProvider
from invoice_notifier.providers.nova_apa_serv import NovaApaServProvider
from invoice_notifier.settings import Settings

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Settings], ProviderAdapter]

DEFAULT_FACTORIES: dict[str, AdapterFactory] = {
    EONProvider.provider_id: EONProvider.from_settings,
    NovaApaServProvider.provider_id: NovaApaServProvider.from_settings,
}


class ProviderRegistry:
    """Resolves provider names to cached adapter instances.

    Names are matched case-insensitively against the supported set read from
    the provider catalog. Each adapter is built at most once per registry, so
    its cached credential is shared by every job for that provider.
    """

    def __init__(
        self,
        settings: Settings,
        factories: Mapping[str, AdapterFactory] | None = None,
        supported_loader: Callable[[], frozenset[str]] | None = None,
    ) -> None:
        self.settings = settings
        self._factories = {k.lower(): v for k, v in (factories or DEFAULT_FACTORIES).items()}
        self._supported_loader = supported_loader or (
            lambda: supported_provider_ids(settings.PROVIDERS_CONFIG_PATH)
        )
        self._supported: frozenset[str] | None = None
        self._adapters: dict[str, ProviderAdapter] = {}
        self._lock = threading.Lock()

    def supported_providers(self) -> frozenset[str]:
        with self._lock:
            return self._load_supported()

    def _load_supported(self) -> frozenset[str]:
        if self._supported is None:
            self._supported = frozenset(self._supported_loader())
        return self._supported

    def is_supported(self, name: str) -> bool:
        return name.lower() in self.supported_providers()

    def resolve(self, name: str) -> ProviderAdapter:
        key = name.lower()
        with self._lock:
            supported = self._load_supported()
            if key not in supported:
                raise UnknownProviderError(name, sorted(supported))

            adapter = self._adapters.get(key)
            if adapter is not None:
                return adapter

            factory = self._factories.get(key)
            if factory is None:
                raise ProviderNotRegisteredError(name)

            adapter = factory(self.settings)
            self._adapters[key] = adapter
            logger.info("Created provider adapter %s", key)
            return adapter

    def clear_cache(self) -> list[ProviderAdapter]:
        """Forget built adapters and the supported set; returns the dropped adapters."""
        with self._lock:
            dropped = list(self._adapters.values())
            self._adapters.clear()
            self._supported = None
        return dropped

    async def aclose(self) -> None:
        for adapter in self.clear_cache():
            await adapter.aclose()

    def __repr__(self) -> str:
        return f"ProviderRegistry(adapters={sorted(self._adapters)!r})"


