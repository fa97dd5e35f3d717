"""
Filmflow Provider Registry

Thread-safe cache of generative backend instances. One registry is owned by
the application context and passed by reference; backends are constructed
lazily on first use and reused afterwards.
"""

import threading
from typing import Any, Callable, Dict, List, Optional

from filmflow.core.constants import ProviderId
from filmflow.core.env_loader import get_api_key
from filmflow.core.exceptions import (
    MissingCredential,
    UnknownProviderError,
    UnsupportedCapability,
)
from filmflow.core.logging_config import get_logger
from filmflow.llm.llm_registry import CAP_DOCUMENT, LLM_REGISTRY, LLMInfo
from filmflow.llm.providers import (
    BaseGenerativeBackend,
    GenerationOptions,
    backend_class_for,
)

logger = get_logger("llm.provider_registry")

BackendFactory = Callable[[LLMInfo, str], BaseGenerativeBackend]
ApiKeyLookup = Callable[[str, List[str]], Optional[str]]


class ProviderRegistry:
    """
    Lazily constructs and caches one backend per ProviderId.

    Args:
        llm_registry: Mapping of ProviderId to LLMInfo
        api_key_lookup: Callable(key_name, fallback_keys) returning a key or None
        backend_factories: Optional family -> factory overrides (tests, custom backends)
    """

    def __init__(
        self,
        llm_registry: Dict[ProviderId, LLMInfo] = None,
        api_key_lookup: ApiKeyLookup = None,
        backend_factories: Dict[str, BackendFactory] = None,
    ):
        self._llm_registry = llm_registry if llm_registry is not None else LLM_REGISTRY
        self._api_key_lookup = api_key_lookup or get_api_key
        self._backend_factories = backend_factories or {}
        self._backends: Dict[ProviderId, BaseGenerativeBackend] = {}
        self._lock = threading.RLock()
        self._initialization_count: Dict[str, int] = {}

    def info(self, provider_id: ProviderId) -> LLMInfo:
        """Registry entry for a provider; UnknownProviderError if absent."""
        info = self._llm_registry.get(provider_id)
        if info is None:
            raise UnknownProviderError(getattr(provider_id, "value", str(provider_id)))
        return info

    def get_backend(self, provider_id: ProviderId) -> BaseGenerativeBackend:
        """
        Get or create the backend for a provider.

        Args:
            provider_id: Provider to resolve

        Returns:
            Shared backend instance

        Raises:
            UnknownProviderError: If the provider is not registered
            MissingCredential: If no API key is configured for it
        """
        info = self.info(provider_id)

        with self._lock:
            backend = self._backends.get(provider_id)
            if backend is not None:
                return backend

            api_key = self._api_key_lookup(info.env_key, info.alt_env_keys)
            if not api_key:
                raise MissingCredential(info.id.value, info.env_keys)

            backend = self._create_backend(info, api_key)
            self._backends[provider_id] = backend
            self._initialization_count[info.id.value] = \
                self._initialization_count.get(info.id.value, 0) + 1

            logger.debug(
                f"Created {info.id.value} backend (total initializations: "
                f"{self._initialization_count[info.id.value]})"
            )
            return backend

    def _create_backend(self, info: LLMInfo, api_key: str) -> BaseGenerativeBackend:
        factory = self._backend_factories.get(info.family) or backend_class_for(info.family)
        if factory is None:
            raise UnknownProviderError(f"{info.id.value} (family '{info.family}')")
        return factory(info, api_key)

    async def invoke_text(
        self,
        provider_id: ProviderId,
        prompt: str,
        options: GenerationOptions = None,
    ) -> str:
        """Generate text (or JSON text) from one provider, no fallback."""
        backend = self.get_backend(provider_id)
        return await backend.generate(prompt, options or GenerationOptions())

    async def invoke_document(
        self,
        provider_id: ProviderId,
        base64_document: str,
        mime_type: str,
        prompt: str,
    ) -> str:
        """
        Analyze an inline document with one provider.

        The capability check happens before any backend is constructed.

        Raises:
            UnsupportedCapability: If the provider cannot analyze documents
        """
        info = self.info(provider_id)
        if not info.supports(CAP_DOCUMENT):
            raise UnsupportedCapability(info.id.value, "document analysis")

        backend = self.get_backend(provider_id)
        return await backend.analyze_document(base64_document, mime_type, prompt)

    def get_stats(self) -> Dict[str, Any]:
        """Get registry statistics."""
        with self._lock:
            return {
                'active_backends': len(self._backends),
                'providers': [p.value for p in self._backends],
                'initialization_counts': dict(self._initialization_count),
            }

    def clear_provider(self, provider_id: ProviderId) -> None:
        """Drop the cached backend for a provider."""
        with self._lock:
            if self._backends.pop(provider_id, None) is not None:
                logger.debug(f"Cleared {provider_id.value} backend")

    def clear(self) -> None:
        """Drop every cached backend."""
        with self._lock:
            self._backends.clear()
