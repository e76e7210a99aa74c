"""Provider registry: discovery, construction and caching of LLM providers."""

import logging
import threading
from typing import Dict, List, Optional, Sequence, Type

from .config import Settings
from .exceptions import ConfigurationError, UnknownProviderError
from .providers import (
    CohereProvider,
    GeminiProvider,
    GLHFProvider,
    GroqProvider,
    LLMProvider,
    OpenRouterProvider,
)
from .search import SearXNGClient

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: Dict[str, Type[LLMProvider]] = {
    "groq": GroqProvider,
    "glhf": GLHFProvider,
    "openrouter": OpenRouterProvider,
    "cohere": CohereProvider,
    "gemini": GeminiProvider,
}

# Static model catalog, first entry is the provider default
PROVIDER_MODELS: Dict[str, List[str]] = {
    "groq": [
        "llama3-70b-8192",
        "llama3-8b-8192",
        "mixtral-8x7b-32768",
        "gemma-7b-it",
    ],
    "glhf": [
        "mixtral-8x7b-32768",
        "mistral-7b-instruct",
        "llama3-70b-8192",
    ],
    "openrouter": [
        "anthropic/claude-3-opus",
        "anthropic/claude-3-sonnet",
        "meta-llama/llama-3-70b-instruct",
        "mistralai/mixtral-8x7b-instruct",
    ],
    "cohere": [
        "command-r-plus",
        "command-r",
        "command-light",
    ],
    "gemini": [
        "gemini-1.5-flash",
        "gemini-1.5-pro",
    ],
}


class ProviderRegistry:
    """Resolves provider names to shared, cached provider instances.

    Instances are stateless beyond configuration, so one registry can serve
    many clients across threads. The cache is never evicted.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        search: Optional[SearXNGClient] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.search = search or SearXNGClient(self.settings.searxng_url)
        self._providers: Dict[str, LLMProvider] = {}
        self._lock = threading.Lock()

    def available_providers(self) -> List[str]:
        """List provider names that have a configured API key."""
        return [name for name in self.settings.available_providers() if name in PROVIDER_CLASSES]

    def models_for(self, name: str) -> List[str]:
        """List the known models for a provider; unknown names give an empty list."""
        return list(PROVIDER_MODELS.get(name.lower(), []))

    def resolve(self, name: str, model: Optional[str] = None) -> LLMProvider:
        """Get or create the provider for ``name`` and an optional model.

        Raises:
            UnknownProviderError: If the name is not recognized.
            ConfigurationError: If the provider has no API key configured.
        """
        key = self._cache_key(name, model)
        # Construction does no I/O, so it stays under the lock
        with self._lock:
            provider = self._providers.get(key)
            if provider is None:
                provider = self._create(name, model)
                self._providers[key] = provider
                logger.info(f"Registered provider: {key}")
        return provider

    def default_provider(self) -> Optional[LLMProvider]:
        """Return the first available provider, or None if nothing is configured."""
        available = self.available_providers()
        if not available:
            logger.error("No LLM providers available. Check API keys configuration.")
            return None
        return self.resolve(available[0])

    def fallback_chain(self, names: Optional[Sequence[str]] = None) -> List[LLMProvider]:
        """Resolve providers to try in order (all available ones by default)."""
        if names is None:
            names = self.available_providers()
        return [self.resolve(name) for name in names]

    def cached_keys(self) -> List[str]:
        """List the cache keys of providers constructed so far."""
        with self._lock:
            return list(self._providers.keys())

    def clear(self) -> None:
        """Drop all cached provider instances."""
        with self._lock:
            self._providers.clear()

    def _cache_key(self, name: str, model: Optional[str]) -> str:
        return f"{name.lower()}-{model}" if model else name.lower()

    def _create(self, name: str, model: Optional[str]) -> LLMProvider:
        provider_class = PROVIDER_CLASSES.get(name.lower())
        if provider_class is None:
            raise UnknownProviderError(name)

        api_key = self.settings.api_key_for(name)
        if not api_key:
            raise ConfigurationError(
                f"{name} API key not configured.", provider=name.lower(), model=model or ""
            )

        kwargs = {
            "api_key": api_key,
            "model": model,
            "search": self.search,
            "timeout": self.settings.timeout,
        }
        if provider_class is OpenRouterProvider:
            kwargs["app_url"] = self.settings.app_url
            kwargs["app_name"] = self.settings.app_name

        return provider_class(**kwargs)
