"""Chat client: memory, provider selection, fallback and search in one place."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from .exceptions import MemoryUnavailable, NoProviderAvailableError
from .prompts import generate_system_prompt
from .providers import LLMProvider, Message, ResponseChunk
from .providers.base import SEARCH_UNAVAILABLE
from .registry import ProviderRegistry
from .search import SearXNGClient, optimize_search_query, summarize_search_results
from .services.memory import Conversation, ConversationMemory
from .services.store import create_store

logger = logging.getLogger(__name__)

GENERATE_APOLOGY = (
    "Sorry, I encountered an error while processing your request. Please try again later."
)
STREAMING_APOLOGY = (
    "Sorry, I encountered an error while processing your streaming request. "
    "Please try again later."
)
SEARCH_APOLOGY = "Sorry, I encountered an error while searching the internet."

ChunkCallback = Callable[[str, bool], None]


@dataclass
class ProviderAttempt:
    """Record of one provider attempt within a request."""

    provider_name: str
    success: bool
    error: Optional[str] = None
    response_time: Optional[float] = None


@dataclass
class GenerationResult:
    """Outcome of a generate call across the whole provider chain."""

    content: str
    success: bool
    provider: Optional[str] = None
    attempts: List[ProviderAttempt] = field(default_factory=list)


def generate_conversation_id() -> str:
    """Generate a random conversation key."""
    return uuid.uuid4().hex[:13]


class ChatClient:
    """Answers prompts through a primary provider with ordered fallbacks.

    Every request reads and writes the conversation memory for
    ``conversation_id``. Provider failures never escape ``generate`` or
    ``generate_streaming``: when the whole chain fails the caller gets an
    apology string instead.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        conversation_id: Optional[str] = None,
        use_fallbacks: bool = True,
        registry: Optional[ProviderRegistry] = None,
        memory: Optional[ConversationMemory] = None,
        search: Optional[SearXNGClient] = None,
    ):
        """Initialize the client.

        Args:
            provider: Provider name. If None, uses the registry default.
            model: Model for the named provider.
            conversation_id: Conversation key. If None, a random one is generated.
            use_fallbacks: Try the other configured providers when the primary fails.
            registry: Provider registry to share between clients.
            memory: Conversation memory to share between clients.
            search: Web search client used when provider search fails.

        Raises:
            NoProviderAvailableError: If no provider name is given and none is configured.
            UnknownProviderError: If the named provider does not exist.
            ConfigurationError: If the named provider has no API key.
        """
        self.registry = registry or ProviderRegistry()
        if memory is None:
            settings = self.registry.settings
            memory = ConversationMemory(
                create_store(settings), ttl_seconds=settings.memory_ttl_seconds
            )
        self.memory = memory
        self.search = search or self.registry.search

        if provider:
            self.provider: LLMProvider = self.registry.resolve(provider, model)
        else:
            default_provider = self.registry.default_provider()
            if default_provider is None:
                raise NoProviderAvailableError(
                    "No LLM providers available. Check API keys configuration."
                )
            self.provider = default_provider

        self.conversation_id = conversation_id or generate_conversation_id()

        self.fallback_providers: List[LLMProvider] = []
        if use_fallbacks:
            self.fallback_providers = [
                p for p in self.registry.fallback_chain() if p is not self.provider
            ]

        # Statistics
        self.total_calls = 0
        self.successful_calls = 0
        self.failed_calls = 0
        self.fallback_calls = 0

        logger.info(
            f"ChatClient ready for conversation {self.conversation_id} with "
            f"{self._provider_name(self.provider)} "
            f"({len(self.fallback_providers)} fallbacks)"
        )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_memory: bool = True,
        use_search: bool = False,
    ) -> str:
        """Generate a response to ``prompt``.

        Returns:
            The model's answer, or an apology if every provider failed.
        """
        return self.generate_result(
            prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            use_memory=use_memory,
            use_search=use_search,
        ).content

    def generate_result(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_memory: bool = True,
        use_search: bool = False,
    ) -> GenerationResult:
        """Like ``generate`` but also reports which providers were tried."""
        request = self._prepare(
            prompt, system_prompt, temperature, max_tokens, use_memory, use_search
        )
        self.total_calls += 1
        attempts: List[ProviderAttempt] = []

        for index, provider in enumerate(self._providers_to_try()):
            name = self._provider_name(provider)
            if index > 0:
                self.fallback_calls += 1
                logger.info(f"Trying fallback provider: {name}")

            start = time.time()
            try:
                content = provider.generate(**request)
            except Exception as e:
                attempts.append(self._failed_attempt(name, e, start))
                continue

            attempts.append(ProviderAttempt(name, True, response_time=time.time() - start))
            self._finish(content, use_memory)
            return GenerationResult(content=content, success=True, provider=name, attempts=attempts)

        self.failed_calls += 1
        logger.error(f"All LLM providers failed for conversation {self.conversation_id}")
        return GenerationResult(content=GENERATE_APOLOGY, success=False, attempts=attempts)

    def generate_streaming(
        self,
        prompt: str,
        on_chunk: ChunkCallback,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_memory: bool = True,
        use_search: bool = False,
    ) -> str:
        """Stream a response to ``prompt`` through ``on_chunk(content, done)``.

        Returns:
            The full response text, or an apology if every provider failed.
        """
        return self.generate_streaming_result(
            prompt,
            on_chunk,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            use_memory=use_memory,
            use_search=use_search,
        ).content

    def generate_streaming_result(
        self,
        prompt: str,
        on_chunk: ChunkCallback,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_memory: bool = True,
        use_search: bool = False,
    ) -> GenerationResult:
        """Like ``generate_streaming`` but also reports which providers were tried.

        If a stream breaks part way, chunks already passed to ``on_chunk`` stay
        delivered; the next provider starts over and only its text is kept.
        """
        request = self._prepare(
            prompt, system_prompt, temperature, max_tokens, use_memory, use_search
        )
        self.total_calls += 1
        attempts: List[ProviderAttempt] = []

        for index, provider in enumerate(self._providers_to_try()):
            name = self._provider_name(provider)
            if index > 0:
                self.fallback_calls += 1
                logger.info(f"Trying fallback streaming provider: {name}")

            start = time.time()
            try:
                content = self._consume(provider.generate_streaming(**request), on_chunk)
            except Exception as e:
                attempts.append(self._failed_attempt(name, e, start))
                continue

            attempts.append(ProviderAttempt(name, True, response_time=time.time() - start))
            self._finish(content, use_memory)
            return GenerationResult(content=content, success=True, provider=name, attempts=attempts)

        self.failed_calls += 1
        logger.error(f"All LLM streaming providers failed for conversation {self.conversation_id}")
        on_chunk(STREAMING_APOLOGY, True)
        return GenerationResult(content=STREAMING_APOLOGY, success=False, attempts=attempts)

    def search_internet(self, query: str) -> str:
        """Search the web through the active provider, falling back to a direct search."""
        try:
            results = self.provider.search_internet(optimize_search_query(query))
            if results != SEARCH_UNAVAILABLE:
                return results
            logger.warning(f"Provider search unavailable for query: {query}")
        except Exception as e:
            logger.error(f"Search error: {e}")

        try:
            return summarize_search_results(self.search.search(query))
        except Exception as e:
            logger.error(f"Fallback search error: {e}")
            return SEARCH_APOLOGY

    def clear_conversation(self) -> bool:
        """Delete this client's conversation history."""
        return self.memory.delete(self.conversation_id)

    def get_conversation(self) -> Optional[Conversation]:
        """Load this client's conversation, or None if absent or unreadable."""
        try:
            return self.memory.load(self.conversation_id)
        except MemoryUnavailable as e:
            logger.warning(f"Memory unavailable: {e}")
            return None

    def available_providers(self) -> List[str]:
        """List configured provider names."""
        return self.registry.available_providers()

    def models_for(self, provider: str) -> List[str]:
        """List known models for a provider."""
        return self.registry.models_for(provider)

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics."""
        success_rate = (
            (self.successful_calls / self.total_calls * 100) if self.total_calls > 0 else 0
        )
        return {
            "conversation_id": self.conversation_id,
            "provider": self._provider_name(self.provider),
            "fallbacks": [self._provider_name(p) for p in self.fallback_providers],
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "fallback_calls": self.fallback_calls,
            "success_rate": f"{success_rate:.1f}%",
        }

    def _providers_to_try(self) -> List[LLMProvider]:
        return [self.provider] + self.fallback_providers

    def _prepare(
        self,
        prompt: str,
        system_prompt: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        use_memory: bool,
        use_search: bool,
    ) -> Dict[str, Any]:
        messages: List[Message] = []
        summary: Optional[str] = None

        if use_memory:
            conversation = self.get_conversation()
            if conversation:
                messages = list(conversation.messages)
                summary = conversation.summary

        user_message = Message(role="user", content=prompt)
        messages.append(user_message)

        # Persist the user's turn before generating so it survives a failure
        if use_memory:
            self._remember(user_message)

        return {
            "system_prompt": system_prompt or generate_system_prompt(summary),
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "use_search": use_search,
        }

    def _consume(self, chunks: Iterator[ResponseChunk], on_chunk: ChunkCallback) -> str:
        parts = []
        done = False
        for chunk in chunks:
            parts.append(chunk.content)
            on_chunk(chunk.content, chunk.done)
            if chunk.done:
                done = True
                break

        if not done:
            on_chunk("", True)
        return "".join(parts)

    def _finish(self, content: str, use_memory: bool) -> None:
        self.successful_calls += 1
        if use_memory:
            self._remember(Message(role="assistant", content=content))

    def _remember(self, message: Message) -> None:
        try:
            self.memory.append(self.conversation_id, message)
        except MemoryUnavailable as e:
            logger.warning(f"Memory unavailable, continuing without persisting: {e}")

    def _failed_attempt(self, name: str, error: Exception, start: float) -> ProviderAttempt:
        logger.error(f"Provider {name} failed: {type(error).__name__}: {error}")
        return ProviderAttempt(
            name, False, error=f"{type(error).__name__}: {error}", response_time=time.time() - start
        )

    @staticmethod
    def _provider_name(provider: Any) -> str:
        name = getattr(provider, "name", None)
        return name if isinstance(name, str) else type(provider).__name__
