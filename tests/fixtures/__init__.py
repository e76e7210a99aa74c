"""Test fixtures for the switchboard tests."""

from typing import Iterator, List, Optional
from unittest.mock import Mock

from switchboard.config import Settings
from switchboard.providers import LLMProvider, Message, ResponseChunk
from switchboard.services.memory import ConversationMemory
from switchboard.services.store import InMemoryStore


class FakeProvider(LLMProvider):
    """Scriptable provider that records every call."""

    def __init__(
        self,
        name: str = "fake",
        response: str = "Test response",
        chunks: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        fail_after: Optional[int] = None,
    ):
        self._name = name
        super().__init__(api_key="test-key", search=Mock())
        self.response = response
        self.chunks = chunks if chunks is not None else ["Test ", "response"]
        self.error = error
        # Streaming raises `error` after this many chunks; None means before the first
        self.fail_after = fail_after
        self.calls: List[dict] = []
        self.stream_calls: List[dict] = []

    @property
    def name(self) -> str:
        return self._name

    def generate(
        self, system_prompt, messages, temperature=None, max_tokens=None, use_search=False
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "temperature": temperature,
                "max_tokens": max_tokens,
                "use_search": use_search,
            }
        )
        if self.error is not None:
            raise self.error
        return self.response

    def generate_streaming(
        self, system_prompt, messages, temperature=None, max_tokens=None, use_search=False
    ) -> Iterator[ResponseChunk]:
        self.stream_calls.append({"system_prompt": system_prompt, "messages": list(messages)})
        for index, chunk in enumerate(self.chunks):
            if self.error is not None and index == (self.fail_after or 0):
                raise self.error
            yield ResponseChunk(content=chunk)
        if self.error is not None and (self.fail_after or 0) >= len(self.chunks):
            raise self.error
        yield ResponseChunk(content="", done=True)


def create_mock_registry(primary: LLMProvider, fallbacks: Optional[List[LLMProvider]] = None):
    """Create a mock registry whose fallback chain includes the primary, like the real one."""
    chain = [primary] + list(fallbacks or [])
    registry = Mock()
    registry.settings = make_settings()
    registry.search = Mock()
    registry.default_provider = Mock(return_value=primary)
    registry.resolve = Mock(return_value=primary)
    registry.fallback_chain = Mock(return_value=chain)
    registry.available_providers = Mock(return_value=[p.name for p in chain])
    registry.models_for = Mock(return_value=["test-model"])
    return registry


def make_settings(**overrides) -> Settings:
    """Build settings with test defaults instead of reading the environment."""
    values = {
        "api_keys": {"groq": "groq-key", "cohere": "cohere-key"},
        "searxng_url": "https://search.example.com/search",
        "app_url": "http://localhost:3000",
        "app_name": "switchboard-tests",
        "redis_url": "",
    }
    values.update(overrides)
    return Settings(**values)


def create_memory(**kwargs) -> ConversationMemory:
    """Create conversation memory over a fresh in-memory store."""
    return ConversationMemory(InMemoryStore(), **kwargs)


def user(content: str) -> Message:
    return Message(role="user", content=content)


def assistant(content: str) -> Message:
    return Message(role="assistant", content=content)
