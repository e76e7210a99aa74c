"""Base classes for LLM providers."""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from ..exceptions import (
    ConfigurationError,
    LLMProviderError,
    ParseError,
    RateLimitError,
    TransportError,
)
from ..retry import with_retry
from ..search import (
    NO_RESULTS,
    SearXNGClient,
    optimize_search_query,
    summarize_search_results,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048

SEARCH_UNAVAILABLE = "Unable to search the internet at the moment."

VALID_ROLES = ("system", "user", "assistant")

__all__ = [
    "ConfigurationError",
    "LLMProvider",
    "LLMProviderError",
    "Message",
    "ParseError",
    "RateLimitError",
    "ResponseChunk",
    "TransportError",
]


@dataclass(frozen=True)
class Message:
    """A single chat message."""

    role: str  # "system", "user" or "assistant"
    content: str
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role not in VALID_ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")

    def to_dict(self) -> Dict[str, str]:
        data = {"role": self.role, "content": self.content}
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(role=data["role"], content=data.get("content", ""), name=data.get("name"))


@dataclass(frozen=True)
class ResponseChunk:
    """One fragment of a streamed response."""

    content: str
    done: bool = False


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Each implementation translates the uniform message list into its vendor's
    wire format and parses the vendor's replies. Failures are raised as
    ``LLMProviderError`` subclasses once retries are exhausted; rendering an
    apology for the user is left to the caller.
    """

    default_model: str = ""
    api_key_env: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        search: Optional[SearXNGClient] = None,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        """Initialize the provider.

        Args:
            api_key: Vendor API key. If None, reads from the provider's env var.
            model: Model to use. If None, uses the provider default.
            search: Shared web search client.
            timeout: Request timeout in seconds.
            max_attempts: Attempts per call before giving up.
            retry_delay: Base backoff delay in seconds.
        """
        self.api_key = api_key or (os.getenv(self.api_key_env) if self.api_key_env else None)
        self.model = model or self.default_model
        self.search = search or SearXNGClient()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

        if not self.api_key:
            logger.warning(
                f"{self.name} API key not found. {self.name} provider will not function properly."
            )

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        ...

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> str:
        """Generate a complete response.

        Args:
            system_prompt: Instructions for the model.
            messages: Conversation so far, oldest first.
            temperature: Sampling temperature, 0.7 when None.
            max_tokens: Maximum tokens to generate, 2048 when None.
            use_search: Augment the prompt with web search results.

        Returns:
            The generated text.

        Raises:
            LLMProviderError: If the generation fails after retries.
        """
        ...

    @abstractmethod
    def generate_streaming(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> Iterator[ResponseChunk]:
        """Generate a response incrementally.

        Yields ``ResponseChunk`` objects in order; the last one has
        ``done=True``. Malformed frames are skipped.

        Raises:
            LLMProviderError: If the stream cannot be opened or yields nothing usable.
        """
        ...

    def is_available(self) -> bool:
        """Check if the provider has a credential configured."""
        return bool(self.api_key)

    def search_internet(self, query: str) -> str:
        """Search the web and format the results for a prompt.

        Never raises; search problems degrade to a short notice.
        """
        try:
            results = self.search.search(query, time_range="month", max_results=5)
            return summarize_search_results(results)
        except Exception as e:
            logger.error(f"Error searching internet with {self.name}: {e}")
            return SEARCH_UNAVAILABLE

    def _search_context(self, messages: List[Message]) -> Optional[str]:
        """Run a search for the last user message and build the injected text."""
        if not messages or messages[-1].role != "user":
            return None

        query = optimize_search_query(messages[-1].content)
        results = self.search_internet(query)
        if not results or results.strip() in (NO_RESULTS, SEARCH_UNAVAILABLE):
            return None

        return (
            f'Search results for "{query}":\n{results}\n\n'
            "Please use these search results to provide an up-to-date response."
        )

    def _with_retry(self, operation: Callable[[], T]) -> T:
        return with_retry(operation, max_attempts=self.max_attempts, base_delay=self.retry_delay)

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(
                f"{self.name} API key not configured.", provider=self.name, model=self.model
            )
        return self.api_key

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
