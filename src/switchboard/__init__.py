"""Switchboard - one chat client over several LLM vendors with memory and web search"""

__version__ = "1.0.0"

from .client import (  # noqa: E402
    GENERATE_APOLOGY,
    SEARCH_APOLOGY,
    STREAMING_APOLOGY,
    ChatClient,
    GenerationResult,
    ProviderAttempt,
)
from .config import Settings  # noqa: E402
from .exceptions import (  # noqa: E402
    ConfigurationError,
    LLMProviderError,
    MemoryUnavailable,
    NoProviderAvailableError,
    ParseError,
    RateLimitError,
    SwitchboardError,
    TransportError,
    UnknownProviderError,
)
from .providers import LLMProvider, Message, ResponseChunk  # noqa: E402
from .registry import ProviderRegistry  # noqa: E402

__all__ = [
    "ChatClient",
    "GenerationResult",
    "ProviderAttempt",
    "GENERATE_APOLOGY",
    "STREAMING_APOLOGY",
    "SEARCH_APOLOGY",
    "Settings",
    "ProviderRegistry",
    "LLMProvider",
    "Message",
    "ResponseChunk",
    "SwitchboardError",
    "LLMProviderError",
    "ConfigurationError",
    "TransportError",
    "RateLimitError",
    "ParseError",
    "UnknownProviderError",
    "NoProviderAvailableError",
    "MemoryUnavailable",
]
