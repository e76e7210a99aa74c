"""LLM providers for switchboard."""

from .base import (
    ConfigurationError,
    LLMProvider,
    LLMProviderError,
    Message,
    ParseError,
    RateLimitError,
    ResponseChunk,
    TransportError,
)
from .cohere import CohereProvider
from .gemini import GeminiProvider
from .openai_compat import (
    GLHFProvider,
    GroqProvider,
    OpenAICompatibleProvider,
    OpenRouterProvider,
)

__all__ = [
    "LLMProvider",
    "LLMProviderError",
    "Message",
    "ResponseChunk",
    "ConfigurationError",
    "ParseError",
    "RateLimitError",
    "TransportError",
    "CohereProvider",
    "GeminiProvider",
    "GLHFProvider",
    "GroqProvider",
    "OpenAICompatibleProvider",
    "OpenRouterProvider",
]
