"""Exception hierarchy shared by providers, the registry, memory and the client."""


class SwitchboardError(Exception):
    """Base exception for the package."""


class LLMProviderError(SwitchboardError):
    """Base exception for LLM provider errors."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        model: str = "",
        is_retryable: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.is_retryable = is_retryable


class TransportError(LLMProviderError):
    """Raised when the network call to a vendor or search backend fails."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=True)


class RateLimitError(TransportError):
    """Raised when rate limited by the provider."""


class ParseError(LLMProviderError):
    """Raised when a whole vendor response cannot be understood."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=True)


class ConfigurationError(LLMProviderError):
    """Raised when a provider is missing its credential."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=False)


class UnknownProviderError(SwitchboardError):
    """Raised when the registry does not recognize a provider name."""

    def __init__(self, name: str):
        super().__init__(f"Unknown provider: {name}")
        self.name = name


class NoProviderAvailableError(SwitchboardError):
    """Raised when no provider has a configured credential."""


class MemoryUnavailable(SwitchboardError):
    """Raised when the conversation store cannot be read or written."""


class StoreError(SwitchboardError):
    """Raised by a key-value store backend when an operation fails."""
