"""Providers for vendors exposing an OpenAI-compatible chat completions API."""

import json
import logging
from contextlib import ExitStack
from typing import Any, Dict, Iterator, List, Optional

import httpx
import openai
from openai import OpenAI

from .base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ConfigurationError,
    LLMProvider,
    LLMProviderError,
    Message,
    ParseError,
    RateLimitError,
    ResponseChunk,
    TransportError,
)

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(LLMProvider):
    """Base provider talking to ``{base_url}/chat/completions`` via the OpenAI SDK.

    Subclasses set ``base_url``, ``api_key_env`` and ``default_model`` and may add
    vendor headers through ``default_headers``.
    """

    base_url: str = ""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        """Get or create the OpenAI client configured for this vendor."""
        if self._client is None:
            self._client = OpenAI(
                base_url=self.base_url,
                api_key=self._require_api_key(),
                timeout=self.timeout,
                max_retries=0,
                default_headers=self.default_headers(),
            )
        return self._client

    def default_headers(self) -> Dict[str, str]:
        """Extra headers sent with every request."""
        return {}

    def _build_messages(
        self, system_prompt: str, messages: List[Message], use_search: bool
    ) -> List[Dict[str, str]]:
        api_messages = [{"role": "system", "content": system_prompt}]
        api_messages.extend(m.to_dict() for m in messages)

        if use_search:
            search_context = self._search_context(messages)
            if search_context:
                api_messages.append({"role": "system", "content": search_context})

        return api_messages

    def _create(self, api_messages: List[Dict[str, str]], **params: Any) -> Any:
        try:
            return self.client.chat.completions.create(
                model=self.model,
                messages=api_messages,
                stream=False,
                **params,
            )
        except LLMProviderError:
            raise
        except openai.APIError as e:
            raise self._translate_error(e) from e

    def _open_stream(
        self, stack: ExitStack, api_messages: List[Dict[str, str]], **params: Any
    ) -> Any:
        """Send a streaming request and return the raw response, closed by ``stack``."""
        try:
            return stack.enter_context(
                self.client.chat.completions.with_streaming_response.create(
                    model=self.model,
                    messages=api_messages,
                    stream=True,
                    **params,
                )
            )
        except openai.APIError as e:
            raise self._translate_error(e) from e

    @staticmethod
    def _parse_delta(data: str) -> Optional[str]:
        event = json.loads(data)
        choices = event["choices"]
        if not choices:
            # Usage-only frames carry no choices
            return None
        return choices[0]["delta"].get("content")

    def _translate_error(self, error: Exception) -> LLMProviderError:
        message = str(error)
        logger.error(f"{self.name} error: {message}")

        if isinstance(error, openai.RateLimitError):
            return RateLimitError(message, provider=self.name, model=self.model)
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return ConfigurationError(message, provider=self.name, model=self.model)
        return TransportError(message, provider=self.name, model=self.model)

    def _extract_content(self, completion: Any) -> str:
        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ParseError(
                f"Invalid response format from {self.name} API: {e}",
                provider=self.name,
                model=self.model,
            ) from e
        if content is None:
            raise ParseError(
                f"Empty completion from {self.name} API", provider=self.name, model=self.model
            )
        return content

    def generate(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> str:
        """Generate a complete response using the chat completions endpoint."""
        api_messages = self._build_messages(system_prompt, messages, use_search)
        params = {
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
        }
        logger.info(f"Generating with {self.name} model: {self.model}")

        content = self._with_retry(
            lambda: self._extract_content(self._create(api_messages, **params))
        )

        logger.info(f"{self.name} response received from {self.model}")
        return content

    def generate_streaming(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> Iterator[ResponseChunk]:
        """Stream a response, yielding each content delta as it arrives.

        The server-sent event lines are read raw so that one undecodable
        ``data:`` frame is logged and skipped instead of ending the stream.
        """
        api_messages = self._build_messages(system_prompt, messages, use_search)
        params = {
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
        }
        logger.info(f"Streaming with {self.name} model: {self.model}")

        valid_frames = 0
        with ExitStack() as stack:
            response = self._with_retry(lambda: self._open_stream(stack, api_messages, **params))
            try:
                for line in response.iter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if data == "[DONE]":
                        break
                    try:
                        delta = self._parse_delta(data)
                    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
                        logger.warning(f"Skipping malformed {self.name} stream frame: {e}")
                        continue
                    valid_frames += 1
                    if delta:
                        yield ResponseChunk(content=delta)
            except (openai.APIError, httpx.HTTPError) as e:
                raise self._translate_error(e) from e

        if not valid_frames:
            raise ParseError(
                f"{self.name} stream ended without any valid frames",
                provider=self.name,
                model=self.model,
            )
        yield ResponseChunk(content="", done=True)


class OpenRouterProvider(OpenAICompatibleProvider):
    """LLM provider using the OpenRouter API."""

    base_url = "https://openrouter.ai/api/v1"
    api_key_env = "OPENROUTER_API_KEY"
    default_model = "anthropic/claude-3-opus"

    def __init__(
        self,
        *args: Any,
        app_url: str = "http://localhost:3000",
        app_name: str = "switchboard",
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.app_url = app_url
        self.app_name = app_name

    @property
    def name(self) -> str:
        return "openrouter"

    def default_headers(self) -> Dict[str, str]:
        return {"HTTP-Referer": self.app_url, "X-Title": self.app_name}


class GroqProvider(OpenAICompatibleProvider):
    """LLM provider using Groq's OpenAI-compatible endpoint."""

    base_url = "https://api.groq.com/openai/v1"
    api_key_env = "GROQ_API_KEY"
    default_model = "llama3-70b-8192"

    @property
    def name(self) -> str:
        return "groq"


class GLHFProvider(OpenAICompatibleProvider):
    """LLM provider using the GLHF API."""

    base_url = "https://api.glhf.ai/v1"
    api_key_env = "GLHF_API_KEY"
    default_model = "mixtral-8x7b-32768"

    @property
    def name(self) -> str:
        return "glhf"
