"""Google Gemini LLM provider implementation."""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import RequestOptions

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


class GeminiProvider(LLMProvider):
    """LLM provider using the Gemini API.

    System text travels as the model's ``system_instruction``; assistant turns
    use Gemini's ``model`` role.
    """

    api_key_env = "GEMINI_API_KEY"
    default_model = "gemini-1.5-flash"

    @property
    def name(self) -> str:
        return "gemini"

    def _build_request(
        self, system_prompt: str, messages: List[Message], use_search: bool
    ) -> Tuple[str, List[Dict[str, Any]]]:
        instruction = system_prompt
        contents = []
        for msg in messages:
            if msg.role == "system":
                instruction += "\n" + msg.content
                continue
            role = "model" if msg.role == "assistant" else "user"
            contents.append({"role": role, "parts": [msg.content]})

        if use_search:
            search_context = self._search_context(messages)
            if search_context:
                instruction += f"\n\n{search_context}"

        return instruction, contents

    def _model(self, instruction: str) -> Any:
        genai.configure(api_key=self._require_api_key())
        return genai.GenerativeModel(self.model, system_instruction=instruction)

    def _call(
        self,
        instruction: str,
        contents: List[Dict[str, Any]],
        temperature: Optional[float],
        max_tokens: Optional[int],
        stream: bool,
    ) -> Any:
        config = genai.GenerationConfig(
            temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
            max_output_tokens=max_tokens or DEFAULT_MAX_TOKENS,
        )
        try:
            return self._model(instruction).generate_content(
                contents,
                generation_config=config,
                stream=stream,
                request_options=RequestOptions(timeout=self.timeout),
            )
        except LLMProviderError:
            raise
        except google_exceptions.GoogleAPICallError as e:
            raise self._translate_error(e) from e

    def _translate_error(self, error: Exception) -> LLMProviderError:
        message = f"{type(error).__name__}: {error}"
        logger.error(f"Gemini error: {message}")

        if isinstance(error, google_exceptions.ResourceExhausted):
            return RateLimitError(message, provider=self.name, model=self.model)
        if isinstance(
            error, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)
        ):
            return ConfigurationError(message, provider=self.name, model=self.model)
        return TransportError(message, provider=self.name, model=self.model)

    def _extract_text(self, response: Any) -> str:
        try:
            text = response.text
        except (AttributeError, ValueError) as e:
            raise ParseError(
                f"Invalid response format from Gemini API: {e}",
                provider=self.name,
                model=self.model,
            ) from e
        if not text:
            raise ParseError("Empty response from Gemini API", provider=self.name, model=self.model)
        return text

    def generate(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> str:
        """Generate a complete response with Gemini."""
        instruction, contents = self._build_request(system_prompt, messages, use_search)
        logger.info(f"Generating with Gemini model: {self.model}")

        return self._with_retry(
            lambda: self._extract_text(
                self._call(instruction, contents, temperature, max_tokens, stream=False)
            )
        )

    def generate_streaming(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> Iterator[ResponseChunk]:
        """Stream a response from Gemini."""
        instruction, contents = self._build_request(system_prompt, messages, use_search)
        logger.info(f"Streaming with Gemini model: {self.model}")

        response = self._with_retry(
            lambda: self._call(instruction, contents, temperature, max_tokens, stream=True)
        )
        valid_frames = 0
        try:
            for chunk in response:
                try:
                    text = chunk.text
                except (AttributeError, ValueError) as e:
                    logger.debug(f"Skipping malformed Gemini stream chunk: {e}")
                    continue
                valid_frames += 1
                if text:
                    yield ResponseChunk(content=text)
        except google_exceptions.GoogleAPICallError as e:
            raise self._translate_error(e) from e

        if not valid_frames:
            raise ParseError(
                "Gemini stream ended without any valid frames",
                provider=self.name,
                model=self.model,
            )
        yield ResponseChunk(content="", done=True)
