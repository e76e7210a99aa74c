"""Cohere LLM provider implementation."""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx

from .base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ConfigurationError,
    LLMProvider,
    Message,
    ParseError,
    RateLimitError,
    ResponseChunk,
    TransportError,
)

logger = logging.getLogger(__name__)

COHERE_BASE_URL = "https://api.cohere.ai/v1"
COHERE_API_VERSION = "2023-05-24"

# Cohere's chat history uses its own role vocabulary
_ROLE_MAP = {"user": "USER", "assistant": "CHATBOT"}


class CohereProvider(LLMProvider):
    """LLM provider using Cohere's chat endpoint.

    Cohere takes the system prompt as a separate ``preamble`` and the latest
    user turn as ``message``; earlier turns go into ``chat_history``.
    """

    api_key_env = "COHERE_API_KEY"
    default_model = "command-r-plus"

    def __init__(self, *args: Any, base_url: str = COHERE_BASE_URL, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.base_url = base_url
        self._http: Optional[httpx.Client] = None

    @property
    def name(self) -> str:
        return "cohere"

    @property
    def http(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._http is None:
            self._http = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._require_api_key()}",
                    "Cohere-Version": COHERE_API_VERSION,
                },
            )
        return self._http

    def _build_payload(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float],
        max_tokens: Optional[int],
        use_search: bool,
        stream: bool,
    ) -> Dict[str, Any]:
        preamble = system_prompt

        if use_search:
            search_context = self._search_context(messages)
            if search_context:
                preamble += f"\n\n{search_context}"

        chat_history = []
        for msg in messages:
            if msg.role == "system":
                preamble += "\n" + msg.content
            else:
                chat_history.append({"role": _ROLE_MAP[msg.role], "message": msg.content})

        # The trailing user turn is sent as `message`, not history
        message = ""
        if messages and messages[-1].role == "user":
            message = messages[-1].content
            chat_history = chat_history[:-1]

        return {
            "model": self.model,
            "message": message,
            "chat_history": chat_history,
            "preamble": preamble,
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "stream": stream,
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        message = f"Cohere API returned HTTP {response.status_code}"
        logger.error(message)
        if response.status_code == 429:
            raise RateLimitError(message, provider=self.name, model=self.model)
        if response.status_code in (401, 403):
            raise ConfigurationError(message, provider=self.name, model=self.model)
        raise TransportError(message, provider=self.name, model=self.model)

    def _post_chat(self, payload: Dict[str, Any]) -> str:
        try:
            response = self.http.post("/chat", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(str(e), provider=self.name, model=self.model) from e
        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(
                f"Invalid JSON from Cohere API: {e}", provider=self.name, model=self.model
            ) from e
        if not isinstance(data, dict) or not data.get("text"):
            raise ParseError(
                "Invalid response format from Cohere API", provider=self.name, model=self.model
            )
        return data["text"]

    def _open_stream(self, payload: Dict[str, Any]) -> httpx.Response:
        request = self.http.build_request("POST", "/chat", json=payload)
        try:
            response = self.http.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(str(e), provider=self.name, model=self.model) from e
        if response.status_code >= 400:
            response.close()
        self._raise_for_status(response)
        return response

    def generate(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> str:
        """Generate a complete response using Cohere chat."""
        payload = self._build_payload(
            system_prompt, messages, temperature, max_tokens, use_search, stream=False
        )
        logger.info(f"Generating with Cohere model: {self.model}")
        return self._with_retry(lambda: self._post_chat(payload))

    def generate_streaming(
        self,
        system_prompt: str,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        use_search: bool = False,
    ) -> Iterator[ResponseChunk]:
        """Stream a response from Cohere's newline-delimited JSON events."""
        payload = self._build_payload(
            system_prompt, messages, temperature, max_tokens, use_search, stream=True
        )
        logger.info(f"Streaming with Cohere model: {self.model}")

        response = self._with_retry(lambda: self._open_stream(payload))
        valid_frames = 0
        try:
            for line in response.iter_lines():
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except ValueError as e:
                    logger.warning(f"Error parsing Cohere streaming chunk: {e}")
                    continue
                if not isinstance(event, dict):
                    continue

                valid_frames += 1
                event_type = event.get("event_type")
                if event_type == "text-generation":
                    yield ResponseChunk(content=event.get("text") or "")
                elif event_type == "stream-end":
                    if event.get("finish_reason") == "ERROR":
                        raise TransportError(
                            "Cohere stream ended with an error",
                            provider=self.name,
                            model=self.model,
                        )
                    yield ResponseChunk(content="", done=True)
                    return
        except httpx.HTTPError as e:
            raise TransportError(str(e), provider=self.name, model=self.model) from e
        finally:
            response.close()

        if not valid_frames:
            raise ParseError(
                "Cohere stream ended without any valid frames",
                provider=self.name,
                model=self.model,
            )
        yield ResponseChunk(content="", done=True)
