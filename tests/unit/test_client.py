"""Unit tests for ChatClient."""

from unittest.mock import Mock, patch

import pytest

from switchboard.client import (
    GENERATE_APOLOGY,
    SEARCH_APOLOGY,
    STREAMING_APOLOGY,
    ChatClient,
    generate_conversation_id,
)
from switchboard.exceptions import (
    ConfigurationError,
    MemoryUnavailable,
    NoProviderAvailableError,
    ParseError,
    TransportError,
)
from switchboard.providers import ResponseChunk
from switchboard.search import SearchResult
from tests.fixtures import FakeProvider, create_memory, create_mock_registry


def _client(primary, fallbacks=None, memory=None, **kwargs):
    registry = create_mock_registry(primary, fallbacks)
    return ChatClient(
        registry=registry,
        memory=memory if memory is not None else create_memory(),
        conversation_id=kwargs.pop("conversation_id", "test-conv"),
        **kwargs,
    )


class TestChatClientInit:
    """Tests for client construction."""

    def test_uses_default_provider(self):
        """Test that the registry default becomes the primary."""
        primary = FakeProvider("groq")
        client = _client(primary)

        assert client.provider is primary
        client.registry.default_provider.assert_called_once()

    def test_named_provider(self):
        """Test resolving a named provider and model."""
        primary = FakeProvider("cohere")
        client = _client(primary, provider="cohere", model="command-r")

        client.registry.resolve.assert_called_once_with("cohere", "command-r")
        assert client.provider is primary

    def test_fallbacks_exclude_primary(self):
        """Test that the primary is not repeated in the fallback list."""
        primary = FakeProvider("groq")
        other = FakeProvider("cohere")
        client = _client(primary, [other])

        assert client.fallback_providers == [other]

    def test_fallbacks_disabled(self):
        """Test use_fallbacks=False."""
        client = _client(FakeProvider("groq"), [FakeProvider("cohere")], use_fallbacks=False)

        assert client.fallback_providers == []
        client.registry.fallback_chain.assert_not_called()

    def test_no_provider_available(self):
        """Test construction with nothing configured."""
        registry = create_mock_registry(FakeProvider())
        registry.default_provider.return_value = None

        with pytest.raises(NoProviderAvailableError):
            ChatClient(registry=registry, memory=create_memory())

    def test_named_provider_errors_propagate(self):
        """Test that an unusable named provider fails construction."""
        registry = create_mock_registry(FakeProvider())
        registry.resolve.side_effect = ConfigurationError("no key", provider="glhf")

        with pytest.raises(ConfigurationError):
            ChatClient(provider="glhf", registry=registry, memory=create_memory())

    def test_random_conversation_id(self):
        """Test that a conversation id is generated when none is given."""
        registry = create_mock_registry(FakeProvider())

        first = ChatClient(registry=registry, memory=create_memory())
        second = ChatClient(registry=registry, memory=create_memory())

        assert len(first.conversation_id) == 13
        assert first.conversation_id != second.conversation_id

    def test_generate_conversation_id_format(self):
        """Test the id alphabet."""
        conversation_id = generate_conversation_id()

        assert len(conversation_id) == 13
        assert all(c in "0123456789abcdef" for c in conversation_id)


class TestGenerate:
    """Tests for non-streaming generation with fallback."""

    def test_primary_success(self):
        """Test that the primary answers and nothing else is called."""
        primary = FakeProvider("groq", response="Primary response")
        fallback = FakeProvider("cohere")
        client = _client(primary, [fallback])

        assert client.generate("Hello") == "Primary response"
        assert len(primary.calls) == 1
        assert fallback.calls == []

    def test_fallback_response(self):
        """Test that a failing primary falls through to the next provider."""
        primary = FakeProvider("groq", error=TransportError("Primary provider failed"))
        fallback = FakeProvider("cohere", response="Fallback response")
        client = _client(primary, [fallback])

        result = client.generate("Test prompt")

        assert result == "Fallback response"
        assert len(primary.calls) == 1
        assert len(fallback.calls) == 1

    def test_fallbacks_get_identical_inputs(self):
        """Test that every provider sees the same prompt and history."""
        primary = FakeProvider("groq", error=ParseError("garbled"))
        fallback = FakeProvider("cohere")
        client = _client(primary, [fallback])

        client.generate("Test prompt", temperature=0.1, max_tokens=99, use_search=True)

        assert primary.calls == fallback.calls
        call = fallback.calls[0]
        assert call["temperature"] == 0.1
        assert call["max_tokens"] == 99
        assert call["use_search"] is True
        assert call["messages"][-1].content == "Test prompt"

    def test_all_providers_fail(self):
        """Test the apology when every provider fails."""
        primary = FakeProvider("groq", error=TransportError("down"))
        fallback = FakeProvider("cohere", error=ConfigurationError("no key"))
        client = _client(primary, [fallback])

        assert client.generate("Test prompt") == (
            "Sorry, I encountered an error while processing your request. "
            "Please try again later."
        )

    def test_unexpected_exception_is_contained(self):
        """Test that a non-provider error is treated as a provider failure."""
        primary = FakeProvider("groq", error=RuntimeError("bug"))
        client = _client(primary, use_fallbacks=False)

        assert client.generate("Hello") == GENERATE_APOLOGY

    def test_generate_result_attempts(self):
        """Test the per-provider attempt record."""
        primary = FakeProvider("groq", error=TransportError("timeout"))
        fallback = FakeProvider("cohere", response="ok")
        client = _client(primary, [fallback])

        result = client.generate_result("Hello")

        assert result.success is True
        assert result.provider == "cohere"
        assert result.content == "ok"
        assert [a.provider_name for a in result.attempts] == ["groq", "cohere"]
        assert result.attempts[0].success is False
        assert "TransportError" in result.attempts[0].error
        assert result.attempts[1].success is True

    def test_generate_result_all_fail(self):
        """Test the failed result wrapper."""
        client = _client(FakeProvider("groq", error=TransportError("x")), use_fallbacks=False)

        result = client.generate_result("Hello")

        assert result.success is False
        assert result.provider is None
        assert result.content == GENERATE_APOLOGY
        assert len(result.attempts) == 1

    def test_custom_system_prompt(self):
        """Test that a caller system prompt replaces the default."""
        primary = FakeProvider("groq")
        client = _client(primary)

        client.generate("Hello", system_prompt="You are a pirate.")

        assert primary.calls[0]["system_prompt"] == "You are a pirate."

    def test_default_system_prompt(self):
        """Test the generated system prompt."""
        primary = FakeProvider("groq")
        client = _client(primary)

        client.generate("Hello")

        system_prompt = primary.calls[0]["system_prompt"]
        assert system_prompt.startswith("You are a helpful AI assistant. The current time is ")
        assert "previous conversation" not in system_prompt


class TestGenerateMemory:
    """Tests for conversation memory during generation."""

    def test_exchange_is_remembered(self):
        """Test that the prompt and reply are appended in order."""
        memory = create_memory()
        client = _client(FakeProvider("groq", response="Hi!"), memory=memory)

        client.generate("Hello")

        messages = memory.load("test-conv").messages
        assert [(m.role, m.content) for m in messages] == [("user", "Hello"), ("assistant", "Hi!")]

    def test_history_is_sent(self):
        """Test that earlier turns are included in the next request."""
        primary = FakeProvider("groq", response="Reply")
        client = _client(primary)

        client.generate("First")
        client.generate("Second")

        contents = [m.content for m in primary.calls[1]["messages"]]
        assert contents == ["First", "Reply", "Second"]

    def test_failed_request_keeps_user_message(self):
        """Test that the prompt is stored even when every provider fails."""
        memory = create_memory()
        client = _client(FakeProvider("groq", error=TransportError("x")), memory=memory)

        client.generate("Lost?")

        messages = memory.load("test-conv").messages
        assert [(m.role, m.content) for m in messages] == [("user", "Lost?")]

    def test_use_memory_false(self):
        """Test that memory is neither read nor written."""
        memory = create_memory()
        primary = FakeProvider("groq")
        client = _client(primary, memory=memory)
        client.generate("Remembered")

        client.generate("Ephemeral", use_memory=False)

        assert [m.content for m in primary.calls[1]["messages"]] == ["Ephemeral"]
        assert len(memory.load("test-conv").messages) == 2

    def test_summary_in_system_prompt(self):
        """Test that a stored summary is added to the default system prompt."""
        memory = create_memory(summary_threshold=2)
        primary = FakeProvider("groq", response="Sure.")
        client = _client(primary, memory=memory)

        client.generate("Tell me about volcanoes.")
        client.generate("And earthquakes?")

        system_prompt = primary.calls[1]["system_prompt"]
        assert "Here's a summary of our previous conversation" in system_prompt
        assert "Tell me about volcanoes." in system_prompt

    def test_memory_unavailable_does_not_block(self):
        """Test that a broken store degrades to a stateless answer."""
        memory = Mock()
        memory.load.side_effect = MemoryUnavailable("redis down")
        memory.append.side_effect = MemoryUnavailable("redis down")
        primary = FakeProvider("groq", response="Still here")
        client = _client(primary, memory=memory)

        assert client.generate("Hello") == "Still here"
        assert [m.content for m in primary.calls[0]["messages"]] == ["Hello"]

    def test_unreadable_history_does_not_block(self):
        """Test that a stored blob of the wrong shape is dropped rather than raised."""
        memory = create_memory()
        memory.store.set("conv:test-conv", "[]", 60)
        primary = FakeProvider("groq", response="ok")
        client = _client(primary, memory=memory)

        assert client.generate("hi") == "ok"
        assert [m.content for m in primary.calls[0]["messages"]] == ["hi"]
        assert [m.content for m in memory.load("test-conv").messages] == ["hi", "ok"]

    def test_clear_conversation(self):
        """Test clearing history."""
        memory = create_memory()
        client = _client(FakeProvider("groq"), memory=memory)
        client.generate("Hello")

        assert client.clear_conversation() is True
        assert memory.load("test-conv") is None
        assert client.get_conversation() is None

    def test_shared_conversation_across_clients(self):
        """Test that two clients with one id share history."""
        memory = create_memory()
        first = _client(FakeProvider("groq", response="A"), memory=memory)
        primary = FakeProvider("cohere", response="B")
        second = _client(primary, memory=memory)

        first.generate("From first")
        second.generate("From second")

        assert [m.content for m in primary.calls[0]["messages"]] == [
            "From first",
            "A",
            "From second",
        ]


class TestGenerateStreaming:
    """Tests for streaming generation."""

    def test_streaming_aggregation(self):
        """Test chunk delivery and the returned full text."""
        primary = FakeProvider("groq", chunks=["Stream ", "chunk ", "test"])
        client = _client(primary)
        on_chunk = Mock()

        result = client.generate_streaming("Hello", on_chunk)

        assert result == "Stream chunk test"
        assert [c.args for c in on_chunk.call_args_list] == [
            ("Stream ", False),
            ("chunk ", False),
            ("test", False),
            ("", True),
        ]

    def test_streaming_done_on_last_content_chunk(self):
        """Test a stream whose final content chunk carries the done flag."""
        primary = FakeProvider("groq")
        primary.generate_streaming = Mock(
            return_value=iter(
                [
                    ResponseChunk("Stream "),
                    ResponseChunk("chunk "),
                    ResponseChunk("test", done=True),
                ]
            )
        )
        client = _client(primary)
        on_chunk = Mock()

        result = client.generate_streaming("Hello", on_chunk)

        assert result == "Stream chunk test"
        assert [c.args for c in on_chunk.call_args_list] == [
            ("Stream ", False),
            ("chunk ", False),
            ("test", True),
        ]

    def test_streaming_persists_full_text(self):
        """Test that the aggregated reply is stored once."""
        memory = create_memory()
        client = _client(FakeProvider("groq", chunks=["a", "b"]), memory=memory)

        client.generate_streaming("Hello", Mock())

        messages = memory.load("test-conv").messages
        assert [(m.role, m.content) for m in messages] == [("user", "Hello"), ("assistant", "ab")]

    def test_streaming_fallback_discards_partial(self):
        """Test that a broken stream restarts on the fallback."""
        memory = create_memory()
        primary = FakeProvider(
            "groq", chunks=["partial ", "text"], error=TransportError("reset"), fail_after=1
        )
        fallback = FakeProvider("cohere", chunks=["Fallback ", "stream"])
        client = _client(primary, [fallback], memory=memory)
        on_chunk = Mock()

        result = client.generate_streaming("Hello", on_chunk)

        assert result == "Fallback stream"
        contents = [c.args[0] for c in on_chunk.call_args_list]
        # Already delivered chunks are not retracted
        assert contents == ["partial ", "Fallback ", "stream", ""]
        assert memory.load("test-conv").messages[-1].content == "Fallback stream"

    def test_streaming_all_fail(self):
        """Test the streaming apology."""
        primary = FakeProvider("groq", error=TransportError("down"))
        fallback = FakeProvider("cohere", error=ParseError("bad"))
        client = _client(primary, [fallback])
        on_chunk = Mock()

        result = client.generate_streaming("Hello", on_chunk)

        assert result == STREAMING_APOLOGY
        on_chunk.assert_called_once_with(STREAMING_APOLOGY, True)
        assert len(primary.stream_calls) == 1
        assert len(fallback.stream_calls) == 1

    def test_streaming_stops_at_done(self):
        """Test that chunks after the done marker are ignored."""
        primary = FakeProvider("groq")
        primary.generate_streaming = Mock(
            return_value=iter(
                [
                    Mock(content="one", done=False),
                    Mock(content="", done=True),
                    Mock(content="ignored", done=False),
                ]
            )
        )
        client = _client(primary)
        on_chunk = Mock()

        assert client.generate_streaming("Hello", on_chunk) == "one"
        assert on_chunk.call_count == 2

    def test_streaming_without_done_marker(self):
        """Test that an exhausted stream still signals completion."""
        primary = FakeProvider("groq")
        primary.generate_streaming = Mock(return_value=iter([Mock(content="only", done=False)]))
        client = _client(primary)
        on_chunk = Mock()

        assert client.generate_streaming("Hello", on_chunk) == "only"
        on_chunk.assert_called_with("", True)

    def test_streaming_result(self):
        """Test the streaming result wrapper."""
        primary = FakeProvider("groq", error=TransportError("x"))
        fallback = FakeProvider("cohere", chunks=["ok"])
        client = _client(primary, [fallback])

        result = client.generate_streaming_result("Hello", Mock())

        assert result.success is True
        assert result.provider == "cohere"
        assert [a.success for a in result.attempts] == [False, True]


class TestSearchInternet:
    """Tests for ChatClient.search_internet."""

    def test_uses_provider_search_with_optimized_query(self):
        """Test that the provider searches with the optimized query."""
        primary = FakeProvider("groq")
        primary.search_internet = Mock(return_value="results")
        client = _client(primary)

        assert client.search_internet("What is the speed of light") == "results"
        primary.search_internet.assert_called_once_with("speed of light")

    def test_falls_back_to_direct_search(self):
        """Test the direct search when the provider search raises."""
        primary = FakeProvider("groq")
        primary.search_internet = Mock(side_effect=RuntimeError("broken"))
        client = _client(primary)
        client.search.search.return_value = [SearchResult("T", "https://t.com", "snippet")]

        result = client.search_internet("speed of light")

        assert result == '[1] "T": snippet Source: https://t.com'
        client.search.search.assert_called_once_with("speed of light")

    def test_unavailable_provider_search_falls_back(self):
        """Test the direct search when the provider reports search as unavailable."""
        primary = FakeProvider("groq")
        primary.search.search.side_effect = TransportError("searxng down")
        client = _client(primary)
        client.search.search.return_value = [SearchResult("T", "https://t.com", "snippet")]

        result = client.search_internet("speed of light")

        assert result == '[1] "T": snippet Source: https://t.com'
        primary.search.search.assert_called_once()
        client.search.search.assert_called_once_with("speed of light")

    def test_no_results_is_not_a_failure(self):
        """Test that an empty provider search is returned without a second search."""
        primary = FakeProvider("groq")
        primary.search.search.return_value = []
        client = _client(primary)

        assert client.search_internet("speed of light") == "No search results found."
        client.search.search.assert_not_called()

    def test_search_apology(self):
        """Test the apology when both searches fail."""
        primary = FakeProvider("groq")
        primary.search_internet = Mock(side_effect=RuntimeError("broken"))
        client = _client(primary)
        client.search.search.side_effect = TransportError("down")

        assert client.search_internet("anything") == SEARCH_APOLOGY


class TestClientInfo:
    """Tests for passthroughs and stats."""

    def test_available_providers_and_models(self):
        """Test registry passthroughs."""
        client = _client(FakeProvider("groq"), [FakeProvider("cohere")])

        assert client.available_providers() == ["groq", "cohere"]
        assert client.models_for("groq") == ["test-model"]
        client.registry.models_for.assert_called_once_with("groq")

    def test_get_stats(self):
        """Test call counters."""
        primary = FakeProvider("groq", error=TransportError("x"))
        fallback = FakeProvider("cohere")
        client = _client(primary, [fallback])

        client.generate("one")
        fallback.error = TransportError("y")
        client.generate("two")

        stats = client.get_stats()
        assert stats["provider"] == "groq"
        assert stats["fallbacks"] == ["cohere"]
        assert stats["total_calls"] == 2
        assert stats["successful_calls"] == 1
        assert stats["failed_calls"] == 1
        assert stats["fallback_calls"] == 2
        assert stats["success_rate"] == "50.0%"

    @patch("switchboard.client.ProviderRegistry")
    @patch("switchboard.client.create_store")
    def test_default_collaborators(self, mock_create_store, mock_registry_class):
        """Test that a registry and memory are built when none are passed."""
        registry = create_mock_registry(FakeProvider("groq"))
        mock_registry_class.return_value = registry

        client = ChatClient()

        mock_registry_class.assert_called_once_with()
        mock_create_store.assert_called_once_with(registry.settings)
        assert client.memory.store is mock_create_store.return_value
        assert client.search is registry.search
