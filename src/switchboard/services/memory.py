"""Conversation memory with expiry, bounded history and a rolling summary."""

import json
import logging
import re
import threading
import time
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import MemoryUnavailable
from ..providers.base import Message
from .store import KeyValueStore

logger = logging.getLogger(__name__)

MEMORY_EXPIRY_SECONDS = 24 * 60 * 60
SUMMARY_MESSAGE_THRESHOLD = 10
MAX_MESSAGES_TO_KEEP = 50
SUMMARY_TOPIC_COUNT = 5

NO_HISTORY_SUMMARY = "No conversation history."

_SENTENCE_END = re.compile(r"[.!?]")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Conversation:
    """Stored state of one conversation."""

    messages: List[Message] = field(default_factory=list)
    summary: Optional[str] = None
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.summary is not None:
            data["summary"] = self.summary
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
        return cls(
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            summary=data.get("summary"),
            created_at=int(data.get("createdAt", 0)),
            updated_at=int(data.get("updatedAt", 0)),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> "Conversation":
        return cls.from_dict(json.loads(raw))


def summarize_topics(messages: List[Message]) -> str:
    """Naive summary: the first sentence of each of the last few user messages.

    A placeholder heuristic; an LLM-backed summarizer can be passed to
    ``ConversationMemory`` instead.
    """
    user_contents = [m.content for m in messages if m.role == "user"]
    if not user_contents:
        return NO_HISTORY_SUMMARY

    sentences = []
    for content in user_contents:
        parts = [s.strip() for s in _SENTENCE_END.split(content) if s.strip()]
        if parts:
            sentences.append(parts[0] + ".")

    topics = sentences[-SUMMARY_TOPIC_COUNT:]
    return f"The conversation covers these topics: {' '.join(topics)}"


class ConversationMemory:
    """Stores conversation history in a key-value store.

    Each conversation is one JSON blob under ``conv:<key>`` with a sliding
    expiry refreshed on every write. Appends to the same key are serialized
    within this process only; writers in other processes can still interleave
    their load-modify-store cycles.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = MEMORY_EXPIRY_SECONDS,
        max_messages: int = MAX_MESSAGES_TO_KEEP,
        summary_threshold: int = SUMMARY_MESSAGE_THRESHOLD,
        summarizer: Callable[[List[Message]], str] = summarize_topics,
        key_prefix: str = "conv:",
    ):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.max_messages = max_messages
        self.summary_threshold = summary_threshold
        self.summarizer = summarizer
        self.key_prefix = key_prefix
        self._locks: "weakref.WeakValueDictionary[str, Any]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _store_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _lock_for(self, key: str) -> Any:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def load(self, key: str) -> Optional[Conversation]:
        """Load a conversation.

        Returns:
            The conversation, or None if there is none (or the stored blob is unreadable).

        Raises:
            MemoryUnavailable: If the store cannot be read.
        """
        try:
            raw = self.store.get(self._store_key(key))
        except Exception as e:
            logger.error(f"Failed to load conversation {key}: {e}")
            raise MemoryUnavailable(f"Failed to load conversation {key}: {e}") from e

        if not raw:
            return None

        try:
            return Conversation.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable conversation {key}: {e}")
            return None

    def append(self, key: str, message: Message) -> Conversation:
        """Add a message to a conversation, creating it if needed.

        Applies the size bound, fills in the summary the first time the
        threshold is reached and refreshes the expiry.

        Raises:
            MemoryUnavailable: If the store cannot be read or written.
        """
        with self._lock_for(key):
            conversation = self.load(key) or Conversation()
            conversation.messages.append(message)
            conversation.messages = self._prune(conversation.messages)

            # Only ever filled once; later appends leave it untouched
            if len(conversation.messages) >= self.summary_threshold and not conversation.summary:
                conversation.summary = self.summarizer(conversation.messages)
                logger.debug(f"Generated summary for conversation {key}")

            conversation.updated_at = _now_ms()
            self._save(key, conversation)
            return conversation

    def delete(self, key: str) -> bool:
        """Delete a conversation. Deleting a missing conversation succeeds."""
        try:
            self.store.delete(self._store_key(key))
            return True
        except Exception as e:
            logger.error(f"Failed to delete conversation {key}: {e}")
            return False

    def _prune(self, messages: List[Message]) -> List[Message]:
        if len(messages) <= self.max_messages:
            return messages

        # Keep a leading system message, then the most recent messages
        head = messages[:1] if messages[0].role == "system" else []
        keep = self.max_messages - len(head)
        tail = messages[-keep:] if keep > 0 else []
        return head + tail

    def _save(self, key: str, conversation: Conversation) -> None:
        try:
            self.store.set(self._store_key(key), conversation.to_json(), self.ttl_seconds)
        except Exception as e:
            logger.error(f"Failed to save conversation {key}: {e}")
            raise MemoryUnavailable(f"Failed to save conversation {key}: {e}") from e

    def get_stats(self) -> Dict[str, Any]:
        """Get memory configuration."""
        return {
            "backend": type(self.store).__name__,
            "ttl_seconds": self.ttl_seconds,
            "max_messages": self.max_messages,
            "summary_threshold": self.summary_threshold,
            "key_prefix": self.key_prefix,
        }
