"""Service components for switchboard."""

from .memory import Conversation, ConversationMemory, summarize_topics
from .store import InMemoryStore, KeyValueStore, RedisStore, create_store

__all__ = [
    "Conversation",
    "ConversationMemory",
    "InMemoryStore",
    "KeyValueStore",
    "RedisStore",
    "create_store",
    "summarize_topics",
]
