"""Key-value stores backing conversation memory."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import redis

from ..config import Settings
from ..exceptions import StoreError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal string store with per-key expiry."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or None if absent or expired."""
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl_seconds``."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; removing an absent key is not an error."""
        ...

    def ping(self) -> bool:
        """Check that the store is reachable."""
        return True


class InMemoryStore(KeyValueStore):
    """Process-local store with lazy expiry."""

    def __init__(self, clock=time.time):
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if self._clock() >= entry["expires_at"]:
                del self._entries[key]
                return None

            return entry["value"]

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = {"value": value, "expires_at": self._clock() + ttl_seconds}

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {"backend": "memory", "size": len(self._entries)}


class RedisStore(KeyValueStore):
    """Redis-backed store using a pooled client."""

    def __init__(self, url: str = "redis://localhost:6379/0", client: Optional[redis.Redis] = None):
        """Initialize the store.

        Args:
            url: Redis connection URL.
            client: Pre-built client, mainly for tests.
        """
        self.url = url
        self.redis = client or redis.Redis.from_url(url, decode_responses=True)

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis GET error for {key}: {e}")
            raise StoreError(f"Failed to get key {key} from Redis: {e}") from e

        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self.redis.setex(key, ttl_seconds, value)
            logger.debug(f"Redis SET: {key} (TTL: {ttl_seconds}s)")
        except redis.RedisError as e:
            logger.error(f"Redis SET error for {key}: {e}")
            raise StoreError(f"Failed to set key {key} in Redis: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.redis.delete(key)
        except redis.RedisError as e:
            logger.error(f"Redis DELETE error for {key}: {e}")
            raise StoreError(f"Failed to delete key {key} from Redis: {e}") from e

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except redis.RedisError as e:
            logger.error(f"Redis connection error: {e}")
            return False


def create_store(settings: Settings) -> KeyValueStore:
    """Pick Redis when a URL is configured, else a process-local store."""
    if settings.redis_url:
        logger.info("Using Redis conversation store")
        return RedisStore(settings.redis_url)
    logger.info("REDIS_URL not set, using in-memory conversation store")
    return InMemoryStore()
