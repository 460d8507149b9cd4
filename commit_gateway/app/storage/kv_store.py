"""
Key-value store used for idempotency entries and file index records.

Values are strings; an optional JSON-serializable metadata mapping can be
attached to a key (file index records keep an empty value and put the
record itself in the metadata). Two providers share the interface:
Redis for deployments and an in-process dictionary for local development.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from redis import Redis

from commit_gateway.app.core.config import get_settings
from commit_gateway.app.storage.keys import StoreKey

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    @abstractmethod
    def get_with_metadata(self, key: StoreKey) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def put(self, key: StoreKey, value: str, metadata: Optional[Dict[str, Any]] = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: StoreKey) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def get(self, key: StoreKey) -> Optional[str]:
        value, _ = self.get_with_metadata(key)
        return value


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self._items: Dict[str, Tuple[str, Optional[Dict[str, Any]]]] = {}
        self._lock = threading.Lock()

    def get_with_metadata(self, key: StoreKey) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        with self._lock:
            item = self._items.get(key.render())
        if item is None:
            return None, None
        value, metadata = item
        return value, json.loads(json.dumps(metadata)) if metadata is not None else None

    def put(self, key: StoreKey, value: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        # Round-trip through JSON so callers cannot mutate stored metadata.
        stored = json.loads(json.dumps(metadata)) if metadata is not None else None
        with self._lock:
            self._items[key.render()] = (value, stored)

    def delete(self, key: StoreKey) -> None:
        with self._lock:
            self._items.pop(key.render(), None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._items)


class RedisKeyValueStore(KeyValueStore):
    """Stores each key as a Redis hash with ``value`` and ``metadata`` fields."""

    def __init__(self, connection: Redis, key_prefix: str = "commit-gateway"):
        self.connection = connection
        self.key_prefix = key_prefix

    def _redis_key(self, key: StoreKey) -> str:
        return f"{self.key_prefix}:{key.render()}"

    def get_with_metadata(self, key: StoreKey) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        raw = self.connection.hgetall(self._redis_key(key))
        if not raw:
            return None, None
        fields = {_as_text(k): _as_text(v) for k, v in raw.items()}
        metadata = None
        if fields.get("metadata"):
            try:
                metadata = json.loads(fields["metadata"])
            except ValueError:
                logger.warning("Discarding unreadable metadata for %s", key.render())
        return fields.get("value", ""), metadata

    def put(self, key: StoreKey, value: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        mapping = {"value": value, "metadata": json.dumps(metadata) if metadata is not None else ""}
        self.connection.hset(self._redis_key(key), mapping=mapping)

    def delete(self, key: StoreKey) -> None:
        self.connection.delete(self._redis_key(key))


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


_redis_conn: Optional[Redis] = None


def get_redis_connection() -> Redis:
    """Get or create the shared Redis connection."""
    global _redis_conn
    if _redis_conn is None:
        settings = get_settings()
        _redis_conn = Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            db=settings.redis_db,
            decode_responses=True,
        )
    return _redis_conn
