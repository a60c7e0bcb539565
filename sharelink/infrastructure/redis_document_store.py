"""
Redis Document Store

Primary metadata backend. Each document is one JSON value stored under
``<prefix>:<collection>:<id>``; documents carrying an ``expiresAt`` get a
Redis TTL of expiry plus a grace period so abandoned records disappear on
their own.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import redis
from redis.exceptions import RedisError

from ..domain.errors import BackendUnavailableError
from ..domain.file_sharing.document_store import IDocumentStore
from ..domain.file_sharing.entities import parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "sharelink"
DEFAULT_TTL_GRACE_SECONDS = 3600
SCAN_BATCH_SIZE = 200


class RedisConnectionManager:
    """Manages Redis connection with connection pooling."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        max_connections: int = 20,
        socket_timeout: Optional[float] = 2.0,
    ):
        self.connection_pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry_on_timeout=False,
            socket_keepalive=True,
        )
        self.client = redis.Redis(connection_pool=self.connection_pool)

    def health_check(self) -> bool:
        """Check if Redis connection is healthy."""
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def close(self) -> None:
        """Close the connection pool."""
        self.connection_pool.disconnect()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RedisDocumentStore(IDocumentStore):
    """
    IDocumentStore backed by Redis.

    Every Redis failure is raised as BackendUnavailableError so the
    metadata store can fall back to the local backend.
    """

    name = "redis"

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        ttl_grace_seconds: int = DEFAULT_TTL_GRACE_SECONDS,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.ttl_grace_seconds = ttl_grace_seconds
        self.clock = clock

    def _make_key(self, collection: str, doc_id: str) -> str:
        """Create a prefixed key for Redis storage."""
        return f"{self.key_prefix}:{collection}:{doc_id}"

    def _ttl_for(self, document: Dict[str, Any]) -> Optional[int]:
        try:
            expires_at = parse_timestamp(document.get("expiresAt"))
        except (TypeError, ValueError):
            return None
        if expires_at is None:
            return None
        remaining = int((expires_at - self.clock()).total_seconds())
        return max(1, remaining + self.ttl_grace_seconds)

    def _unavailable(self, operation: str, error: Exception) -> BackendUnavailableError:
        return BackendUnavailableError(
            f"Redis {operation} failed: {error}",
            context={"backend": self.name, "operation": operation},
            original_error=error,
        )

    def _decode(self, key: str, raw: Optional[bytes]) -> Optional[Dict[str, Any]]:
        if raw is None:
            return None
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Ignoring corrupt JSON document at %s: %s", key, e)
            return None

    def put(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        key = self._make_key(collection, doc_id)
        payload = json.dumps(document)
        ttl = self._ttl_for(document)
        try:
            if ttl:
                self.redis.setex(key, ttl, payload)
            else:
                self.redis.set(key, payload)
        except RedisError as e:
            raise self._unavailable("put", e) from e

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        key = self._make_key(collection, doc_id)
        try:
            raw = self.redis.get(key)
        except RedisError as e:
            raise self._unavailable("get", e) from e
        return self._decode(key, raw)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        document = self.get(collection, doc_id)
        if document is None:
            return False
        document.update(fields)
        self.put(collection, doc_id, document)
        return True

    def delete(self, collection: str, doc_id: str) -> bool:
        try:
            return self.redis.delete(self._make_key(collection, doc_id)) > 0
        except RedisError as e:
            raise self._unavailable("delete", e) from e

    def query(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Scan a collection and return documents matching every filter.

        Uses SCAN rather than KEYS so large collections do not block Redis.
        """
        filters = filters or {}
        pattern = self._make_key(collection, "*")
        results: List[Dict[str, Any]] = []
        try:
            batch: List[bytes] = []
            for key in self.redis.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    results.extend(self._load_batch(batch, filters))
                    batch = []
            if batch:
                results.extend(self._load_batch(batch, filters))
        except RedisError as e:
            raise self._unavailable("query", e) from e
        return results

    def _load_batch(
        self, keys: List[bytes], filters: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        documents = []
        for key, raw in zip(keys, self.redis.mget(keys)):
            if isinstance(key, bytes):
                key = key.decode("utf-8", errors="replace")
            document = self._decode(key, raw)
            if document is None:
                continue
            if all(document.get(field) == value for field, value in filters.items()):
                documents.append(document)
        return documents

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except RedisError:
            return False
