"""Redis client and short-lived token store.

The token store keeps CSRF tokens, login-attempt records and password
recovery tokens. Redis is used when enabled and reachable; otherwise an
in-process store with per-key expiry takes over so a single instance keeps
working.
"""
import json
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

import redis

from viticult.core.config import settings
from viticult.core.logging import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "viticult:"

# Redis connection pool (lazy initialization)
_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None
_token_store: Optional["TokenStore"] = None


def get_redis_client(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    password: Optional[str] = None,
) -> Optional[redis.Redis]:
    """Get or create Redis client with connection pooling.

    Returns None if Redis is disabled or not reachable (graceful fallback).

    Args:
        host: Redis host (default from REDIS_HOST env)
        port: Redis port (default from REDIS_PORT env)
        db: Redis database number (default from REDIS_DB env)
        password: Redis password (default from REDIS_PASSWORD env)

    Returns:
        Redis client instance or None if unavailable
    """
    global _redis_pool, _redis_client

    if not settings.redis_enabled:
        return None

    host = host or settings.redis_host
    port = port or settings.redis_port
    db = db if db is not None else settings.redis_db
    password = password or settings.redis_password

    if _redis_client is None:
        logger.info(f"Initializing Redis connection pool: {host}:{port}")

        try:
            _redis_pool = redis.ConnectionPool(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=True,
                max_connections=20,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            client = redis.Redis(connection_pool=_redis_pool)
            client.ping()
            _redis_client = client
            logger.info("Redis connection established successfully")

        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            _redis_client = None
            return None

    return _redis_client


class TokenStore:
    """Key/value store with per-key TTL."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable token store entry: {key}")
            return None

    def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        self.set(key, json.dumps(value, default=str), ttl_seconds=ttl_seconds)


class MemoryTokenStore(TokenStore):
    """Thread-safe in-process store.

    Entries expire on read, and writes sweep out every expired entry at
    most once per ``sweep_interval`` seconds.
    """

    def __init__(self, sweep_interval: float = 60.0, clock: Callable[[], float] = time.time) -> None:
        self._store: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._store.items() if expires_at is not None and now > expires_at]
        for key in expired:
            del self._store[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Evicted {len(expired)} expired token store entries")

    def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._lock:
            hit = self._store.get(key)
            if not hit:
                return None
            value, expires_at = hit
            if expires_at is not None and now > expires_at:
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        now = self._clock()
        expires_at = None
        if ttl_seconds is not None:
            expires_at = now + max(1, ttl_seconds)
        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)
            self._store[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


class RedisTokenStore(TokenStore):
    """Redis-backed store; keys are namespaced with ``KEY_PREFIX``."""

    def __init__(self, client: redis.Redis):
        self.redis = client

    def _make_key(self, key: str) -> str:
        return f"{KEY_PREFIX}{key}"

    def get(self, key: str) -> Optional[str]:
        return self.redis.get(self._make_key(key))

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds is not None:
            self.redis.setex(self._make_key(key), max(1, ttl_seconds), value)
        else:
            self.redis.set(self._make_key(key), value)

    def delete(self, key: str) -> None:
        self.redis.delete(self._make_key(key))


def get_token_store() -> TokenStore:
    """Return the process-wide token store, choosing Redis when available."""
    global _token_store

    if _token_store is None:
        client = get_redis_client()
        if client is not None:
            _token_store = RedisTokenStore(client)
        else:
            logger.info("Using in-memory token store")
            _token_store = MemoryTokenStore()

    return _token_store

