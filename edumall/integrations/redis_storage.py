"""Key/value storage backing the local cart: Redis with in-memory fallback."""
from __future__ import annotations

import time

import redis

from logging_config import logger


class KeyValueStore:
    """String storage persisted in Redis, namespaced per storage session.

    Mirrors browser local storage: values are plain strings, writes are
    synchronous, and there is no batching. When Redis is not configured or
    fails, the store switches to a process-local dict and keeps working.
    """

    KEY_EXPIRY_SECONDS = 7 * 24 * 60 * 60

    def __init__(
        self,
        redis_url: str | None = None,
        namespace: str = "edumall",
    ):
        self._redis_url = redis_url
        self._namespace = namespace
        self._client = self._init_client()
        self._memory: dict[str, str] = {}
        self._memory_last_access: dict[str, float] = {}

    @property
    def uses_redis(self) -> bool:
        return self._client is not None

    def _init_client(self):
        if not self._redis_url:
            logger.warning("REDIS_URL is not set; cart storage uses in-memory fallback")
            return None

        try:
            client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            logger.info("Redis cart storage enabled")
            return client
        except Exception as exc:
            logger.warning("Redis storage init failed, fallback to in-memory: %s", exc)
            return None

    def _switch_to_memory_fallback(self, reason: Exception | str) -> None:
        logger.warning("Redis storage fallback to memory mode: %s", reason)
        self._client = None

    def _full_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _cleanup_memory_expired(self) -> None:
        now = time.time()
        expired = [
            key
            for key, last_access in self._memory_last_access.items()
            if now - last_access > self.KEY_EXPIRY_SECONDS
        ]
        for key in expired:
            self._memory.pop(key, None)
            self._memory_last_access.pop(key, None)

    def get(self, key: str) -> str | None:
        full_key = self._full_key(key)
        if self._client:
            try:
                return self._client.get(full_key)
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._cleanup_memory_expired()
        value = self._memory.get(full_key)
        if value is not None:
            self._memory_last_access[full_key] = time.time()
        return value

    def set(self, key: str, value: str) -> None:
        full_key = self._full_key(key)
        if self._client:
            try:
                self._client.setex(full_key, self.KEY_EXPIRY_SECONDS, value)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory[full_key] = value
        self._memory_last_access[full_key] = time.time()

    def delete(self, key: str) -> None:
        full_key = self._full_key(key)
        if self._client:
            try:
                self._client.delete(full_key)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory.pop(full_key, None)
        self._memory_last_access.pop(full_key, None)
