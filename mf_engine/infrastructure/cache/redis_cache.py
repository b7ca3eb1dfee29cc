"""
Redis cache wrapper for derived holdings.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


class RedisCache:
    def __init__(self, url: str, prefix: str = "mf:", enabled: bool = True, client: Optional[Any] = None):
        self._client = client if client is not None else redis.Redis.from_url(url, decode_responses=True)
        self._prefix = prefix
        self._enabled = enabled

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get_json(self, key: str) -> Optional[Any]:
        if not self._enabled:
            return None
        try:
            raw = self._client.get(self._key(key))
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as exc:
            logger.debug("Redis get_json failed: %s", exc)
            return None

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        if not self._enabled:
            return
        try:
            self._client.set(self._key(key), json.dumps(value), ex=ttl_seconds)
        except Exception as exc:
            logger.debug("Redis set_json failed: %s", exc)

    def delete(self, key: str) -> None:
        if not self._enabled:
            return
        try:
            self._client.delete(self._key(key))
        except Exception as exc:
            logger.debug("Redis delete failed: %s", exc)

    def delete_prefix(self, prefix: str) -> None:
        if not self._enabled:
            return
        try:
            keys = list(self._client.scan_iter(match=f"{self._key(prefix)}*"))
            if keys:
                self._client.delete(*keys)
        except Exception as exc:
            logger.debug("Redis delete_prefix failed: %s", exc)

    def close(self) -> None:
        try:
            self._client.close()
        except Exception:
            return
