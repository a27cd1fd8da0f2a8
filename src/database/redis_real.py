"""
Real Redis-backed transaction id registry for production when REDIS_URL is
set. Implements the same interface as src.database.redis (in-memory stub).
"""

from __future__ import annotations

import redis


class TransactionIdRegistry:
    """
    Shared across processes: an id is claimed with ``SET NX EX``.
    """

    def __init__(self, url: str, key_prefix: str = "gateway:txn:") -> None:
        self._client = redis.from_url(url, decode_responses=True)
        self._key_prefix = key_prefix

    def _key(self, transaction_id: str) -> str:
        return f"{self._key_prefix}{transaction_id}"

    def reserve(self, transaction_id: str, ttl_seconds: int = 86400) -> bool:
        return bool(self._client.set(self._key(transaction_id), "1", nx=True, ex=ttl_seconds))

    def release(self, transaction_id: str) -> None:
        self._client.delete(self._key(transaction_id))

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
