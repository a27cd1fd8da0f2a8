"""
Lightweight in-memory transaction id registry for local development.

Implements the same interface as src.database.redis_real so the gateway can
run without a real Redis instance. Uniqueness only holds within one process.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict


class TransactionIdRegistry:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        # transaction_id -> expiry (clock seconds)
        self._reserved: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def reserve(self, transaction_id: str, ttl_seconds: int = 86400) -> bool:
        """Claim ``transaction_id``; False if it is already held."""
        now = self._clock()
        with self._lock:
            for held, held_expiry in list(self._reserved.items()):
                if held_expiry <= now:
                    del self._reserved[held]
            if transaction_id in self._reserved:
                return False
            self._reserved[transaction_id] = now + ttl_seconds
            return True

    def release(self, transaction_id: str) -> None:
        with self._lock:
            self._reserved.pop(transaction_id, None)

    def ping(self) -> bool:
        return True
