"""Merchant-side transaction id generation with collision-checked reservation."""

from __future__ import annotations

import logging
import secrets
import string
from typing import Protocol

from src.integrations.gateway.errors import TransactionIdCollisionError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "TX"
DEFAULT_LENGTH = 14
DEFAULT_ALPHABET = string.digits


class IdRegistry(Protocol):
    def reserve(self, transaction_id: str, ttl_seconds: int) -> bool:
        ...


def generate_transaction_id(
    prefix: str = DEFAULT_PREFIX,
    length: int = DEFAULT_LENGTH,
    alphabet: str = DEFAULT_ALPHABET,
) -> str:
    if length <= 0 or not alphabet:
        raise ValueError("Transaction id length and alphabet must be non-empty")
    return prefix + "".join(secrets.choice(alphabet) for _ in range(length))


class TransactionIdGenerator:
    def __init__(
        self,
        registry: IdRegistry,
        *,
        prefix: str = DEFAULT_PREFIX,
        length: int = DEFAULT_LENGTH,
        alphabet: str = DEFAULT_ALPHABET,
        max_attempts: int = 5,
        ttl_seconds: int = 86400,
    ) -> None:
        self.registry = registry
        self.prefix = prefix
        self.length = length
        self.alphabet = alphabet
        self.max_attempts = max(1, max_attempts)
        self.ttl_seconds = ttl_seconds

    def next_id(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = generate_transaction_id(self.prefix, self.length, self.alphabet)
            if self.registry.reserve(candidate, self.ttl_seconds):
                return candidate
            logger.warning("Transaction id collision (attempt %d/%d)", attempt, self.max_attempts)
        raise TransactionIdCollisionError(
            f"Could not reserve a unique transaction id after {self.max_attempts} attempts"
        )
