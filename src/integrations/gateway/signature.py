"""X-VERIFY signing and verification."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any

from src.integrations.gateway.errors import SignatureError

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "sha256"
SEPARATOR = "###"


@dataclass(frozen=True)
class SigningContext:
    """Secret and its version index for one instrument type."""

    secret: str = field(repr=False)
    version: str = "1"

    def __repr__(self) -> str:
        return f"SigningContext(secret='***', version={self.version!r})"


def sign(message: str, secret: str, version: str, *, algorithm: str = HASH_ALGORITHM) -> str:
    """Return ``hex(hash(message + secret)) + "###" + version``."""
    try:
        digest = hashlib.new(algorithm)
    except (ValueError, TypeError) as exc:
        raise SignatureError(f"Hash algorithm unavailable: {algorithm}") from exc
    digest.update((message + secret).encode("utf-8"))
    return f"{digest.hexdigest()}{SEPARATOR}{version}"


def verify(message: str, secret: str, version: str, candidate: Any) -> bool:
    """Recompute the signature and compare in constant time. Never raises."""
    if not isinstance(candidate, str) or not candidate or not isinstance(message, str):
        return False
    try:
        expected = sign(message, secret, version)
    except Exception as exc:
        logger.warning("Signature verification could not be computed: %s", exc)
        return False
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


def sign_with(context: SigningContext, message: str) -> str:
    return sign(message, context.secret, context.version)


def verify_with(context: SigningContext, message: str, candidate: Any) -> bool:
    return verify(message, context.secret, context.version, candidate)
