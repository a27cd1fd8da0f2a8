import hashlib

import pytest

from src.integrations.gateway import signature
from src.integrations.gateway.errors import SignatureError
from src.integrations.gateway.signature import SigningContext, sign, verify


def test_sign_matches_hash_of_message_and_salt():
    expected = hashlib.sha256(b"/v3/transaction/M1/TX1/status" + b"salt").hexdigest() + "###1"
    assert sign("/v3/transaction/M1/TX1/status", "salt", "1") == expected


def test_sign_is_deterministic_and_lowercase_hex():
    first = sign("eyJhIjoxfQ==/v3/qr/init", "secret", "3")
    assert first == sign("eyJhIjoxfQ==/v3/qr/init", "secret", "3")
    digest, version = first.split("###")
    assert version == "3"
    assert len(digest) == 64
    assert digest == digest.lower()


def test_verify_accepts_own_signature():
    sig = sign("payload", "secret", "1")
    assert verify("payload", "secret", "1", sig) is True


def test_verify_detects_tampered_message_or_secret():
    sig = sign("payload", "secret", "1")
    assert verify("paylobd", "secret", "1", sig) is False
    assert verify("payload", "secreu", "1", sig) is False
    assert verify("payload", "secret", "2", sig) is False


def test_verify_fails_closed_on_missing_candidates():
    assert verify("payload", "secret", "1", None) is False
    assert verify("payload", "secret", "1", "") is False
    assert verify("payload", "secret", "1", 12345) is False
    assert verify("payload", "secret", "1", "not-a-signature") is False


def test_signing_context_repr_masks_secret():
    ctx = SigningContext(secret="super-secret", version="1")
    assert "super-secret" not in repr(ctx)


def test_sign_rejects_unknown_algorithm():
    with pytest.raises(SignatureError):
        sign("payload", "secret", "1", algorithm="no-such-hash")


def test_verify_is_false_when_secret_is_not_a_string():
    assert verify("payload", None, "1", "abc###1") is False


def test_verify_is_false_when_hashing_breaks(monkeypatch):
    sig = sign("payload", "secret", "1")

    def broken(name, *args, **kwargs):
        raise ValueError(f"unsupported hash type {name}")

    monkeypatch.setattr(signature.hashlib, "new", broken)
    assert verify("payload", "secret", "1", sig) is False
