# tests/test_security.py
"""Tests for password hashing and session tokens."""

from jose import jwt

from murmur.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from murmur.core.settings import settings


def test_password_hash_round_trip() -> None:
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


def test_verify_password_rejects_garbage_hash() -> None:
    assert verify_password("hunter22", "not-a-bcrypt-hash") is False


def test_access_token_carries_subject_and_unique_jti() -> None:
    first = decode_access_token(create_access_token("user-1"))
    second = decode_access_token(create_access_token("user-1"))
    assert first is not None and second is not None
    assert first.subject == "user-1"
    assert first.jti != second.jti


def test_expired_token_is_rejected() -> None:
    token = create_access_token("user-1", expires_minutes=-1)
    assert decode_access_token(token) is None


def test_token_signed_with_other_key_is_rejected() -> None:
    token = jwt.encode({"sub": "user-1", "jti": "x", "exp": 9999999999}, "other-key", algorithm="HS256")
    assert decode_access_token(token) is None


def test_token_without_jti_is_rejected() -> None:
    token = jwt.encode(
        {"sub": "user-1", "exp": 9999999999}, settings.secret_key, algorithm=settings.jwt_algorithm
    )
    assert decode_access_token(token) is None
