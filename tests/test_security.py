"""Tests for password hashing and JWT helpers."""

from datetime import timedelta

from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)


def test_password_hash_roundtrip():
    hashed = get_password_hash("Secret123!")

    assert hashed != "Secret123!"
    assert verify_password("Secret123!", hashed)
    assert not verify_password("wrong-password", hashed)


def test_access_token_carries_role():
    token = create_access_token({"sub": "abc", "role": "secretary"})

    payload = decode_access_token(token)

    assert payload is not None
    assert payload["sub"] == "abc"
    assert payload["role"] == "secretary"
    assert payload["type"] == "access"


def test_token_types_are_not_interchangeable():
    access = create_access_token({"sub": "abc"})
    refresh = create_refresh_token({"sub": "abc"})

    assert decode_refresh_token(access) is None
    assert decode_access_token(refresh) is None
    assert decode_refresh_token(refresh)["sub"] == "abc"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-1))

    assert decode_access_token(token) is None


def test_garbage_token_is_rejected():
    assert decode_access_token("not-a-jwt") is None
