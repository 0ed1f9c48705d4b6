from __future__ import annotations

from datetime import timedelta

import bcrypt
import jwt
import pytest

from account_service.credentials.passwords import PasswordHasher
from account_service.credentials.tokens import IdentityClaims, TokenService
from account_service.errors import AuthError, AuthErrorKind, ValidationError


def test_hash_and_verify_password():
    hasher = PasswordHasher(rounds=4)
    hashed = hasher.hash_password("s3cret")

    assert hashed != "s3cret"
    assert hasher.verify_password(hashed, "s3cret")
    assert not hasher.verify_password(hashed, "wrong")


def test_hash_uses_fresh_salt():
    hasher = PasswordHasher(rounds=4)
    assert hasher.hash_password("same") != hasher.hash_password("same")


def test_malformed_or_missing_hash_is_a_mismatch():
    hasher = PasswordHasher(rounds=4)
    assert hasher.verify_password("not-a-bcrypt-hash", "x") is False
    assert hasher.verify_password(None, "x") is False
    assert hasher.verify_password("", "x") is False


def test_missing_or_malformed_hash_still_runs_bcrypt(monkeypatch):
    hasher = PasswordHasher(rounds=4)
    checked = []
    real_checkpw = bcrypt.checkpw

    def recording_checkpw(password, hashed):
        checked.append(hashed)
        return real_checkpw(password, hashed)

    monkeypatch.setattr(bcrypt, "checkpw", recording_checkpw)

    for stored in (None, "", "not-a-bcrypt-hash"):
        checked.clear()
        assert hasher.verify_password(stored, "guess") is False
        assert checked[-1].startswith(b"$2b$04$")


def test_overlong_password_rejected():
    hasher = PasswordHasher(rounds=4)
    with pytest.raises(ValidationError):
        hasher.hash_password("x" * 73)


def test_token_round_trip():
    service = TokenService("secret")
    token = service.issue_token(IdentityClaims(email="a@b.com"))

    claims = service.verify_token(token)
    assert claims.email == "a@b.com"
    assert claims.expires_at is not None


def test_expired_token():
    service = TokenService("secret")
    token = service.issue_token({"email": "a@b.com"}, ttl=timedelta(seconds=-10))

    with pytest.raises(AuthError) as info:
        service.verify_token(token)
    assert info.value.kind is AuthErrorKind.EXPIRED
    assert info.value.reason == "token_expired"


def test_tampered_and_garbage_tokens_are_malformed():
    service = TokenService("secret")
    other = TokenService("other-secret")
    forged = other.issue_token({"email": "a@b.com"})

    for token in (forged, "garbage", ""):
        with pytest.raises(AuthError) as info:
            service.verify_token(token)
        assert info.value.kind is AuthErrorKind.MALFORMED


def test_missing_email_claim():
    token = jwt.encode({"exp": 9999999999, "email": ""}, "secret", algorithm="HS256")
    with pytest.raises(AuthError) as info:
        TokenService("secret").verify_token(token)
    assert info.value.kind is AuthErrorKind.MISSING_CLAIM


def test_token_without_expiry_is_rejected():
    token = jwt.encode({"email": "a@b.com"}, "secret", algorithm="HS256")
    with pytest.raises(AuthError) as info:
        TokenService("secret").verify_token(token)
    assert info.value.kind is AuthErrorKind.MALFORMED


def test_secret_required():
    with pytest.raises(ValueError):
        TokenService("")
