"""Unit tests for auth/tokens.py -- password hashing, JWT issue/verify, credential check.

Covers:
- Argon2id digests: salted per call, verify true/false, garbage digest is False
- create_access_token() -> verify_token() yields the matching Principal
- expired, tampered, wrongly signed and claim-less tokens raise Unauthenticated
- authenticate_user() success, unknown email, wrong password, missing input
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import ROLE_ADMIN, ROLE_USER, User
from auth.tokens import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
    verify_token,
)
from core.config import get_settings
from core.errors import Unauthenticated


def _encode(payload: dict, key: str | None = None) -> str:
    return jwt.encode(payload, key or get_settings().secret_key, algorithm="HS256")


class TestPasswordHashing:
    def test_digest_is_argon2id_and_not_plaintext(self):
        digest = hash_password("s3cret")
        assert digest.startswith("$argon2id$")
        assert "s3cret" not in digest

    def test_same_password_gets_a_fresh_salt(self):
        assert hash_password("s3cret") != hash_password("s3cret")

    def test_verify(self):
        digest = hash_password("s3cret")
        assert verify_password("s3cret", digest)
        assert not verify_password("wrong", digest)

    def test_unparseable_digest_is_rejected(self):
        assert not verify_password("s3cret", "not-a-digest")


class TestTokens:
    def test_round_trip_carries_identity_and_effective_roles(self):
        user = User(id=7, email="a@x.com", password_hash="x", stored_roles=frozenset({ROLE_ADMIN}))
        principal = verify_token(create_access_token(user))
        assert principal.user_id == 7
        assert principal.email == "a@x.com"
        assert principal.roles == {ROLE_ADMIN, ROLE_USER}
        assert principal.is_admin

    def test_base_role_present_without_stored_roles(self):
        user = User(id=8, email="b@x.com", password_hash="x")
        principal = verify_token(create_access_token(user))
        assert principal.roles == {ROLE_USER}
        assert not principal.is_admin

    def test_payload_has_issue_and_expiry_times(self):
        user = User(id=9, email="c@x.com", password_hash="x")
        payload = decode_access_token(create_access_token(user, expire_seconds=120))
        assert payload["exp"] - payload["iat"] == 120

    def test_expired_token_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = _encode({"sub": "a@x.com", "user_id": 1, "roles": [ROLE_USER], "iat": past, "exp": past})
        with pytest.raises(Unauthenticated):
            verify_token(token)

    def test_wrong_signature_rejected(self):
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        token = _encode({"sub": "a@x.com", "user_id": 1, "roles": [ROLE_ADMIN], "exp": future}, key="x" * 40)
        with pytest.raises(Unauthenticated):
            verify_token(token)

    def test_tampered_token_rejected(self):
        token = create_access_token(User(id=1, email="a@x.com", password_hash="x"))
        header, payload, signature = token.split(".")
        with pytest.raises(Unauthenticated):
            verify_token(f"{header}.{payload}x.{signature}")

    def test_missing_claims_rejected(self):
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        token = _encode({"sub": "a@x.com", "exp": future})
        assert decode_access_token(token) is None
        with pytest.raises(Unauthenticated):
            verify_token(token)

    def test_garbage_rejected(self):
        with pytest.raises(Unauthenticated):
            verify_token("not.a.jwt")


class TestAuthenticateUser:
    @pytest.fixture
    def stored(self, user_store):
        user_id = user_store.create_user(User(email="a@x.com", password_hash=hash_password("p")))
        return user_store.get_by_id(user_id)

    def test_valid_credentials(self, user_store, stored):
        assert authenticate_user(user_store, "a@x.com", "p") == stored

    def test_wrong_password(self, user_store, stored):
        assert authenticate_user(user_store, "a@x.com", "nope") is None

    def test_unknown_email(self, user_store, stored):
        assert authenticate_user(user_store, "ghost@x.com", "p") is None

    def test_missing_fields(self, user_store, stored):
        assert authenticate_user(user_store, None, "p") is None
        assert authenticate_user(user_store, "a@x.com", None) is None
