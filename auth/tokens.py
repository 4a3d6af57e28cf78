"""
auth/tokens.py -- JWT issuing/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (email), user_id, roles, iat and exp. decode_access_token() returns
       None on any failure; verify_token() turns that into Unauthenticated so
       the route layer answers 401.

  Passwords: argon2-cffi PasswordHasher (Argon2id, random salt per call,
       embedded in the encoded digest). Argon2id is memory-hard, which makes
       GPU brute force of low-entropy secrets expensive. The _DUMMY_HASH
       constant enables timing equalization in authenticate_user() so response
       time does not reveal whether an email is registered.

  SECRET_KEY: sourced from core.config.get_settings(), validated at startup.

Layer rule: no imports from api/, results/, or services/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jose import JWTError, jwt

from auth.models import Principal
from core.config import get_settings
from core.errors import Unauthenticated

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("resultsapi.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (argon2-cffi -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------

_hasher = PasswordHasher()


def hash_password(plain: str) -> str:
    """Return an Argon2id digest of the given plaintext password.

    argon2.exceptions.HashingError is deliberately not caught: a hasher that
    cannot hash is a broken process, not a bad request.
    """
    return _hasher.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the Argon2 digest."""
    try:
        return _hasher.verify(hashed, plain)
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError):
        logger.warning("Stored password digest could not be verified")
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("resultsapi_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user: User, expire_seconds: int = 0) -> str:
    """Encode a signed JWT with the user's identity and effective roles.

    Args:
        user:           A persisted User (id must be set).
        expire_seconds: Token lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.email,
        "user_id": user.id,
        "roles": sorted(user.roles),
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Signature, expiry and the presence of the identity claims are checked.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("user_id"), int) or not isinstance(payload.get("roles"), list):
        return None
    if "sub" not in payload:
        return None
    return payload


def verify_token(token: str) -> Principal:
    """Return the Principal a token was issued for, or raise Unauthenticated."""
    payload = decode_access_token(token)
    if payload is None:
        raise Unauthenticated("invalid, expired or malformed token")
    return Principal(
        user_id=payload["user_id"],
        email=payload["sub"],
        roles=frozenset(payload["roles"]),
    )


# ---------------------------------------------------------------------------
# Credential check (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str | None, password: str | None) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs one Argon2 verification whether or not the user exists:
    - Unknown email: verify against _DUMMY_HASH (same cost as a real check)
    - Wrong password: verify against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email) if email else None
    if user is None:
        # Equalize timing -- do NOT return early before running argon2
        verify_password(password or "", _DUMMY_HASH)
        return None
    if not verify_password(password or "", user.password_hash):
        return None
    return user
