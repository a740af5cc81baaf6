"""
Password hashing and bearer tokens.

Passwords are stored as bcrypt hashes. Tokens are HS256 JWTs carrying the
user id and email; verifying one never touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from config import Settings

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


# ---------------------------
# Passwords
# ---------------------------

def _password_bytes(plain: str) -> bytes:
    return (plain or "").encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_password_bytes(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


# ---------------------------
# Tokens
# ---------------------------

class TokenError(Exception):
    """Base class for every way a presented token can be rejected."""


class TokenMissing(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


class TokenExpired(TokenError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str


def create_token(
    user_id: str, email: str, settings: Settings, *, now: Optional[datetime] = None
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "userId": str(user_id),
        "email": email,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=settings.jwt_expires_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: Optional[str], settings: Settings) -> TokenClaims:
    if not token:
        raise TokenMissing("No token presented")
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired(str(exc)) from exc
    except jwt.InvalidTokenError as exc:
        raise TokenInvalid(str(exc)) from exc

    user_id = payload.get("userId")
    email = payload.get("email")
    if not isinstance(user_id, str) or not user_id or not isinstance(email, str):
        raise TokenInvalid("Token is missing identity claims")
    return TokenClaims(user_id=user_id, email=email)
