"""Password hashing and session token helpers."""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from murmur.core.settings import settings

# bcrypt only looks at the first 72 bytes of the secret.
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class TokenClaims:
    """Validated claims of a session token."""

    subject: str
    jti: str
    expires_at: datetime


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Return a bcrypt hash of ``password``."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check ``password`` against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(subject: str, *, expires_minutes: int | None = None) -> str:
    """Create a signed session token for ``subject``."""
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    expire = datetime.now(UTC) + timedelta(minutes=minutes)
    to_encode: dict[str, object] = {
        "sub": subject,
        "jti": secrets.token_hex(16),
        "exp": expire,
    }
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> TokenClaims | None:
    """Decode and validate a session token.

    Returns:
        The token claims, or None when the token is malformed, expired or
        missing a subject or identifier.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    jti = payload.get("jti")
    exp = payload.get("exp")
    if not subject or not jti or exp is None:
        return None
    return TokenClaims(
        subject=str(subject),
        jti=str(jti),
        expires_at=datetime.fromtimestamp(int(exp), UTC),
    )
