"""Password-based identity provider.

The rest of the application treats this as a black box with four operations:
sign up, sign in, sign out and "who owns this token". Nothing outside this
module reads password hashes or revocation rows.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from murmur.core.errors import EmailTakenError, InvalidCredentialsError
from murmur.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from murmur.models import AuthIdentity, RevokedSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionToken:
    """Bearer token handed to a signed-in user."""

    access_token: str
    user_id: str
    expires_at: datetime


class IdentityProvider:
    """Create identities, issue session tokens and resolve them back to users.

    The provider flushes but never commits; the caller owns the transaction so
    that identity creation and profile creation succeed or fail together.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _find_by_email(self, email: str) -> AuthIdentity | None:
        return self.db.execute(
            select(AuthIdentity).where(AuthIdentity.email == email.lower())
        ).scalar_one_or_none()

    def sign_up(self, email: str, password: str, attrs: dict[str, Any] | None = None) -> AuthIdentity:
        """Create a new identity.

        Raises:
            EmailTakenError: If an identity with this email already exists.
        """
        if self._find_by_email(email) is not None:
            raise EmailTakenError("User already registered")

        identity = AuthIdentity(
            email=email.lower(),
            password_hash=hash_password(password),
            user_metadata=dict(attrs or {}),
        )
        self.db.add(identity)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise EmailTakenError("User already registered") from exc
        return identity

    def sign_in_with_password(self, email: str, password: str) -> SessionToken:
        """Exchange credentials for a session token.

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is wrong.
        """
        identity = self._find_by_email(email)
        if identity is None or not verify_password(password, identity.password_hash):
            raise InvalidCredentialsError("Invalid login credentials")

        token = create_access_token(identity.id)
        claims = decode_access_token(token)
        if claims is None:  # pragma: no cover - freshly minted token
            raise InvalidCredentialsError("Could not issue session")
        return SessionToken(access_token=token, user_id=identity.id, expires_at=claims.expires_at)

    def sign_out(self, token: str) -> None:
        """Revoke a session token. Unknown or invalid tokens are ignored."""
        claims = decode_access_token(token)
        if claims is None:
            return
        if self.db.get(RevokedSession, claims.jti) is None:
            self.db.add(RevokedSession(jti=claims.jti, user_id=claims.subject))
            self.db.flush()

    def get_current_user(self, token: str | None) -> AuthIdentity | None:
        """Resolve a token to its identity, or None when it does not authenticate."""
        if not token:
            return None
        claims = decode_access_token(token)
        if claims is None:
            return None
        if self.db.get(RevokedSession, claims.jti) is not None:
            logger.debug("Rejected revoked session %s", claims.jti)
            return None
        return self.db.get(AuthIdentity, claims.subject)
