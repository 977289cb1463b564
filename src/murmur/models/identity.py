"""SQLAlchemy models owned by the identity provider."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from murmur.db.session import Base
from murmur.db.time import utcnow


def _new_identity_id() -> str:
    return str(uuid.uuid4())


class AuthIdentity(Base):
    """Credentials for one account.

    The profile row shares this identifier; application tables never reference
    the password hash.
    """

    __tablename__ = "auth_identity"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_identity_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    user_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class RevokedSession(Base):
    """Session token identifiers invalidated by sign-out."""

    __tablename__ = "auth_revoked_session"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    revoked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
