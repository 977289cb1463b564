"""Join model recording which profile liked which post."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from murmur.db.session import Base
from murmur.db.time import utcnow


class Like(Base):
    """Per-user like on a post.

    The composite primary key allows one like per (post, user) pair.
    """

    __tablename__ = "likes"
    __table_args__ = (Index("ix_likes_user_id", "user_id"),)

    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
