"""SQLAlchemy model for posts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from murmur.core.constants import MAX_POST_LENGTH, MIN_POST_LENGTH
from murmur.db.session import Base
from murmur.db.time import utcnow


class Post(Base):
    """Short text post written by a profile.

    Only the author may change ``content`` or delete the row; ``author_id`` is
    never updated after insert.
    """

    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint(
            f"length(content) BETWEEN {MIN_POST_LENGTH} AND {MAX_POST_LENGTH}",
            name="ck_posts_content_length",
        ),
        # Matches the feed ordering (created_at DESC, id DESC).
        Index("ix_posts_created_at_id", "created_at", "id"),
        Index("ix_posts_author_id", "author_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
