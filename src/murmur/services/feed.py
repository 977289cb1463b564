"""Feed query construction and pagination.

A feed request is the tuple (search, filter, cursor-or-page, limit) for one
viewer. Ordering is always ``created_at DESC, id DESC`` so that rows sharing a
timestamp still have a stable position.

Cursor pagination is the default. A cursor encodes the sort key of the last
row on a page and the next page starts strictly after it, so rows inserted
while a reader is paging never shift later pages. Offset pagination (page
numbers with totals) is kept for callers that need page counts.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.orm import Session

from murmur.core.errors import InvalidCursorError
from murmur.core.settings import settings
from murmur.models import Post, Profile
from murmur.repositories.post_repo import PostRepository, row_to_view, view_statement
from murmur.schemas.common import FeedFilter
from murmur.schemas.post import PostsPage, PostView

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class FeedCursor:
    """Sort key of the last row a reader has seen."""

    created_at: datetime
    post_id: int

    def encode(self) -> str:
        """Return an opaque URL-safe token for this cursor."""
        raw = json.dumps({"c": self.created_at.isoformat(), "i": self.post_id}, separators=(",", ":"))
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> FeedCursor:
        """Parse a token produced by :meth:`encode`.

        Raises:
            InvalidCursorError: If the token is not a valid cursor.
        """
        padding = "=" * (-len(token) % 4)
        try:
            payload = json.loads(base64.urlsafe_b64decode(token + padding))
            return cls(
                created_at=datetime.fromisoformat(payload["c"]),
                post_id=int(payload["i"]),
            )
        except (binascii.Error, ValueError, TypeError, KeyError) as err:
            raise InvalidCursorError("Invalid pagination cursor") from err

    @classmethod
    def after(cls, post: PostView) -> FeedCursor:
        """Return the cursor pointing just past ``post``."""
        return cls(created_at=post.created_at, post_id=post.id)


def normalize_search(search: str | None) -> str:
    """Trim and collapse whitespace in a search string."""
    if not search:
        return ""
    return " ".join(search.split())


def _escape_like(term: str) -> str:
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


@dataclass(frozen=True)
class FeedQuery:
    """A bounded feed request for one viewer.

    Exactly one of ``cursor`` (cursor pagination) or ``page`` (offset
    pagination) may be set; neither means "first page, cursor mode".
    """

    viewer_id: str
    search: str = ""
    filter: FeedFilter = FeedFilter.ALL
    cursor: str | None = None
    page: int | None = None
    limit: int = 5

    def __post_init__(self) -> None:
        if self.cursor is not None and self.page is not None:
            raise ValueError("cursor and page are mutually exclusive")
        if self.page is not None and self.page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= self.limit <= settings.feed_max_page_size:
            raise ValueError(f"limit must be between 1 and {settings.feed_max_page_size}")
        object.__setattr__(self, "search", normalize_search(self.search))
        object.__setattr__(self, "filter", FeedFilter(self.filter))

    @property
    def uses_offset(self) -> bool:
        return self.page is not None


def build_feed_statement(db: Session, query: FeedQuery) -> Select[Any]:
    """Translate a feed query into a filtered, ordered (but unbounded) SELECT."""
    stmt = view_statement(query.viewer_id)

    if query.filter is FeedFilter.MINE:
        stmt = stmt.where(Post.author_id == query.viewer_id)
    elif query.filter is FeedFilter.LIKED:
        # Like set is read separately and applied as an inclusion filter; the two
        # reads are not atomic with each other.
        liked_ids = PostRepository(db, query.viewer_id).liked_post_ids()
        stmt = stmt.where(Post.id.in_(liked_ids))

    if query.search:
        # Both sides are case-folded: the pattern here, the columns by lower(),
        # which SQLite connections redefine as str.casefold.
        pattern = f"%{_escape_like(query.search.casefold())}%"
        condition = func.lower(Post.content).like(pattern, escape=LIKE_ESCAPE)
        if settings.feed_search_usernames:
            condition = or_(
                condition, func.lower(Profile.username).like(pattern, escape=LIKE_ESCAPE)
            )
        stmt = stmt.where(condition)

    return stmt.order_by(Post.created_at.desc(), Post.id.desc())


def _after_cursor(stmt: Select[Any], cursor: FeedCursor) -> Select[Any]:
    return stmt.where(
        or_(
            Post.created_at < cursor.created_at,
            and_(Post.created_at == cursor.created_at, Post.id < cursor.post_id),
        )
    )


def fetch_feed_page(db: Session, query: FeedQuery) -> PostsPage:
    """Run a feed query and return one page with continuation metadata.

    Raises:
        InvalidCursorError: If ``query.cursor`` cannot be decoded.
    """
    stmt = build_feed_statement(db, query)
    if query.uses_offset:
        return _fetch_offset_page(db, stmt, query)

    if query.cursor:
        stmt = _after_cursor(stmt, FeedCursor.decode(query.cursor))

    # One extra row tells us whether another page exists.
    rows = db.execute(stmt.limit(query.limit + 1)).all()
    has_next = len(rows) > query.limit
    posts = [row_to_view(row) for row in rows[: query.limit]]
    next_cursor = FeedCursor.after(posts[-1]).encode() if has_next and posts else None

    logger.debug(
        "Feed page viewer=%s filter=%s search=%r rows=%d has_next=%s",
        query.viewer_id,
        query.filter.value,
        query.search,
        len(posts),
        has_next,
    )
    return PostsPage(posts=posts, has_next_page=has_next, next_cursor=next_cursor)


def _fetch_offset_page(db: Session, stmt: Select[Any], query: FeedQuery) -> PostsPage:
    page = query.page or 1
    total = db.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    rows = db.execute(stmt.offset((page - 1) * query.limit).limit(query.limit)).all()
    total_pages = math.ceil(total / query.limit) if total else 0
    has_next = page < total_pages
    return PostsPage(
        posts=[row_to_view(row) for row in rows],
        has_next_page=has_next,
        current_page=page,
        next_page=page + 1 if has_next else None,
        total_count=total,
        total_pages=total_pages,
        has_prev_page=page > 1,
    )
