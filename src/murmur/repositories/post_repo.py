"""Data access helpers for posts and likes.

Every write goes through :class:`PostRepository`, which is bound to one viewer
and only touches rows that viewer owns. This is the row-level authorization
boundary: callers cannot pass an author or liker explicitly.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import Select, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from murmur.core.errors import (
    AlreadyLikedError,
    LikeNotFoundError,
    NotPostOwnerError,
    PostNotFoundError,
)
from murmur.db.time import as_utc, utcnow
from murmur.models import Like, Post, Profile
from murmur.schemas.post import AuthorOut, PostView

__all__ = ["PostRepository", "view_statement", "row_to_view"]


def view_statement(viewer_id: str) -> Select[Any]:
    """Return a SELECT producing (post, username, like_count, is_liked) rows."""
    like_count = (
        select(func.count(Like.user_id))
        .where(Like.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )
    is_liked = (
        exists()
        .where(Like.post_id == Post.id, Like.user_id == viewer_id)
        .correlate(Post)
    )
    return select(
        Post,
        Profile.username,
        like_count.label("like_count"),
        is_liked.label("is_liked"),
    ).join(Profile, Profile.id == Post.author_id)


def row_to_view(row: Sequence[Any]) -> PostView:
    """Wrap one row of :func:`view_statement` into a PostView."""
    post, username, like_count, is_liked = row
    return PostView(
        id=post.id,
        content=post.content,
        author_id=post.author_id,
        author=AuthorOut(id=post.author_id, username=username),
        created_at=as_utc(post.created_at),
        updated_at=as_utc(post.updated_at),
        like_count=int(like_count or 0),
        is_liked=bool(is_liked),
    )


class PostRepository:
    """Thin wrapper around database access for one viewer's posts and likes."""

    def __init__(self, session: Session, viewer_id: str) -> None:
        """Initialize the repository with a session and the acting viewer."""
        self.session = session
        self.viewer_id = viewer_id

    def get_by_id(self, post_id: int) -> Post | None:
        """Return a post by identifier."""
        return self.session.get(Post, post_id)

    def get_view(self, post_id: int) -> PostView:
        """Return the viewer-specific view of a post.

        Raises:
            PostNotFoundError: If the post does not exist.
        """
        row = self.session.execute(
            view_statement(self.viewer_id).where(Post.id == post_id)
        ).first()
        if row is None:
            raise PostNotFoundError(f"Post {post_id} not found")
        return row_to_view(row)

    def _owned_post(self, post_id: int) -> Post:
        post = self.get_by_id(post_id)
        if post is None:
            raise PostNotFoundError(f"Post {post_id} not found")
        if post.author_id != self.viewer_id:
            raise NotPostOwnerError("You can only modify your own posts")
        return post

    def create(self, content: str) -> Post:
        """Insert a new post authored by the viewer."""
        now = utcnow()
        post = Post(content=content, author_id=self.viewer_id, created_at=now, updated_at=now)
        self.session.add(post)
        self.session.flush()
        return post

    def update(self, post_id: int, content: str) -> Post:
        """Replace the content of one of the viewer's posts."""
        post = self._owned_post(post_id)
        post.content = content
        post.updated_at = utcnow()
        self.session.flush()
        return post

    def delete(self, post_id: int) -> None:
        """Delete one of the viewer's posts (likes cascade)."""
        post = self._owned_post(post_id)
        self.session.query(Like).filter(Like.post_id == post.id).delete(synchronize_session=False)
        self.session.delete(post)
        self.session.flush()

    def like(self, post_id: int) -> Like:
        """Record that the viewer likes a post."""
        if self.get_by_id(post_id) is None:
            raise PostNotFoundError(f"Post {post_id} not found")
        if self.session.get(Like, (post_id, self.viewer_id)) is not None:
            raise AlreadyLikedError("Post already liked")

        like = Like(post_id=post_id, user_id=self.viewer_id, created_at=utcnow())
        self.session.add(like)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent like; the unique pair is authoritative.
            self.session.rollback()
            raise AlreadyLikedError("Post already liked") from exc
        return like

    def unlike(self, post_id: int) -> None:
        """Remove the viewer's like from a post."""
        if self.get_by_id(post_id) is None:
            raise PostNotFoundError(f"Post {post_id} not found")
        like = self.session.get(Like, (post_id, self.viewer_id))
        if like is None:
            raise LikeNotFoundError("Post is not liked")
        self.session.delete(like)
        self.session.flush()

    def liked_post_ids(self) -> list[int]:
        """Return the identifiers of every post the viewer likes."""
        return list(
            self.session.execute(
                select(Like.post_id).where(Like.user_id == self.viewer_id)
            ).scalars()
        )
