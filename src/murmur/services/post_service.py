"""Service-level helpers for writing posts and likes."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from murmur.repositories.post_repo import PostRepository
from murmur.schemas.post import PostView, validate_post_content

__all__ = ["create_post", "update_post", "delete_post", "like_post", "unlike_post", "get_post"]

logger = logging.getLogger(__name__)


def get_post(db: Session, viewer_id: str, post_id: int) -> PostView:
    """Return a single post as seen by ``viewer_id``."""
    return PostRepository(db, viewer_id).get_view(post_id)


def create_post(db: Session, viewer_id: str, content: str) -> PostView:
    """Create a post authored by the viewer and return its view.

    Raises:
        pydantic.ValidationError: If the content is empty or longer than 280 characters.
    """
    content = validate_post_content(content)
    repo = PostRepository(db, viewer_id)
    post = repo.create(content)
    db.commit()
    logger.info("Post %s created by %s", post.id, viewer_id)
    return repo.get_view(post.id)


def update_post(db: Session, viewer_id: str, post_id: int, content: str) -> PostView:
    """Replace the content of one of the viewer's posts.

    The returned view carries the viewer's like flag and the current like count.

    Raises:
        PostNotFoundError: If the post does not exist.
        NotPostOwnerError: If the viewer is not the author.
    """
    content = validate_post_content(content)
    repo = PostRepository(db, viewer_id)
    repo.update(post_id, content)
    db.commit()
    return repo.get_view(post_id)


def delete_post(db: Session, viewer_id: str, post_id: int) -> None:
    """Delete one of the viewer's posts.

    Raises:
        PostNotFoundError: If the post does not exist.
        NotPostOwnerError: If the viewer is not the author.
    """
    repo = PostRepository(db, viewer_id)
    repo.delete(post_id)
    db.commit()
    logger.info("Post %s deleted by %s", post_id, viewer_id)


def like_post(db: Session, viewer_id: str, post_id: int) -> None:
    """Like a post as the viewer.

    Raises:
        PostNotFoundError: If the post does not exist.
        AlreadyLikedError: If the viewer already likes the post.
    """
    PostRepository(db, viewer_id).like(post_id)
    db.commit()


def unlike_post(db: Session, viewer_id: str, post_id: int) -> None:
    """Remove the viewer's like from a post.

    Raises:
        PostNotFoundError: If the post does not exist.
        LikeNotFoundError: If the viewer does not like the post.
    """
    PostRepository(db, viewer_id).unlike(post_id)
    db.commit()
