# tests/services/test_post_service.py
"""Tests for post writes and row-level ownership."""

import pytest
from pydantic import ValidationError

from murmur.core.errors import (
    AlreadyLikedError,
    LikeNotFoundError,
    NotPostOwnerError,
    PostNotFoundError,
)
from murmur.repositories.post_repo import PostRepository
from murmur.services import post_service


def test_create_post_validates_length(db_session, test_user) -> None:
    assert post_service.create_post(db_session, test_user.id, "a" * 280).content == "a" * 280
    with pytest.raises(ValidationError):
        post_service.create_post(db_session, test_user.id, "a" * 281)
    with pytest.raises(ValidationError):
        post_service.create_post(db_session, test_user.id, "")


def test_only_author_can_update_or_delete(db_session, test_user, other_user, make_post) -> None:
    post = make_post(test_user, "original")

    with pytest.raises(NotPostOwnerError):
        post_service.update_post(db_session, other_user.id, post.id, "changed")
    with pytest.raises(NotPostOwnerError):
        post_service.delete_post(db_session, other_user.id, post.id)

    assert post_service.get_post(db_session, test_user.id, post.id).content == "original"


def test_missing_post_errors(db_session, test_user) -> None:
    with pytest.raises(PostNotFoundError):
        post_service.update_post(db_session, test_user.id, 404, "x")
    with pytest.raises(PostNotFoundError):
        post_service.like_post(db_session, test_user.id, 404)
    with pytest.raises(PostNotFoundError):
        post_service.get_post(db_session, test_user.id, 404)


def test_like_is_unique_per_viewer(db_session, test_user, other_user, make_post) -> None:
    post = make_post(test_user)
    post_service.like_post(db_session, test_user.id, post.id)
    post_service.like_post(db_session, other_user.id, post.id)

    with pytest.raises(AlreadyLikedError):
        post_service.like_post(db_session, test_user.id, post.id)

    view = post_service.get_post(db_session, test_user.id, post.id)
    assert view.like_count == 2
    assert view.is_liked is True


def test_unlike_requires_existing_like(db_session, test_user, make_post) -> None:
    post = make_post(test_user)
    with pytest.raises(LikeNotFoundError):
        post_service.unlike_post(db_session, test_user.id, post.id)


def test_liked_post_ids_are_scoped_to_viewer(db_session, test_user, other_user, make_post) -> None:
    first = make_post(test_user, "one")
    second = make_post(test_user, "two")
    post_service.like_post(db_session, test_user.id, first.id)
    post_service.like_post(db_session, other_user.id, second.id)

    assert PostRepository(db_session, test_user.id).liked_post_ids() == [first.id]
