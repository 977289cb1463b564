"""Speculative mutations and how each one rewrites a cached feed.

Every mutation is a pure function from (key, pages) to new pages. The cache
replays pending mutations over the confirmed pages to build what the viewer
sees, and folds a mutation into the confirmed pages once the service accepts
it. Dropping a failed mutation therefore rolls back to the last confirmed
state without ever having stored a copy of an intermediate one.

``settled=False`` means removals from a liked view are only marked
(``is_removing``) so the presentation layer can animate them out.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from murmur.client.keys import FeedKey
from murmur.schemas.common import FeedFilter
from murmur.schemas.post import PostsPage, PostView

__all__ = [
    "Mutation",
    "LikeMutation",
    "CreateMutation",
    "UpdateMutation",
    "DeleteMutation",
    "contains_post",
    "find_post",
    "drop_removed",
]

PostMap = Callable[[PostView], PostView | None]


def _map_posts(pages: list[PostsPage], post_id: int, fn: PostMap) -> list[PostsPage]:
    """Apply ``fn`` to every copy of ``post_id``; a None result removes it."""
    result: list[PostsPage] = []
    for page in pages:
        if not any(post.id == post_id for post in page.posts):
            result.append(page)
            continue
        posts: list[PostView] = []
        for post in page.posts:
            if post.id != post_id:
                posts.append(post)
                continue
            mapped = fn(post)
            if mapped is not None:
                posts.append(mapped)
        result.append(page.model_copy(update={"posts": posts}))
    return result


def _prepend(pages: list[PostsPage], post: PostView) -> list[PostsPage]:
    if not pages:
        return pages
    head = pages[0]
    return [head.model_copy(update={"posts": [post, *head.posts]}), *pages[1:]]


def contains_post(pages: list[PostsPage], post_id: int) -> bool:
    return find_post(pages, post_id) is not None


def find_post(pages: list[PostsPage], post_id: int) -> PostView | None:
    for page in pages:
        for post in page.posts:
            if post.id == post_id:
                return post
    return None


def drop_removed(pages: list[PostsPage]) -> list[PostsPage]:
    """Remove posts whose exit transition has finished."""
    if not any(post.is_removing for page in pages for post in page.posts):
        return pages
    return [
        page.model_copy(update={"posts": [post for post in page.posts if not post.is_removing]})
        for page in pages
    ]


def _mark_removing(post: PostView) -> PostView:
    return post.model_copy(update={"is_removing": True})


@dataclass(frozen=True, eq=False)
class Mutation:
    """Base class; identity equality so two identical clicks stay distinct."""

    def apply(self, key: FeedKey, pages: list[PostsPage], *, settled: bool) -> list[PostsPage]:
        raise NotImplementedError


@dataclass(frozen=True, eq=False)
class LikeMutation(Mutation):
    """Set the viewer's like on ``post`` to ``like``.

    The target state is absolute, so replaying it over data that already
    reflects it changes nothing.
    """

    post: PostView
    like: bool

    def _toggle(self, post: PostView) -> PostView:
        if post.is_liked == self.like:
            return post.model_copy(update={"is_removing": False}) if self.like else post
        delta = 1 if self.like else -1
        return post.model_copy(
            update={
                "is_liked": self.like,
                "like_count": max(0, post.like_count + delta),
                "is_removing": False,
            }
        )

    def apply(self, key: FeedKey, pages: list[PostsPage], *, settled: bool) -> list[PostsPage]:
        if key.filter is not FeedFilter.LIKED:
            return _map_posts(pages, self.post.id, self._toggle)

        if self.like:
            if contains_post(pages, self.post.id):
                return _map_posts(pages, self.post.id, self._toggle)
            liked = self._toggle(self.post)
            if not key.matches(liked):
                return pages
            return _prepend(pages, liked)

        if settled:
            return _map_posts(pages, self.post.id, lambda post: None)
        return _map_posts(pages, self.post.id, lambda post: _mark_removing(self._toggle(post)))


@dataclass(frozen=True, eq=False)
class CreateMutation(Mutation):
    """Insert ``post`` at the head of every feed whose predicate it satisfies.

    While pending, ``post`` is a placeholder with a negative id; the settled
    mutation carries the row returned by the service.
    """

    post: PostView

    def apply(self, key: FeedKey, pages: list[PostsPage], *, settled: bool) -> list[PostsPage]:
        if key.filter is FeedFilter.LIKED:
            return pages
        if not key.matches(self.post) or contains_post(pages, self.post.id):
            return pages
        return _prepend(pages, self.post)


@dataclass(frozen=True, eq=False)
class UpdateMutation(Mutation):
    """Replace content and ``updated_at``; keep like count and flag as cached."""

    post_id: int
    content: str
    updated_at: datetime

    def _replace(self, post: PostView) -> PostView:
        return post.model_copy(update={"content": self.content, "updated_at": self.updated_at})

    def apply(self, key: FeedKey, pages: list[PostsPage], *, settled: bool) -> list[PostsPage]:
        return _map_posts(pages, self.post_id, self._replace)


@dataclass(frozen=True, eq=False)
class DeleteMutation(Mutation):
    """Remove ``post_id`` from every feed."""

    post_id: int

    def apply(self, key: FeedKey, pages: list[PostsPage], *, settled: bool) -> list[PostsPage]:
        if key.filter is FeedFilter.LIKED and not settled:
            return _map_posts(pages, self.post_id, _mark_removing)
        return _map_posts(pages, self.post_id, lambda post: None)
