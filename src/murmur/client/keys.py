"""Structured cache keys for feed queries."""

from __future__ import annotations

from dataclasses import dataclass, replace

from murmur.core.settings import settings
from murmur.schemas.common import FeedFilter
from murmur.schemas.post import PostView


def normalize_search(search: str | None) -> str:
    """Collapse whitespace and case-fold, so equivalent searches share a key."""
    if not search:
        return ""
    return " ".join(search.split()).casefold()


@dataclass(frozen=True)
class FeedKey:
    """Identifies one cached feed: viewer x normalized search x filter.

    Build keys with :meth:`build`; the constructor does not normalize.
    """

    user_id: str
    search: str = ""
    filter: FeedFilter = FeedFilter.ALL

    @classmethod
    def build(
        cls,
        user_id: str,
        search: str | None = "",
        filter: FeedFilter | str = FeedFilter.ALL,
    ) -> FeedKey:
        return cls(user_id=user_id, search=normalize_search(search), filter=FeedFilter(filter))

    def with_filter(self, filter: FeedFilter | str) -> FeedKey:
        return replace(self, filter=FeedFilter(filter))

    def matches_search(self, post: PostView) -> bool:
        """Return True when ``post`` would match this key's search text."""
        if not self.search:
            return True
        if self.search in post.content.casefold():
            return True
        return settings.feed_search_usernames and self.search in post.author.username.casefold()

    def matches(self, post: PostView) -> bool:
        """Return True when the server would include ``post`` in this feed."""
        if self.filter is FeedFilter.MINE and post.author_id != self.user_id:
            return False
        if self.filter is FeedFilter.LIKED and not post.is_liked:
            return False
        return self.matches_search(post)
