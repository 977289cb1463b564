"""Optimistic mutations against the feed cache.

The reconciler is the only writer of the cache besides fetches. A mutation is
added to the viewer's pending list in one synchronous step, so every cached
feed shows it before the request leaves. When the service answers, the
mutation is either folded into the confirmed pages or dropped; dropping it
reverts every feed to exactly what the service last confirmed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

from murmur.client.api import FeedBackend
from murmur.client.cache import FeedCache
from murmur.client.errors import FeedClientError, PostNotCached, PostNotSaved, RequestRejected
from murmur.client.mutations import (
    CreateMutation,
    DeleteMutation,
    LikeMutation,
    Mutation,
    UpdateMutation,
)
from murmur.client.scheduling import DebouncedTask
from murmur.client.session import SessionContext
from murmur.core.settings import settings
from murmur.schemas.post import AuthorOut, PostView, validate_post_content

logger = logging.getLogger(__name__)


class FeedReconciler:
    """Apply like, create, update and delete optimistically.

    Args:
        cache: Cache shared with the presentation layer
        backend: Service the mutations are sent to
        session: The signed-in viewer; mutations require one
        refresh_delay: Debounce for the refresh that follows a like or unlike
        removal_delay: How long posts leaving a liked feed stay marked
            ``is_removing``; 0 removes them as soon as the service confirms
    """

    def __init__(
        self,
        cache: FeedCache,
        backend: FeedBackend,
        session: SessionContext,
        *,
        refresh_delay: float | None = None,
        removal_delay: float | None = None,
    ) -> None:
        self.cache = cache
        self.backend = backend
        self.session = session
        self.removal_delay = (
            settings.removal_animation_seconds if removal_delay is None else removal_delay
        )
        self._refresh = DebouncedTask(
            settings.like_refresh_debounce_seconds if refresh_delay is None else refresh_delay,
            self._refresh_if_idle,
        )
        self._sweep = DebouncedTask(self.removal_delay, self._sweep_removed)
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}
        self._last_temp_id = 0

    async def __aenter__(self) -> FeedReconciler:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop scheduled work and in-flight fetches.

        Marked removals are applied immediately.
        """
        await self._refresh.aclose()
        await self._sweep.flush()
        await self._sweep.aclose()
        await self.cache.aclose()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def toggle_like(self, post_id: int) -> bool:
        """Flip the viewer's like on a cached post.

        Returns:
            True if the post is now liked, False if unliked

        Raises:
            NotAuthenticated: Without a signed-in viewer
            PostNotCached: If no cached feed holds the post
            FeedClientError: If the service rejects the change (already rolled back)
        """
        user = self.session.require()
        self._require_saved(post_id)
        post = self.cache.find_post(user.id, post_id)
        if post is None:
            raise PostNotCached(f"Post {post_id} is not loaded")

        mutation = LikeMutation(post=post, like=not post.is_liked)
        call = self.backend.like if mutation.like else self.backend.unlike
        await self._run(user.id, mutation, lambda: call(post_id), post_id=post_id)
        self._refresh.schedule()
        return mutation.like

    async def create_post(self, content: str) -> PostView:
        """Publish a post, showing a placeholder until the service answers.

        Raises:
            pydantic.ValidationError: If the content is empty or over 280
                characters; nothing is sent
        """
        user = self.session.require()
        content = validate_post_content(content)
        now = datetime.now(UTC)
        placeholder = PostView(
            id=self._temp_id(),
            content=content,
            author_id=user.id,
            author=AuthorOut(id=user.id, username=user.username),
            created_at=now,
            updated_at=now,
            is_pending=True,
        )
        return await self._run(
            user.id,
            CreateMutation(post=placeholder),
            lambda: self.backend.create_post(content),
            confirm=lambda created: CreateMutation(post=created),
        )

    async def update_post(self, post_id: int, content: str) -> PostView:
        """Replace a post's content everywhere it is cached.

        The cached like count and flag are kept; the service's response only
        supplies the content and ``updated_at``.
        """
        user = self.session.require()
        content = validate_post_content(content)
        self._require_saved(post_id)
        mutation = UpdateMutation(post_id=post_id, content=content, updated_at=datetime.now(UTC))
        return await self._run(
            user.id,
            mutation,
            lambda: self.backend.update_post(post_id, content),
            post_id=post_id,
            confirm=lambda updated: UpdateMutation(
                post_id=updated.id, content=updated.content, updated_at=updated.updated_at
            ),
        )

    async def delete_post(self, post_id: int) -> None:
        """Remove a post from every cached feed."""
        user = self.session.require()
        self._require_saved(post_id)
        await self._run(
            user.id,
            DeleteMutation(post_id=post_id),
            lambda: self.backend.delete_post(post_id),
            post_id=post_id,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _temp_id(self) -> int:
        self._last_temp_id -= 1
        return self._last_temp_id

    @staticmethod
    def _require_saved(post_id: int) -> None:
        if post_id < 0:
            raise PostNotSaved(f"Post {post_id} has not been saved yet")

    @asynccontextmanager
    async def _post_lock(self, post_id: int) -> AsyncIterator[None]:
        """Serialize calls for one post; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.get(post_id)
        if lock is None:
            lock = self._locks[post_id] = asyncio.Lock()
        self._lock_users[post_id] = self._lock_users.get(post_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[post_id] -= 1
            if not self._lock_users[post_id]:
                del self._lock_users[post_id]
                del self._locks[post_id]

    async def _run(
        self,
        user_id: str,
        mutation: Mutation,
        call: Callable[[], Awaitable[Any]],
        *,
        post_id: int | None = None,
        confirm: Callable[[Any], Mutation] | None = None,
    ) -> Any:
        interrupted = self.cache.add_pending(user_id, mutation)
        if interrupted:
            self._refresh.schedule()
        try:
            if post_id is None:
                result = await call()
            else:
                async with self._post_lock(post_id):
                    result = await call()
        except (FeedClientError, asyncio.CancelledError) as exc:
            self.cache.drop_pending(user_id, mutation)
            logger.warning("%s rolled back: %r", type(mutation).__name__, exc)
            if isinstance(exc, RequestRejected | asyncio.CancelledError):
                self._refresh.schedule()
            raise

        confirmed = confirm(result) if confirm is not None else None
        delayed = self.removal_delay > 0
        self.cache.settle(user_id, mutation, confirmed, settled=not delayed)
        if delayed:
            self._sweep.schedule()
        logger.debug("%s settled", type(mutation).__name__)
        return result

    async def _refresh_if_idle(self) -> None:
        user = self.session.user
        if user is None or self.cache.has_pending(user.id):
            return
        await self.cache.refresh_user(user.id)

    async def _sweep_removed(self) -> None:
        if self.session.user is not None:
            self.cache.sweep_removed(self.session.user.id)
