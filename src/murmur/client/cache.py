"""Client-side cache of paginated feeds.

Each :class:`FeedKey` owns the pages the service has confirmed. Speculative
mutations live in a per-viewer pending list and are replayed over the
confirmed pages whenever a view is read, so every feed of the viewer (active
or not, loaded before or after the mutation) shows them.

Fetch results are tagged with the entry's generation at request time. Any
newer fetch, an :meth:`FeedCache.activate` of another key or a mutation
bumps the generation; a result that comes back under an old generation is
dropped instead of overwriting newer state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from murmur.client.api import FeedBackend
from murmur.client.errors import FeedClientError
from murmur.client.keys import FeedKey
from murmur.client.mutations import Mutation, drop_removed, find_post
from murmur.schemas.post import PostsPage, PostView

logger = logging.getLogger(__name__)

FIRST_PAGE = "first"
NEXT_PAGE = "next"
REFRESH = "refresh"


@dataclass
class CacheEntry:
    """Confirmed pages and fetch state for one feed key."""

    key: FeedKey
    pages: list[PostsPage] = field(default_factory=list)
    generation: int = 0
    loaded: bool = False
    error: FeedClientError | None = None
    failed_operation: str | None = None
    fetch_task: asyncio.Task[list[PostsPage]] | None = None
    fetch_operation: str | None = None

    @property
    def is_loading(self) -> bool:
        return self.fetch_task is not None and not self.fetch_task.done()

    @property
    def has_next_page(self) -> bool:
        return bool(self.pages) and self.pages[-1].has_next_page

    @property
    def next_cursor(self) -> str | None:
        return self.pages[-1].next_cursor if self.pages else None

    def invalidate(self) -> None:
        """Cancel the in-flight fetch, if any, and make its result stale."""
        self.generation += 1
        if self.fetch_task is not None and not self.fetch_task.done():
            self.fetch_task.cancel()
        self.fetch_task = None
        self.fetch_operation = None


class FeedCache:
    """Paginated feeds keyed by viewer, search and filter.

    Args:
        backend: Source of pages, normally :class:`murmur.client.api.FeedApiClient`.
        page_size: Posts per page; the service default when None.
    """

    def __init__(self, backend: FeedBackend, *, page_size: int | None = None) -> None:
        self.backend = backend
        self.page_size = page_size
        self.active_key: FeedKey | None = None
        self._entries: dict[FeedKey, CacheEntry] = {}
        self._pending: dict[str, list[Mutation]] = {}
        self._waiters: dict[asyncio.Future[list[PostsPage]], int] = {}

    async def aclose(self) -> None:
        """Cancel every in-flight fetch and wait until each has stopped.

        Cached pages stay readable; later loads start new fetches.
        """
        tasks = [entry.fetch_task for entry in self._entries.values() if entry.is_loading]
        for entry in self._entries.values():
            entry.invalidate()
        if tasks:
            await asyncio.wait(tasks)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    def entry(self, key: FeedKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key)
        return entry

    def entries_for(self, user_id: str) -> list[CacheEntry]:
        return [entry for key, entry in self._entries.items() if key.user_id == user_id]

    def activate(self, key: FeedKey) -> CacheEntry:
        """Make ``key`` the visible feed and abandon fetches for every other key."""
        for other_key, entry in self._entries.items():
            if other_key != key and entry.is_loading:
                logger.debug("Cancelling fetch for inactive feed %s", other_key)
                entry.invalidate()
        self.active_key = key
        return self.entry(key)

    def clear(self, user_id: str | None = None) -> None:
        """Forget cached feeds, for one viewer or for everybody."""
        for key in list(self._entries):
            if user_id is None or key.user_id == user_id:
                self._entries.pop(key).invalidate()
        if user_id is None:
            self._pending.clear()
            self.active_key = None
        else:
            self._pending.pop(user_id, None)
            if self.active_key is not None and self.active_key.user_id == user_id:
                self.active_key = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def view(self, key: FeedKey) -> list[PostsPage]:
        """Confirmed pages with every pending mutation replayed on top."""
        entry = self._entries.get(key)
        pages = entry.pages if entry is not None else []
        for mutation in self._pending.get(key.user_id, ()):
            pages = mutation.apply(key, pages, settled=False)
        return pages

    def posts(self, key: FeedKey) -> list[PostView]:
        return [post for page in self.view(key) for post in page.posts]

    def has_next_page(self, key: FeedKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.has_next_page

    def error(self, key: FeedKey) -> FeedClientError | None:
        entry = self._entries.get(key)
        return entry.error if entry is not None else None

    def find_post(self, user_id: str, post_id: int) -> PostView | None:
        """Return the viewer's current copy of a post, preferring the active feed."""
        keys = [entry.key for entry in self.entries_for(user_id)]
        if self.active_key in keys:
            keys.remove(self.active_key)
            keys.insert(0, self.active_key)
        for key in keys:
            post = find_post(self.view(key), post_id)
            if post is not None:
                return post
        return None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------
    async def load_first_page(self, key: FeedKey) -> list[PostsPage]:
        """Fetch the first page unless the feed is already loaded."""
        entry = self.entry(key)
        if entry.loaded and entry.error is None:
            return self.view(key)
        return await self._fetch(entry, FIRST_PAGE, lambda: self._first_page(key), coalesce=True)

    async def load_next_page(self, key: FeedKey) -> list[PostsPage]:
        """Append the page after the last loaded one.

        An unloaded feed loads its first page instead; an exhausted one is
        returned as is. Concurrent calls share a single request so the same
        cursor is never fetched twice.
        """
        entry = self.entry(key)
        if not entry.loaded:
            return await self.load_first_page(key)
        if not entry.has_next_page:
            return self.view(key)
        return await self._fetch(entry, NEXT_PAGE, lambda: self._next_page(entry), coalesce=True)

    async def refresh(self, key: FeedKey) -> list[PostsPage]:
        """Refetch as many pages as are loaded and swap them in at once."""
        entry = self.entry(key)
        count = max(1, len(entry.pages))
        return await self._fetch(entry, REFRESH, lambda: self._pages_from_start(key, count))

    async def refresh_user(self, user_id: str) -> None:
        """Refresh the active feed of ``user_id`` and drop the others' pages."""
        for entry in self.entries_for(user_id):
            if entry.key == self.active_key:
                continue
            entry.invalidate()
            entry.loaded = False
        if self.active_key is not None and self.active_key.user_id == user_id:
            await self.refresh(self.active_key)

    async def retry(self, key: FeedKey) -> list[PostsPage]:
        """Repeat the fetch that last failed for ``key``."""
        entry = self.entry(key)
        operation = entry.failed_operation
        if operation == NEXT_PAGE:
            return await self.load_next_page(key)
        if operation == REFRESH:
            return await self.refresh(key)
        entry.loaded = False
        return await self.load_first_page(key)

    def cancel_fetches(self, user_id: str) -> list[FeedKey]:
        """Abandon every in-flight read for the viewer's feeds.

        Returns:
            Keys whose fetch was interrupted and may need reloading
        """
        interrupted = []
        for entry in self.entries_for(user_id):
            if entry.is_loading:
                entry.invalidate()
                interrupted.append(entry.key)
        return interrupted

    async def _first_page(self, key: FeedKey) -> list[PostsPage]:
        return [await self.backend.fetch_page(key, limit=self.page_size)]

    async def _next_page(self, entry: CacheEntry) -> list[PostsPage]:
        page = await self.backend.fetch_page(
            entry.key, cursor=entry.next_cursor, limit=self.page_size
        )
        seen = {post.id for existing in entry.pages for post in existing.posts}
        if any(post.id in seen for post in page.posts):
            page = page.model_copy(
                update={"posts": [post for post in page.posts if post.id not in seen]}
            )
        return [*entry.pages, page]

    async def _pages_from_start(self, key: FeedKey, count: int) -> list[PostsPage]:
        pages: list[PostsPage] = []
        cursor: str | None = None
        for _ in range(count):
            page = await self.backend.fetch_page(key, cursor=cursor, limit=self.page_size)
            pages.append(page)
            if not page.has_next_page or page.next_cursor is None:
                break
            cursor = page.next_cursor
        return pages

    async def _fetch(
        self,
        entry: CacheEntry,
        operation: str,
        factory: Callable[[], Awaitable[list[PostsPage]]],
        *,
        coalesce: bool = False,
    ) -> list[PostsPage]:
        task = entry.fetch_task
        if task is None or task.done() or not coalesce or entry.fetch_operation != operation:
            entry.invalidate()
            task = asyncio.ensure_future(factory())
            entry.fetch_task = task
            entry.fetch_operation = operation
        generation = entry.generation

        # Callers share the fetch through shield(); it is cancelled only once
        # every one of them has been.
        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            pages = await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("Fetch for %s superseded", entry.key)
            return self.view(entry.key)
        except FeedClientError as exc:
            if generation == entry.generation:
                logger.warning("Fetch (%s) for %s failed: %s", operation, entry.key, exc)
                entry.error = exc
                entry.failed_operation = operation
            raise
        finally:
            remaining = self._waiters.pop(task) - 1
            if remaining:
                self._waiters[task] = remaining
            elif not task.done():
                logger.debug("Last caller left; cancelling %s fetch for %s", operation, entry.key)
                task.cancel()
                await asyncio.wait([task])
            if entry.fetch_task is task and task.done():
                entry.fetch_task = None
                entry.fetch_operation = None

        if generation != entry.generation:
            logger.debug("Discarding stale %s result for %s", operation, entry.key)
            return self.view(entry.key)
        entry.pages = pages
        entry.loaded = True
        entry.error = None
        entry.failed_operation = None
        return self.view(entry.key)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def has_pending(self, user_id: str) -> bool:
        return bool(self._pending.get(user_id))

    def add_pending(self, user_id: str, mutation: Mutation) -> list[FeedKey]:
        """Show ``mutation`` in every feed of the viewer until it settles.

        Returns:
            Keys whose in-flight fetch had to be abandoned
        """
        interrupted = self.cancel_fetches(user_id)
        self._pending.setdefault(user_id, []).append(mutation)
        return interrupted

    def drop_pending(self, user_id: str, mutation: Mutation) -> None:
        """Forget a mutation the service rejected; its effects disappear."""
        pending = self._pending.get(user_id, [])
        if mutation in pending:
            pending.remove(mutation)

    def settle(
        self,
        user_id: str,
        mutation: Mutation,
        confirmed: Mutation | None = None,
        *,
        settled: bool = True,
    ) -> None:
        """Fold an accepted mutation into the confirmed pages of every feed.

        Args:
            user_id: Viewer that issued the mutation
            mutation: The pending mutation to retire
            confirmed: Version carrying the service's response; defaults to ``mutation``
            settled: False keeps removals from liked feeds marked for animation
        """
        self.drop_pending(user_id, mutation)
        confirmed = confirmed or mutation
        for entry in self.entries_for(user_id):
            entry.pages = confirmed.apply(entry.key, entry.pages, settled=settled)

    def sweep_removed(self, user_id: str) -> None:
        """Drop posts whose removal animation has finished."""
        for entry in self.entries_for(user_id):
            entry.pages = drop_removed(entry.pages)
