# tests/client/test_client_cache.py
"""Tests for the paginated feed cache."""

import asyncio

import pytest

from murmur.client.cache import FeedCache
from murmur.client.errors import TransientError
from murmur.client.keys import FeedKey
from murmur.client.mutations import LikeMutation


async def _until_called(backend, count: int = 1) -> None:
    while len(backend.calls) < count:
        await asyncio.sleep(0)


def _contents(cache: FeedCache, key: FeedKey) -> list[str]:
    return [post.content for post in cache.posts(key)]


@pytest.fixture()
def seeded(backend):
    for minute in range(7):
        backend.add_post(f"post {minute}", minutes=minute)
    return backend


@pytest.mark.asyncio
async def test_first_page_is_fetched_once(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)

    await cache.load_first_page(key)
    await cache.load_first_page(key)

    assert _contents(cache, key) == ["post 6", "post 5", "post 4"]
    assert len(seeded.calls) == 1
    assert cache.has_next_page(key)


@pytest.mark.asyncio
async def test_next_pages_append_until_exhausted(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)

    await cache.load_first_page(key)
    await cache.load_next_page(key)
    await cache.load_next_page(key)
    calls = len(seeded.calls)
    await cache.load_next_page(key)

    assert _contents(cache, key) == [f"post {m}" for m in range(6, -1, -1)]
    assert not cache.has_next_page(key)
    assert len(seeded.calls) == calls


@pytest.mark.asyncio
async def test_concurrent_next_page_loads_share_one_request(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)
    await cache.load_first_page(key)

    seeded.gates["fetch_page"] = gate = asyncio.Event()
    first = asyncio.create_task(cache.load_next_page(key))
    second = asyncio.create_task(cache.load_next_page(key))
    await _until_called(seeded, 2)
    gate.set()
    await asyncio.gather(first, second)

    assert len(seeded.calls) == 2
    assert _contents(cache, key) == [f"post {m}" for m in range(6, 0, -1)]


@pytest.mark.asyncio
async def test_read_error_keeps_last_good_pages_and_retries(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)
    await cache.load_first_page(key)

    seeded.failures["fetch_page"] = TransientError("offline")
    with pytest.raises(TransientError):
        await cache.load_next_page(key)

    assert _contents(cache, key) == ["post 6", "post 5", "post 4"]
    assert isinstance(cache.error(key), TransientError)

    await cache.retry(key)
    assert cache.error(key) is None
    assert len(cache.posts(key)) == 6


@pytest.mark.asyncio
async def test_failed_first_page_can_be_retried(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)
    seeded.failures["fetch_page"] = TransientError("offline")

    with pytest.raises(TransientError):
        await cache.load_first_page(key)
    assert cache.posts(key) == []

    await cache.retry(key)
    assert len(cache.posts(key)) == 3


@pytest.mark.asyncio
async def test_activating_another_key_discards_inflight_fetch(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    all_key = FeedKey.build(viewer.id)
    liked_key = all_key.with_filter("liked")
    cache.activate(all_key)

    seeded.gates["fetch_page"] = asyncio.Event()
    pending = asyncio.create_task(cache.load_first_page(all_key))
    await _until_called(seeded)
    cache.activate(liked_key)

    assert await pending == []
    assert cache.entry(all_key).loaded is False
    assert cache.active_key == liked_key


@pytest.mark.asyncio
async def test_fetch_result_older_than_a_mutation_is_ignored(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)
    await cache.load_first_page(key)
    post = cache.posts(key)[0]

    seeded.gates["fetch_page"] = gate = asyncio.Event()
    refresh = asyncio.create_task(cache.refresh(key))
    await _until_called(seeded, 2)

    interrupted = cache.add_pending(viewer.id, LikeMutation(post=post, like=True))
    gate.set()
    await refresh

    assert interrupted == [key]
    assert cache.posts(key)[0].is_liked is True
    assert cache.posts(key)[0].like_count == 1


@pytest.mark.asyncio
async def test_refresh_refetches_every_loaded_page(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)
    await cache.load_first_page(key)
    await cache.load_next_page(key)

    seeded.add_post("newest", minutes=100)
    await cache.refresh(key)

    assert _contents(cache, key) == ["newest"] + [f"post {m}" for m in range(6, 1, -1)]
    assert len(cache.entry(key).pages) == 2


@pytest.mark.asyncio
async def test_pending_mutations_show_in_feeds_loaded_later(backend, viewer) -> None:
    post = backend.add_post("hello")
    cache = FeedCache(backend)
    all_key = FeedKey.build(viewer.id)
    await cache.load_first_page(all_key)

    mutation = LikeMutation(post=post, like=True)
    cache.add_pending(viewer.id, mutation)
    liked_key = all_key.with_filter("liked")
    await cache.load_first_page(liked_key)

    assert [p.id for p in cache.posts(liked_key)] == [post.id]

    cache.drop_pending(viewer.id, mutation)
    assert cache.posts(liked_key) == []
    assert cache.posts(all_key)[0] == post


@pytest.mark.asyncio
async def test_clear_forgets_viewer_state(backend, viewer) -> None:
    backend.add_post("hello")
    cache = FeedCache(backend)
    key = FeedKey.build(viewer.id)
    cache.activate(key)
    await cache.load_first_page(key)

    cache.clear(viewer.id)

    assert cache.posts(key) == []
    assert cache.active_key is None
    assert cache.entries_for(viewer.id) == []


@pytest.mark.asyncio
async def test_cancelling_the_only_caller_stops_the_fetch(backend, viewer) -> None:
    cache = FeedCache(backend)
    key = FeedKey.build(viewer.id)
    backend.gates["fetch_page"] = asyncio.Event()

    caller = asyncio.create_task(cache.load_first_page(key))
    await _until_called(backend)
    fetch = cache.entry(key).fetch_task
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    assert fetch.cancelled()
    assert cache.entry(key).is_loading is False
    assert cache.entry(key).loaded is False


@pytest.mark.asyncio
async def test_shared_fetch_survives_one_cancelled_caller(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)
    seeded.gates["fetch_page"] = gate = asyncio.Event()

    first = asyncio.create_task(cache.load_first_page(key))
    await _until_called(seeded)
    second = asyncio.create_task(cache.load_first_page(key))
    await asyncio.sleep(0)
    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    gate.set()
    await second
    assert _contents(cache, key) == ["post 6", "post 5", "post 4"]
    assert len(seeded.calls) == 1


@pytest.mark.asyncio
async def test_aclose_stops_in_flight_fetches(seeded, viewer) -> None:
    cache = FeedCache(seeded, page_size=3)
    key = FeedKey.build(viewer.id)
    await cache.load_first_page(key)
    seeded.gates["fetch_page"] = asyncio.Event()

    refresh = asyncio.create_task(cache.refresh(key))
    await _until_called(seeded, 2)
    fetch = cache.entry(key).fetch_task
    await cache.aclose()

    assert fetch.cancelled()
    await refresh
    assert _contents(cache, key) == ["post 6", "post 5", "post 4"]
