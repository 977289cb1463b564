"""Async client for Murmur: HTTP access, feed cache and optimistic mutations."""

from murmur.client.api import FeedApiClient, FeedBackend
from murmur.client.cache import CacheEntry, FeedCache
from murmur.client.errors import (
    ContractError,
    FeedClientError,
    NotAuthenticated,
    PostNotCached,
    PostNotSaved,
    RequestRejected,
    TransientError,
)
from murmur.client.keys import FeedKey, normalize_search
from murmur.client.reconciler import FeedReconciler
from murmur.client.scheduling import DebouncedTask
from murmur.client.session import ANONYMOUS, SessionContext

__all__ = [
    "ANONYMOUS",
    "CacheEntry",
    "ContractError",
    "DebouncedTask",
    "FeedApiClient",
    "FeedBackend",
    "FeedCache",
    "FeedClientError",
    "FeedKey",
    "FeedReconciler",
    "NotAuthenticated",
    "PostNotCached",
    "PostNotSaved",
    "RequestRejected",
    "SessionContext",
    "TransientError",
    "normalize_search",
]
