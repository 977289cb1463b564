"""Errors raised by the feed client.

Transient errors are the only ones a read path retries. Mutations never retry
on their own; the caller decides whether to offer a retry.
"""

from __future__ import annotations


class FeedClientError(RuntimeError):
    """Base class for client-side failures."""


class TransientError(FeedClientError):
    """Network failure or 5xx response; safe to retry reads."""


class RequestRejected(FeedClientError):
    """The service refused the request (4xx), e.g. ownership or uniqueness."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class ContractError(FeedClientError):
    """A response was missing data the client depends on."""


class NotAuthenticated(FeedClientError):
    """An operation needs a signed-in viewer and the session has none."""


class PostNotCached(FeedClientError):
    """The post is not in any cached feed of the viewer."""


class PostNotSaved(FeedClientError):
    """The post is still a local placeholder; the service has not created it yet."""
