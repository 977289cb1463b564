"""HTTP client for the Murmur service.

Every request carries the public API key; requests made after
:meth:`FeedApiClient.sign_in` also carry the session's bearer token. Reads
are retried with exponential backoff on transient failures. Mutations are
sent exactly once and surface their error to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ValidationError

from murmur.client.errors import ContractError, RequestRejected, TransientError
from murmur.client.keys import FeedKey
from murmur.client.session import ANONYMOUS, SessionContext
from murmur.core.settings import settings
from murmur.schemas.auth import CurrentUser, SessionResponse, SignupResponse
from murmur.schemas.common import FeedFilter
from murmur.schemas.post import PostsPage, PostView

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
HTTP_UNAUTHORIZED = 401
HTTP_INTERNAL_SERVER_ERROR = 500


class FeedBackend(Protocol):
    """Operations the cache and the reconciler need from the service."""

    async def fetch_page(
        self, key: FeedKey, cursor: str | None = None, limit: int | None = None
    ) -> PostsPage: ...

    async def create_post(self, content: str) -> PostView: ...

    async def update_post(self, post_id: int, content: str) -> PostView: ...

    async def delete_post(self, post_id: int) -> None: ...

    async def like(self, post_id: int) -> None: ...

    async def unlike(self, post_id: int) -> None: ...


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        detail = body["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return str(body)


class FeedApiClient:
    """Async client for the auth and post endpoints.

    Args:
        base_url: Service URL; ``MURMUR_SERVICE_URL`` when omitted
        api_key: Public API key; ``MURMUR_ANON_KEY`` when omitted
        token: Bearer token of an existing session
        timeout: Per-request timeout in seconds
        read_retries: Extra attempts for reads after a transient failure
        retry_base_delay: First backoff delay; doubles on every attempt
        transport: Custom httpx transport, mainly for tests
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = None,
        read_retries: int | None = None,
        retry_base_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.anon_key
        self.read_retries = settings.client_read_retries if read_retries is None else read_retries
        self.retry_base_delay = (
            settings.client_retry_base_delay_seconds
            if retry_base_delay is None
            else retry_base_delay
        )
        self._token = token
        self._user: CurrentUser | None = None
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.service_base_url,
            timeout=httpx.Timeout(timeout or settings.client_timeout_seconds),
            transport=transport,
        )

    @property
    def session(self) -> SessionContext:
        """The signed-in viewer, or :data:`ANONYMOUS`."""
        if self._token is None or self._user is None:
            return ANONYMOUS
        return SessionContext(user=self._user, access_token=self._token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> FeedApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        headers = {"apikey": self.api_key}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"{API_PREFIX}{path}",
                json=json,
                params=params,
                headers=self._headers(),
            )
        except httpx.TransportError as exc:
            raise TransientError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
            raise TransientError(f"{method} {path} returned {response.status_code}")
        if response.is_client_error:
            raise RequestRejected(response.status_code, _detail(response))
        return response

    async def _read(self, path: str, *, params: Mapping[str, Any] | None = None) -> httpx.Response:
        attempt = 0
        while True:
            try:
                return await self._send("GET", path, params=params)
            except TransientError as exc:
                if attempt >= self.read_retries:
                    raise
                delay = self.retry_base_delay * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "GET %s failed (%s); retry %d/%d in %.2fs",
                    path, exc, attempt, self.read_retries, delay,
                )
                await asyncio.sleep(delay)

    @staticmethod
    def _parse(model: type[BaseModel], response: httpx.Response) -> Any:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ContractError(
                f"Unexpected response from {response.request.url.path}: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    async def sign_up(self, username: str, email: str, password: str) -> CurrentUser:
        """Create an account. Does not sign in."""
        response = await self._send(
            "POST",
            "/auth/signup",
            json={"username": username, "email": email, "password": password},
        )
        return self._parse(SignupResponse, response).user

    async def sign_in(self, email: str, password: str) -> SessionContext:
        """Sign in and keep the session's token for later requests.

        Raises:
            RequestRejected: 401 for wrong credentials, 422 for malformed input
        """
        response = await self._send(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        session = self._parse(SessionResponse, response)
        self._token = session.access_token
        self._user = session.user
        logger.info("Signed in as %s", session.user.username)
        return self.session

    async def sign_out(self) -> None:
        """Revoke the current token. Local state is cleared even if the call fails."""
        if self._token is None:
            return
        try:
            await self._send("POST", "/auth/logout")
        finally:
            self._token = None
            self._user = None

    async def current_user(self) -> CurrentUser | None:
        """Return the token's owner, or None when the token is missing or revoked."""
        if self._token is None:
            return None
        try:
            response = await self._read("/auth/me")
        except RequestRejected as exc:
            if exc.status_code == HTTP_UNAUTHORIZED:
                return None
            raise
        self._user = self._parse(CurrentUser, response)
        return self._user

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------
    async def fetch_page(
        self, key: FeedKey, cursor: str | None = None, limit: int | None = None
    ) -> PostsPage:
        params: dict[str, Any] = {}
        if key.search:
            params["search"] = key.search
        if key.filter is not FeedFilter.ALL:
            params["filter"] = key.filter.value
        if cursor is not None:
            params["cursor"] = cursor
        if limit is not None:
            params["limit"] = limit
        response = await self._read("/posts", params=params)
        return self._parse(PostsPage, response)

    async def create_post(self, content: str) -> PostView:
        response = await self._send("POST", "/posts", json={"content": content})
        return self._parse(PostView, response)

    async def update_post(self, post_id: int, content: str) -> PostView:
        response = await self._send("PATCH", f"/posts/{post_id}", json={"content": content})
        return self._parse(PostView, response)

    async def delete_post(self, post_id: int) -> None:
        await self._send("DELETE", f"/posts/{post_id}")

    async def like(self, post_id: int) -> None:
        await self._send("POST", f"/posts/{post_id}/like")

    async def unlike(self, post_id: int) -> None:
        await self._send("DELETE", f"/posts/{post_id}/like")
