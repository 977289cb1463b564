"""Server-rendered pages and their form actions.

The session token lives in an HTTP-only cookie. Every form action redirects
back with 303, so the page the visitor lands on is always rendered from fresh
server state after a login, logout or write.
"""

from __future__ import annotations

import logging
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from murmur.api.v1.dependencies import IdentityProviderDep, SessionDep, ViewerContext
from murmur.core.errors import InvalidCursorError, MurmurError
from murmur.core.settings import settings
from murmur.schemas.auth import LoginRequest, SignupRequest
from murmur.schemas.common import FeedFilter
from murmur.services import auth_service, post_service
from murmur.services.feed import FeedQuery, fetch_feed_page
from murmur.web.render import render_auth_page, render_feed_page

router = APIRouter(tags=["pages"], include_in_schema=False)
logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "Please log in first"


def get_page_viewer(
    request: Request,
    db: SessionDep,
    provider: IdentityProviderDep,
) -> ViewerContext:
    """Resolve the session cookie into a viewer context."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return ViewerContext()
    return ViewerContext(user=auth_service.get_current_user(db, provider, token), token=token)


PageViewerDep = Annotated[ViewerContext, Depends(get_page_viewer)]
NextField = Annotated[str, Form()]


def _safe_next(target: str | None) -> str:
    """Only allow same-site relative redirect targets."""
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return "/"


def _redirect(target: str = "/", error: str | None = None) -> RedirectResponse:
    url = _safe_next(target)
    if error:
        url += ("&" if "?" in url else "?") + urlencode({"error": error})
    return RedirectResponse(url, status_code=303)


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"{field}: {first['msg']}" if field else first["msg"]


def _set_session_cookie(response: RedirectResponse, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )


@router.get("/", response_class=HTMLResponse)
async def index(
    viewer: PageViewerDep,
    db: SessionDep,
    search: Annotated[str, Query(max_length=200)] = "",
    filter: FeedFilter = FeedFilter.ALL,
    cursor: str | None = None,
    edit: int | None = None,
    delete: int | None = None,
    error: Annotated[str | None, Query(max_length=300)] = None,
) -> HTMLResponse:
    """Feed for signed-in visitors, login and signup forms for everyone else."""
    if viewer.user is None:
        response = HTMLResponse(render_auth_page(settings.app_name, error))
        if viewer.token is not None:
            response.delete_cookie(settings.session_cookie_name)
        return response

    user = viewer.user
    query = FeedQuery(
        viewer_id=user.id,
        search=search,
        filter=filter,
        cursor=cursor,
        limit=settings.feed_page_size,
    )
    try:
        page = fetch_feed_page(db, query)
    except InvalidCursorError:
        error = error or "That page is no longer available"
        cursor = None
        page = fetch_feed_page(db, FeedQuery(viewer_id=user.id, search=search, filter=filter))
    return HTMLResponse(
        render_feed_page(
            settings.app_name,
            user,
            page,
            search=query.search,
            filter=query.filter,
            cursor=cursor,
            edit_id=edit,
            delete_id=delete,
            error=error,
        )
    )


@router.post("/login")
async def login(
    db: SessionDep,
    provider: IdentityProviderDep,
    email: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
) -> RedirectResponse:
    try:
        payload = LoginRequest(email=email, password=password)
    except ValidationError as exc:
        return _redirect(error=_validation_message(exc))
    try:
        token, _ = auth_service.login(db, provider, payload)
    except MurmurError as exc:
        return _redirect(error=str(exc))
    response = _redirect()
    _set_session_cookie(response, token.access_token)
    return response


@router.post("/signup")
async def signup(
    db: SessionDep,
    provider: IdentityProviderDep,
    username: Annotated[str, Form()] = "",
    email: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
) -> RedirectResponse:
    """Create the account, then sign straight in."""
    try:
        payload = SignupRequest(username=username, email=email, password=password)
    except ValidationError as exc:
        return _redirect(error=_validation_message(exc))
    try:
        auth_service.signup(db, provider, payload)
        token, _ = auth_service.login(
            db, provider, LoginRequest(email=payload.email, password=payload.password)
        )
    except MurmurError as exc:
        logger.info("Signup form rejected: %s", exc)
        return _redirect(error=str(exc))
    response = _redirect()
    _set_session_cookie(response, token.access_token)
    return response


@router.post("/logout")
async def logout(
    viewer: PageViewerDep,
    db: SessionDep,
    provider: IdentityProviderDep,
) -> RedirectResponse:
    if viewer.token is not None:
        auth_service.logout(db, provider, viewer.token)
    response = _redirect()
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.post("/posts")
async def create_post(
    viewer: PageViewerDep,
    db: SessionDep,
    content: Annotated[str, Form()] = "",
    next: NextField = "/",
) -> RedirectResponse:
    if viewer.user is None:
        return _redirect(error=LOGIN_REQUIRED)
    try:
        post_service.create_post(db, viewer.user.id, content)
    except ValidationError as exc:
        return _redirect(next, _validation_message(exc))
    return _redirect(next)


@router.post("/posts/{post_id}/edit")
async def edit_post(
    post_id: int,
    viewer: PageViewerDep,
    db: SessionDep,
    content: Annotated[str, Form()] = "",
    next: NextField = "/",
) -> RedirectResponse:
    if viewer.user is None:
        return _redirect(error=LOGIN_REQUIRED)
    try:
        post_service.update_post(db, viewer.user.id, post_id, content)
    except ValidationError as exc:
        return _redirect(next, _validation_message(exc))
    except MurmurError as exc:
        return _redirect(next, str(exc))
    return _redirect(next)


@router.post("/posts/{post_id}/delete")
async def delete_post(
    post_id: int,
    viewer: PageViewerDep,
    db: SessionDep,
    next: NextField = "/",
) -> RedirectResponse:
    if viewer.user is None:
        return _redirect(error=LOGIN_REQUIRED)
    try:
        post_service.delete_post(db, viewer.user.id, post_id)
    except MurmurError as exc:
        return _redirect(next, str(exc))
    return _redirect(next)


@router.post("/posts/{post_id}/like")
async def toggle_like(
    post_id: int,
    viewer: PageViewerDep,
    db: SessionDep,
    next: NextField = "/",
) -> RedirectResponse:
    """Like the post, or unlike it if the viewer already does."""
    if viewer.user is None:
        return _redirect(error=LOGIN_REQUIRED)
    try:
        post = post_service.get_post(db, viewer.user.id, post_id)
        if post.is_liked:
            post_service.unlike_post(db, viewer.user.id, post_id)
        else:
            post_service.like_post(db, viewer.user.id, post_id)
    except MurmurError as exc:
        return _redirect(next, str(exc))
    return _redirect(next)
