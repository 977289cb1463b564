"""Post and like endpoints for the Murmur API."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from murmur.api.v1.dependencies import CurrentUserDep, SessionDep
from murmur.api.v1.errors import http_error
from murmur.core.errors import MurmurError
from murmur.core.settings import settings
from murmur.schemas.common import FeedFilter
from murmur.schemas.post import PostCreate, PostsPage, PostUpdate, PostView
from murmur.services import post_service
from murmur.services.feed import FeedQuery, fetch_feed_page

router = APIRouter(prefix="/posts", tags=["posts"])
logger = logging.getLogger(__name__)


@router.get("", response_model=PostsPage)
async def list_posts(
    db: SessionDep,
    current_user: CurrentUserDep,
    search: Annotated[str, Query(max_length=200, description="Substring to match")] = "",
    filter: Annotated[FeedFilter, Query(description="all, mine or liked")] = FeedFilter.ALL,
    cursor: Annotated[str | None, Query(description="Opaque cursor from next_cursor")] = None,
    page: Annotated[int | None, Query(ge=1, description="1-based page for offset pagination")] = None,
    limit: Annotated[int | None, Query(ge=1, description="Page size")] = None,
) -> PostsPage:
    """List the viewer's feed, newest first.

    Args:
        db: Database session
        current_user: Authenticated viewer
        search: Case-insensitive substring matched against content and username
        filter: Restrict to the viewer's own or liked posts
        cursor: Continue after the page that returned this cursor
        page: Use offset pagination instead of cursors
        limit: Maximum number of posts to return

    Returns:
        One page of posts plus continuation metadata

    Raises:
        HTTPException: If both cursor and page are given or the cursor is invalid
    """
    page_size = limit or settings.feed_page_size
    if page_size > settings.feed_max_page_size:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"limit must not exceed {settings.feed_max_page_size}",
        )
    if cursor is not None and page is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="cursor and page are mutually exclusive",
        )

    query = FeedQuery(
        viewer_id=current_user.id,
        search=search,
        filter=filter,
        cursor=cursor,
        page=page,
        limit=page_size,
    )
    try:
        return fetch_feed_page(db, query)
    except MurmurError as exc:
        raise http_error(exc) from exc


@router.get("/{post_id}", response_model=PostView)
async def get_post(post_id: int, db: SessionDep, current_user: CurrentUserDep) -> PostView:
    """Get a specific post by ID.

    Raises:
        HTTPException: If the post does not exist
    """
    try:
        return post_service.get_post(db, current_user.id, post_id)
    except MurmurError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=PostView, status_code=status.HTTP_201_CREATED)
async def create_post(
    post_data: PostCreate,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> PostView:
    """Create a new post authored by the viewer."""
    return post_service.create_post(db, current_user.id, post_data.content)


@router.patch("/{post_id}", response_model=PostView)
async def update_post(
    post_id: int,
    post_data: PostUpdate,
    db: SessionDep,
    current_user: CurrentUserDep,
) -> PostView:
    """Replace the content of one of the viewer's posts.

    Raises:
        HTTPException: 404 if missing, 403 if the viewer is not the author
    """
    try:
        return post_service.update_post(db, current_user.id, post_id, post_data.content)
    except MurmurError as exc:
        logger.info("Update of post %s rejected: %s", post_id, exc)
        raise http_error(exc) from exc


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(post_id: int, db: SessionDep, current_user: CurrentUserDep) -> None:
    """Delete one of the viewer's posts.

    Raises:
        HTTPException: 404 if missing, 403 if the viewer is not the author
    """
    try:
        post_service.delete_post(db, current_user.id, post_id)
    except MurmurError as exc:
        logger.info("Delete of post %s rejected: %s", post_id, exc)
        raise http_error(exc) from exc


@router.post("/{post_id}/like", status_code=status.HTTP_201_CREATED)
async def like_post(post_id: int, db: SessionDep, current_user: CurrentUserDep) -> dict[str, bool]:
    """Like a post as the viewer.

    Raises:
        HTTPException: 404 if the post is missing, 409 if already liked
    """
    try:
        post_service.like_post(db, current_user.id, post_id)
    except MurmurError as exc:
        raise http_error(exc) from exc
    return {"success": True}


@router.delete("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_post(post_id: int, db: SessionDep, current_user: CurrentUserDep) -> None:
    """Remove the viewer's like.

    Raises:
        HTTPException: 404 if the post or the like is missing
    """
    try:
        post_service.unlike_post(db, current_user.id, post_id)
    except MurmurError as exc:
        raise http_error(exc) from exc
