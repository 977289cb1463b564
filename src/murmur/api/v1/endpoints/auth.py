"""Authentication endpoints for the Murmur API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from murmur.api.v1.dependencies import (
    CurrentUserDep,
    IdentityProviderDep,
    SessionDep,
    ViewerDep,
)
from murmur.api.v1.errors import http_error
from murmur.core.errors import EmailTakenError, InvalidCredentialsError, UsernameTakenError
from murmur.schemas.auth import (
    CurrentUser,
    LoginRequest,
    SessionResponse,
    SignupRequest,
    SignupResponse,
)
from murmur.services import auth_service

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account and its profile",
)
async def signup(
    payload: SignupRequest,
    db: SessionDep,
    provider: IdentityProviderDep,
) -> SignupResponse:
    """Register a new user.

    Raises:
        HTTPException: 409 if the username or email is already taken.
    """
    try:
        user = auth_service.signup(db, provider, payload)
    except (UsernameTakenError, EmailTakenError) as exc:
        logger.info("Signup rejected: %s", exc)
        raise http_error(exc) from exc
    return SignupResponse(user=user)


@router.post("/login", response_model=SessionResponse, summary="Sign in with email and password")
async def login(
    payload: LoginRequest,
    db: SessionDep,
    provider: IdentityProviderDep,
) -> SessionResponse:
    """Exchange credentials for a bearer token.

    Raises:
        HTTPException: 401 if the credentials are wrong.
    """
    try:
        token, user = auth_service.login(db, provider, payload)
    except InvalidCredentialsError as exc:
        raise http_error(exc) from exc
    return SessionResponse(access_token=token.access_token, user=user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Revoke the bearer token")
async def logout(
    viewer: ViewerDep,
    db: SessionDep,
    provider: IdentityProviderDep,
) -> None:
    """Sign out the caller. Anonymous callers are rejected."""
    if not viewer.is_authenticated or viewer.token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    auth_service.logout(db, provider, viewer.token)


@router.get("/me", response_model=CurrentUser, summary="Return the authenticated user")
async def me(current_user: CurrentUserDep) -> CurrentUser:
    """Return the profile of the bearer token's owner."""
    return current_user
