"""Shared API dependencies for authentication and common functionality."""

import secrets
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from murmur.core.errors import NotAuthenticatedError
from murmur.core.settings import settings
from murmur.db.session import get_db
from murmur.schemas.auth import CurrentUser
from murmur.services import auth_service
from murmur.services.identity import IdentityProvider

# HTTP Bearer scheme; missing credentials resolve to an anonymous viewer.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def require_api_key(apikey: Annotated[str | None, Header()] = None) -> None:
    """Reject requests that do not carry the public API key.

    Raises:
        HTTPException: If the ``apikey`` header is missing or wrong.
    """
    if apikey is None or not secrets.compare_digest(apikey, settings.anon_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )


def get_identity_provider(db: SessionDep) -> IdentityProvider:
    """Return an identity provider bound to the request session."""
    return IdentityProvider(db)


IdentityProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]


@dataclass(frozen=True)
class ViewerContext:
    """Who is making the request, resolved once per request.

    ``user`` is None for anonymous visitors; callers check
    :attr:`is_authenticated` or call :meth:`require`.
    """

    user: CurrentUser | None = None
    token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def require(self) -> CurrentUser:
        """Return the viewer or raise NotAuthenticatedError."""
        if self.user is None:
            raise NotAuthenticatedError("Authentication required")
        return self.user


def get_viewer(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
    provider: IdentityProviderDep,
) -> ViewerContext:
    """Resolve the bearer token (if any) into a viewer context."""
    if credentials is None:
        return ViewerContext()
    token = credentials.credentials
    return ViewerContext(
        user=auth_service.get_current_user(db, provider, token),
        token=token,
    )


ViewerDep = Annotated[ViewerContext, Depends(get_viewer)]


def get_current_user(viewer: ViewerDep) -> CurrentUser:
    """Get the current authenticated user.

    Raises:
        HTTPException: If the request is anonymous or the token is invalid.
    """
    try:
        return viewer.require()
    except NotAuthenticatedError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from err


# Type alias for current user dependency
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
