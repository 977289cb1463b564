"""Translation of domain errors into HTTP errors."""

from fastapi import HTTPException, status

from murmur.core.errors import (
    AlreadyLikedError,
    EmailTakenError,
    InvalidCredentialsError,
    InvalidCursorError,
    LikeNotFoundError,
    MurmurError,
    NotAuthenticatedError,
    NotPostOwnerError,
    PostNotFoundError,
    UsernameTakenError,
)

_STATUS_BY_ERROR: dict[type[MurmurError], int] = {
    InvalidCursorError: status.HTTP_400_BAD_REQUEST,
    NotAuthenticatedError: status.HTTP_401_UNAUTHORIZED,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    NotPostOwnerError: status.HTTP_403_FORBIDDEN,
    PostNotFoundError: status.HTTP_404_NOT_FOUND,
    LikeNotFoundError: status.HTTP_404_NOT_FOUND,
    UsernameTakenError: status.HTTP_409_CONFLICT,
    EmailTakenError: status.HTTP_409_CONFLICT,
    AlreadyLikedError: status.HTTP_409_CONFLICT,
}


def http_error(exc: MurmurError) -> HTTPException:
    """Return the HTTPException matching a domain error."""
    for error_type in type(exc).__mro__:
        code = _STATUS_BY_ERROR.get(error_type)  # type: ignore[arg-type]
        if code is not None:
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
