"""Domain errors raised by Murmur services.

Services raise these; the HTTP layer translates them into status codes.
"""

from __future__ import annotations


class MurmurError(RuntimeError):
    """Base class for all domain errors."""


class NotAuthenticatedError(MurmurError):
    """Raised when an operation requires a viewer and none is present."""


class InvalidCredentialsError(MurmurError):
    """Raised when an email/password pair does not match an identity."""


class UsernameTakenError(MurmurError):
    """Raised when a profile with the requested username already exists."""


class EmailTakenError(MurmurError):
    """Raised when an identity with the requested email already exists."""


class PostNotFoundError(MurmurError):
    """Raised when a post does not exist."""


class NotPostOwnerError(MurmurError):
    """Raised when the viewer attempts to modify somebody else's post."""


class AlreadyLikedError(MurmurError):
    """Raised when the viewer already likes the post."""


class LikeNotFoundError(MurmurError):
    """Raised when removing a like that does not exist."""


class InvalidCursorError(MurmurError):
    """Raised when a pagination cursor cannot be decoded."""
