"""SQLAlchemy models for the Murmur application."""

from .identity import AuthIdentity, RevokedSession
from .like import Like
from .post import Post
from .profile import Profile

__all__ = [
    "AuthIdentity", "RevokedSession",
    "Like",
    "Post",
    "Profile",
]
