"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .auth import CurrentUser, LoginRequest, SessionResponse, SignupRequest, SignupResponse
from .common import ErrorResponse, FeedFilter
from .post import AuthorOut, PostCreate, PostsPage, PostUpdate, PostView, validate_post_content

__all__ = [
    "CurrentUser", "LoginRequest", "SessionResponse", "SignupRequest", "SignupResponse",
    "ErrorResponse", "FeedFilter",
    "AuthorOut", "PostCreate", "PostsPage", "PostUpdate", "PostView", "validate_post_content",
]
