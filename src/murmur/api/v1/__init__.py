"""Version 1 API endpoints."""

from .endpoints import auth_router, posts_router
from .router import api_router

__all__ = [
    "api_router",
    "auth_router",
    "posts_router",
]
