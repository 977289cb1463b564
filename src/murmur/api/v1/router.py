"""Aggregate router for the versioned API."""

from fastapi import APIRouter, Depends

from .dependencies import require_api_key
from .endpoints import auth_router, posts_router

# Every versioned route requires the public API key.
api_router = APIRouter(dependencies=[Depends(require_api_key)])
api_router.include_router(auth_router)
api_router.include_router(posts_router)
