"""Server-rendered pages for browsers."""

from murmur.web.pages import router as pages_router

__all__ = ["pages_router"]
