"""Main entry point for the Murmur application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from murmur import __version__
from murmur.api.v1 import api_router
from murmur.core.logging import configure_logging
from murmur.core.settings import settings
from murmur.db.session import create_tables
from murmur.web import pages_router

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.app_name} API",
    description="Short posts, likes and a searchable feed",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(api_router, prefix="/api/v1")
app.include_router(pages_router)


@app.on_event("startup")
async def on_startup() -> None:
    if settings.auto_create_tables:
        logger.info("Creating database tables")
        create_tables()
    logger.info("%s %s started", settings.app_name, __version__)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("murmur.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
