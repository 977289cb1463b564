"""Shared Pydantic schemas and enums for common API elements."""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class FeedFilter(str, Enum):
    """Which slice of the feed a viewer is browsing."""

    ALL = "all"
    MINE = "mine"
    LIKED = "liked"


class ErrorResponse(BaseModel):
    """Error body returned alongside non-2xx responses."""

    detail: str = Field(..., description="Human readable error message.")
