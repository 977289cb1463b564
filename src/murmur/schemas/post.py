"""Post-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from murmur.core.constants import MAX_POST_LENGTH, MIN_POST_LENGTH


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    content: str = Field(
        ...,
        min_length=MIN_POST_LENGTH,
        max_length=MAX_POST_LENGTH,
        description="Post text (1 to 280 characters)",
    )


class PostUpdate(PostCreate):
    """Schema for replacing the content of an existing post."""


def validate_post_content(content: str) -> str:
    """Validate post text exactly as the API would.

    Raises:
        pydantic.ValidationError: If the content is empty or too long.
    """
    return PostCreate(content=content).content


class AuthorOut(BaseModel):
    """Author details embedded in a post view."""

    id: str
    username: str

    model_config = ConfigDict(frozen=True)


class PostView(BaseModel):
    """A post joined with its author, like count and the viewer's like flag.

    Rebuilt on every fetch. ``is_removing`` and ``is_pending`` only ever appear
    in client-side caches.
    """

    id: int
    content: str
    author_id: str
    author: AuthorOut
    created_at: datetime
    updated_at: datetime
    like_count: int = Field(0, ge=0)
    is_liked: bool = False
    is_removing: bool = False
    is_pending: bool = False

    model_config = ConfigDict(frozen=True)


class PostsPage(BaseModel):
    """One bounded page of the feed plus continuation metadata."""

    posts: list[PostView]
    has_next_page: bool
    next_cursor: str | None = None

    # Offset pagination only.
    current_page: int | None = None
    next_page: int | None = None
    total_count: int | None = None
    total_pages: int | None = None
    has_prev_page: bool = False

    model_config = ConfigDict(frozen=True)
