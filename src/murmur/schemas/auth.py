"""Authentication-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


class LoginRequest(BaseModel):
    """Credentials submitted by the login form."""

    email: EmailStr
    password: str = Field(..., min_length=6, description="Password (at least 6 characters)")

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class SignupRequest(BaseModel):
    """Payload for creating an account and its profile."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=20,
        pattern=USERNAME_PATTERN,
        description="Letters, numbers and underscores only",
    )
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=50)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class CurrentUser(BaseModel):
    """The authenticated viewer as seen by the rest of the application."""

    id: str
    username: str
    email: str | None = None

    model_config = ConfigDict(frozen=True)


class SessionResponse(BaseModel):
    """Token issued after a successful login."""

    access_token: str
    token_type: str = "bearer"
    user: CurrentUser


class SignupResponse(BaseModel):
    """Confirmation returned after signup."""

    user: CurrentUser
