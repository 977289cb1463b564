"""Application settings and configuration.

This module defines all configuration options for the Murmur application.
Settings are loaded from environment variables with sensible defaults. The
service URL, the public API key and the signing secret have no defaults: a
process started without them fails at import time.
"""

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Murmur", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Public service surface (both required)
    service_url: AnyHttpUrl = Field(alias="MURMUR_SERVICE_URL")
    anon_key: str = Field(min_length=1, alias="MURMUR_ANON_KEY")

    # Security and authentication
    secret_key: str = Field(min_length=1, alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, alias="BCRYPT_ROUNDS")
    session_cookie_name: str = Field(default="murmur_session", alias="SESSION_COOKIE_NAME")

    # Database configuration
    database_url: str = Field(default="sqlite:///./murmur.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=False, alias="AUTO_CREATE_TABLES")

    # Feed behaviour
    feed_page_size: int = Field(default=5, ge=1, alias="FEED_PAGE_SIZE")
    feed_max_page_size: int = Field(default=50, ge=1, alias="FEED_MAX_PAGE_SIZE")
    feed_search_usernames: bool = Field(default=True, alias="FEED_SEARCH_USERNAMES")

    # Client cache and reconciliation
    like_refresh_debounce_seconds: float = Field(
        default=0.5,
        ge=0.0,
        alias="LIKE_REFRESH_DEBOUNCE_SECONDS",
    )
    removal_animation_seconds: float = Field(
        default=0.3,
        ge=0.0,
        alias="REMOVAL_ANIMATION_SECONDS",
    )
    client_timeout_seconds: float = Field(default=10.0, gt=0.0, alias="CLIENT_TIMEOUT_SECONDS")
    client_read_retries: int = Field(default=3, ge=0, alias="CLIENT_READ_RETRIES")
    client_retry_base_delay_seconds: float = Field(
        default=0.2,
        ge=0.0,
        alias="CLIENT_RETRY_BASE_DELAY_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("anon_key", "secret_key")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @property
    def service_base_url(self) -> str:
        """Return the service URL without a trailing slash."""
        return str(self.service_url).rstrip("/")

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()  # type: ignore[call-arg]
