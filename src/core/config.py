"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_DB_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})


def _database_host(database_url: str) -> str | None:
    """Host of a database URL; None for embedded SQLite, "" if unparseable."""
    if database_url.startswith("sqlite"):
        return None
    try:
        return (urlparse(database_url).hostname or "").lower()
    except ValueError:
        return ""


class Settings(BaseSettings):
    """Settings read from environment variables (and .env in development)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Auth0
    auth0_domain: str = ""
    auth0_audience: str = ""

    # Skips token validation and acts as a fixed local user
    dev_mode: bool = False

    # Comma-separated; parsed by the cors_origins property
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    log_level: str = "INFO"

    # Page fetching
    fetch_timeout: float = 10.0
    fetch_max_redirects: int = 5
    max_content_chars: int = 5000

    # AI analysis; each user supplies their own API key
    ai_provider: Literal["anthropic", "openai"] = "anthropic"
    anthropic_model: str = "claude-3-5-haiku-latest"
    openai_model: str = "gpt-4o-mini"
    ai_request_timeout: float = 30.0

    # Stored field limits
    max_title_length: int = 500
    max_description_length: int = 2000

    @model_validator(mode="after")
    def validate_dev_mode_security(self) -> "Settings":
        """
        Refuse DEV_MODE unless the database is local.

        DEV_MODE turns authentication off, so pairing it with a remote database
        would expose every user's bookmarks.
        """
        if not self.dev_mode:
            return self

        host = _database_host(self.database_url)
        if host is not None and host not in LOCAL_DB_HOSTS:
            raise ValueError(
                f"DEV_MODE cannot be enabled with a non-local database. "
                f"Database host '{host}' appears to be a production database. "
                f"DEV_MODE bypasses all authentication and must only be used locally.",
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Allowed CORS origins as a list, with blanks dropped."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def auth0_issuer(self) -> str:
        return f"https://{self.auth0_domain}/"

    @property
    def auth0_jwks_url(self) -> str:
        return f"https://{self.auth0_domain}/.well-known/jwks.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
