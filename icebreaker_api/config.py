"""Application configuration using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service settings
    service_host: str = Field(default="0.0.0.0", description="Host to bind the service")
    service_port: int = Field(default=8765, description="Port to bind the service")
    service_workers: int = Field(default=1, description="Number of worker processes")
    log_level: str = Field(default="info", description="Logging level")

    # Document store
    document_store: str = Field(
        default="memory",
        description="Document store backend: memory, postgres",
    )
    database_url: str | None = Field(
        default=None,
        description="Full database connection URL (overrides individual fields)",
    )
    database_user: str = Field(default="icebreaker_dev", description="Database username")
    database_password: str = Field(default="dev_password", description="Database password")
    database_host: str = Field(default="localhost", description="Database host")
    database_port: int = Field(default=5432, description="Database port")
    database_name: str = Field(default="icebreaker_dev", description="Database name")
    database_pool_min_size: int = Field(
        default=2,
        description="Minimum database connection pool size",
    )
    database_pool_max_size: int = Field(
        default=10,
        description="Maximum database connection pool size",
    )
    database_ssl_mode: str = Field(
        default="prefer",
        description="SSL mode: disable, prefer, require",
    )

    # Session lifecycle
    session_initial_status: str = Field(
        default="active",
        description="Status written on session creation: active, pending",
    )
    max_interest_tags: int = Field(
        default=4, description="Maximum number of interest tags per member"
    )
    message_fetch_limit: int = Field(
        default=200, description="Number of most recent messages delivered to observers"
    )
    prompt_candidate_limit: int = Field(
        default=10, description="Number of catalog prompts considered per category"
    )
    interest_cache_size: int = Field(
        default=1000, ge=1, description="Users whose interests are kept in the local cache"
    )

    # Catalogs
    seed_catalogs: bool = Field(
        default=True,
        description="Seed the prompt and interest catalogs on startup",
    )
    catalog_path: Path = Field(
        default=Path(__file__).parent / "data",
        description="Directory holding activities.yaml and interest_tags.yaml",
    )

    # Security
    secret_key: str = Field(
        default="development-secret-key-change-in-production",
        description="Secret key for HS256 JWT verification",
    )
    auth_required: bool = Field(
        default=False,
        description="Require authentication (set to True for production)",
    )
    dev_user_id: str = Field(
        default="dev-user",
        description="User id used when auth is disabled and no X-User-Id header is sent",
    )
    identity_timeout_seconds: float = Field(
        default=5.0,
        description="How long a live view waits for identity before going read-only",
    )

    # JWT settings
    jwt_algorithm: str = Field(default="RS256", description="JWT algorithm (RS256 for production)")
    jwt_public_key_url: str | None = Field(
        default=None,
        description="URL to fetch JWT public keys (JWKS endpoint)",
    )
    jwt_issuer: str | None = Field(default=None, description="Expected JWT issuer (iss claim)")
    jwt_audience: str | None = Field(default=None, description="Expected JWT audience (aud claim)")

    # CORS
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Allowed CORS origins (comma-separated)",
    )

    def get_allowed_origins(self) -> list[str]:
        """Get allowed origins as a list."""
        if isinstance(self.allowed_origins, str):
            return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return self.allowed_origins

    def get_database_url(self) -> str:
        """
        Get PostgreSQL connection URL.

        If database_url is set, use it directly.
        Otherwise, construct from individual components.
        """
        from urllib.parse import quote_plus

        if self.database_url:
            return self.database_url

        # URL-encode username and password to handle special characters
        user = quote_plus(self.database_user)
        password = quote_plus(self.database_password)

        ssl_param = ""
        if self.database_ssl_mode == "require":
            ssl_param = "?sslmode=require"
        elif self.database_ssl_mode == "prefer":
            ssl_param = "?sslmode=prefer"

        return (
            f"postgresql://{user}:{password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}{ssl_param}"
        )


# Global settings instance
settings = Settings()
