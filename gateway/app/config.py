"""
Configuration module for the Login Gateway.

This module uses Pydantic Settings to load and validate environment variables
for the identity provider, the supported domain families, the analytics
database and the server itself.

Environment variables are loaded from .env file or system environment.
Values needed only by specific flows (provider client id, publishable key,
database URL) are optional here and checked at the point of use with
``Settings.require`` so that a missing secret fails one request with a 500
instead of preventing the service from starting.
"""

from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SUPPORTED_DOMAINS = "cddc39.tech,dmikalova.dev,keyforge.cards,mklv.tech"


class ConfigurationError(RuntimeError):
    """Raised when a request needs configuration that is not present."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(
            f"Missing required configuration: {', '.join(missing)}"
        )


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # Identity Provider (Google One Tap + Supabase Auth)
    # =========================================================================

    GOOGLE_CLIENT_ID: Optional[str] = Field(
        None,
        description="OAuth client id used by the Google One Tap login form",
    )

    SUPABASE_URL: Optional[str] = Field(
        None,
        description="Identity provider base URL (e.g., https://xyz.supabase.co)",
    )

    SUPABASE_PUBLISHABLE_KEY: Optional[str] = Field(
        None,
        description="Publishable (anon) key handed to the browser client",
    )

    # =========================================================================
    # Domain Families
    # =========================================================================

    SUPPORTED_DOMAINS: str = Field(
        default=DEFAULT_SUPPORTED_DOMAINS,
        description="Comma-separated root domains that share the session cookie",
    )

    # =========================================================================
    # Verification Key Caching
    # =========================================================================

    JWKS_CACHE_SECONDS: int = Field(
        default=3600,
        description="Time to trust a fetched verification key, in seconds",
        ge=1,
        le=86400,
    )

    JWKS_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        description="Timeout for the key-publication endpoint request",
        gt=0,
    )

    # =========================================================================
    # Analytics Database
    # =========================================================================

    DATABASE_URL_TRANSACTION: Optional[str] = Field(
        None,
        description="PostgreSQL connection string (transaction pooler)",
    )

    DATABASE_SCHEMA: str = Field(
        default="login",
        description="Schema placed first on the connection search_path",
    )

    # =========================================================================
    # Server
    # =========================================================================

    HOST: str = Field(default="0.0.0.0", description="Host to bind the server")

    PORT: int = Field(default=8080, description="Port to bind the server", ge=1, le=65535)

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def supported_domains(self) -> Tuple[str, ...]:
        """
        Parse SUPPORTED_DOMAINS into an immutable tuple of lowercase roots.
        """
        return tuple(
            domain.strip().lower()
            for domain in self.SUPPORTED_DOMAINS.split(",")
            if domain.strip()
        )

    @property
    def async_database_url(self) -> Optional[str]:
        """
        Database URL rewritten for the asyncpg SQLAlchemy dialect.
        """
        url = self.DATABASE_URL_TRANSACTION
        if not url:
            return None
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                return "postgresql+asyncpg://" + url[len(prefix):]
        return url

    def require(self, *names: str) -> None:
        """
        Ensure the named settings are present.

        Args:
            names: Setting (environment variable) names

        Raises:
            ConfigurationError: If any of them is missing or empty
        """
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(missing)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SUPPORTED_DOMAINS")
    @classmethod
    def validate_supported_domains(cls, v: str) -> str:
        """
        Validate that SUPPORTED_DOMAINS contains at least one root domain.

        Raises:
            ValueError: If no valid domains are provided
        """
        domains = [d.strip() for d in v.split(",") if d.strip()]

        if not domains:
            raise ValueError("SUPPORTED_DOMAINS must contain at least one domain")

        for domain in domains:
            if "." not in domain:
                raise ValueError(
                    f"Invalid domain format: '{domain}'. "
                    "Expected format: 'example.com'"
                )
            if " " in domain or "@" in domain:
                raise ValueError(
                    f"Invalid domain format: '{domain}'. "
                    "Domain should not contain spaces or @ symbols"
                )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}, got: {v}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.
    """
    return Settings()
