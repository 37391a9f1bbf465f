"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or a local .env file.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "ProductScout"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Azure Cosmos DB
    # Either endpoint (RBAC via DefaultAzureCredential) or connection string (emulator)
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None
    AZURE_COSMOS_DATABASE: str = "productscout"
    AZURE_COSMOS_DISABLE_SSL: bool = False

    # Voting / funding
    DEFAULT_FUNDING_THRESHOLD: int = 1000

    # Optimistic update retry loop
    VOTE_RETRY_MAX_ATTEMPTS: int = 3
    VOTE_RETRY_BASE_DELAY_MS: int = 50

    # Read-side cache for leaderboard and queue views
    CACHE_TTL_SECONDS: int = 30

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:3000"

    # Admin endpoints (enrichment, status transitions); disabled when unset
    ADMIN_API_KEY: str | None = None

    # Push gateway for "results ready" notifications
    PUSH_GATEWAY_URL: str | None = None
    PUSH_GATEWAY_TOKEN: str | None = None

    # Barcode lookup services used by enrichment
    OPEN_FOOD_FACTS_URL: str = "https://world.openfoodfacts.org/api/v2/product"
    UPCITEMDB_URL: str = "https://api.upcitemdb.com/prod/trial/lookup"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Enrichment job
    ENRICHMENT_BATCH_SIZE: int = 20
    ENRICHMENT_DELAY_MS: int = 200
    ENRICHMENT_SCHEDULE_MINUTES: int = 0  # 0 disables the background job

    @field_validator("DEFAULT_FUNDING_THRESHOLD", "VOTE_RETRY_MAX_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        """Threshold and retry bound must be positive."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        import json

        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def cosmos_enabled(self) -> bool:
        """Cosmos DB is used when either an endpoint or a connection string is configured."""
        return bool(self.AZURE_COSMOS_ENDPOINT or self.AZURE_COSMOS_CONNECTION_STRING)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
