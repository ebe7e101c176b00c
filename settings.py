# settings.py
"""
Pantry Locator API Settings.

Pydantic settings management with environment variable support.
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional
from urllib.parse import urlparse, urlunparse


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MongoDB
    DATABASE_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string"
    )
    DATABASE_NAME: str = Field(default="pantry_locator")
    MONGO_MAX_POOL_SIZE: int = 50
    MONGO_MIN_POOL_SIZE: int = 5

    # Environment
    ENV: str = Field(default="development")
    DEBUG: bool = Field(default=True)

    # Google Maps (Geocoding + Places web services)
    GOOGLE_API_KEY: Optional[str] = Field(default=None, description="Google Maps API key")
    MAPS_REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Redis Configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (redis://[:password@]host:port/db)"
    )
    REDIS_PASSWORD: Optional[str] = Field(
        default=None,
        description="Redis password for authentication"
    )

    CACHE_NAMESPACE: str = "pantry"
    CACHE_CIRCUIT_FAILURE_THRESHOLD: int = 5
    CACHE_CIRCUIT_OPEN_SECONDS: int = 60

    # Cache TTL Defaults (in seconds)
    CACHE_TTL_GEOCODE: int = Field(
        default=86400,
        description="Reverse geocode cache TTL (24 hours)"
    )
    CACHE_TTL_PLACE_DETAILS: int = Field(
        default=86400,
        description="Place details cache TTL (24 hours)"
    )
    CACHE_TTL_SESSION_LOCATION: int = Field(
        default=2592000,
        description="Stored session location TTL (30 days)"
    )

    # Proximity search
    DEFAULT_SEARCH_RADIUS_MILES: float = 50.0
    MAX_RADIUS_EXPANSIONS: int = 2  # radius, 2x, 4x, stop

    # Store deduplication
    SIMILARITY_THRESHOLD: float = 0.6
    MAX_SIMILAR_CANDIDATES: int = 5
    SIMILAR_LOCATION_RADIUS_MILES: float = 25.0

    # Chain grouping index
    CHAIN_INDEX_TTL_SECONDS: int = 300

    # Device geolocation
    GEOLOCATION_TIMEOUT_SECONDS: float = 10.0
    GEOLOCATION_MAX_AGE_SECONDS: float = 300.0

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = None
    SENTRY_ENVIRONMENT: str = "production"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    @property
    def maps_configured(self) -> bool:
        """Check if the Google Maps key is configured."""
        return bool(self.GOOGLE_API_KEY)

    @property
    def redis_url_with_auth(self) -> str:
        """Build Redis URL with authentication if password is provided."""
        if self.REDIS_PASSWORD:
            parsed = urlparse(self.REDIS_URL)
            netloc_with_auth = f":{self.REDIS_PASSWORD}@{parsed.netloc}"
            return urlunparse((
                parsed.scheme,
                netloc_with_auth,
                parsed.path,
                parsed.params,
                parsed.query,
                parsed.fragment
            ))
        return self.REDIS_URL

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    def validate_required_settings(self) -> None:
        """Validate that required settings are configured."""
        if not self.DATABASE_URL.startswith("mongodb"):
            raise ValueError("DATABASE_URL must be a MongoDB connection string")
        if not self.GOOGLE_API_KEY:
            raise ValueError("GOOGLE_API_KEY must be set in production")
        if not 0 < self.SIMILARITY_THRESHOLD <= 1:
            raise ValueError("SIMILARITY_THRESHOLD must be in (0, 1]")

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# Validate in production
if settings.ENV == "production":
    settings.validate_required_settings()
