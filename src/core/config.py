"""Configuration management for foodshare."""

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

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/foodshare.db", description="Path to the SQLite database file")

    # Expo Push Configuration
    expo_push_url: str = Field(
        default="https://exp.host/--/api/v2/push/send", description="Expo push notification endpoint"
    )
    expo_access_token: str | None = Field(default=None, description="Expo access token (optional)")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Redis Configuration (optional)
    redis_url: str | None = Field(default=None, description="Redis connection URL (e.g., redis://localhost:6379)")

    # Claim Expiry Configuration
    claim_sweep_interval_minutes: int = Field(
        default=5, ge=1, description="How often the expired-claim sweep runs (in minutes)"
    )
    claim_grace_period_minutes: int = Field(
        default=150, ge=1, description="How long a claimed donation waits for pickup before it is released"
    )

    # Checkout Configuration
    claim_max_attempts: int = Field(
        default=5, ge=1, description="Compare-and-swap attempts per claim line before giving up"
    )
    checkout_rate_limit_per_minute: int = Field(
        default=10, description="Maximum checkout requests per user per minute (requires Redis)"
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Push Delivery
    PUSH_MAX_RETRIES: int = 3
    PUSH_RETRY_DELAY_SECONDS: float = 1.0
    PUSH_TOKEN_PREVIEW_LENGTH: int = 20

    # Notification Types
    NOTIFICATION_TYPE_DONATION_CLAIMED: str = "donation_claimed"
    NOTIFICATION_TYPE_TEST: str = "test"
    NOTIFICATION_TITLE_DONATION_CLAIMED: str = "Donation Claimed"

    # Maps
    MAPS_DIRECTIONS_URL: str = "https://www.google.com/maps/dir/?api=1&destination={latitude},{longitude}"
    EARTH_RADIUS_KM: float = 6378.137

    # Scheduler
    CLAIM_SWEEP_JOB_ID: str = "claim_expiry_sweep"

    # Pagination
    MAX_PER_PAGE_LIMIT: int = 10000

    # Redis Configuration
    REDIS_MAX_CONNECTIONS: int = 10

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100
    TRACKER_CONSECUTIVE_FAILURE_THRESHOLD: int = 3


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
