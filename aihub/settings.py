"""Application settings."""
from pydantic_settings import BaseSettings
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    ENV: Literal["development", "production", "test"] = "development"
    DATABASE_URL: str = "postgresql://aihub:changeme@db:5432/aihub"

    # Scheduler authentication (sent as "Authorization: Bearer <secret>")
    CRON_SECRET: Optional[str] = None

    # Notifications
    SLACK_WEBHOOK_URL: Optional[str] = None

    # GitHub API (optional, raises the unauthenticated rate limit)
    GITHUB_TOKEN: Optional[str] = None

    # Approval and validation thresholds
    AUTO_APPROVE_CONFIDENCE: float = 0.3  # Minimum classifier confidence to publish without review
    CATEGORY_DRIFT_CONFIDENCE: float = 0.5  # Below this, a category disagreement is reported
    NAME_DUPLICATE_THRESHOLD: float = 0.85  # Name similarity treated as a hard duplicate
    VALIDATION_DUPLICATE_WARNING: float = 0.7
    VALIDATION_DUPLICATE_ERROR: float = 0.85

    # Crawl limits
    CRAWL_MAX_SOURCES: int = 5
    SOURCE_MAX_ITEMS: int = 10
    GITHUB_MAX_ITEMS: int = 5
    GITHUB_MIN_STARS: int = 100
    CRAWL_STALE_RUN_MINUTES: int = 30
    RUN_ERROR_MAX_LENGTH: int = 2000
    LOG_ERROR_MAX_LENGTH: int = 500

    # Outbound HTTP
    USER_AGENT: str = "Mozilla/5.0 (compatible; AI-Hub-Bot/1.0)"
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    HTTP_TIMEOUT: float = 10.0  # seconds
    LIVENESS_TIMEOUT: float = 8.0
    ENRICHMENT_TIMEOUT: float = 5.0
    HTTP_MAX_REDIRECTS: int = 5  # Each hop is checked against internal hosts
    DISCOVERY_RATE_LIMIT_DELAY: float = 0.3  # Between enrichment API calls
    VALIDATION_PROBE_DELAY: float = 0.2  # Between liveness probes

    # Scheduler
    SCHEDULER_QUEUE_SIZE: int = 20
    SCHEDULER_VALIDATION_BATCH_SIZE: int = 25
    SCHEDULER_ENABLED: bool = False  # Run the in-process scheduler instead of external cron
    SCHEDULER_INTERVAL_SECONDS: int = 86400

    class Config:
        env_file = ".env"
        case_sensitive = True

    def validate_cron_config(self) -> None:
        """
        Validate scheduler configuration at startup.

        Raises:
            ValueError: If running in production without a CRON_SECRET
        """
        if self.ENV == "production" and not self.CRON_SECRET:
            raise ValueError(
                "CRON_SECRET must be set in production. "
                "Cron endpoints reject every request without it."
            )
        if not 0.0 <= self.AUTO_APPROVE_CONFIDENCE <= 1.0:
            raise ValueError("AUTO_APPROVE_CONFIDENCE must be between 0 and 1")
        if not 0.0 <= self.CATEGORY_DRIFT_CONFIDENCE <= 1.0:
            raise ValueError("CATEGORY_DRIFT_CONFIDENCE must be between 0 and 1")


settings = Settings()
