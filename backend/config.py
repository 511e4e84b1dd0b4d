"""
PAR Brink Bridge Configuration

Environment-based settings for the sales/labor reporting service.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, RedisDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "PAR Brink Bridge"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # PAR Brink SOAP services
    brink_sales_url: str = "https://api11.brinkpos.net/Sales2.svc"
    brink_labor_url: str = "https://api11.brinkpos.net/Labor2.svc"
    brink_settings_url: str = "https://api11.brinkpos.net/Settings2.svc"
    brink_timeout_seconds: float = Field(default=20.0, gt=0, le=60)
    brink_max_concurrent_requests: int = Field(
        default=8,
        ge=1,
        description="Process-wide cap on in-flight Brink calls",
    )

    # Time service
    time_service_url: str = "https://worldtimeapi.org/api/timezone"
    time_service_timeout_seconds: float = 5.0

    # Restaurant business day: local times before this hour belong to the previous day
    business_day_cutoff_hour: int = Field(default=5, ge=0, le=23)

    # Location directory (JSON list of {token, location_id, name, timezone, state})
    locations_file: str = Field(
        default="",
        description="Path to the location directory; empty uses the bundled file",
    )

    # Redis: REDIS_URL wins over the individual fields
    redis_url_external: str = Field(default="", alias="REDIS_URL")
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        if self.redis_url_external:
            return self.redis_url_external
        return str(
            RedisDsn.build(
                scheme="redis",
                host=self.redis_host,
                port=self.redis_port,
                path=str(self.redis_db),
            )
        )

    # Caching
    cache_enabled: bool = True
    employee_cache_ttl_seconds: int = 300

    # Error Monitoring
    sentry_dsn: str = Field(
        default="",
        description="Sentry DSN for error monitoring (leave empty to disable)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
