import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="production", alias="warwatch_env")
    log_level: str = Field("INFO", alias="warwatch_log_level")

    # Database
    database_url: str = Field("sqlite:///./data/warwatch.db", alias="warwatch_database_url")

    # Forwarding proxy for geo-restricted sources
    proxy_base_url: Optional[str] = Field(None, alias="warwatch_proxy_base_url")
    proxy_auth_token: Optional[str] = Field(None, alias="warwatch_proxy_auth_token")
    fetch_timeout_seconds: float = Field(15.0, alias="warwatch_fetch_timeout")

    # Home Front Command alert endpoint
    oref_enabled: bool = Field(True, alias="warwatch_oref_enabled")
    oref_alerts_url: str = Field(
        "https://www.oref.org.il/WarningMessages/alert/alerts.json",
        alias="warwatch_oref_alerts_url",
    )
    oref_poll_interval_ms: int = Field(5000, alias="warwatch_oref_poll_interval_ms")

    # RSS.app aggregation API (Telegram / OSINT channels)
    feeds_enabled: bool = Field(True, alias="warwatch_feeds_enabled")
    rss_app_base_url: str = Field("https://api.rss.app/v1", alias="warwatch_rss_app_base_url")
    rss_app_api_key: Optional[str] = Field(None, alias="warwatch_rss_app_api_key")
    rss_app_api_secret: Optional[str] = Field(None, alias="warwatch_rss_app_api_secret")
    feed_poll_interval_ms: int = Field(60000, alias="warwatch_feed_poll_interval_ms")

    # AI summary
    ai_summary_enabled: bool = Field(True, alias="warwatch_ai_summary_enabled")
    openai_api_key: Optional[str] = Field(None, alias="warwatch_openai_api_key")
    openai_base_url: str = Field("https://api.openai.com/v1", alias="warwatch_openai_base_url")
    ai_model: str = Field("gpt-4o-mini", alias="warwatch_ai_model")
    ai_summary_interval_ms: int = Field(60000, alias="warwatch_ai_summary_interval_ms")
    ai_recent_events: int = Field(30, alias="warwatch_ai_recent_events")
    ai_recent_news: int = Field(30, alias="warwatch_ai_recent_news")

    # Alert expiry sweep
    alert_expiry_minutes: int = Field(10, alias="warwatch_alert_expiry_minutes")
    alert_expiry_interval_ms: int = Field(60000, alias="warwatch_alert_expiry_interval_ms")

    # Dedup and retention
    dedup_capacity: int = Field(1000, alias="warwatch_dedup_capacity")
    max_events: int = Field(500, alias="warwatch_max_events")
    max_news: int = Field(500, alias="warwatch_max_news")
    max_alerts: int = Field(200, alias="warwatch_max_alerts")
    max_summaries: int = Field(50, alias="warwatch_max_summaries")

    # Live subscribers
    subscriber_queue_size: int = Field(256, alias="warwatch_subscriber_queue_size")

    # Security
    allowed_origins: str = Field(
        "http://localhost:5000,http://127.0.0.1:5000",
        alias="warwatch_allowed_origins",
    )

    # Monitoring & Error Tracking
    sentry_dsn: Optional[str] = Field(None, alias="warwatch_sentry_dsn")
    enable_metrics: bool = Field(True, alias="warwatch_enable_metrics")
    pipeline_autostart: bool = Field(True, alias="warwatch_pipeline_autostart")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod")

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment in ("development", "dev", "local")

    @property
    def feed_credentials(self) -> Optional[str]:
        """Bearer credential for the aggregation API, or None when unconfigured."""
        if not self.rss_app_api_key or not self.rss_app_api_secret:
            return None
        return f"{self.rss_app_api_key}:{self.rss_app_api_secret}"

    def validate_production_config(self) -> None:
        """Validate that all required production settings are configured."""
        if self.is_production:
            if self.database_url.startswith("sqlite"):
                raise RuntimeError("Production requires a server database (SQLite is development only)")
            if not self.proxy_base_url:
                raise RuntimeError("Production requires a forwarding proxy for the alert endpoint")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "case_sensitive": False,
        "populate_by_name": True,
    }


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    try:
        settings.validate_production_config()
    except RuntimeError as e:
        # Log the configuration error but allow startup to continue with degraded functionality
        logger = logging.getLogger(__name__)
        logger.error(f"Production configuration validation failed: {e}")
        logger.warning("Starting with degraded configuration - some sources may not work")
    return settings
