"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. Inventory behaviour knobs (default
warehouse, history retention, outbox retries, analytics windows) live here
as well so they can be tuned per deployment.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - relative path for local runs, override via env
    database_url: str = "sqlite:///./pos_inventory.db"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # ==========================================================================
    # Inventory
    # ==========================================================================
    default_warehouse_code: str = "MAIN"
    default_warehouse_name: str = "Main warehouse"
    default_unit: str = "pcs"
    default_currency: str = "UZS"

    # Supplier price history / payments / invoices kept per supplier
    history_retention_limit: int = 200

    # Usage deduction outbox
    usage_outbox_max_attempts: int = 5
    usage_outbox_retry_seconds: int = 60
    usage_outbox_batch_size: int = 50

    # Analytics windows
    expiring_soon_days: int = 5
    alert_expiring_days: int = 3
    fast_moving_window_days: int = 30
    fast_moving_limit: int = 10
    anomaly_window_days: int = 7
    anomaly_multiplier: float = 1.5

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == "change-me-in-production":
            import warnings
            warnings.warn(
                "Using default SECRET_KEY is insecure! Set SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator("default_warehouse_code")
    @classmethod
    def normalize_warehouse_code(cls, v: str) -> str:
        return v.strip().upper() or "MAIN"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to start in production mode with a weak secret key."""
        if not self.debug:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            if len(self.secret_key) < 32:
                raise ValueError(
                    f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                    f"(current length: {len(self.secret_key)})."
                )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
