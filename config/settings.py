"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Fulfillment tunables default to the values the dispatcher screens were
calibrated against; override them per environment in `.env`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # DELIVERY
    # ===================
    delivery_eta_hours: float = Field(
        default=2.0,
        gt=0,
        le=48,
        description="Hours from assignment to expected arrival for a new delivery"
    )
    production_rate_tph: float = Field(
        default=150.0,
        gt=0,
        description="Plant output in tons per hour (drives the PRODUCE ETA)"
    )

    # ===================
    # RANKING
    # ===================
    score_probability_weight: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Weight of on-time probability in the option score"
    )
    score_cost_weight: float = Field(
        default=0.3,
        ge=0,
        le=1,
        description="Weight of normalised cost in the option score"
    )
    rule_probability_nudge: float = Field(
        default=0.05,
        ge=0,
        le=0.5,
        description="On-time probability added by prefer_quarry / prefer_warehouse rules"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
