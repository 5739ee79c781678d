"""Application settings loaded from the environment.

Protean's own configuration (providers, brokers, event processing) lives in
``domain.toml`` next to the domain. Everything the marketplace needs beyond
that is read here.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PROTEAN_ENV: str = Field(default="development")
    STORE_NAME: str = Field(default="ArtisanMart")

    # Bearer credentials
    JWT_SECRET_KEY: str = Field(default="change-me-in-production")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, ge=1)

    # Payment processor
    PAYMENT_GATEWAY: str = Field(default="fake", pattern="^(fake|stripe)$")
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    PAYMENT_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    CURRENCY: str = Field(default="usd", min_length=3, max_length=3)

    # Commission percentage applied when a vendor has none configured
    DEFAULT_COMMISSION_RATE: float = Field(default=10.0, ge=0, le=100)

    @property
    def is_production(self) -> bool:
        return self.PROTEAN_ENV == "production"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
