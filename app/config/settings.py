"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/engine.log"

    # Commission splits (percent of the order pool per ancestor level)
    level1_split: Decimal = Field(
        default=Decimal("20"), ge=0, le=100,
        description="Level 1 (direct parent) share of the pool, percent"
    )
    level2_split: Decimal = Field(
        default=Decimal("18"), ge=0, le=100,
        description="Level 2 share of the pool, percent"
    )
    level3_split: Decimal = Field(
        default=Decimal("12"), ge=0, le=100,
        description="Level 3 share of the pool, percent"
    )

    # Pool used when a product has no affiliate_pool_percent configured
    default_pool_percent: Decimal = Field(
        default=Decimal("60"), ge=0, le=100,
        description="Default revenue share put into the commission pool, percent"
    )

    # Referral bonus paid to the referrer on paid-tier activation
    referral_bonus_amount: Decimal = Field(
        default=Decimal("20"), ge=0,
        description="Flat bonus credited to the referrer on paid upgrade"
    )
    referral_bonus_policy: Literal["per_upgrade", "once"] = Field(
        default="per_upgrade",
        description="per_upgrade: bonus on every activation; once: one bonus per referred affiliate"
    )

    # Payouts
    min_payout_amount: Decimal = Field(
        default=Decimal("500"), gt=0,
        description="Minimum amount for a payout request"
    )

    # Tree placement
    root_affiliate_id: int | None = Field(
        default=None,
        description="Designated root sponsor used when no referrer is given"
    )
    placement_max_attempts: int = Field(
        default=3, ge=1, le=10,
        description="Retries when a concurrent placement took the same slot"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith((
            'postgresql://', 'postgresql+asyncpg://', 'sqlite+aiosqlite://'
        )):
            raise ValueError(
                'DATABASE_URL must start with postgresql+asyncpg:// '
                '(or sqlite+aiosqlite:// for local runs)'
            )
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f'Unknown log level: {v}')
        return level

    @model_validator(mode='after')
    def validate_splits(self) -> 'Settings':
        """Ancestor splits alone must fit inside the pool."""
        total = self.level1_split + self.level2_split + self.level3_split
        if total > Decimal("100"):
            raise ValueError(
                f'Sum of level splits is {total}%, must not exceed 100%'
            )
        return self

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production':
            if self.debug:
                raise ValueError(
                    'DEBUG must be False in production environment. '
                    'Set DEBUG=false in your .env file.'
                )
            if self.database_url.startswith('sqlite'):
                raise ValueError(
                    'SQLite is only supported outside production. '
                    'Set DATABASE_URL to a postgresql+asyncpg:// URL.'
                )
        return self

    def get_level_splits(self) -> dict[int, Decimal]:
        """Level number -> split percent."""
        return {
            1: self.level1_split,
            2: self.level2_split,
            3: self.level3_split,
        }


# Global settings instance
settings = Settings()
