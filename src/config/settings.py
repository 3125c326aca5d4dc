"""
Sales Schema Portfolio
Centralized Configuration Management

Configuration is loaded with Pydantic settings. Every section reads its own
environment prefix, so values can be overridden without touching code.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: Optional[str] = Field(default=None, description="Full SQLAlchemy URL (overrides host/port)")
    driver: str = Field(default="postgresql+asyncpg", description="SQLAlchemy dialect+driver for the built URL")
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="sales_portfolio", description="Database name")
    user: str = Field(default="portfolio", description="Database user")
    password: SecretStr = Field(default="portfolio_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise built from the parts"""
        if self.url:
            return self.url
        return f"{self.driver}://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.name}"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured backend is SQLite"""
        return self.async_url.startswith("sqlite")


class ReportingSettings(BaseSettings):
    """Query and Reporting Parameters"""

    model_config = SettingsConfigDict(env_prefix="REPORTING_")

    target_location: str = Field(default="Nairobi", description="Location filtered by Q1")
    top_n: int = Field(default=3, description="Rows returned by the top customers query")
    high_value_threshold: float = Field(default=15000.0, description="Minimum total sales for the high value view")
    default_cost_ratio: float = Field(default=0.6, description="Cost as a fraction of price when no cost is known")
    batch_size: int = Field(default=1000, description="Rows per insert batch")

    @field_validator("default_cost_ratio")
    @classmethod
    def validate_cost_ratio(cls, v: float) -> float:
        """Cost ratio must be a fraction"""
        if not 0 <= v <= 1:
            raise ValueError("default_cost_ratio must be between 0 and 1")
        return v

    @field_validator("top_n", "batch_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Counts must be positive"""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v


class DataGenSettings(BaseSettings):
    """Synthetic Dataset Configuration"""

    model_config = SettingsConfigDict(env_prefix="DATAGEN_")

    output_dir: str = Field(default="./data/generated", description="Directory for generated CSV files")
    customers: int = Field(default=200, description="Customers to generate")
    products: int = Field(default=80, description="Products to generate")
    sales: int = Field(default=2000, description="Sales to generate")
    days: int = Field(default=365, description="Days of history to spread sales over")
    seed: int = Field(default=42, description="Random seed")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="console", alias="LOG_FORMAT", description="Log format: json or console")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="sales-schema-portfolio", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    datagen: DataGenSettings = Field(default_factory=DataGenSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
