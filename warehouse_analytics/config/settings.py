"""
Warehouse Sales Analytics
Centralized Configuration Management

Pydantic settings with environment variable support for the database,
the CSV landing zone, logging, and report defaults.
"""

from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Warehouse Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="data_warehouse_analytics", alias="database", description="Database name")
    user: str = Field(default="analytics", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Database URL (overrides host/port)")

    @property
    def sync_url(self) -> str:
        """Sync database URL - uses DATABASE_URL if set, otherwise psycopg2 from host/port"""
        if self.url:
            return self.url
        return f"postgresql+psycopg2://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class DataLakeSettings(BaseSettings):
    """CSV Landing and Curated Zone Configuration"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    raw_path: str = Field(default="./data/raw", description="Directory holding the source CSV files")
    curated_path: str = Field(default="./data/curated", description="Directory for published reports")

    customers_file: str = Field(default="gold.dim_customers.csv", description="Customer dimension CSV")
    products_file: str = Field(default="gold.dim_products.csv", description="Product dimension CSV")
    sales_file: str = Field(default="gold.fact_sales.csv", description="Sales fact CSV")

    @property
    def table_files(self) -> Dict[str, str]:
        """Source file name per target table, dimensions first"""
        return {
            "dim_customers": self.customers_file,
            "dim_products": self.products_file,
            "fact_sales": self.sales_file,
        }


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class ReportSettings(BaseSettings):
    """Report Defaults"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    currency: str = Field(default="INR", description="Unit label for monetary metrics")
    moving_window: int = Field(default=3, ge=1, description="Periods in trailing moving windows")
    top_n: int = Field(default=5, ge=1, description="Default size of top/bottom rankings")


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

    app_name: str = Field(default="warehouse-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    version: str = Field(default="1.0.0", description="Application version")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    data_lake: DataLakeSettings = Field(default_factory=DataLakeSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    reports: ReportSettings = Field(default_factory=ReportSettings)

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

    Returns:
        Settings: Application settings instance
    """
    return Settings()
