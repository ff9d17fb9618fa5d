"""
Configuration Management for the Personal Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which storage backend is in use and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Persistent store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|sql)$",
        description="Storage backend: in-process memory or SQL database"
    )
    database_url: str = Field(
        default="sqlite:///./ledger.db",
        description="SQLAlchemy database URL (sql backend only)"
    )
    echo_sql: bool = Field(
        default=False,
        description="Log every SQL statement"
    )

    # Retry policy for transient storage failures
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts for a storage call that fails transiently"
    )
    retry_max_wait_seconds: float = Field(
        default=2.0,
        ge=0.0,
        le=30.0,
        description="Upper bound for the exponential backoff between attempts"
    )


class LedgerSettings(BaseSettings):
    """Ledger behaviour defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency code stored when an entry does not supply one"
    )
    default_page_size: int = Field(
        default=20,
        ge=1,
        description="Entries per page when the caller gives no limit"
    )
    max_page_size: int = Field(
        default=100,
        ge=1,
        description="Largest page a caller may request"
    )
    recent_entries_limit: int = Field(
        default=5,
        ge=1,
        description="How many entries the recent-activity view returns"
    )
    hide_foreign_entries: bool = Field(
        default=False,
        description=(
            "Report entries owned by another account as not found "
            "instead of forbidden"
        )
    )

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper case."""
        return v.upper()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "ledger", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
