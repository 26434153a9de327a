"""
Configuration Management for the Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.ledger import Currency


class GeminiSettings(BaseSettings):
    """Gemini assistant configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class StorageSettings(BaseSettings):
    """Local JSON persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    ledger_path: str = Field(
        default="data/finance_data.json",
        description="File holding the serialized ledger"
    )
    settings_path: str = Field(
        default="data/finance_settings.json",
        description="File holding display currency and exchange rates"
    )
    audit_path: str = Field(
        default="data/audit_log.jsonl",
        description="Append-only audit log"
    )


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

    display_currency: Currency = Field(
        default=Currency.USD,
        description="Currency used for all aggregated metrics"
    )

    # Reminder scan
    reminder_window_days: int = Field(
        default=3,
        ge=0,
        le=31,
        description="Remind about payments due within this many days"
    )
    reminder_grace_days: int = Field(
        default=1,
        ge=0,
        le=7,
        description="Days after a due date before it rolls to next month"
    )
    scan_debounce_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Delay after the last mutation before rescanning"
    )

    default_expense_category: str = Field(
        default="Uncategorized",
        description="Category label for expenses without one"
    )

    assistant_max_tool_rounds: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum function-call rounds per chat message"
    )

    @field_validator("default_expense_category")
    @classmethod
    def validate_category_label(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("default_expense_category cannot be blank")
        return v.strip()


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

    # Note: These are loaded lazily to allow partial configuration
    # (the tracker works without a Gemini key).

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.gemini
        results["gemini"] = True
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
